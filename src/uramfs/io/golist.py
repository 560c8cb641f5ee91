"""`go list -json` decoding.

`go list -json <pkg>` prints one JSON object per package. Only the fields the
closure resolver needs are read:

{
  "Dir": "/usr/lib/go/src/fmt",
  "ImportPath": "fmt",
  "Goroot": true,
  "GoFiles": ["doc.go", "format.go", "print.go", "scan.go"],
  "SFiles": [],
  "HFiles": [],
  "Deps": ["errors", "internal/fmtsort", ...]
}

Rules:
- `ImportPath` is required and must be a non-empty string.
- list fields default to [] when absent; explicit null is rejected.
- `Goroot` defaults to False when absent and must be a bool when present.
- source files are ordered Go files, then assembly files, then headers.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from uramfs.core.model import Package

_MISSING = object()


def _require_dict(value: Any, *, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ValueError(f"{where}: expected JSON object, got {type(value).__name__}")
    return value


def _get_str_array(data: dict[str, Any], key: str) -> list[str]:
    """Return array value for key; default [] if key missing; error if explicitly null."""
    v = data.get(key, _MISSING)
    if v is _MISSING:
        return []
    if v is None:
        raise ValueError(f"{key}: must be an array; got null")
    if not isinstance(v, list):
        raise ValueError(f"{key}: expected JSON array, got {type(v).__name__}")
    for i, item in enumerate(v):
        if not isinstance(item, str):
            raise ValueError(f"{key}[{i}]: expected str, got {type(item).__name__}")
    return list(v)


def package_from_json_dict(data: Any) -> Package:
    obj = _require_dict(data, where="go list")

    import_path = obj.get("ImportPath")
    if not isinstance(import_path, str) or not import_path.strip():
        raise ValueError("ImportPath: must be a non-empty string")

    goroot = obj.get("Goroot", False)
    if not isinstance(goroot, bool):
        raise ValueError(f"Goroot: expected bool, got {type(goroot).__name__}")

    directory = obj.get("Dir")
    if directory is not None and not isinstance(directory, str):
        raise ValueError(f"Dir: expected str, got {type(directory).__name__}")

    files = _get_str_array(obj, "GoFiles") + _get_str_array(obj, "SFiles") + _get_str_array(obj, "HFiles")

    return Package(
        import_path=import_path,
        goroot=goroot,
        files=tuple(files),
        deps=tuple(_get_str_array(obj, "Deps")),
        dir=directory,
    )


def parse_package_json(text: str) -> Package:
    """Decode the output of `go list -json` for a single package."""
    if not isinstance(text, str):
        raise TypeError(f"parse_package_json: expected str, got {type(text).__name__}")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"go list: invalid JSON: {e}") from e
    return package_from_json_dict(data)


def read_package_json(path: str | Path) -> Package:
    p = Path(path)
    return parse_package_json(p.read_text(encoding="utf-8"))
