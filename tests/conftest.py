"""Shared test fixtures for uramfs.

Puts `src/` on `sys.path` so the suite runs from a plain checkout, and provides
a fake compiler service plus helpers that build records and `newc` bytes.
"""

from __future__ import annotations

import io
import stat
import sys
from pathlib import Path
from typing import Iterable, Optional, Sequence


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    sys.path.insert(0, str(src_dir))


# =============================================================================
# Shared Test Helpers
# =============================================================================


class FakeCompiler:
    """In-memory compiler service.

    `packages` maps import path -> Package. Unknown paths raise
    PackageLookupError. `build()` writes a small placeholder binary so the
    scratch tree has real files in it.
    """

    def __init__(self, packages: Optional[dict] = None, fail_build: Optional[str] = None) -> None:
        self.packages = dict(packages or {})
        self.fail_build = fail_build
        self.lookups: list[str] = []
        self.builds: list[tuple[str, Path, Optional[Path], tuple[str, ...]]] = []

    def list_metadata(self, import_path: str):
        from uramfs.core.resolve import PackageLookupError

        self.lookups.append(import_path)
        try:
            return self.packages[import_path]
        except KeyError:
            raise PackageLookupError(import_path, "no such package") from None

    def build(self, package: str, *, output, workdir=None, options: Sequence[str] = ()) -> None:
        from uramfs.build.toolchain import BuildError

        out = Path(output)
        self.builds.append((package, out, Path(workdir) if workdir else None, tuple(options)))
        if self.fail_build is not None and package == self.fail_build:
            raise BuildError(package, "compile: boom", "exit status 2")
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(f"binary:{package or workdir}\n".encode("utf-8"))


def make_package(import_path: str, files: Iterable[str] = (), deps: Iterable[str] = (), goroot: bool = False):
    from uramfs.core.model import Package

    return Package(import_path=import_path, goroot=goroot, files=tuple(files), deps=tuple(deps))


def file_record(name: str, data: bytes, **meta):
    """A regular-file record with in-memory content."""
    from uramfs.codecs.cpio import BytesContent, Record

    meta.setdefault("mode", stat.S_IFREG | 0o644)
    return Record(name=name, size=len(data), content=BytesContent(data), **meta)


def newc_bytes(records: Iterable) -> bytes:
    """Encode records (unchanged) into a complete newc archive."""
    from uramfs.archive.composer import ArchiveComposer

    buf = io.BytesIO()
    composer = ArchiveComposer(buf)
    for r in records:
        composer.write_record(r)
    composer.finalize()
    return buf.getvalue()


def decode(data: bytes) -> list:
    from uramfs.codecs.cpio import read_records

    return list(read_records(io.BytesIO(data)))
