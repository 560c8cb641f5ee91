"""Core data model for uramfs.

- `Package`: build metadata for one Go package, as reported by the compiler service.
- `OrderedSet`: insertion-ordered de-duplicating sequence.
- `Manifests`: the two root-relative file lists produced by the closure resolver.

This module must not import codecs/archive/build/cli.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")


def _norm_str(value: Any, *, where: str) -> str:
    """Normalize a required string: strip and reject empty/whitespace."""
    if not isinstance(value, str):
        raise ValueError(f"{where}: expected str, got {type(value).__name__}")
    s = value.strip()
    if not s:
        raise ValueError(f"{where}: must be a non-empty string")
    return s


def _norm_str_tuple(values: Iterable[Any], *, where: str) -> tuple[str, ...]:
    if isinstance(values, (str, bytes)):
        raise ValueError(f"{where}: expected a sequence of strings, got {type(values).__name__}")
    return tuple(_norm_str(v, where=f"{where}[{i}]") for i, v in enumerate(values))


class OrderedSet(Generic[T]):
    """A set that remembers first-insertion order.

    Membership is tracked in a set; iteration follows the order in which
    elements were first added. Re-adding an element is a no-op.
    """

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._seen: set[T] = set()
        self._items: list[T] = []
        self.update(items)

    def add(self, item: T) -> bool:
        """Add `item`; return True if it was not already present."""
        if item in self._seen:
            return False
        self._seen.add(item)
        self._items.append(item)
        return True

    def update(self, items: Iterable[T]) -> None:
        for item in items:
            self.add(item)

    def __contains__(self, item: object) -> bool:
        return item in self._seen

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index: int) -> T:
        return self._items[index]

    def __repr__(self) -> str:
        return f"OrderedSet({self._items!r})"

    def to_tuple(self) -> tuple[T, ...]:
        return tuple(self._items)


@dataclass(frozen=True)
class Package:
    """Build metadata for one package.

    `files` are names relative to the package directory (Go files, then
    assembly files, then headers). `deps` are import paths as reported by the
    compiler service. `goroot` is the owning-root flag: True for packages of
    the system standard library tree, False for the user tree.
    """

    import_path: str
    goroot: bool = False
    files: tuple[str, ...] = ()
    deps: tuple[str, ...] = ()
    dir: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "import_path", _norm_str(self.import_path, where="Package.import_path"))
        if not isinstance(self.goroot, bool):
            raise ValueError(f"Package.goroot: expected bool, got {type(self.goroot).__name__}")
        object.__setattr__(self, "files", _norm_str_tuple(self.files, where="Package.files"))
        object.__setattr__(self, "deps", _norm_str_tuple(self.deps, where="Package.deps"))

    def source_paths(self) -> tuple[str, ...]:
        """Root-relative paths of this package's sources: `src/<import_path>/<file>`."""
        return tuple(posixpath.join("src", self.import_path, f) for f in self.files)


@dataclass(frozen=True)
class Manifests:
    """Root-relative file lists, one per provenance class."""

    system: tuple[str, ...] = field(default_factory=tuple)
    user: tuple[str, ...] = field(default_factory=tuple)
