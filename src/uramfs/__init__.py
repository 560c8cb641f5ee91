"""uramfs: reproducible initramfs assembly for u-root style systems.

v0.1.x resolves the dependency closure of a set of Go commands, builds a
static Go toolchain, and writes everything into one `newc` cpio archive.
"""

from __future__ import annotations

from uramfs.archive import ArchiveClosedError, ArchiveComposer, SourceFileUnreadableError
from uramfs.codecs import MalformedSourceArchiveError, Record
from uramfs.core import FatalClosureError, Manifests, Package, PackageLookupError, resolve_closure

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ArchiveClosedError",
    "ArchiveComposer",
    "FatalClosureError",
    "MalformedSourceArchiveError",
    "Manifests",
    "Package",
    "PackageLookupError",
    "Record",
    "SourceFileUnreadableError",
    "resolve_closure",
]
