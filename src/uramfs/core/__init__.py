"""uramfs core: data model and dependency closure resolution.

This package is intentionally standalone and must not import CLI/codecs/archive/build
to avoid circular dependencies.
"""

from __future__ import annotations

from .model import Manifests, OrderedSet, Package
from .resolve import FatalClosureError, PackageLookupError, resolve_closure

__all__ = [
    "Manifests",
    "OrderedSet",
    "Package",
    "FatalClosureError",
    "PackageLookupError",
    "resolve_closure",
]
