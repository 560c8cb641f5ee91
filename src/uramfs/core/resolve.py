"""Resolver: dependency closure of a set of seed packages.

- Seeds are best-effort: a seed the compiler service cannot describe is logged
  and skipped.
- Dependencies are mandatory: any dependency that cannot be described aborts
  resolution with `FatalClosureError`.
- Every discovered package's sources are partitioned by owning root into the
  system-root and user-tree manifests. Both manifests are de-duplicated in
  discovery order, so the output is deterministic for a given input.
"""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from uramfs.core.model import Manifests, OrderedSet, Package

logger = logging.getLogger(__name__)


class PackageLookupError(LookupError):
    """Raised when the compiler service cannot describe an import path."""

    def __init__(self, import_path: str, detail: str = "") -> None:
        msg = f"cannot list package {import_path!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.import_path = import_path
        self.detail = detail


class FatalClosureError(RuntimeError):
    """Raised when a transitive dependency cannot be described."""

    def __init__(self, import_path: str, cause: BaseException | None = None) -> None:
        msg = f"dependency {import_path!r} could not be resolved"
        if cause is not None:
            msg = f"{msg}: {cause}"
        super().__init__(msg)
        self.import_path = import_path


class MetadataSource(Protocol):
    def list_metadata(self, import_path: str) -> Package: ...


def resolve_closure(seeds: Iterable[str], source: MetadataSource) -> Manifests:
    """Compute the dependency closure of `seeds` and partition its files.

    Args:
        seeds: ordered package identifiers to include.
        source: anything with `list_metadata(import_path) -> Package`, raising
            `PackageLookupError` when the path cannot be described.

    Returns:
        Manifests with root-relative source paths (`src/<import_path>/<file>`).

    Raises:
        FatalClosureError: if any dependency of a resolved seed cannot be described.
    """
    resolved: dict[str, Package] = {}
    deps: OrderedSet[str] = OrderedSet()

    for seed in seeds:
        if seed in resolved:
            continue
        try:
            pkg = source.list_metadata(seed)
        except PackageLookupError as e:
            logger.warning("Can't list package %s, ignoring: %s", seed, e)
            continue
        resolved[seed] = pkg
        deps.update(pkg.deps)

    # `deps` grows while it is walked; each import path is queried at most once.
    i = 0
    while i < len(deps):
        import_path = deps[i]
        i += 1
        if import_path in resolved:
            continue
        try:
            pkg = source.list_metadata(import_path)
        except PackageLookupError as e:
            raise FatalClosureError(import_path, e) from e
        logger.debug("resolved dependency %s", import_path)
        resolved[import_path] = pkg
        deps.update(pkg.deps)

    system: OrderedSet[str] = OrderedSet()
    user: OrderedSet[str] = OrderedSet()
    for pkg in resolved.values():
        (system if pkg.goroot else user).update(pkg.source_paths())

    logger.info(
        "closure: %d packages, %d system-root files, %d user-tree files",
        len(resolved),
        len(system),
        len(user),
    )
    return Manifests(system=system.to_tuple(), user=user.to_tuple())
