"""Filesystem/path provider for the assembly driver.

- glob patterns against a source tree root (sorted, like a shell would)
- make paths relative to a root
- a scratch directory that is always removed, on success and on failure
"""

from __future__ import annotations

import glob
import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

# Every command under u-root's cmds/ directory.
DEFAULT_SEED_PATTERN = "src/github.com/u-root/u-root/cmds/[a-zA-Z]*"


class SourceTree:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def glob(self, pattern: str) -> list[Path]:
        """Return paths matching `pattern` (joined to the root), sorted."""
        return [Path(p) for p in sorted(glob.glob(str(self.root / pattern)))]

    def relative(self, path: str | Path) -> str:
        """`path` relative to the root, with '/' separators.

        Raises:
            ValueError: if `path` is not under the root.
        """
        try:
            return Path(path).relative_to(self.root).as_posix()
        except ValueError:
            raise ValueError(f"can't get relative path for {path} under {self.root}") from None


def seed_packages(gopath: str | Path, patterns: Iterable[str] = ()) -> list[str]:
    """Expand glob patterns under GOPATH into package identifiers.

    Patterns are relative to GOPATH; matches are made relative to GOPATH/src.
    With no patterns, every u-root command is selected.
    """
    pats = list(patterns) or [DEFAULT_SEED_PATTERN]
    tree = SourceTree(gopath)
    src = SourceTree(Path(gopath) / "src")
    seeds: list[str] = []
    for pat in pats:
        for match in tree.glob(pat):
            seeds.append(src.relative(match))
    return seeds


@contextmanager
def scratch_directory(preferred: Optional[str | Path] = None) -> Iterator[Path]:
    """Yield a scratch directory and remove it recursively on exit.

    If `preferred` is given it is created when missing and used instead of a
    fresh temporary directory; it is removed all the same.
    """
    if preferred is not None:
        path = Path(preferred)
        path.mkdir(parents=True, exist_ok=True)
    else:
        path = Path(tempfile.mkdtemp(prefix="u-root"))
    try:
        yield path
    finally:
        logger.info("Removing %s", path)
        shutil.rmtree(path)
