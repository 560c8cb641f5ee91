"""uramfs archive assembly.

- `ArchiveComposer`: ordered `newc` output stream (ingest, append, finalize)
- record transforms (reproducibility, init rename)
- tabular listing of an existing archive
"""

from __future__ import annotations

from .composer import ArchiveClosedError, ArchiveComposer, ComposerState, SourceFileUnreadableError
from .listing import read_archive_table, records_table
from .transforms import chain, ingest_transform, make_reproducible, rename_if_named

__all__ = [
    "ArchiveClosedError",
    "ArchiveComposer",
    "ComposerState",
    "SourceFileUnreadableError",
    "chain",
    "ingest_transform",
    "make_reproducible",
    "read_archive_table",
    "records_table",
    "rename_if_named",
]
