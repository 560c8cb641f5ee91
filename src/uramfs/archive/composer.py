"""Archive composer: builds one `newc` output stream.

Lifecycle: EMPTY -> APPENDING -> FINALIZED. Every write operation is accepted
in EMPTY and APPENDING; `finalize()` writes the single trailer and closes the
composer. Anything called after that raises `ArchiveClosedError`.

Records are written in exactly the order the caller supplies them. Later
records with a duplicate name override earlier ones when the archive is
extracted, so ordering is part of the output's meaning.
"""

from __future__ import annotations

import enum
import logging
import os
import posixpath
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator

from uramfs.archive.transforms import Transform, make_reproducible
from uramfs.codecs.cpio import (
    BLOCK_SIZE,
    FileContent,
    Record,
    encode_header,
    padding,
    read_records,
    record_from_path,
    trailer_record,
)

logger = logging.getLogger(__name__)

_CHUNK = 1024 * 1024


class ArchiveClosedError(RuntimeError):
    """Raised when a finalized composer is used again."""


class SourceFileUnreadableError(OSError):
    """Raised when a file to be archived cannot be read."""

    def __init__(self, path: str | os.PathLike[str], detail: str = "") -> None:
        p = os.fspath(path)
        msg = f"cannot read {p}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.path = p


class ComposerState(enum.Enum):
    EMPTY = "empty"
    APPENDING = "appending"
    FINALIZED = "finalized"


def join_name(prefix: str, relative: str) -> str:
    """Archive name for `relative` under `prefix` ('' yields the bare relative path)."""
    rel = relative.replace(os.sep, "/")
    if not prefix:
        return rel
    return posixpath.join(prefix, rel)


def walk_tree(root: Path) -> Iterator[Path]:
    """Depth-first pre-order walk of everything under `root`, in lexical order.

    `root` itself is not yielded. Symlinks to directories are yielded but not followed.
    """
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        raise SourceFileUnreadableError(root, e.strerror or str(e)) from e
    for entry in entries:
        path = Path(entry.path)
        yield path
        if entry.is_dir(follow_symlinks=False):
            yield from walk_tree(path)


class ArchiveComposer:
    """Writes a `newc` archive to a binary stream owned by the caller.

    Args:
        out: writable binary stream.
        file_transform: applied to every record built from the filesystem
            (`append_files`, `append_tree`). Defaults to `make_reproducible`.
    """

    def __init__(self, out: BinaryIO, *, file_transform: Transform = make_reproducible) -> None:
        self._out = out
        self._file_transform = file_transform
        self._state = ComposerState.EMPTY
        self.records_written = 0
        self.bytes_written = 0

    def __enter__(self) -> "ArchiveComposer":
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    @property
    def state(self) -> ComposerState:
        return self._state

    def _check_open(self) -> None:
        if self._state is ComposerState.FINALIZED:
            raise ArchiveClosedError("archive already finalized")
        self._state = ComposerState.APPENDING

    def _emit(self, data: bytes) -> None:
        self._out.write(data)
        self.bytes_written += len(data)

    def _emit_content(self, record: Record) -> None:
        # Exactly `record.size` bytes go out; a file that changed size underneath is an error.
        try:
            f = record.content.open()
        except OSError as e:
            raise SourceFileUnreadableError(_content_path(record), e.strerror or str(e)) from e
        with f:
            remaining = record.size
            while remaining > 0:
                chunk = _read_chunk(f, min(_CHUNK, remaining), record)
                if not chunk:
                    break
                self._emit(chunk)
                remaining -= len(chunk)
            if remaining or _read_chunk(f, 1, record):
                raise SourceFileUnreadableError(
                    _content_path(record),
                    f"size changed while archiving (expected {record.size} bytes)",
                )

    def write_record(self, record: Record) -> None:
        """Write one record (header, name, content, padding)."""
        self._check_open()
        self._emit(encode_header(record))
        if record.size:
            self._emit_content(record)
            self._emit(padding(record.size))
        self.records_written += 1

    def ingest(self, source: BinaryIO, transform: Transform = make_reproducible) -> int:
        """Copy every record of an existing archive through `transform`.

        The source trailer is not copied. Returns the number of records written.

        Raises:
            MalformedSourceArchiveError: if `source` cannot be decoded.
        """
        self._check_open()
        count = 0
        for record in read_records(source):
            self.write_record(transform(record))
            count += 1
        logger.debug("ingested %d records", count)
        return count

    def _record_for(self, path: Path, name: str) -> Record:
        try:
            record = record_from_path(path, name)
        except OSError as e:
            raise SourceFileUnreadableError(path, e.strerror or str(e)) from e
        return self._file_transform(record)

    def _write_subtree(self, root: Path, prefix: str) -> int:
        count = 0
        for path in walk_tree(root):
            rel = path.relative_to(root).as_posix()
            self.write_record(self._record_for(path, join_name(prefix, rel)))
            count += 1
        return count

    def append_files(self, root: str | os.PathLike[str], prefix: str, relative_paths: Iterable[str]) -> int:
        """Write `root/<rel>` as `prefix/<rel>` for each path, in order.

        A path naming a directory writes the directory followed by its subtree.
        Stops at the first failure. Returns the number of records written.

        Raises:
            ValueError: for an empty, absolute or `..` relative path (it would
                name `root` itself or a file outside it).
            SourceFileUnreadableError: naming the first path that cannot be read.
        """
        self._check_open()
        base = Path(root)
        count = 0
        for rel in relative_paths:
            if not rel or not rel.strip():
                raise ValueError("append_files: empty relative path")
            if os.path.isabs(rel) or ".." in Path(rel).parts:
                raise ValueError(f"append_files: {rel!r} is not inside {str(base)!r}")
            path = base / rel
            name = join_name(prefix, rel)
            record = self._record_for(path, name)
            self.write_record(record)
            count += 1
            if record.is_dir:
                count += self._write_subtree(path, name)
        return count

    def append_tree(self, root: str | os.PathLike[str], prefix: str = "") -> int:
        """Write every entry under `root` as `prefix/<relative path>`.

        Returns the number of records written.
        """
        self._check_open()
        return self._write_subtree(Path(root), prefix)

    def finalize(self) -> None:
        """Write the trailer and pad the stream to a full block."""
        if self._state is ComposerState.FINALIZED:
            raise ArchiveClosedError("archive already finalized")
        self._emit(encode_header(trailer_record()))
        self._emit(padding(self.bytes_written, BLOCK_SIZE))
        self._out.flush()
        self._state = ComposerState.FINALIZED
        logger.debug("finalized archive: %d records, %d bytes", self.records_written, self.bytes_written)


def _read_chunk(f: BinaryIO, n: int, record: Record) -> bytes:
    try:
        return f.read(n)
    except OSError as e:
        raise SourceFileUnreadableError(_content_path(record), e.strerror or str(e)) from e


def _content_path(record: Record) -> str:
    if isinstance(record.content, FileContent):
        return record.content.path
    return record.name
