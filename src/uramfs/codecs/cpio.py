"""SVR4 `newc` cpio codec (record model + wire format).

Wire layout of one record:

    header  : 110 bytes
        magic     : "070701" ("070702" is accepted on read)
        13 fields : 8 upper-case hex digits each
                    ino, mode, uid, gid, nlink, mtime, filesize,
                    devmajor, devminor, rdevmajor, rdevminor, namesize, check
    name    : namesize bytes, NUL-terminated, padded to a 4-byte boundary
              (measured from the start of the header)
    data    : filesize bytes, padded to a 4-byte boundary

The stream ends with a record named `TRAILER!!!` (size 0) and is padded with
NUL bytes to a 512-byte block boundary.

Decoding is streaming: `read_records()` pulls one record at a time from a
binary file object and never loads the whole archive.
"""

from __future__ import annotations

import io
import os
import re
import stat
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Union

MAGIC = b"070701"
MAGIC_CRC = b"070702"
HEADER_SIZE = 110
ALIGNMENT = 4
BLOCK_SIZE = 512
TRAILER_NAME = "TRAILER!!!"

_FIELD_WIDTH = 8
_FIELD_COUNT = 13
_MAX_FIELD = 0xFFFFFFFF
_HEX_FIELD = re.compile(rb"[0-9A-Fa-f]{8}")


class MalformedSourceArchiveError(ValueError):
    """Raised when an input archive cannot be decoded."""

    def __init__(self, message: str, *, offset: int) -> None:
        super().__init__(f"malformed cpio archive at byte {offset}: {message}")
        self.offset = offset


@dataclass(frozen=True)
class BytesContent:
    """In-memory record content (ingested records, symlink targets)."""

    data: bytes = b""

    def open(self) -> BinaryIO:
        return io.BytesIO(self.data)


@dataclass(frozen=True)
class FileContent:
    """Record content read lazily from a file at write time."""

    path: str

    def open(self) -> BinaryIO:
        return open(self.path, "rb")


Content = Union[BytesContent, FileContent]

EMPTY = BytesContent(b"")


@dataclass(frozen=True)
class Record:
    """One archive entry: name, metadata and a content source."""

    name: str
    mode: int = 0
    size: int = 0
    mtime: int = 0
    uid: int = 0
    gid: int = 0
    ino: int = 0
    nlink: int = 1
    dev_major: int = 0
    dev_minor: int = 0
    rdev_major: int = 0
    rdev_minor: int = 0
    content: Content = EMPTY

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise TypeError(f"Record.name: expected str, got {type(self.name).__name__}")
        if isinstance(self.content, BytesContent) and len(self.content.data) != self.size:
            raise ValueError(
                f"Record {self.name!r}: size {self.size} does not match content length {len(self.content.data)}"
            )

    @property
    def is_dir(self) -> bool:
        return stat.S_ISDIR(self.mode)

    @property
    def is_regular(self) -> bool:
        return stat.S_ISREG(self.mode)

    @property
    def is_symlink(self) -> bool:
        return stat.S_ISLNK(self.mode)

    def read_bytes(self) -> bytes:
        with self.content.open() as f:
            return f.read()


def trailer_record() -> Record:
    return Record(name=TRAILER_NAME, nlink=1)


def padding(length: int, alignment: int = ALIGNMENT) -> bytes:
    """NUL bytes needed to bring `length` up to a multiple of `alignment`."""
    return b"\0" * ((-length) % alignment)


def _encode_name(name: str) -> bytes:
    return os.fsencode(name) + b"\0"


def _decode_name(raw: bytes) -> str:
    return os.fsdecode(raw)


def encode_header(record: Record) -> bytes:
    """Encode the header, name and name padding of `record`.

    Raises:
        ValueError: if any numeric field does not fit in 32 bits.
    """
    name = _encode_name(record.name)
    values = (
        ("ino", record.ino),
        ("mode", record.mode),
        ("uid", record.uid),
        ("gid", record.gid),
        ("nlink", record.nlink),
        ("mtime", record.mtime),
        ("size", record.size),
        ("dev_major", record.dev_major),
        ("dev_minor", record.dev_minor),
        ("rdev_major", record.rdev_major),
        ("rdev_minor", record.rdev_minor),
        ("namesize", len(name)),
        ("check", 0),
    )
    parts = [MAGIC]
    for field_name, value in values:
        if not 0 <= value <= _MAX_FIELD:
            raise ValueError(f"Record {record.name!r}: {field_name}={value} does not fit in a newc header")
        parts.append(b"%08X" % value)
    parts.append(name)
    parts.append(padding(HEADER_SIZE + len(name)))
    return b"".join(parts)


def record_from_path(path: str | os.PathLike[str], name: str) -> Record:
    """Build a record named `name` from the file at `path` (symlinks not followed).

    Regular files are read lazily when the record is written. Symlinks carry
    their target as content. Directories and special files have no content.

    Raises:
        OSError: if `path` cannot be stat'ed or a symlink cannot be read.
    """
    p = os.fspath(path)
    st = os.lstat(p)
    mode = st.st_mode
    content: Content = EMPTY
    size = 0
    if stat.S_ISREG(mode):
        size = st.st_size
        content = FileContent(p)
    elif stat.S_ISLNK(mode):
        target = os.fsencode(os.readlink(p))
        size = len(target)
        content = BytesContent(target)

    return Record(
        name=name,
        mode=mode,
        size=size,
        mtime=int(st.st_mtime) & _MAX_FIELD,
        uid=st.st_uid,
        gid=st.st_gid,
        ino=st.st_ino & _MAX_FIELD,
        nlink=st.st_nlink,
        dev_major=os.major(st.st_dev),
        dev_minor=os.minor(st.st_dev),
        rdev_major=os.major(st.st_rdev),
        rdev_minor=os.minor(st.st_rdev),
        content=content,
    )


class _Cursor:
    """Reads exact byte counts from a stream and tracks the offset."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.offset = 0

    def read(self, n: int) -> bytes:
        chunks: list[bytes] = []
        remaining = n
        while remaining > 0:
            chunk = self._stream.read(remaining)
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        self.offset += len(data)
        return data

    def read_exact(self, n: int, *, what: str) -> bytes:
        start = self.offset
        data = self.read(n)
        if len(data) != n:
            raise MalformedSourceArchiveError(f"truncated {what} (wanted {n} bytes, got {len(data)})", offset=start)
        return data


def _parse_header(raw: bytes, *, offset: int) -> list[int]:
    magic = raw[: len(MAGIC)]
    if magic not in (MAGIC, MAGIC_CRC):
        raise MalformedSourceArchiveError(f"bad magic {magic!r}", offset=offset)
    fields: list[int] = []
    pos = len(MAGIC)
    for _ in range(_FIELD_COUNT):
        chunk = raw[pos : pos + _FIELD_WIDTH]
        if not _HEX_FIELD.fullmatch(chunk):
            raise MalformedSourceArchiveError(f"non-hex header field {chunk!r}", offset=offset + pos)
        fields.append(int(chunk, 16))
        pos += _FIELD_WIDTH
    return fields


def read_records(stream: BinaryIO) -> Iterator[Record]:
    """Yield records from a `newc` stream up to, not including, the trailer.

    Raises:
        MalformedSourceArchiveError: on a bad header, truncated input, or end of
            input before the trailer.
    """
    cur = _Cursor(stream)
    while True:
        start = cur.offset
        raw = cur.read(HEADER_SIZE)
        if not raw:
            raise MalformedSourceArchiveError("end of input before trailer", offset=start)
        if len(raw) != HEADER_SIZE:
            raise MalformedSourceArchiveError(f"truncated header ({len(raw)} bytes)", offset=start)

        (ino, mode, uid, gid, nlink, mtime, size, dmaj, dmin, rmaj, rmin, namesize, _check) = _parse_header(
            raw, offset=start
        )
        if namesize == 0:
            raise MalformedSourceArchiveError("zero-length name", offset=start)

        name_raw = cur.read_exact(namesize, what="name")
        if not name_raw.endswith(b"\0"):
            raise MalformedSourceArchiveError("name is not NUL-terminated", offset=start)
        cur.read_exact(len(padding(HEADER_SIZE + namesize)), what="name padding")
        name = _decode_name(name_raw[:-1])

        data = cur.read_exact(size, what=f"data of {name!r}")
        cur.read_exact(len(padding(size)), what=f"data padding of {name!r}")

        if name == TRAILER_NAME:
            return

        yield Record(
            name=name,
            mode=mode,
            size=size,
            mtime=mtime,
            uid=uid,
            gid=gid,
            ino=ino,
            nlink=nlink,
            dev_major=dmaj,
            dev_minor=dmin,
            rdev_major=rmaj,
            rdev_minor=rmin,
            content=BytesContent(data),
        )
