"""Codecs for archive wire formats.

v0.1 scope:
- SVR4 `newc` cpio (the format the Linux kernel unpacks as an initramfs).
"""

from __future__ import annotations

from .cpio import (
    BLOCK_SIZE,
    TRAILER_NAME,
    BytesContent,
    FileContent,
    MalformedSourceArchiveError,
    Record,
    encode_header,
    read_records,
    record_from_path,
    trailer_record,
)

__all__ = [
    "BLOCK_SIZE",
    "TRAILER_NAME",
    "BytesContent",
    "FileContent",
    "MalformedSourceArchiveError",
    "Record",
    "encode_header",
    "read_records",
    "record_from_path",
    "trailer_record",
]
