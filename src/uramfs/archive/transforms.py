"""Record transforms.

A transform is a pure function `Record -> Record`. Transforms never add, drop
or reorder records; they only rewrite names and metadata. They compose with
`chain()`, and the ingest policy is picked once per run by `ingest_transform()`.
"""

from __future__ import annotations

import posixpath
from dataclasses import replace
from typing import Callable

from uramfs.codecs.cpio import Record

Transform = Callable[[Record], Record]

INIT_NAME = "init"
RENAMED_INIT_NAME = "inito"


def normalize_name(name: str) -> str:
    """Clean an archive-internal path and make it relative ('/bin/sh' -> 'bin/sh')."""
    cleaned = posixpath.normpath(name)
    cleaned = cleaned.lstrip("/")
    if cleaned in ("", "."):
        return "."
    return cleaned


def make_reproducible(record: Record) -> Record:
    """Zero timestamps, owner/group ids, inode and containing-device numbers.

    `nlink` is reset to 1: with every inode zeroed, a link count above 1 would
    make the kernel unpacker hard-link unrelated files to each other.

    Device numbers of device nodes (`rdev_*`) describe the node itself and are
    kept, unlike the containing-device numbers; zeroing them would turn
    `/dev/console` into a different device.
    """
    return replace(
        record,
        name=normalize_name(record.name),
        mtime=0,
        uid=0,
        gid=0,
        ino=0,
        nlink=1,
        dev_major=0,
        dev_minor=0,
    )


def rename_if_named(old: str, new: str) -> Transform:
    def _rename(record: Record) -> Record:
        if record.name == old:
            return replace(record, name=new)
        return record

    _rename.__name__ = f"rename_{old}_to_{new}"
    return _rename


def identity(record: Record) -> Record:
    return record


def chain(*transforms: Transform) -> Transform:
    """Compose transforms left to right."""
    if not transforms:
        return identity
    if len(transforms) == 1:
        return transforms[0]

    def _chained(record: Record) -> Record:
        for t in transforms:
            record = t(record)
        return record

    return _chained


def ingest_transform(keep_existing_init: bool) -> Transform:
    """Transform for records ingested from a seed archive.

    When a new init program will be written later, an ingested `init` is moved
    aside to `inito` before normalization.
    """
    if keep_existing_init:
        return make_reproducible
    return chain(rename_if_named(INIT_NAME, RENAMED_INIT_NAME), make_reproducible)
