"""Tabular listing of a `newc` archive.

Records are decoded with `uramfs.codecs.cpio.read_records()` and laid out as a
pandas DataFrame with a fixed column order, one row per record in stream order
(the trailer is not listed). Duplicate names are kept: they are meaningful
(later entries override earlier ones on extraction).
"""

from __future__ import annotations

import stat
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from uramfs.codecs.cpio import Record, read_records

if TYPE_CHECKING:  # pragma: no cover
    import pandas as pd


LISTING_SCHEMA: dict[str, str] = {
    "name": "string",
    "mode": "Int64",
    "perms": "string",
    "size": "Int64",
    "mtime": "Int64",
    "uid": "Int64",
    "gid": "Int64",
    "nlink": "Int64",
    "ino": "Int64",
    "dev_major": "Int64",
    "dev_minor": "Int64",
    "rdev_major": "Int64",
    "rdev_minor": "Int64",
}

LISTING_COLUMNS: list[str] = list(LISTING_SCHEMA)


def _row(record: Record) -> dict[str, object]:
    return {
        "name": record.name,
        "mode": record.mode,
        "perms": stat.filemode(record.mode),
        "size": record.size,
        "mtime": record.mtime,
        "uid": record.uid,
        "gid": record.gid,
        "nlink": record.nlink,
        "ino": record.ino,
        "dev_major": record.dev_major,
        "dev_minor": record.dev_minor,
        "rdev_major": record.rdev_major,
        "rdev_minor": record.rdev_minor,
    }


def records_table(records: Iterable[Record]) -> "pd.DataFrame":
    """Build the listing DataFrame for `records` (stream order, canonical columns)."""
    import pandas as pd  # local import to keep module import-light

    df = pd.DataFrame([_row(r) for r in records], columns=LISTING_COLUMNS)
    return df.astype(LISTING_SCHEMA)


def read_archive_table(path: str | Path) -> "pd.DataFrame":
    """Decode the archive at `path` and return its listing.

    Raises:
        MalformedSourceArchiveError: if the archive cannot be decoded.
    """
    p = Path(path)
    with p.open("rb") as f:
        return records_table(read_records(f))


def write_table_csv(df: "pd.DataFrame", path: str | Path) -> None:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    df.loc[:, LISTING_COLUMNS].to_csv(out, index=False, lineterminator="\n")
