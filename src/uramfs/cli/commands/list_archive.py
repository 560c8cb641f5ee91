"""`uramfs ls` command.

Lists the records of a `newc` archive in stream order (trailer excluded), as a
table on stdout or as CSV with `--csv`.
"""

from __future__ import annotations

from typing import Optional

import typer

from uramfs.archive.listing import LISTING_COLUMNS, read_archive_table, write_table_csv
from uramfs.codecs.cpio import MalformedSourceArchiveError


def register(app: typer.Typer) -> None:
    @app.command("ls")
    def ls(
        archive: str = typer.Argument(..., help="Path to a newc cpio archive."),
        csv: Optional[str] = typer.Option(None, "--csv", help="Write the listing as CSV to this path."),
        long: bool = typer.Option(False, "--long", "-l", help="Show every metadata column."),
    ) -> None:
        """List the records of a cpio archive."""
        try:
            df = read_archive_table(archive)
        except (OSError, MalformedSourceArchiveError) as e:
            typer.echo(f"error: {e}", err=True)
            raise typer.Exit(code=1) from e

        if csv:
            write_table_csv(df, csv)
            typer.echo(csv)
            return

        if df.empty:
            return
        columns = LISTING_COLUMNS if long else ["perms", "size", "name"]
        typer.echo(df.loc[:, columns].to_string(index=False))
