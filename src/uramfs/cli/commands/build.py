"""`uramfs build` command.

Builds the initramfs:
- seed packages are glob patterns relative to GOPATH
  (default: every command under u-root's cmds/)
- `--cpio` starts from an existing archive; its `init` is renamed to `inito`
  unless `--useinit` keeps it (and skips building a new init)
- `--tmpdir` replaces the temporary build directory (it is removed afterwards)

Any failure prints an error and exits 1. A partially written output file is
reported and must be discarded.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from uramfs.archive.composer import ArchiveClosedError, SourceFileUnreadableError
from uramfs.build.config import BuildConfig
from uramfs.build.driver import assemble
from uramfs.build.toolchain import BuildError
from uramfs.codecs.cpio import MalformedSourceArchiveError
from uramfs.core.resolve import FatalClosureError

_FATAL = (
    FatalClosureError,
    BuildError,
    SourceFileUnreadableError,
    MalformedSourceArchiveError,
    ArchiveClosedError,
    OSError,
)


def register(app: typer.Typer) -> None:
    @app.command("build")
    def build(
        patterns: Optional[List[str]] = typer.Argument(None, help="Package glob patterns relative to GOPATH."),
        cpio: Optional[str] = typer.Option(None, "--cpio", help="An initial cpio image to build on."),
        useinit: bool = typer.Option(
            False, "--useinit", help="If there is an existing init, don't replace it."
        ),
        tmpdir: Optional[str] = typer.Option(None, "--tmpdir", help="Build directory to use instead of a new temp dir."),
        output: Optional[str] = typer.Option(
            None, "--output", "-o", help="Output archive path (default: /tmp/initramfs.<goos>_<arch>.cpio)."
        ),
    ) -> None:
        """Build an initramfs archive."""
        try:
            config = BuildConfig.from_env(
                temp_dir=tmpdir,
                initial_cpio=cpio,
                use_existing_init=useinit,
                output=output,
            )
        except ValueError as e:
            raise typer.BadParameter(str(e)) from e

        try:
            result = assemble(config, patterns or ())
        except _FATAL as e:
            typer.echo(f"error: {e}", err=True)
            if config.output_path.exists():
                typer.echo(f"partial output left at {config.output_path}; discard it", err=True)
            raise typer.Exit(code=1) from e

        typer.echo(str(Path(result.output)))
