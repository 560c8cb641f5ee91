"""uramfs CLI entrypoint.

Typer application with one module per subcommand under `uramfs.cli.commands`.
Logging is configured here and nowhere else.
"""

from __future__ import annotations

import logging

import typer

app = typer.Typer(
    name="uramfs",
    add_completion=False,
    no_args_is_help=True,
    help="Assemble a reproducible initramfs (newc cpio) from Go packages and a static Go toolchain.",
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@app.callback()
def _callback(
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level: DEBUG|INFO|WARNING|ERROR."),
) -> None:
    """uramfs CLI."""
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(f"log level must be one of {', '.join(LOG_LEVELS)}")
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, level))


@app.command("version")
def version() -> None:
    """Print the installed uramfs version."""
    from uramfs import __version__

    typer.echo(__version__)


def _register_commands() -> None:
    """Register CLI subcommands.

    Importing these modules must remain lightweight so `uramfs --help` is fast.
    """
    from uramfs.cli.commands import build as build_cmd
    from uramfs.cli.commands import list_archive as list_archive_cmd

    build_cmd.register(app)
    list_archive_cmd.register(app)


_register_commands()
