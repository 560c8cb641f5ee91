"""Compiler service backed by the `go` command.

- `build()` produces one statically linked executable (`CGO_ENABLED=0`,
  stripped with `-ldflags "-s -w"`).
- `list_metadata()` describes one package via `go list -json`.
- `build_toolchain()` builds the four toolchain binaries the initramfs needs:
  go, compile, link and asm.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from uramfs.core.model import Package
from uramfs.core.resolve import PackageLookupError
from uramfs.io.golist import parse_package_json

logger = logging.getLogger(__name__)

TOOLCHAIN_TOOLS = ("compile", "link", "asm")


class CompilerService(Protocol):
    def build(
        self,
        package: str,
        *,
        output: str | Path,
        workdir: Optional[str | Path] = None,
        options: Sequence[str] = (),
    ) -> None: ...

    def list_metadata(self, import_path: str) -> Package: ...


class BuildError(RuntimeError):
    """Raised when `go build` fails; carries the combined process output."""

    def __init__(self, package: str, output: str, detail: str = "") -> None:
        msg = f"building statically linked go tool info {package}: {output}"
        if detail:
            msg = f"{msg}, {detail}"
        super().__init__(msg)
        self.package = package
        self.output = output


class GoCompiler:
    """Runs the `go` command with a cgo-free environment."""

    def __init__(self, go: str = "go", environ: Mapping[str, str] | None = None) -> None:
        self.go = go
        base = dict(os.environ if environ is None else environ)
        base["CGO_ENABLED"] = "0"
        self.env = base

    def build_args(self, package: str, output: str | Path, options: Sequence[str] = ()) -> list[str]:
        args = [
            self.go,
            "build",
            "-x",
            "-a",
            "-o",
            str(output),
            "-installsuffix",
            "cgo",
            "-ldflags",
            "-s -w",
        ]
        args.extend(options)
        if package:
            args.append(package)
        return args

    def build(
        self,
        package: str,
        *,
        output: str | Path,
        workdir: Optional[str | Path] = None,
        options: Sequence[str] = (),
    ) -> None:
        """Build `package` (or the package in `workdir` when empty) into `output`.

        Raises:
            BuildError: on a non-zero exit or if `go` cannot be started.
        """
        args = self.build_args(package, output, options)
        logger.debug("running %s (in %s)", args, workdir or ".")
        try:
            proc = subprocess.run(
                args,
                cwd=str(workdir) if workdir else None,
                env=self.env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as e:
            raise BuildError(package, "", str(e)) from e
        if proc.returncode != 0:
            raise BuildError(package, proc.stdout, f"exit status {proc.returncode}")

    def list_metadata(self, import_path: str) -> Package:
        """Describe `import_path` with `go list -json`.

        Raises:
            PackageLookupError: if `go list` fails or its output cannot be decoded.
        """
        try:
            proc = subprocess.run(
                [self.go, "list", "-json", import_path],
                env=self.env,
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise PackageLookupError(import_path, str(e)) from e
        if proc.returncode != 0:
            raise PackageLookupError(import_path, (proc.stderr or proc.stdout).strip())
        try:
            return parse_package_json(proc.stdout)
        except ValueError as e:
            raise PackageLookupError(import_path, str(e)) from e


def build_toolchain(compiler: CompilerService, *, goroot: Path, scratch: Path, platform_tag: str) -> list[Path]:
    """Build go, compile, link and asm into `scratch/go/...`.

    The `go` command is built with the `cmd_go_bootstrap` tag, which keeps it
    much smaller. Returns the paths of the built binaries.
    """
    logger.info("Building go tools...")
    built: list[Path] = []

    go_bin = scratch / "go" / "bin" / "go"
    compiler.build("", output=go_bin, workdir=goroot / "src" / "cmd" / "go", options=("-tags", "cmd_go_bootstrap"))
    built.append(go_bin)

    tool_dir = scratch / "go" / "pkg" / "tool" / platform_tag
    for tool in TOOLCHAIN_TOOLS:
        out = tool_dir / tool
        compiler.build(f"cmd/{tool}", output=out)
        built.append(out)
    return built
