"""Assembly driver: the end-to-end initramfs build.

Sequence (any failure aborts the run; the scratch directory is always removed):

1. expand seed globs under GOPATH and resolve their dependency closure
2. build the Go toolchain (and the init program, unless the existing one is kept)
   into a scratch directory
3. compose the archive: optional seed cpio (ingested through the init-rename
   policy), GOROOT files under `go/`, GOPATH files at the root, the scratch
   tree, then the trailer
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from uramfs.archive.composer import ArchiveComposer
from uramfs.archive.transforms import ingest_transform
from uramfs.build.config import BuildConfig
from uramfs.build.paths import scratch_directory, seed_packages
from uramfs.build.toolchain import CompilerService, GoCompiler, build_toolchain
from uramfs.core.model import Manifests
from uramfs.core.resolve import resolve_closure

logger = logging.getLogger(__name__)

# Always shipped from GOROOT: runtime headers needed by the assembler.
SYSTEM_ROOT_EXTRAS: tuple[str, ...] = ("pkg/include",)

GOROOT_PREFIX = "go"
INIT_PACKAGE_DIR = "src/github.com/u-root/u-root/cmds/init"


@dataclass(frozen=True)
class AssemblyResult:
    output: Path
    manifests: Manifests
    records_written: int
    bytes_written: int


def compute_manifests(seeds: Iterable[str], compiler: CompilerService) -> Manifests:
    """Closure manifests, with the GOROOT extras in front whenever GOROOT sources are shipped."""
    closure = resolve_closure(seeds, compiler)
    if not closure.system:
        return closure
    system = list(SYSTEM_ROOT_EXTRAS)
    system.extend(p for p in closure.system if p not in SYSTEM_ROOT_EXTRAS)
    return Manifests(system=tuple(system), user=closure.user)


def default_compiler(config: BuildConfig) -> GoCompiler:
    env = dict(os.environ)
    env["GOOS"] = config.goos
    env["GOARCH"] = config.arch
    return GoCompiler(environ=env)


def assemble(
    config: BuildConfig,
    patterns: Sequence[str] = (),
    *,
    compiler: Optional[CompilerService] = None,
) -> AssemblyResult:
    """Build the initramfs described by `config` and return where it went.

    Args:
        config: roots, architecture and policy flags.
        patterns: seed globs relative to GOPATH (default: every u-root command).
        compiler: compiler service; defaults to the `go` command.

    Raises:
        FatalClosureError, BuildError, SourceFileUnreadableError,
        MalformedSourceArchiveError: propagated unchanged. A partially written
            output file may be left behind and must be discarded by the caller.
        OSError: if the initial cpio cannot be read or the output directory
            cannot be created; raised before anything is built.
    """
    svc = compiler if compiler is not None else default_compiler(config)

    # Unusable inputs and outputs fail before the toolchain is built.
    if config.initial_cpio is not None:
        Path(config.initial_cpio).open("rb").close()
    out_path = config.output_path
    out_path.parent.mkdir(parents=True, exist_ok=True)

    seeds = seed_packages(config.gopath, patterns)
    logger.info("%d seed packages", len(seeds))
    manifests = compute_manifests(seeds, svc)

    with scratch_directory(config.temp_dir) as scratch:
        build_toolchain(svc, goroot=config.goroot, scratch=scratch, platform_tag=config.platform_tag)

        if not config.use_existing_init:
            svc.build(".", output=scratch / "init", workdir=config.gopath / INIT_PACKAGE_DIR)

        with out_path.open("wb") as out:
            composer = ArchiveComposer(out)

            if config.initial_cpio is not None:
                with Path(config.initial_cpio).open("rb") as initial:
                    composer.ingest(initial, ingest_transform(config.use_existing_init))

            composer.append_files(config.goroot, GOROOT_PREFIX, manifests.system)
            composer.append_files(config.gopath, "", manifests.user)
            composer.append_tree(scratch, "")
            composer.finalize()

    logger.info("Output file is %s", out_path)
    return AssemblyResult(
        output=out_path,
        manifests=manifests,
        records_written=composer.records_written,
        bytes_written=composer.bytes_written,
    )
