"""uramfs build: configuration, compiler service and the assembly driver."""

from __future__ import annotations

from .config import BuildConfig
from .driver import AssemblyResult, assemble, compute_manifests
from .paths import scratch_directory, seed_packages
from .toolchain import BuildError, GoCompiler, build_toolchain

__all__ = [
    "AssemblyResult",
    "BuildConfig",
    "BuildError",
    "GoCompiler",
    "assemble",
    "build_toolchain",
    "compute_manifests",
    "scratch_directory",
    "seed_packages",
]
