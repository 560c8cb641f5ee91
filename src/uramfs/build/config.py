"""Build configuration.

Discovery rules:
- GOARCH env, else the host machine mapped to Go's architecture names
- GOROOT env, else `go env GOROOT`
- GOPATH env (required; typically ~/go)
- GOOS is always linux: the archive is a Linux initramfs
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)

GOOS = "linux"

# uname -m -> GOARCH
_MACHINE_TO_GOARCH: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
    "riscv64": "riscv64",
}


def host_goarch(machine: str | None = None) -> str:
    m = (machine if machine is not None else platform.machine()).lower()
    try:
        return _MACHINE_TO_GOARCH[m]
    except KeyError:
        raise ValueError(f"unsupported host architecture {m!r}; set GOARCH") from None


def _go_env_goroot(environ: Mapping[str, str]) -> str:
    try:
        proc = subprocess.run(
            ["go", "env", "GOROOT"],
            capture_output=True,
            text=True,
            env=dict(environ),
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ValueError(f"GOROOT is not set and `go env GOROOT` failed: {e}") from e
    goroot = proc.stdout.strip()
    if not goroot:
        raise ValueError("GOROOT is not set and `go env GOROOT` printed nothing")
    return goroot


@dataclass(frozen=True)
class BuildConfig:
    goroot: Path
    gopath: Path
    arch: str
    goos: str = GOOS
    temp_dir: Optional[Path] = None
    initial_cpio: Optional[Path] = None
    use_existing_init: bool = False
    output: Optional[Path] = None

    @property
    def platform_tag(self) -> str:
        return f"{self.goos}_{self.arch}"

    @property
    def default_output(self) -> Path:
        return Path("/tmp") / f"initramfs.{self.platform_tag}.cpio"

    @property
    def output_path(self) -> Path:
        return self.output if self.output is not None else self.default_output

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "BuildConfig":
        """Discover GOARCH/GOROOT/GOPATH from `environ` (default: os.environ).

        Keyword overrides win over discovery; None values are ignored.

        Raises:
            ValueError: if GOPATH is unset or GOROOT cannot be determined,
                or if the initial cpio is not a readable file.
        """
        env = os.environ if environ is None else environ
        given = {k: v for k, v in overrides.items() if v is not None}

        if "arch" not in given:
            arch = env.get("GOARCH", "")
            given["arch"] = os.path.normpath(arch) if arch else host_goarch()

        if "goroot" not in given:
            root = env.get("GOROOT", "")
            given["goroot"] = Path(os.path.normpath(root)) if root else Path(_go_env_goroot(env))
        logger.info("Using %r as GOROOT", str(given["goroot"]))

        if "gopath" not in given:
            gopath = env.get("GOPATH", "")
            if not gopath:
                raise ValueError("You have to set GOPATH, which is typically ~/go")
            given["gopath"] = Path(gopath)

        for key in ("goroot", "gopath", "temp_dir", "initial_cpio", "output"):
            if key in given:
                given[key] = Path(given[key])

        cpio = given.get("initial_cpio")
        if cpio is not None and not (cpio.is_file() and os.access(cpio, os.R_OK)):
            raise ValueError(f"initial cpio {str(cpio)!r} is not a readable file")

        return cls(**given)
