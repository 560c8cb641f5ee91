from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from conftest import FakeCompiler
from uramfs.build import toolchain
from uramfs.build.toolchain import BuildError, GoCompiler, build_toolchain
from uramfs.core.resolve import PackageLookupError


class _Proc:
    def __init__(self, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def test_build_args_are_static_and_stripped() -> None:
    go = GoCompiler(environ={"PATH": "/bin"})
    assert go.build_args("cmd/asm", "/tmp/x/asm") == [
        "go",
        "build",
        "-x",
        "-a",
        "-o",
        "/tmp/x/asm",
        "-installsuffix",
        "cgo",
        "-ldflags",
        "-s -w",
        "cmd/asm",
    ]
    assert go.build_args("", "out", ("-tags", "cmd_go_bootstrap"))[-2:] == ["-tags", "cmd_go_bootstrap"]
    assert go.env["CGO_ENABLED"] == "0"
    assert go.env["PATH"] == "/bin"


def test_build_failure_carries_combined_output(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []

    def fake_run(args, **kw):
        calls.append((args, kw))
        return _Proc(returncode=1, stdout="main.go:3: undefined: x\n")

    monkeypatch.setattr(subprocess, "run", fake_run)
    with pytest.raises(BuildError) as e:
        GoCompiler(environ={}).build(".", output="init", workdir="/src/init")

    assert e.value.package == "."
    assert "undefined: x" in e.value.output
    assert calls[0][1]["cwd"] == "/src/init"
    assert calls[0][1]["stderr"] is subprocess.STDOUT
    assert calls[0][1]["env"]["CGO_ENABLED"] == "0"


def test_list_metadata_decodes_go_list(monkeypatch: pytest.MonkeyPatch) -> None:
    payload = json.dumps({"ImportPath": "fmt", "Goroot": True, "GoFiles": ["print.go"], "Deps": ["errors"]})
    monkeypatch.setattr(subprocess, "run", lambda args, **kw: _Proc(stdout=payload))

    pkg = GoCompiler(environ={}).list_metadata("fmt")
    assert pkg.import_path == "fmt"
    assert pkg.goroot is True
    assert pkg.deps == ("errors",)


@pytest.mark.parametrize(
    "proc",
    [
        _Proc(returncode=1, stderr="can't load package: package nope: cannot find package"),
        _Proc(stdout="{broken"),
    ],
)
def test_list_metadata_failures_are_lookup_errors(monkeypatch: pytest.MonkeyPatch, proc: _Proc) -> None:
    monkeypatch.setattr(subprocess, "run", lambda args, **kw: proc)
    with pytest.raises(PackageLookupError) as e:
        GoCompiler(environ={}).list_metadata("nope")
    assert e.value.import_path == "nope"


def test_missing_go_binary_is_a_build_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(args, **kw):
        raise FileNotFoundError(2, "No such file or directory", "go")

    monkeypatch.setattr(subprocess, "run", boom)
    with pytest.raises(BuildError):
        GoCompiler(environ={}).build("cmd/link", output="link")


def test_build_toolchain_layout(tmp_path: Path) -> None:
    svc = FakeCompiler()
    built = build_toolchain(svc, goroot=Path("/usr/lib/go"), scratch=tmp_path, platform_tag="linux_arm64")

    assert [p.relative_to(tmp_path).as_posix() for p in built] == [
        "go/bin/go",
        "go/pkg/tool/linux_arm64/compile",
        "go/pkg/tool/linux_arm64/link",
        "go/pkg/tool/linux_arm64/asm",
    ]
    assert svc.builds[0][2] == Path("/usr/lib/go/src/cmd/go")
    assert svc.builds[0][3] == ("-tags", "cmd_go_bootstrap")
    assert [b[0] for b in svc.builds[1:]] == [f"cmd/{t}" for t in toolchain.TOOLCHAIN_TOOLS]
