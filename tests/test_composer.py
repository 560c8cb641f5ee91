from __future__ import annotations

import io
import os
import stat
from pathlib import Path

import pytest

from conftest import decode, file_record, newc_bytes
from uramfs.archive.composer import (
    ArchiveClosedError,
    ArchiveComposer,
    ComposerState,
    SourceFileUnreadableError,
    join_name,
)
from uramfs.archive.transforms import identity, ingest_transform
from uramfs.codecs.cpio import BLOCK_SIZE, TRAILER_NAME, MalformedSourceArchiveError, Record


def _dir_record(name: str) -> Record:
    return Record(name=name, mode=stat.S_IFDIR | 0o755, nlink=2)


def _tree(root: Path) -> Path:
    (root / "bin").mkdir(parents=True)
    (root / "bin" / "go").write_bytes(b"go-binary")
    (root / "init").write_bytes(b"init-binary")
    (root / "pkg" / "tool" / "linux_amd64").mkdir(parents=True)
    (root / "pkg" / "tool" / "linux_amd64" / "compile").write_bytes(b"compile")
    (root / "a.txt").write_bytes(b"a")
    return root


def test_state_machine_and_double_finalize() -> None:
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    assert c.state is ComposerState.EMPTY
    c.write_record(file_record("x", b"1"))
    assert c.state is ComposerState.APPENDING
    c.finalize()
    assert c.state is ComposerState.FINALIZED
    size = len(buf.getvalue())

    with pytest.raises(ArchiveClosedError):
        c.finalize()
    assert len(buf.getvalue()) == size
    assert buf.getvalue().count(TRAILER_NAME.encode()) == 1


def test_finalize_on_empty_composer_writes_only_trailer() -> None:
    buf = io.BytesIO()
    ArchiveComposer(buf).finalize()
    assert decode(buf.getvalue()) == []
    assert len(buf.getvalue()) == BLOCK_SIZE


@pytest.mark.parametrize(
    "call",
    [
        lambda c, tmp: c.write_record(file_record("x", b"")),
        lambda c, tmp: c.ingest(io.BytesIO(newc_bytes([]))),
        lambda c, tmp: c.append_files(tmp, "", ["f"]),
        lambda c, tmp: c.append_tree(tmp, ""),
    ],
)
def test_writes_after_finalize_fail(call, tmp_path: Path) -> None:
    (tmp_path / "f").write_bytes(b"f")
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    c.finalize()
    before = buf.getvalue()
    with pytest.raises(ArchiveClosedError):
        call(c, tmp_path)
    assert buf.getvalue() == before


def test_ingest_then_finalize_preserves_record_count() -> None:
    src = newc_bytes(
        [
            file_record("etc/passwd", b"root:x:0:0::/:/bin/sh\n", mtime=123, uid=7),
            _dir_record("etc"),
            file_record("etc/passwd", b"override\n"),
        ]
    )
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    assert c.ingest(io.BytesIO(src)) == 3
    c.finalize()

    out = decode(buf.getvalue())
    assert [r.name for r in out] == ["etc/passwd", "etc", "etc/passwd"]
    assert out[0].mtime == 0 and out[0].uid == 0
    assert out[2].read_bytes() == b"override\n"
    assert c.records_written == 3


def test_ingest_malformed_source_raises() -> None:
    c = ArchiveComposer(io.BytesIO())
    truncated = newc_bytes([file_record("a", b"abc")])[:116]
    with pytest.raises(MalformedSourceArchiveError):
        c.ingest(io.BytesIO(truncated))


def test_ingest_signed_header_field_is_malformed() -> None:
    src = newc_bytes([file_record("a", b"abc")])
    signed_ino = src[:6] + b"-0000001" + src[14:]
    c = ArchiveComposer(io.BytesIO())
    with pytest.raises(MalformedSourceArchiveError, match="non-hex"):
        c.ingest(io.BytesIO(signed_ino), identity)


def test_init_rename_end_to_end(tmp_path: Path) -> None:
    seed = newc_bytes([file_record("init", b"old init"), file_record("bin/sh", b"sh")])
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    (scratch / "init").write_bytes(b"new init")

    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    c.ingest(io.BytesIO(seed), ingest_transform(keep_existing_init=False))

    partial = decode(buf.getvalue() + newc_bytes([]))
    names = [r.name for r in partial]
    assert "init" not in names
    assert partial[names.index("inito")].read_bytes() == b"old init"

    c.append_tree(scratch, "")
    c.finalize()

    out = decode(buf.getvalue())
    inits = [r for r in out if r.name == "init"]
    assert len(inits) == 1
    assert inits[0].read_bytes() == b"new init"
    assert [r.name for r in out] == ["inito", "bin/sh", "init"]


def test_keeping_existing_init_passes_it_through() -> None:
    seed = newc_bytes([file_record("init", b"old init")])
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    c.ingest(io.BytesIO(seed), ingest_transform(keep_existing_init=True))
    c.finalize()
    assert [r.name for r in decode(buf.getvalue())] == ["init"]


def test_append_files_names_and_content(tmp_path: Path) -> None:
    gopath = tmp_path / "gopath"
    (gopath / "cmds" / "init").mkdir(parents=True)
    (gopath / "cmds" / "ls").mkdir(parents=True)
    (gopath / "cmds" / "init" / "main.go").write_bytes(b"package main\n// init\n")
    (gopath / "cmds" / "ls" / "ls.go").write_bytes(b"package main\n// ls\n")

    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    assert c.append_files(gopath, "", ["cmds/init/main.go", "cmds/ls/ls.go"]) == 2
    c.finalize()

    out = decode(buf.getvalue())
    assert [r.name for r in out] == ["cmds/init/main.go", "cmds/ls/ls.go"]
    assert out[0].read_bytes() == (gopath / "cmds" / "init" / "main.go").read_bytes()
    assert out[1].read_bytes() == (gopath / "cmds" / "ls" / "ls.go").read_bytes()


def test_append_files_with_prefix_and_directory_entries(tmp_path: Path) -> None:
    goroot = tmp_path / "goroot"
    inc = goroot / "pkg" / "include"
    inc.mkdir(parents=True)
    (inc / "funcdata.h").write_bytes(b"#define X\n")
    (inc / "textflag.h").write_bytes(b"#define Y\n")
    (goroot / "src" / "fmt").mkdir(parents=True)
    (goroot / "src" / "fmt" / "print.go").write_bytes(b"package fmt\n")

    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    c.append_files(goroot, "go", ["pkg/include", "src/fmt/print.go"])
    c.finalize()

    assert [r.name for r in decode(buf.getvalue())] == [
        "go/pkg/include",
        "go/pkg/include/funcdata.h",
        "go/pkg/include/textflag.h",
        "go/src/fmt/print.go",
    ]


def test_append_files_aborts_on_first_unreadable(tmp_path: Path) -> None:
    (tmp_path / "ok1").write_bytes(b"1")
    (tmp_path / "ok2").write_bytes(b"2")
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    with pytest.raises(SourceFileUnreadableError) as e:
        c.append_files(tmp_path, "", ["ok1", "missing.go", "ok2"])
    assert e.value.path == str(tmp_path / "missing.go")
    assert "missing.go" in str(e.value)
    assert c.records_written == 1


def test_append_files_rejects_empty_relative_path(tmp_path: Path) -> None:
    c = ArchiveComposer(io.BytesIO())
    with pytest.raises(ValueError, match="empty relative path"):
        c.append_files(tmp_path, "go", [""])


@pytest.mark.parametrize("rel", ["/etc/shadow", "../outside", "bin/../../outside"])
def test_append_files_rejects_paths_leaving_root(tmp_path: Path, rel: str) -> None:
    root = tmp_path / "root"
    root.mkdir()
    (tmp_path / "outside").write_bytes(b"secret")
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    with pytest.raises(ValueError, match="is not inside"):
        c.append_files(root, "", [rel])
    assert buf.getvalue() == b""


def test_files_hard_linked_outside_the_tree_stay_distinct(tmp_path: Path) -> None:
    root = tmp_path / "root"
    root.mkdir()
    (root / "a").write_bytes(b"aaaa")
    (root / "b").write_bytes(b"bbbb")
    os.link(root / "a", tmp_path / "a.link")
    os.link(root / "b", tmp_path / "b.link")

    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    c.append_tree(root, "")
    c.finalize()

    out = decode(buf.getvalue())
    assert [r.name for r in out] == ["a", "b"]
    # the unpacker links regular files sharing (ino, dev) when nlink >= 2
    assert all(r.nlink == 1 for r in out)
    assert [r.read_bytes() for r in out] == [b"aaaa", b"bbbb"]


def test_append_tree_is_lexical_preorder(tmp_path: Path) -> None:
    root = _tree(tmp_path / "scratch")
    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    assert c.append_tree(root, "") == 8
    c.finalize()

    out = decode(buf.getvalue())
    assert [r.name for r in out] == [
        "a.txt",
        "bin",
        "bin/go",
        "init",
        "pkg",
        "pkg/tool",
        "pkg/tool/linux_amd64",
        "pkg/tool/linux_amd64/compile",
    ]
    assert out[1].is_dir
    assert out[2].read_bytes() == b"go-binary"


def test_append_tree_missing_root(tmp_path: Path) -> None:
    c = ArchiveComposer(io.BytesIO())
    with pytest.raises(SourceFileUnreadableError):
        c.append_tree(tmp_path / "nope", "")


def test_append_tree_keeps_symlinks_unfollowed(tmp_path: Path) -> None:
    root = tmp_path / "r"
    (root / "real").mkdir(parents=True)
    (root / "real" / "f").write_bytes(b"f")
    os.symlink("real", root / "alias")

    buf = io.BytesIO()
    c = ArchiveComposer(buf)
    c.append_tree(root, "x")
    c.finalize()
    out = decode(buf.getvalue())
    assert [r.name for r in out] == ["x/alias", "x/real", "x/real/f"]
    assert out[0].is_symlink
    assert out[0].read_bytes() == b"real"


def test_identical_content_gives_identical_archives(tmp_path: Path) -> None:
    a = _tree(tmp_path / "one")
    b = _tree(tmp_path / "two")
    os.utime(b / "init", (1_000_000, 1_000_000))

    def build(root: Path) -> bytes:
        buf = io.BytesIO()
        c = ArchiveComposer(buf)
        c.append_tree(root, "")
        c.finalize()
        return buf.getvalue()

    assert build(a) == build(b)


def test_file_transform_can_be_disabled(tmp_path: Path) -> None:
    (tmp_path / "f").write_bytes(b"f")
    os.utime(tmp_path / "f", (1_234_567, 1_234_567))
    buf = io.BytesIO()
    c = ArchiveComposer(buf, file_transform=identity)
    c.append_files(tmp_path, "", ["f"])
    c.finalize()
    assert decode(buf.getvalue())[0].mtime == 1_234_567


def test_file_that_grows_while_archiving_is_an_error(tmp_path: Path) -> None:
    from uramfs.codecs.cpio import record_from_path

    f = tmp_path / "grow"
    f.write_bytes(b"12")
    record = record_from_path(f, "grow")
    f.write_bytes(b"1234")

    c = ArchiveComposer(io.BytesIO())
    with pytest.raises(SourceFileUnreadableError, match="size changed"):
        c.write_record(record)


def test_join_name() -> None:
    assert join_name("", "cmds/ls/ls.go") == "cmds/ls/ls.go"
    assert join_name("go", "src/fmt/print.go") == "go/src/fmt/print.go"
