import json
import os
import tempfile

import pytest

from conftest import COMPRESSIBLE, CountingFileSystem, write_fake_fs
from infra.fake_fs.filesystem import FakeFileSystem
from infra.os_fs import OSFileSystem
from static_fs import StaticFileSystem
from vfsgen import Options, create_input_fs, generate, generate_from_folder


def test_fill_missing_defaults():
    options = Options()
    options.fill_missing()
    assert options.variable_name == "assets"
    assert options.filename == "assets_vfsdata.jsonl.gz"
    assert options.description.startswith("assets statically implements")

    options = Options(variable_name="Web")
    options.fill_missing()
    assert options.filename == "web_vfsdata.jsonl.gz"


def test_generate_writes_loadable_artifact(tree, tmp_path):
    out = tmp_path / "out.jsonl.gz"
    table = generate(OSFileSystem(tree), Options(filename=str(out)))

    fs = StaticFileSystem.from_artifact(out)
    assert list(fs.table) == list(table)
    with fs.open("/index.html") as f:
        assert f.read() == COMPRESSIBLE


def test_options_do_not_change_table(tree, tmp_path):
    a = generate(OSFileSystem(tree), Options(filename=str(tmp_path / "a.jsonl.gz")))
    b = generate(
        OSFileSystem(tree),
        Options(
            filename=str(tmp_path / "b.jsonl.gz"),
            variable_name="other",
            description="other description",
            build_tags="release",
        ),
    )
    assert dict(a) == dict(b)


def test_failed_generation_writes_nothing(tree, tmp_path):
    class BrokenFileSystem(CountingFileSystem):
        def read_dir(self, path):
            if path == "/sub dir":
                raise PermissionError(path)
            return super().read_dir(path)

    out = tmp_path / "out.jsonl.gz"
    with pytest.raises(PermissionError):
        generate(BrokenFileSystem(OSFileSystem(tree)), Options(filename=str(out)))
    assert not out.exists()


def test_generate_from_folder(tree, tmp_path, monkeypatch):
    folder = tmp_path / "job"
    folder.mkdir()
    (folder / "config.json").write_text(
        json.dumps({"input": str(tree), "variable_name": "site"})
    )
    monkeypatch.delenv("VFSGEN_OUTPUT_DIR", raising=False)

    generate_from_folder(str(folder))

    fs = StaticFileSystem.from_artifact(folder / "site_vfsdata.jsonl.gz")
    assert fs.open("/sub dir/a.txt").read() == b"a"


def test_generate_from_folder_output_dir_env(tree, tmp_path, monkeypatch):
    folder = tmp_path / "job"
    out_dir = tmp_path / "out"
    folder.mkdir()
    out_dir.mkdir()
    (folder / "config.json").write_text(json.dumps({"input": str(tree)}))
    monkeypatch.setenv("VFSGEN_OUTPUT_DIR", str(out_dir))

    generate_from_folder(str(folder))

    assert os.listdir(out_dir) == ["assets_vfsdata.jsonl.gz"]
    assert not (folder / "assets_vfsdata.jsonl.gz").exists()


def test_create_input_fs_kinds(tree, tmp_path):
    assert isinstance(create_input_fs(str(tree)), OSFileSystem)

    tree_json = tmp_path / "tree.json"
    tree_json.write_text(
        json.dumps({"hello.txt": {"type": "file", "content": "hello"}})
    )
    fs = create_input_fs(str(tree_json))
    assert isinstance(fs, FakeFileSystem)
    assert fs.open("/hello.txt").read() == b"hello"


def test_json_tree_leaves_no_temporary_files(tmp_path, monkeypatch):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))

    tree_json = tmp_path / "tree.json"
    tree_json.write_text(json.dumps({"motd": {"type": "file", "content": "hi"}}))
    fs = create_input_fs(str(tree_json))

    assert fs.open("/motd").read() == b"hi"
    assert os.listdir(scratch) == []
    assert sorted(os.listdir(tmp_path)) == ["scratch", "tree.json"]


def test_regenerate_after_fake_fs_dump_changes(tmp_path):
    dump = tmp_path / "fs.jsonl.gz"
    out = tmp_path / "out.jsonl.gz"

    for content in ["first", "second version"]:
        write_fake_fs(
            dump,
            [
                {"path": "/", "is_dir": True},
                {"path": "/motd", "is_dir": False, "content": content},
            ],
        )
        generate(create_input_fs(str(dump)), Options(filename=str(out)))

    with StaticFileSystem.from_artifact(out).open("/motd") as f:
        assert f.read() == b"second version"
    assert sorted(os.listdir(tmp_path)) == ["fs.jsonl.gz", "out.jsonl.gz"]
