import gzip
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Dict, List

import pytest

from infra.interfaces import FileInfo, VirtualFileSystem
from infra.os_fs import OSFileSystem
from infra.table_builder import build_table
from static_fs import StaticFileSystem

COMPRESSIBLE = b"hello world, hello static filesystem\n" * 200
INCOMPRESSIBLE = os.urandom(512)
TINY = b"hi"
MTIME = datetime(2024, 9, 26, 12, 30, tzinfo=timezone.utc)


def make_tree(root: Path) -> Path:
    """
    root/
      index.html       compressible
      random.bin       incompressible
      tiny.txt
      sub dir/
        b.txt          compressible
        a.txt
      empty/
    """
    files = {
        "index.html": COMPRESSIBLE,
        "random.bin": INCOMPRESSIBLE,
        "tiny.txt": TINY,
        "sub dir/b.txt": COMPRESSIBLE * 2,
        "sub dir/a.txt": b"a",
    }
    (root / "empty").mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
    ts = MTIME.timestamp()
    for p in [root, *root.rglob("*")]:
        os.utime(p, (ts, ts))
    return root


def write_fake_fs(path: Path, nodes: List[dict]) -> str:
    with gzip.open(path, "wt") as f:
        for node in nodes:
            f.write(json.dumps(node) + "\n")
    return str(path)


class CountingFileSystem(VirtualFileSystem):
    """Wraps a filesystem and counts read_dir calls per path."""

    def __init__(self, fs: VirtualFileSystem):
        self._fs = fs
        self.read_dir_calls: Dict[str, int] = {}

    def stat(self, path: str) -> FileInfo:
        return self._fs.stat(path)

    def read_dir(self, path: str) -> List[FileInfo]:
        self.read_dir_calls[path] = self.read_dir_calls.get(path, 0) + 1
        return self._fs.read_dir(path)

    def open(self, path: str) -> BinaryIO:
        return self._fs.open(path)


@pytest.fixture
def tree(tmp_path) -> Path:
    return make_tree(tmp_path / "tree")


@pytest.fixture
def table(tree):
    return build_table(OSFileSystem(tree))


@pytest.fixture
def static_fs(table) -> StaticFileSystem:
    return StaticFileSystem(table)
