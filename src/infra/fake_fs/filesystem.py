import io
from typing import BinaryIO, List, Optional

from infra.fake_fs.fs_utils import permissions_to_mode
from infra.fake_fs_datastore import FakeFSDataStore
from infra.interfaces import FileInfo, VirtualFileSystem, to_utc
from vfsgen_utils import normalize_path


class FakeFileSystem(VirtualFileSystem):
    """
    Virtual filesystem backed by a FakeFSDataStore, typically loaded from a .jsonl.gz node dump.
    File sizes are taken from the stored content, not from the recorded size column.
    """

    def __init__(self, store: FakeFSDataStore):
        self.store = store

    def resolve_path(
        self, path: str, cwd: str = "/", expect_dir=False
    ) -> Optional[dict]:
        node = self.store.get_node(normalize_path(path, cwd))
        if expect_dir and node and not node["is_dir"]:
            return None
        return node

    @staticmethod
    def _info(node: dict) -> FileInfo:
        is_dir = bool(node["is_dir"])
        size = 0 if is_dir else len((node.get("content") or "").encode("utf-8"))
        default_permissions = "drwxr-xr-x" if is_dir else "-rw-r--r--"
        return FileInfo(
            name=node["name"] or "/",
            size=size,
            mod_time=to_utc(node.get("modified_at")),
            mode=permissions_to_mode(node.get("permissions") or default_permissions),
            is_dir=is_dir,
        )

    def stat(self, path: str) -> FileInfo:
        node = self.resolve_path(path)
        if not node:
            raise FileNotFoundError(f"stat {path}: no such file or directory")
        return self._info(node)

    def read_dir(self, path: str) -> List[FileInfo]:
        node = self.resolve_path(path, expect_dir=True)
        if not node:
            raise NotADirectoryError(f"readdir {path}: not a directory")
        return [self._info(child) for child in self.store.list_dir(node["path"])]

    def open(self, path: str) -> BinaryIO:
        node = self.resolve_path(path)
        if not node:
            raise FileNotFoundError(f"open {path}: no such file or directory")
        if node["is_dir"]:
            raise IsADirectoryError(f"open {path}: is a directory")
        return io.BytesIO(self.store.read_content(node["path"]))
