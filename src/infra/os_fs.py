import os
import stat
from pathlib import Path
from typing import BinaryIO, List, Union

from infra.interfaces import FileInfo, VirtualFileSystem, to_utc
from vfsgen_utils import normalize_path


class OSFileSystem(VirtualFileSystem):
    """A directory on the local disk, exposed as a virtual filesystem rooted at '/'."""

    def __init__(self, root: Union[str, Path]):
        self._root = Path(root).absolute()
        if not self._root.is_dir():
            raise NotADirectoryError(f"Input folder is not a directory: {self._root}")

    def _real_path(self, path: str) -> Path:
        return self._root.joinpath(*normalize_path(path).strip("/").split("/"))

    @staticmethod
    def _info(name: str, st: os.stat_result) -> FileInfo:
        return FileInfo(
            name=name,
            size=st.st_size,
            mod_time=to_utc(st.st_mtime),
            mode=st.st_mode,
            is_dir=stat.S_ISDIR(st.st_mode),
        )

    def stat(self, path: str) -> FileInfo:
        real = self._real_path(path)
        return self._info(real.name or "/", real.stat())

    def read_dir(self, path: str) -> List[FileInfo]:
        with os.scandir(self._real_path(path)) as it:
            return [self._info(e.name, e.stat()) for e in it]

    def open(self, path: str) -> BinaryIO:
        return open(self._real_path(path), "rb")
