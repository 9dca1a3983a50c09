import gzip
import io
import logging
import stat
import zlib
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from infra.emitter import Emitter, JsonlGzEmitter
from infra.interfaces import FileInfo
from infra.packer import Compressed
from infra.table_builder import DirRecord, FileRecord, Node, Table, parent_path
from vfsgen_utils import normalize_path

logger = logging.getLogger(__name__)

FILE_MODE = 0o444
DIR_MODE = stat.S_IFDIR | 0o755

_DISCARD_CHUNK = 32 * 1024
_GZIP_MAGIC = b"\x1f\x8b"


class CorruptArtifactError(RuntimeError):
    """
    Raised when a compressed payload cannot be decoded. Payloads are produced by the generator
    and are always valid gzip data, so this means the artifact itself is broken.
    """


def file_info(node: Node) -> FileInfo:
    if isinstance(node, DirRecord):
        return FileInfo(node.name, 0, node.mod_time, DIR_MODE, is_dir=True)
    if isinstance(node.representation, Compressed):
        size = node.representation.uncompressed_size
    else:
        size = len(node.representation.content)
    return FileInfo(node.name, size, node.mod_time, FILE_MODE)


class StaticFileSystem:
    """
    Read-only filesystem over a Table built at generation time. The table is never mutated,
    so one instance can be shared by any number of threads. Every open() returns a new handle
    with its own position, which must not be shared.
    """

    def __init__(self, table: Table):
        self._table = table
        self._infos: Dict[str, FileInfo] = {p: file_info(n) for p, n in table.items()}
        self._entries: Dict[str, Tuple[FileInfo, ...]] = {}
        for d in table.dirs:
            for child in d.entries:
                if child not in table:
                    raise ValueError(f"Entry {child} of {d.path} is not in the table")
                if parent_path(child) != d.path:
                    raise ValueError(f"Entry {child} is not a child of {d.path}")
            self._entries[d.path] = tuple(self._infos[c] for c in d.entries)

    @classmethod
    def from_artifact(
        cls, artifact_path: Union[str, Path], emitter: Optional[Emitter] = None
    ) -> "StaticFileSystem":
        emitter = emitter or JsonlGzEmitter()
        table = emitter.load(Path(artifact_path).read_bytes())
        logger.info(f"Loaded {len(table)} nodes from {artifact_path}")
        return cls(table)

    @property
    def table(self) -> Table:
        return self._table

    def open(self, path: str) -> Union["StoredFile", "CompressedFile", "Dir"]:
        path = normalize_path(path, "/")
        node = self._table.get(path)
        if node is None:
            raise FileNotFoundError(f"open {path}: file does not exist")

        info = self._infos[path]
        if isinstance(node, DirRecord):
            return Dir(info, self._entries[path])
        if isinstance(node.representation, Compressed):
            return CompressedFile(info, node)
        return StoredFile(info, node)


class _File(io.RawIOBase):
    def __init__(self, info: FileInfo):
        super().__init__()
        self._info = info

    @property
    def name(self) -> str:
        return self._info.name

    def stat(self) -> FileInfo:
        return self._info

    def readdir(self, count: int = 0) -> List[FileInfo]:
        raise NotADirectoryError(f"cannot readdir from file {self._info.name}")

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def _check_open(self):
        if self.closed:
            raise ValueError("I/O operation on closed file.")

    @staticmethod
    def _resolve(offset: int, whence: int, current: int, size: int) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = current + offset
        elif whence == io.SEEK_END:
            pos = size + offset
        else:
            raise ValueError(f"invalid whence value: {whence}")
        if pos < 0:
            raise ValueError(f"negative seek position {pos}")
        return pos


class StoredFile(_File):
    """An opened file whose content is kept uncompressed."""

    def __init__(self, info: FileInfo, record: FileRecord):
        super().__init__(info)
        self._content = memoryview(record.representation.content)
        self._pos = 0

    def readinto(self, b) -> int:
        self._check_open()
        data = self._content[self._pos : self._pos + len(b)]
        n = len(data)
        b[:n] = data
        self._pos += n
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        self._pos = self._resolve(offset, whence, self._pos, len(self._content))
        return self._pos

    def tell(self) -> int:
        return self._pos


class CompressedFile(_File):
    """
    An opened gzip compressed file, readable and seekable as if it were uncompressed.

    seek() only records the requested position. The next read brings the decompressor there:
    a backward seek restarts decompression from the beginning of the payload, a forward seek
    decompresses and discards the bytes in between. Sequential reads never pay either cost.
    """

    def __init__(self, info: FileInfo, record: FileRecord):
        super().__init__(info)
        self._payload: bytes = record.representation.content
        self._size = record.representation.uncompressed_size
        if not self._payload.startswith(_GZIP_MAGIC):
            raise CorruptArtifactError(
                f"unexpected error reading own gzip compressed bytes of {info.name}"
            )
        self._reader = self._new_reader()
        self._committed = 0  # actual uncompressed position of the reader
        self._requested = 0  # position the next read serves from

    def _new_reader(self) -> gzip.GzipFile:
        return gzip.GzipFile(fileobj=io.BytesIO(self._payload), mode="rb")

    def gzip_bytes(self) -> bytes:
        return self._payload

    def readinto(self, b) -> int:
        self._check_open()
        try:
            if self._committed > self._requested:
                self._reader.close()
                self._reader = self._new_reader()
                self._committed = 0
            if self._committed < self._requested:
                self._discard(self._requested - self._committed)
                if self._committed < self._requested:
                    return 0
            n = self._reader.readinto(b)
        except (OSError, EOFError, zlib.error) as e:
            raise CorruptArtifactError(
                f"unexpected error reading own gzip compressed bytes of {self.name}: {e}"
            ) from e
        self._committed += n
        self._requested = self._committed
        return n

    def _discard(self, count: int):
        while count > 0:
            chunk = self._reader.read(min(count, _DISCARD_CHUNK))
            if not chunk:
                return
            count -= len(chunk)
            self._committed += len(chunk)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        self._requested = self._resolve(offset, whence, self._requested, self._size)
        return self._requested

    def tell(self) -> int:
        return self._requested

    def close(self):
        reader = getattr(self, "_reader", None)
        if reader is not None and not self.closed:
            reader.close()
        super().close()


class Dir:
    """An opened directory. Entries are listed in the order recorded at generation time."""

    def __init__(self, info: FileInfo, entries: Tuple[FileInfo, ...]):
        self._info = info
        self._entries = entries
        self._pos = 0
        self.closed = False

    @property
    def name(self) -> str:
        return self._info.name

    def stat(self) -> FileInfo:
        return self._info

    def read(self, size: int = -1) -> bytes:
        raise IsADirectoryError(f"cannot read from directory {self._info.name}")

    def readinto(self, b) -> int:
        raise IsADirectoryError(f"cannot read from directory {self._info.name}")

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if offset == 0 and whence == io.SEEK_SET:
            self._pos = 0
            return 0
        raise io.UnsupportedOperation(f"unsupported seek in directory {self._info.name}")

    def readdir(self, count: int = 0) -> List[FileInfo]:
        """
        :param count: maximum number of entries to return, all remaining ones if count <= 0
        :return: the next entries; an empty list once the listing is exhausted
        """
        remaining = len(self._entries) - self._pos
        if count <= 0 or count > remaining:
            count = remaining
        entries = list(self._entries[self._pos : self._pos + count])
        self._pos += count
        return entries

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
