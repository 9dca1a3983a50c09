import logging
import posixpath
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import BinaryIO, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from infra.interfaces import FileInfo, VirtualFileSystem, to_utc
from infra.packer import Compressed, Representation, Stored, pack
from infra.walker import walk_files

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    path: str
    name: str
    mod_time: datetime
    uncompressed_size: int
    representation: Representation

    @property
    def is_compressed(self) -> bool:
        return isinstance(self.representation, Compressed)


@dataclass(frozen=True)
class DirRecord:
    path: str
    name: str
    mod_time: datetime
    entries: Tuple[str, ...] = ()


Node = Union[FileRecord, DirRecord]


def base_name(path: str) -> str:
    return posixpath.basename(path.rstrip("/")) or "/"


def parent_path(path: str) -> Optional[str]:
    if path == "/":
        return None
    return posixpath.dirname(path.rstrip("/")) or "/"


class Table(Mapping[str, Node]):
    """
    Read-only table of contents, mapping an absolute path to its FileRecord or DirRecord.
    Iteration follows insertion order, which is the generation walk order.
    """

    def __init__(self, nodes: Dict[str, Node]):
        self._nodes = MappingProxyType(dict(nodes))

    def __getitem__(self, path: str) -> Node:
        return self._nodes[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def dirs(self) -> List[DirRecord]:
        return [n for n in self._nodes.values() if isinstance(n, DirRecord)]

    @property
    def has_file(self) -> bool:
        return any(
            isinstance(n, FileRecord) and isinstance(n.representation, Stored)
            for n in self._nodes.values()
        )

    @property
    def has_compressed_file(self) -> bool:
        return any(
            isinstance(n, FileRecord) and n.is_compressed for n in self._nodes.values()
        )


def build_table(fs: VirtualFileSystem, root: str = "/") -> Table:
    """
    Walk fs and build its table of contents. Every file is packed, every directory
    records the sorted full paths of its children from a single directory read.
    Any error reading fs aborts the build.
    """
    nodes: Dict[str, Node] = {}

    def walk_fn(
        path: str,
        info: FileInfo,
        entries: Optional[List[FileInfo]],
        reader: Optional[BinaryIO],
    ):
        if info.is_dir:
            nodes[path] = DirRecord(
                path=path,
                name=base_name(path),
                mod_time=to_utc(info.mod_time),
                entries=tuple(sorted(posixpath.join(path, e.name) for e in entries)),
            )
            return

        representation = pack(reader, info.size)
        if isinstance(representation, Stored):
            logger.debug(f"{path}: stored, {info.size} bytes")
        else:
            logger.debug(
                f"{path}: compressed {info.size} -> {len(representation.content)} bytes"
            )
        nodes[path] = FileRecord(
            path=path,
            name=base_name(path),
            mod_time=to_utc(info.mod_time),
            uncompressed_size=info.size,
            representation=representation,
        )

    walk_files(fs, root, walk_fn)
    logger.info(f"Built table of {len(nodes)} nodes from {root}")
    return Table(nodes)
