import abc
import base64
import gzip
import io
import json
import logging
from abc import ABC
from typing import Dict, Iterator, Optional

from infra.interfaces import ZERO_TIME, to_utc
from infra.packer import Compressed, Stored
from infra.table_builder import DirRecord, FileRecord, Node, Table, parent_path

logger = logging.getLogger(__name__)

ARTIFACT_FORMAT = "vfsgen-jsonl"
_ENCODING_GZIP = "gzip"
_ENCODING_RAW = "raw"


class Emitter(ABC):
    """
    Serializes a complete Table into one artifact. Implementations must be deterministic.
    """

    @abc.abstractmethod
    def emit(self, table: Table, options) -> bytes:
        raise NotImplementedError()

    @abc.abstractmethod
    def load(self, data: bytes) -> Table:
        raise NotImplementedError()


def _format_time(value) -> Optional[str]:
    return None if value == ZERO_TIME else value.isoformat()


def _parse_time(value: Optional[str]):
    return ZERO_TIME if value is None else to_utc(value)


def node_to_json(node: Node) -> dict:
    entry = {
        "path": node.path,
        "parent_path": parent_path(node.path),
        "name": node.name,
        "is_dir": isinstance(node, DirRecord),
        "modified_at": _format_time(node.mod_time),
        "size": 0,
        "encoding": None,
        "content": None,
        "entries": None,
    }
    if isinstance(node, DirRecord):
        entry["entries"] = list(node.entries)
        return entry

    entry["size"] = node.uncompressed_size
    if isinstance(node.representation, Compressed):
        entry["encoding"] = _ENCODING_GZIP
    else:
        entry["encoding"] = _ENCODING_RAW
    entry["content"] = base64.b64encode(node.representation.content).decode("ascii")
    return entry


def node_from_json(entry: dict) -> Node:
    mod_time = _parse_time(entry.get("modified_at"))
    if entry.get("is_dir"):
        return DirRecord(
            path=entry["path"],
            name=entry["name"],
            mod_time=mod_time,
            entries=tuple(entry.get("entries") or ()),
        )

    content = base64.b64decode(entry.get("content") or "")
    size = entry.get("size", 0)
    encoding = entry.get("encoding")
    if encoding == _ENCODING_GZIP:
        representation = Compressed(content, size)
    elif encoding == _ENCODING_RAW:
        representation = Stored(content)
    else:
        raise ValueError(f"Unknown encoding {encoding!r} for {entry['path']}")
    return FileRecord(
        path=entry["path"],
        name=entry["name"],
        mod_time=mod_time,
        uncompressed_size=size,
        representation=representation,
    )


class JsonlGzEmitter(Emitter):
    """
    Writes the table as gzip compressed JSON lines: one header line, then one line per node
    in table order. File content is base64 encoded, with its encoding ("gzip" or "raw").
    """

    def emit(self, table: Table, options) -> bytes:
        buf = io.BytesIO()
        with gzip.GzipFile(fileobj=buf, mode="wb", mtime=0) as gz:
            for line in self._lines(table, options):
                gz.write((json.dumps(line, sort_keys=True) + "\n").encode("utf-8"))
        return buf.getvalue()

    @staticmethod
    def _lines(table: Table, options) -> Iterator[dict]:
        yield {
            "format": ARTIFACT_FORMAT,
            "variable_name": options.variable_name,
            "description": options.description,
            "build_tags": options.build_tags,
            "has_file": table.has_file,
            "has_compressed_file": table.has_compressed_file,
        }
        for node in table.values():
            yield node_to_json(node)

    def load(self, data: bytes) -> Table:
        nodes: Dict[str, Node] = {}
        with gzip.open(io.BytesIO(data), "rt", encoding="utf-8") as f:
            header = json.loads(f.readline() or "{}")
            if header.get("format") != ARTIFACT_FORMAT:
                raise ValueError(f"Not a {ARTIFACT_FORMAT} artifact")
            for line in f:
                if not line.strip():
                    continue
                node = node_from_json(json.loads(line))
                nodes[node.path] = node
        logger.info(
            f"Loaded {len(nodes)} nodes from artifact {header.get('variable_name')}"
        )
        return Table(nodes)
