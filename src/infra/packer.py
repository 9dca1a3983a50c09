import gzip
import io
import shutil
from dataclasses import dataclass
from typing import BinaryIO, Union

GZIP_COMPRESS_LEVEL = 6


@dataclass(frozen=True)
class Stored:
    """File content kept verbatim, because compressing it would not make it smaller."""

    content: bytes


@dataclass(frozen=True)
class Compressed:
    """Gzip compressed file content, together with the size of the original."""

    content: bytes
    uncompressed_size: int


Representation = Union[Stored, Compressed]


def gzip_compress(reader: BinaryIO) -> bytes:
    buf = io.BytesIO()
    with gzip.GzipFile(
        fileobj=buf, mode="wb", compresslevel=GZIP_COMPRESS_LEVEL, mtime=0
    ) as gz:
        shutil.copyfileobj(reader, gz)
    return buf.getvalue()


def pack(reader: BinaryIO, size: int) -> Representation:
    """
    Choose how a file is stored in the artifact.
    :param reader: seekable reader positioned at the start of the content
    :param size: uncompressed size of the content
    :return: Compressed if the gzip payload is smaller than size, Stored otherwise
    """
    compressed = gzip_compress(reader)
    if len(compressed) < size:
        return Compressed(compressed, size)

    reader.seek(0, io.SEEK_SET)
    return Stored(reader.read())
