from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, List

ZERO_TIME = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class FileInfo:
    """Metadata of a file or directory, as returned by stat and readdir."""

    name: str
    size: int
    mod_time: datetime
    mode: int
    is_dir: bool = False


def to_utc(value) -> datetime:
    """
    Normalize a timestamp to an aware UTC datetime.
    Accepts a datetime, an ISO-8601 string or epoch seconds (also as a string, which is how
    SQLite hands back numbers stored in TEXT columns). None becomes the zero time.
    """
    if value is None:
        return ZERO_TIME
    if isinstance(value, str) and value.replace(".", "", 1).isdigit():
        value = float(value)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class VirtualFileSystem(ABC):
    """
    A read-only tree of named files and directories addressed by '/'-separated absolute paths.
    """

    @abstractmethod
    def stat(self, path: str) -> FileInfo:
        """
        :param path: absolute path of the node
        :return: metadata of the node
        :raises FileNotFoundError: if the path does not exist
        """
        raise NotImplementedError()

    @abstractmethod
    def read_dir(self, path: str) -> List[FileInfo]:
        """
        read the immediate children of a directory
        :param path: absolute path of the directory
        :return: metadata of every child, in no particular order
        """
        raise NotImplementedError()

    @abstractmethod
    def open(self, path: str) -> BinaryIO:
        """
        open a file for reading
        :param path: absolute path of the file
        :return: a seekable binary reader positioned at the start of the content
        """
        raise NotImplementedError()
