import logging
import posixpath
from typing import BinaryIO, Callable, List, Optional

from infra.interfaces import FileInfo, VirtualFileSystem

logger = logging.getLogger(__name__)

WalkFn = Callable[[str, FileInfo, Optional[List[FileInfo]], Optional[BinaryIO]], None]


def walk_files(fs: VirtualFileSystem, root: str, walk_fn: WalkFn):
    """
    Walk the tree rooted at root depth-first, calling walk_fn for every file and directory once.
    Directories are listed a single time, and that listing is passed to walk_fn as entries.
    Files are passed an open reader which is closed after walk_fn returns.
    Errors raised by the filesystem or by walk_fn stop the walk.
    """
    info = fs.stat(root)
    _walk(fs, root, info, walk_fn)


def _walk(fs: VirtualFileSystem, path: str, info: FileInfo, walk_fn: WalkFn):
    if not info.is_dir:
        with fs.open(path) as reader:
            walk_fn(path, info, None, reader)
        return

    entries = sorted(fs.read_dir(path), key=lambda e: e.name)
    logger.debug(f"Walking {path}: {len(entries)} entries")
    walk_fn(path, info, entries, None)
    for entry in entries:
        _walk(fs, posixpath.join(path, entry.name), entry, walk_fn)
