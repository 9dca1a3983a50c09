import gzip
import json
import stat
from pathlib import Path

import sqlite_utils


def create_db_from_jsonl_gz(jsonl_gz_path, db):
    """db is a path or an open sqlite3 connection."""

    def record_generator():
        with gzip.open(jsonl_gz_path, "rt") as f:
            for line in f:
                if not line.strip():
                    continue
                entry = json.loads(line)
                path = entry["path"]
                yield {
                    "path": path,
                    "parent_path": str(Path(path).parent) if path != "/" else None,
                    "name": Path(path).name,
                    "is_dir": entry.get("is_dir", True),
                    "permissions": entry.get(
                        "permissions",
                        "drwxr-xr-x" if entry.get("is_dir", True) else "-rw-r--r--",
                    ),
                    "owner": entry.get("owner", "root"),
                    "size": entry.get("size", 0),
                    "modified_at": entry.get("modified_at", None),
                    "content": entry.get("content", None),
                }

    db = sqlite_utils.Database(db)
    db["fs_nodes"].insert_all(
        record_generator(), pk="path", batch_size=1000, alter=True
    )


def permissions_to_mode(permissions: str) -> int:
    """Convert an 'ls -l' permission string such as 'drwxr-xr-x' to a st_mode value."""
    mode = stat.S_IFDIR if permissions.startswith("d") else stat.S_IFREG
    for i, ch in enumerate(permissions[1:10]):
        if ch != "-":
            mode |= 1 << (8 - i)
    return mode
