import logging
import sqlite3
from typing import Optional, List

from infra.fake_fs.fs_utils import create_db_from_jsonl_gz

logger = logging.getLogger(__name__)


class FakeFSDataStore:
    """
    Node store of a fake filesystem. A .jsonl.gz dump is loaded into a private in-memory
    database on every construction, so the store always reflects the current dump.
    Any other path is opened as an existing SQLite database.
    """

    def __init__(self, fs_path: str):
        self.is_jsonl_gz = fs_path.endswith(".jsonl.gz")
        self.conn = sqlite3.connect(":memory:" if self.is_jsonl_gz else fs_path)

        if self.is_jsonl_gz:
            self._load_jsonl_gz(fs_path, self.conn)

        self._init_db()

    @staticmethod
    def _load_jsonl_gz(jsonl_gz_path, conn):
        logger.info(f"Loading fake filesystem from {jsonl_gz_path}")
        create_db_from_jsonl_gz(jsonl_gz_path, conn)

    def _init_db(self):
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS fs_nodes (
                    path TEXT PRIMARY KEY,
                    parent_path TEXT,
                    name TEXT,
                    is_dir BOOLEAN,
                    permissions TEXT,
                    owner TEXT,
                    size INTEGER,
                    modified_at TIMESTAMP,
                    content TEXT
                )
            """
            )

    def get_node(self, path: str) -> Optional[dict]:
        cursor = self.conn.execute("SELECT * FROM fs_nodes WHERE path = ?", (path,))
        row = cursor.fetchone()
        return (
            dict(zip([desc[0] for desc in cursor.description], row)) if row else None
        )

    def list_dir(self, parent_path: str) -> List[dict]:
        cursor = self.conn.execute(
            "SELECT * FROM fs_nodes WHERE parent_path = ? AND path != ?",
            (parent_path, parent_path),
        )
        return [
            dict(zip([column[0] for column in cursor.description], row))
            for row in cursor.fetchall()
        ]

    def read_content(self, path: str) -> Optional[bytes]:
        row = self.conn.execute(
            "SELECT content FROM fs_nodes WHERE path = ?", (path,)
        ).fetchone()
        if row is None:
            return None
        return (row[0] or "").encode("utf-8")

    def close(self):
        self.conn.close()
