"""Document store on top of SQLite.

Records are JSON documents grouped into collections and addressed by key.
Partial updates take dotted field paths so nested progress fields can be
changed without rewriting the whole record.
"""
import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from safety_tutor.config import DEFAULT_DB_PATH
from safety_tutor.errors import StorageUnavailable, WriteConflict

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    key TEXT NOT NULL,
    body TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 1,
    updated_at TEXT,
    PRIMARY KEY (collection, key)
);
"""

USERS = "users"
LESSONS = "lessons"
VOCABULARY = "vocabulary"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


class ArrayUnion:
    """Update value that appends items to a list field, skipping ones already present."""

    def __init__(self, *items):
        self.items = items

    def __repr__(self):
        return f"ArrayUnion{self.items!r}"

    def __eq__(self, other):
        return isinstance(other, ArrayUnion) and self.items == other.items


class ArrayRemove:
    """Update value that removes every occurrence of the items from a list field."""

    def __init__(self, *items):
        self.items = items

    def __repr__(self):
        return f"ArrayRemove{self.items!r}"

    def __eq__(self, other):
        return isinstance(other, ArrayRemove) and self.items == other.items


@dataclass
class Snapshot:
    data: dict
    version: int


def apply_update(doc: dict, fields: dict) -> dict:
    """Apply dotted-path field updates to doc in place and return it."""
    for path, value in fields.items():
        parts = path.split(".")
        target = doc
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        leaf = parts[-1]
        if isinstance(value, ArrayUnion):
            current = list(target.get(leaf) or [])
            current.extend(item for item in value.items if item not in current)
            target[leaf] = current
        elif isinstance(value, ArrayRemove):
            target[leaf] = [item for item in target.get(leaf) or [] if item not in value.items]
        else:
            target[leaf] = value
    return doc


class DocumentStore:
    """Key-value document persistence with partial updates and versioning."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Cannot open {self.db_path}: {e}") from e

    def get_snapshot(self, collection: str, key: str) -> Snapshot | None:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT body, version FROM documents WHERE collection = ? AND key = ?",
                (collection, key),
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Read failed for {collection}/{key}: {e}") from e
        finally:
            conn.close()
        if row is None:
            return None
        return Snapshot(data=json.loads(row["body"]), version=row["version"])

    def get(self, collection: str, key: str) -> dict | None:
        snapshot = self.get_snapshot(collection, key)
        return snapshot.data if snapshot else None

    def scan(self, collection: str, prefix: str = "") -> list[tuple[str, dict]]:
        """Return (key, document) pairs whose key starts with prefix, ordered by key."""
        conn = self._connect()
        try:
            rows = conn.execute(
                """SELECT key, body FROM documents
                WHERE collection = ? AND substr(key, 1, ?) = ?
                ORDER BY key""",
                (collection, len(prefix), prefix),
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Scan failed for {collection}/{prefix}*: {e}") from e
        finally:
            conn.close()
        return [(row["key"], json.loads(row["body"])) for row in rows]

    def set(self, collection: str, key: str, value: dict) -> None:
        """Write the whole document, replacing any previous one."""
        body = json.dumps(value, ensure_ascii=False)
        conn = self._connect()
        try:
            conn.execute(
                """INSERT INTO documents (collection, key, body, version, updated_at)
                VALUES (?, ?, ?, 1, ?)
                ON CONFLICT(collection, key)
                DO UPDATE SET body = excluded.body, version = version + 1, updated_at = excluded.updated_at""",
                (collection, key, body, datetime.now().isoformat()),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Write failed for {collection}/{key}: {e}") from e
        finally:
            conn.close()
        log.debug("set %s/%s", collection, key)

    def update(self, collection: str, key: str, fields: dict, expected_version: int | None = None) -> int:
        """Apply a partial update atomically and return the new version.

        With expected_version the write only happens if the stored record is
        still at that version, otherwise WriteConflict is raised.
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT body, version FROM documents WHERE collection = ? AND key = ?",
                (collection, key),
            ).fetchone()
            if row is None:
                conn.rollback()
                raise StorageUnavailable(f"No document {collection}/{key}")
            if expected_version is not None and row["version"] != expected_version:
                conn.rollback()
                raise WriteConflict(
                    f"{collection}/{key} is at version {row['version']}, expected {expected_version}"
                )
            doc = apply_update(json.loads(row["body"]), fields)
            new_version = row["version"] + 1
            conn.execute(
                "UPDATE documents SET body = ?, version = ?, updated_at = ? WHERE collection = ? AND key = ?",
                (json.dumps(doc, ensure_ascii=False), new_version, datetime.now().isoformat(), collection, key),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageUnavailable(f"Update failed for {collection}/{key}: {e}") from e
        finally:
            conn.close()
        log.debug("update %s/%s -> v%d (%s)", collection, key, new_version, ", ".join(fields))
        return new_version
