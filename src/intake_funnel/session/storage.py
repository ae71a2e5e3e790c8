"""Client-local key/value storage for session snapshots.

Backends store opaque text under a key.  They know nothing about TTLs:
expiry is decided by the reader (:class:`SessionStore`), never by the
writer, so a stale snapshot simply sits there until it is replaced.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_CREATE_SQL = """\
CREATE TABLE IF NOT EXISTS session_snapshots (
    storage_key  TEXT PRIMARY KEY,
    snapshot     TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
"""

_SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")


@runtime_checkable
class SessionStorage(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, text: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemorySessionStorage:
    """Dict-backed storage; the default for tests and server-side simulations."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, text: str) -> None:
        self._data[key] = text

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileSessionStorage:
    """One ``<key>.json`` file per key inside *directory*.

    Writes go to a temporary sibling first and are renamed into place so a
    crash mid-write leaves the previous snapshot intact.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._dir / f"{_SAFE_KEY.sub('_', key)}.json"

    def read(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Could not read session snapshot %s", path, exc_info=True)
            return None

    def write(self, key: str, text: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(text, encoding="utf-8")
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


class SqliteSessionStorage:
    """Thread-safe snapshot storage sharing an existing SQLite connection.

    Parameters
    ----------
    conn:
        An open ``sqlite3.Connection``.
    lock:
        Optional ``threading.RLock``.  One is created automatically if not
        supplied.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: threading.RLock | None = None,
    ) -> None:
        self._conn = conn
        self._lock = lock if lock is not None else threading.RLock()
        with self._lock:
            self._conn.executescript(_CREATE_SQL)

    def read(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT snapshot FROM session_snapshots WHERE storage_key = ?",
                (key,),
            ).fetchone()
        return row[0] if row is not None else None

    def write(self, key: str, text: str) -> None:
        now_iso = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._conn.execute(
                """INSERT INTO session_snapshots (storage_key, snapshot, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(storage_key) DO UPDATE
                   SET snapshot = excluded.snapshot, updated_at = excluded.updated_at""",
                (key, text, now_iso),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute(
                "DELETE FROM session_snapshots WHERE storage_key = ?", (key,)
            )
            self._conn.commit()

    def keys(self) -> list[str]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT storage_key FROM session_snapshots ORDER BY updated_at DESC"
            ).fetchall()
        return [r[0] for r in rows]
