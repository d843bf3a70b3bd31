"""
Key/value persistence surface for widget state.

The widget only needs a synchronous, string-valued key/value store (the
shape of a browser's ``localStorage``).  Two backends are provided:

* :class:`MemoryStore` — a plain dict, for tests and ``--memory`` runs.
* :class:`SqliteStore` — a single ``kv`` table in a local SQLite file
  (``Asset/widget_store.db`` by default).

Both raise :class:`~chatbot_widget.errors.PersistenceError` on failure.
JSON helpers :func:`read_json` / :func:`write_json` sit on top.
"""

import json
import logging
import sqlite3

from .errors import PersistenceError
from .paths import asset_path

log = logging.getLogger("chatbot_widget")

DB_FILENAME = "widget_store.db"


class KeyValueStore:
    """Interface for the string-valued persistence surface."""

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release any underlying resources."""


class MemoryStore(KeyValueStore):
    """In-memory store.

    *quota* (total characters across all values) lets tests simulate a
    full browser storage; writes that would exceed it fail.
    """

    def __init__(self, quota: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self._quota = quota

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._quota is not None:
            used = sum(len(v) for k, v in self._data.items() if k != key)
            if used + len(value) > self._quota:
                raise PersistenceError(
                    f"Storage quota exceeded writing {key!r} "
                    f"({used + len(value)} > {self._quota} chars).",
                )
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqliteStore(KeyValueStore):
    """Key/value pairs in a single SQLite table."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path or DB_FILENAME
        try:
            if db_path is None:
                self._db_path = asset_path(DB_FILENAME)
            self._conn: sqlite3.Connection = sqlite3.connect(
                self._db_path, check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._create_tables()
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceError(
                f"Could not open widget store at {self._db_path}: {exc}",
            ) from exc

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)
        self._conn.commit()

    # ------------------------------------------------------------------
    # Key/value access
    # ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute(
                "SELECT value FROM kv WHERE key=?", (key,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Read of {key!r} failed: {exc}") from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Write of {key!r} failed: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            self._conn.execute("DELETE FROM kv WHERE key=?", (key,))
            self._conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Delete of {key!r} failed: {exc}") from exc

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


def open_store(memory: bool = False, db_path: str | None = None) -> KeyValueStore:
    """Open the persistent store, or a :class:`MemoryStore` when asked to.

    An unavailable SQLite store is logged and replaced by an in-memory
    one; the widget keeps working for the rest of the process.
    """
    if memory:
        return MemoryStore()
    try:
        return SqliteStore(db_path)
    except PersistenceError as exc:
        log.warning("[STORE] Persistent store unavailable, keeping state in "
                    "memory: %s", exc)
        return MemoryStore()


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def read_json(store: KeyValueStore, key: str):
    """Return the decoded value stored under *key*.

    Missing keys, unreadable storage and corrupt JSON all yield ``None``.
    """
    try:
        raw = store.get(key)
    except PersistenceError as exc:
        log.warning("[STORE] Read error for %s: %s", key, exc)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        log.warning("[STORE] Corrupt JSON under %s: %s", key, exc)
        return None


def write_json(store: KeyValueStore, key: str, value) -> None:
    """Encode *value* as JSON and store it under *key*.

    Raises :class:`PersistenceError` when the store rejects the write.
    """
    store.set(key, json.dumps(value, ensure_ascii=False))
