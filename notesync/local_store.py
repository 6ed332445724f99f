"""
Local note store using SQLite.

The local store is the fallback for the remote store: notes written while
the remote store is unavailable live here until reconciled. It also keeps
tombstones for notes deleted while offline, and unsaved editor drafts.

Records are the JSON serialization of a Note. Owner scoping is a filter
applied at read time; access checks are the gateway's job.
"""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .types import Draft, Note, utc_now

DB_FILENAME = "notes.db"


class _SqliteStore(ABC):
    """Shared connection handling for the SQLite-backed stores."""

    def __init__(self, db_path: Path):
        """
        Args:
            db_path: Path to SQLite database file
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        # Wait up to 5 seconds for locks instead of failing immediately
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @abstractmethod
    def _init_db(self) -> None:
        """Open the connection and create the schema."""

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __del__(self):
        self.close()


class LocalNoteStore(_SqliteStore):
    """
    SQLite-backed fallback store for notes.

    Example:
        store = LocalNoteStore(Path("~/.notesync/notes.db").expanduser())
        store.put(note)
        store.list_by_owner("alice")
    """

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        self._conn = self._connect()
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS notes (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                doc_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_notes_owner
            ON notes(owner_id, updated_at)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS tombstones (
                id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                deleted_at TEXT NOT NULL
            )
        """)
        self._conn.commit()

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def put(self, note: Note) -> Note:
        """
        Insert or replace a note.

        Writing a note clears any tombstone for its id.

        Returns:
            The stored Note
        """
        doc_json = json.dumps(note.to_dict(), ensure_ascii=False)
        with self._lock:
            self._conn.execute("""
                INSERT OR REPLACE INTO notes (id, owner_id, doc_json, updated_at)
                VALUES (?, ?, ?, ?)
            """, (note.id, note.owner_id, doc_json, note.updated_at))
            self._conn.execute("DELETE FROM tombstones WHERE id = ?", (note.id,))
            self._conn.commit()
        return note

    def delete(self, note_id: str) -> bool:
        """
        Delete a note record.

        Returns:
            True if the note existed and was deleted
        """
        with self._lock:
            cursor = self._conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
            self._conn.commit()
        return cursor.rowcount > 0

    def add_tombstone(self, note_id: str, owner_id: str) -> None:
        """Record that a note was deleted locally and the remote copy must go."""
        with self._lock:
            self._conn.execute("""
                INSERT OR REPLACE INTO tombstones (id, owner_id, deleted_at)
                VALUES (?, ?, ?)
            """, (note_id, owner_id, utc_now()))
            self._conn.commit()

    def clear_tombstone(self, note_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM tombstones WHERE id = ?", (note_id,))
            self._conn.commit()
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def get(self, note_id: str) -> Optional[Note]:
        """
        Get a note by id, regardless of owner.

        Returns:
            Note if found, None otherwise
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT doc_json FROM notes WHERE id = ?", (note_id,)
            ).fetchone()
        if row is None:
            return None
        return Note.from_dict(json.loads(row["doc_json"]))

    def list_by_owner(self, owner_id: str) -> list[Note]:
        """All notes owned by `owner_id`, most recently updated first."""
        with self._lock:
            rows = self._conn.execute("""
                SELECT doc_json FROM notes
                WHERE owner_id = ?
                ORDER BY updated_at DESC
            """, (owner_id,)).fetchall()
        return [Note.from_dict(json.loads(row["doc_json"])) for row in rows]

    def is_tombstoned(self, note_id: str) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT 1 FROM tombstones WHERE id = ?", (note_id,)
            ).fetchone()
        return row is not None

    def list_tombstones(self, owner_id: str) -> list[str]:
        """Ids of notes deleted locally whose remote deletion is outstanding."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT id FROM tombstones WHERE owner_id = ? ORDER BY deleted_at",
                (owner_id,),
            ).fetchall()
        return [row["id"] for row in rows]

    def count(self, owner_id: Optional[str] = None) -> int:
        """Count stored notes, optionally for one owner."""
        with self._lock:
            if owner_id is None:
                row = self._conn.execute("SELECT COUNT(*) FROM notes").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM notes WHERE owner_id = ?", (owner_id,)
                ).fetchone()
        return row[0]


class DraftStore(_SqliteStore):
    """
    Editor drafts keyed by note id, or NEW_NOTE_DRAFT_KEY before the first save.
    """

    def _init_db(self) -> None:
        self._conn = self._connect()
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS drafts (
                key TEXT PRIMARY KEY,
                doc_json TEXT NOT NULL,
                timestamp TEXT NOT NULL
            )
        """)
        self._conn.commit()

    def save(self, draft: Draft) -> None:
        doc_json = json.dumps({
            "title": draft.title,
            "content": draft.content,
            "tags": draft.tags,
        }, ensure_ascii=False)
        with self._lock:
            self._conn.execute("""
                INSERT OR REPLACE INTO drafts (key, doc_json, timestamp)
                VALUES (?, ?, ?)
            """, (draft.key, doc_json, draft.timestamp))
            self._conn.commit()

    def load(self, key: str) -> Optional[Draft]:
        with self._lock:
            row = self._conn.execute(
                "SELECT doc_json, timestamp FROM drafts WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        data = json.loads(row["doc_json"])
        return Draft(
            key=key,
            title=data.get("title") or "",
            content=data.get("content") or "",
            tags=list(data.get("tags") or []),
            timestamp=row["timestamp"],
        )

    def delete(self, key: str) -> bool:
        with self._lock:
            cursor = self._conn.execute("DELETE FROM drafts WHERE key = ?", (key,))
            self._conn.commit()
        return cursor.rowcount > 0
