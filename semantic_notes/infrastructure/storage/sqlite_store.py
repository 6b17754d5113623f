import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import List, Tuple

import numpy as np

from semantic_notes.core.domain.note import EmbeddingRole, Note
from semantic_notes.core.errors import EmbeddingError, StorageError
from semantic_notes.core.interfaces.ports import IEmbeddingProvider, INoteRepository

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

SCHEMA = """
    CREATE TABLE IF NOT EXISTS notes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        text TEXT NOT NULL,
        category TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS note_embeddings (
        id INTEGER PRIMARY KEY REFERENCES notes(id) ON DELETE CASCADE,
        embedding BLOB NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_notes_created_at ON notes(created_at);
"""


def utc_now() -> str:
    # fixed width so string order matches time order
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


class SQLiteNoteStore(INoteRepository):
    """
    Notes and their document embeddings, kept in two paired tables of one
    SQLite database. Every write touches both tables inside one transaction.

    The connection is bound to the thread that opened the store, so all
    calls have to come from that thread.
    """

    def __init__(
        self,
        embedder: IEmbeddingProvider,
        db_path: str = "notes.db",
        durable: bool = True,
        dimension: int = 768,
    ):
        self.embedder = embedder
        self.dimension = dimension
        self.conn, self.db_path = self._open(db_path, durable)

    @property
    def is_durable(self) -> bool:
        return self.db_path != MEMORY

    def _connect(self, path: str) -> sqlite3.Connection:
        conn = sqlite3.connect(path)
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(SCHEMA)
            conn.commit()
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _open(self, db_path: str, durable: bool) -> Tuple[sqlite3.Connection, str]:
        if durable and db_path != MEMORY:
            try:
                directory = os.path.dirname(os.path.abspath(db_path))
                os.makedirs(directory, exist_ok=True)
                conn = self._connect(db_path)
                logger.info("Using durable note store at %s", db_path)
                return conn, db_path
            except (OSError, sqlite3.Error) as e:
                logger.warning("Durable storage at %s unavailable (%s), falling back to memory", db_path, e)

        try:
            conn = self._connect(MEMORY)
        except sqlite3.Error as e:
            raise StorageError(f"Could not open in-memory note store: {e}") from e
        logger.info("Using in-memory note store")
        return conn, MEMORY

    def insert(self, text: str, category: str) -> int:
        created_at = utc_now()

        # Embed before opening the transaction; a failure here leaves nothing behind
        embedding = np.asarray(self.embedder.embed(text, EmbeddingRole.DOCUMENT), dtype="<f4")
        if embedding.shape != (self.dimension,):
            raise EmbeddingError(
                f"Expected a {self.dimension}-dimensional embedding, got shape {embedding.shape}"
            )

        try:
            with self.conn:
                cursor = self.conn.execute(
                    "INSERT INTO notes (text, category, created_at) VALUES (?, ?, ?)",
                    (text, category, created_at),
                )
                note_id = cursor.lastrowid
                self.conn.execute(
                    "INSERT INTO note_embeddings (id, embedding) VALUES (?, ?)",
                    (note_id, embedding.tobytes()),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to store note: {e}") from e

        logger.debug("Stored note %s (%s)", note_id, category)
        return note_id

    def list_notes(self) -> List[Note]:
        try:
            rows = self.conn.execute(
                "SELECT id, text, category, created_at FROM notes ORDER BY created_at DESC, id DESC"
            ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to list notes: {e}") from e
        return [Note(id=row[0], text=row[1], category=row[2], created_at=row[3]) for row in rows]

    def delete(self, note_id: int) -> None:
        try:
            with self.conn:
                self.conn.execute("DELETE FROM note_embeddings WHERE id = ?", (note_id,))
                self.conn.execute("DELETE FROM notes WHERE id = ?", (note_id,))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete note {note_id}: {e}") from e

    def load_embeddings(self) -> Tuple[List[Note], np.ndarray]:
        try:
            rows = self.conn.execute("""
                SELECT notes.id, notes.text, notes.category, notes.created_at, note_embeddings.embedding
                FROM note_embeddings
                JOIN notes ON notes.id = note_embeddings.id
                ORDER BY notes.id
            """).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read embeddings: {e}") from e

        if not rows:
            return [], np.empty((0, self.dimension), dtype=np.float32)

        notes = []
        vectors = []
        for note_id, text, category, created_at, emb_blob in rows:
            notes.append(Note(id=note_id, text=text, category=category, created_at=created_at))
            vectors.append(np.frombuffer(emb_blob, dtype="<f4"))
        return notes, np.vstack(vectors).astype(np.float32)

    def count(self) -> int:
        try:
            return self.conn.execute("SELECT COUNT(*) FROM notes").fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count notes: {e}") from e

    def close(self) -> None:
        self.conn.close()
