"""Concrete implementations for session stores.

Every store maps a session id to one record holding the ordered message
history. Locking lives in the :class:`Store` base class: each session id gets
its own re-entrant lock, so runs on the same session are serialized while
unrelated sessions proceed concurrently. Subclasses only implement the raw
``_read``/``_write``/``list_sessions`` primitives.
"""

import itertools
import logging
import os
import sqlite3
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from .exceptions import StoreError
from .models import Session, is_valid_session_id

logger = logging.getLogger(__name__)


class _KeyedLocks:
    """Registry of per-key re-entrant locks.

    An entry exists only while some thread holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[str, list] = {}  # key -> [RLock, users]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [threading.RLock(), 0]
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class Store(ABC):
    """Interface for saving and loading sessions."""

    def __init__(self) -> None:
        self._locks = _KeyedLocks()

    def load_session(self, session_id: Optional[str]) -> Optional[Session]:
        """Loads a session, or returns None when it should be started fresh.

        Parameters
        ----------
        session_id : str, optional
            ``None`` or ``""`` means "new conversation". An id with no stored
            record is treated the same way.

        Raises
        ------
        StoreError
            If the record exists but cannot be read or parsed.
        """
        if not session_id:
            return None
        with self._locks.hold(session_id):
            try:
                return self._read(session_id)
            except StoreError:
                raise
            except (OSError, ValueError, sqlite3.Error) as e:
                raise StoreError(f"Could not load session {session_id!r}: {e}") from e

    def save_session(self, session: Session) -> None:
        """Durably replaces the stored record for ``session.id``."""
        with self._locks.hold(session.id):
            try:
                self._write(session)
            except StoreError:
                raise
            except (OSError, ValueError, sqlite3.Error) as e:
                raise StoreError(f"Could not save session {session.id!r}: {e}") from e
        logger.debug(
            "Saved session %s (%d messages)", session.id, len(session.messages)
        )

    @contextmanager
    def checkout(self, session_id: Optional[str]) -> Iterator[Optional[Session]]:
        """Holds the session's lock for a whole read-modify-write cycle.

        Yields the loaded session, or None for a new or unknown id.
        ``save_session`` may be called for the same id inside the block.
        """
        if not session_id:
            yield None
            return
        with self._locks.hold(session_id):
            yield self.load_session(session_id)

    @abstractmethod
    def _read(self, session_id: str) -> Optional[Session]:
        """Reads one record, returning None when it does not exist."""
        pass

    @abstractmethod
    def _write(self, session: Session) -> None:
        """Writes one record, replacing any previous version atomically."""
        pass

    @abstractmethod
    def list_sessions(self) -> List[str]:
        """Lists stored session ids, most recently saved first."""
        pass


class InMemory(Store):
    """Keeps sessions in a dictionary for the lifetime of the process."""

    def __init__(self):
        super().__init__()
        self._store: Dict[str, Session] = {}
        self._order: Dict[str, int] = {}
        self._clock = itertools.count()

    def _read(self, session_id: str) -> Optional[Session]:
        session = self._store.get(session_id)
        return session.model_copy(deep=True) if session is not None else None

    def _write(self, session: Session) -> None:
        self._store[session.id] = session.model_copy(deep=True)
        self._order[session.id] = next(self._clock)

    def list_sessions(self) -> List[str]:
        return sorted(self._store, key=lambda sid: self._order[sid], reverse=True)


class File(Store):
    """Saves and loads sessions as JSON files, one file per session.

    Writes go to a temporary file in the same directory, which is then
    renamed over the target, so a reader never sees a partial record.
    """

    def __init__(self, base_dir: str):
        super().__init__()
        self.base_dir = Path(base_dir).expanduser()
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Could not create session directory {self.base_dir}: {e}") from e

    def _path(self, session_id: str) -> Path:
        if not is_valid_session_id(session_id):
            raise StoreError(f"Invalid session id: {session_id!r}")
        return self.base_dir / f"{session_id}.json"

    def _read(self, session_id: str) -> Optional[Session]:
        path = self._path(session_id)
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        session = Session.model_validate_json(data)
        if session.id != session_id:
            raise StoreError(
                f"Record {path.name} holds session {session.id!r}, expected {session_id!r}"
            )
        return session

    def _write(self, session: Session) -> None:
        path = self._path(session.id)
        data = session.model_dump_json(indent=2)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{session.id}.", suffix=".tmp", dir=self.base_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    def list_sessions(self) -> List[str]:
        try:
            files = sorted(
                self.base_dir.glob("*.json"),
                key=lambda p: p.stat().st_mtime,
                reverse=True,
            )
        except OSError as e:
            raise StoreError(f"Could not list sessions: {e}") from e
        return [p.stem for p in files]


class SQLite(Store):
    """Saves and loads sessions in a SQLite database, one row per session."""

    def __init__(self, db_path: str):
        super().__init__()
        self.db_path = db_path
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sessions (
                        id TEXT PRIMARY KEY,
                        data TEXT NOT NULL,
                        updated_at REAL NOT NULL
                    )
                    """
                )
        except sqlite3.Error as e:
            raise StoreError(f"Could not initialize session database {db_path}: {e}") from e

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        # One connection per operation; the inner context commits or rolls back.
        with closing(sqlite3.connect(self.db_path)) as conn:
            with conn:
                yield conn

    def _read(self, session_id: str) -> Optional[Session]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT data FROM sessions WHERE id = ?", (session_id,)
            ).fetchone()
        if row is None:
            return None
        session = Session.model_validate_json(row[0])
        if session.id != session_id:
            raise StoreError(
                f"Row {session_id!r} holds session {session.id!r}"
            )
        return session

    def _write(self, session: Session) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO sessions (id, data, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (session.id, session.model_dump_json(), time.time()),
            )

    def list_sessions(self) -> List[str]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT id FROM sessions ORDER BY updated_at DESC, rowid DESC"
                ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Could not list sessions: {e}") from e
        return [row[0] for row in rows]
