"""
Session Store: per-session GameState persistence with a sliding TTL.

Behavioral Contract:
- One row per session. The full GameState is stored as JSON and
  round-trips through ``GameState.model_validate_json``.
- Every write (and ``touch``) pushes expiry out to now + TTL.
- Expired rows read as missing; ``purge_expired`` deletes them.
- The orchestrator's ``last_global_update`` turn is kept beside the state.
- Access to the connection is serialized with a lock.
"""

import logging
import sqlite3
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from sanctuary_engine.models.game import GameState
from sanctuary_engine.models.session import SessionMeta

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 7   # 7 days


class SessionStore:
    """
    SQLite-backed session store.
    Prototype: in-memory by default; pass a file path to persist.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db_path = db_path
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or datetime.utcnow
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the sessions table if it doesn't exist."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    state_json TEXT NOT NULL,
                    last_global_update INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at)
            """)
            self._conn.commit()

    def _now(self) -> str:
        return self._clock().isoformat()

    def _expiry(self) -> str:
        return (self._clock() + self.ttl).isoformat()

    def _live_row(self, session_id: str) -> Optional[sqlite3.Row]:
        return self._conn.execute(
            "SELECT * FROM sessions WHERE session_id = ? AND expires_at > ?",
            (session_id, self._now()),
        ).fetchone()

    def get(self, session_id: str) -> Optional[GameState]:
        """Load a live session's state, or None if missing or expired."""
        with self._lock:
            row = self._live_row(session_id)
        if row is None:
            return None
        return GameState.model_validate_json(row["state_json"])

    def get_meta(self, session_id: str) -> Optional[SessionMeta]:
        with self._lock:
            row = self._live_row(session_id)
        if row is None:
            return None
        return SessionMeta(
            session_id=row["session_id"],
            last_global_update=row["last_global_update"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
        )

    def set(
        self,
        session_id: str,
        state: GameState,
        last_global_update: Optional[int] = None,
    ) -> None:
        """
        Store a session's state and refresh its TTL.
        ``last_global_update`` is kept unchanged when not given.
        """
        with self._lock:
            if last_global_update is None:
                row = self._live_row(session_id)
                last_global_update = row["last_global_update"] if row else 0

            self._conn.execute(
                """
                INSERT INTO sessions (
                    session_id, state_json, last_global_update, updated_at, expires_at
                ) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    state_json = excluded.state_json,
                    last_global_update = excluded.last_global_update,
                    updated_at = excluded.updated_at,
                    expires_at = excluded.expires_at
                """,
                (
                    session_id,
                    state.model_dump_json(),
                    last_global_update,
                    self._now(),
                    self._expiry(),
                ),
            )
            self._conn.commit()

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return self._live_row(session_id) is not None

    def touch(self, session_id: str) -> bool:
        """Extend a live session's TTL. Returns False if there was nothing to extend."""
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE sessions SET expires_at = ? WHERE session_id = ? AND expires_at > ?",
                (self._expiry(), session_id, self._now()),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def delete(self, session_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM sessions WHERE session_id = ?", (session_id,)
            )
            self._conn.commit()
        if cursor.rowcount:
            logger.info("Deleted session %s", session_id)
        return cursor.rowcount > 0

    def delete_all(self) -> int:
        """Remove every session. Returns how many rows were deleted."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM sessions")
            self._conn.commit()
        logger.info("Deleted %d sessions", cursor.rowcount)
        return cursor.rowcount

    def purge_expired(self) -> int:
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM sessions WHERE expires_at <= ?", (self._now(),)
            )
            self._conn.commit()
        if cursor.rowcount:
            logger.info("Purged %d expired sessions", cursor.rowcount)
        return cursor.rowcount

    def count(self) -> int:
        """Number of live sessions."""
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) AS cnt FROM sessions WHERE expires_at > ?",
                (self._now(),),
            ).fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
