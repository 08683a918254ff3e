"""Concrete quiz state repositories backed by memory and SQLite."""
from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional, Union

from .models import QuizState
from .repositories import QuizStateRepository


class InMemoryQuizStateRepository(QuizStateRepository):
    """Keeps serialized snapshots in a dictionary for tests and development."""

    def __init__(self) -> None:
        self._payloads: Dict[str, str] = {}
        self._lock = threading.Lock()

    def load(self, session_id: str) -> Optional[QuizState]:
        with self._lock:
            payload = self._payloads.get(session_id)
        if payload is None:
            return None
        return QuizState.model_validate_json(payload)

    def save(self, session_id: str, state: QuizState) -> None:
        payload = state.model_dump_json(by_alias=True)
        with self._lock:
            self._payloads[session_id] = payload

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._payloads.pop(session_id, None)


class SqliteQuizStateRepository(QuizStateRepository):
    """Stores one JSON quiz state snapshot per session in a SQLite database."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._initialise_schema()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _initialise_schema(self) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.executescript(
                """
                CREATE TABLE IF NOT EXISTS quiz_state (
                    session_id TEXT PRIMARY KEY,
                    state_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            self._conn.commit()

    def load(self, session_id: str) -> Optional[QuizState]:
        with self._lock:
            cursor = self._conn.cursor()
            row = cursor.execute(
                "SELECT state_json FROM quiz_state WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        if not row:
            return None
        return QuizState.model_validate_json(row["state_json"])

    def save(self, session_id: str, state: QuizState) -> None:
        payload = state.model_dump_json(by_alias=True)
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                INSERT OR REPLACE INTO quiz_state (session_id, state_json, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                """,
                (session_id, payload),
            )
            self._conn.commit()

    def delete(self, session_id: str) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute("DELETE FROM quiz_state WHERE session_id = ?", (session_id,))
            self._conn.commit()


__all__ = ["InMemoryQuizStateRepository", "SqliteQuizStateRepository"]
