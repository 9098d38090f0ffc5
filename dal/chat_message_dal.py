"""Async Data Access Layer for the CHAT_MESSAGE table.

Provides ChatMessageDAL with the small CRUD surface the chat routes need,
compatible with `utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import time
from typing import List, Sequence

from models.chat_message_record import ChatMessageRecord
from utils.database_init import AsyncDatabaseInitializer


class ChatMessageDAL:
    """Data access layer for CHAT_MESSAGE records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "session_id",
        "role",
        "content",
        "message_type",
        "image_url",
        "created_at",
    )
    _COLUMN_LIST, _INSERT_COLUMNS = ", ".join(_COLUMNS), ", ".join(_COLUMNS[1:])

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def add_message(self, record: ChatMessageRecord) -> int:
        """Insert a CHAT_MESSAGE row and return the new id."""
        created_at = record.created_at or int(time.time())

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"INSERT INTO CHAT_MESSAGE ({self._INSERT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.session_id,
                    record.role,
                    record.content,
                    record.message_type,
                    record.image_url,
                    created_at,
                ),
            )
            await conn.commit()
            return cur.lastrowid

    async def list_messages(self, session_id: str, limit: int = 50) -> List[ChatMessageRecord]:
        """Return the newest `limit` messages of a session, oldest first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM CHAT_MESSAGE WHERE session_id = ? ORDER BY id DESC LIMIT ?",
                (session_id, limit),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in reversed(rows)]

    async def delete_session(self, session_id: str) -> int:
        """Delete every message of a session and return how many were removed."""
        async with self._db.connection() as conn:
            cur = await conn.execute("DELETE FROM CHAT_MESSAGE WHERE session_id = ?", (session_id,))
            await conn.commit()
            return cur.rowcount

    @staticmethod
    def _row_to_record(row: Sequence) -> ChatMessageRecord:
        return ChatMessageRecord(
            id=row[0],
            session_id=row[1],
            role=row[2],
            content=row[3],
            message_type=row[4],
            image_url=row[5],
            created_at=row[6],
        )
