"""Export tracking with SQLite persistence.

Remembers which conversations have been exported and the update_time they
had at that point, so later runs can export only new or updated ones.
"""

import sqlite3
import time
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Self

from gpt_exporter.timestamps import parse_timestamp


@dataclass
class ExportRecord:
    """State information for an exported conversation."""

    conversation_id: str
    update_time: float | None = None
    exported_at: int | None = None


@dataclass
class ExportStats:
    total_exported: int = 0
    last_sync_time: int | None = None


def _conversation_id(conversation: dict[str, Any]) -> str:
    return str(conversation.get("conversation_id") or conversation.get("id") or "")


class ExportState:
    """Manages export state persistence in SQLite database."""

    def __init__(self, db_path: Path) -> None:
        """Initialize export state with database path.

        Args:
            db_path: Path to SQLite database file. Parent directories
                     will be created if they don't exist.
        """
        self._db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create the exported_conversations table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS exported_conversations (
                conversation_id TEXT PRIMARY KEY,
                update_time REAL,
                exported_at INTEGER
            )
        """)
        self._conn.commit()

    def get_export_record(self, conversation_id: str) -> ExportRecord | None:
        """Get the export record of a conversation.

        Args:
            conversation_id: Conversation id

        Returns:
            ExportRecord if the conversation was exported, None otherwise
        """
        cursor = self._conn.execute(
            """
            SELECT conversation_id, update_time, exported_at
            FROM exported_conversations
            WHERE conversation_id = ?
            """,
            (conversation_id,),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return ExportRecord(
            conversation_id=row["conversation_id"],
            update_time=row["update_time"],
            exported_at=row["exported_at"],
        )

    def needs_export(self, conversation_id: str, update_time: Any) -> bool:
        """Check whether a conversation was never exported or changed since.

        Args:
            conversation_id: Conversation id
            update_time: Current update_time (seconds or ISO string)

        Returns:
            True if the conversation should be exported
        """
        record = self.get_export_record(conversation_id)
        if record is None:
            return True

        current = parse_timestamp(update_time)
        if current is None:
            return False
        if record.update_time is None:
            return True
        return current > record.update_time

    def filter_needing_export(self, conversations: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
        """Keep only raw conversations that need exporting."""
        return [
            conv
            for conv in conversations
            if self.needs_export(_conversation_id(conv), conv.get("update_time"))
        ]

    def mark_exported(
        self,
        conversation_id: str,
        update_time: Any,
        exported_at: int | None = None,
    ) -> None:
        """Record that a conversation was exported.

        Args:
            conversation_id: Conversation id
            update_time: update_time at export (seconds or ISO string)
            exported_at: Unix time of the export (defaults to now)
        """
        self._upsert(conversation_id, update_time, exported_at)
        self._conn.commit()

    def mark_multiple_exported(
        self,
        conversations: Iterable[dict[str, Any]],
        exported_at: int | None = None,
    ) -> int:
        """Record a batch of raw conversations as exported in one transaction.

        Returns:
            Number of conversations recorded
        """
        if exported_at is None:
            exported_at = int(time.time())
        count = 0
        for conv in conversations:
            conversation_id = _conversation_id(conv)
            if not conversation_id:
                continue
            self._upsert(conversation_id, conv.get("update_time"), exported_at)
            count += 1
        self._conn.commit()
        return count

    def _upsert(self, conversation_id: str, update_time: Any, exported_at: int | None) -> None:
        if exported_at is None:
            exported_at = int(time.time())
        self._conn.execute(
            """
            INSERT INTO exported_conversations (conversation_id, update_time, exported_at)
            VALUES (?, ?, ?)
            ON CONFLICT(conversation_id) DO UPDATE SET
                update_time = excluded.update_time,
                exported_at = excluded.exported_at
            """,
            (conversation_id, parse_timestamp(update_time), exported_at),
        )

    def get_stats(self) -> ExportStats:
        """Return how many conversations were exported and when last."""
        row = self._conn.execute(
            "SELECT COUNT(*) AS total, MAX(exported_at) AS last FROM exported_conversations"
        ).fetchone()
        return ExportStats(total_exported=row["total"], last_sync_time=row["last"])

    def list_records(self) -> list[ExportRecord]:
        """List all export records ordered by conversation id."""
        cursor = self._conn.execute(
            """
            SELECT conversation_id, update_time, exported_at
            FROM exported_conversations
            ORDER BY conversation_id
            """
        )
        return [
            ExportRecord(
                conversation_id=row["conversation_id"],
                update_time=row["update_time"],
                exported_at=row["exported_at"],
            )
            for row in cursor
        ]

    def clear_history(self) -> None:
        """Forget all exported conversations."""
        self._conn.execute("DELETE FROM exported_conversations")
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Exit context manager, closing database connection."""
        self.close()
