"""JSON bulk backup of raw conversations."""

import json
from datetime import datetime, timezone
from typing import Any

from gpt_exporter.models import ExportedFile
from gpt_exporter.timestamps import utc_now


def isoformat_utc(moment: datetime) -> str:
    """ISO-8601 instant with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_backup_manifest(
    conversations: list[dict[str, Any]],
    now: datetime | None = None,
) -> ExportedFile:
    """Snapshot raw conversations into one JSON backup file.

    No transformation is applied; the input list is embedded verbatim.

    Args:
        conversations: Raw conversation dicts as received from the API client
        now: Export time (defaults to the current UTC time)

    Returns:
        ExportedFile named chatgpt_backup_<YYYY-MM-DD>.json
    """
    now = now or utc_now()
    backup = {
        "exported_at": isoformat_utc(now),
        "total_conversations": len(conversations),
        "conversations": conversations,
    }
    date_str = now.astimezone(timezone.utc).strftime("%Y-%m-%d")
    return ExportedFile(
        filename=f"chatgpt_backup_{date_str}.json",
        content=json.dumps(backup, indent=2, ensure_ascii=False),
    )
