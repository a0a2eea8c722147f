"""Tests for the JSON backup manifest."""

import json
from datetime import datetime, timezone

from conftest import make_conversation, make_message

from gpt_exporter.export.backup import build_backup_manifest, isoformat_utc

NOW = datetime(2026, 2, 3, 13, 53, 47, 760625, tzinfo=timezone.utc)


class TestBuildBackupManifest:
    """Tests for build_backup_manifest function."""

    def test_filename_uses_export_date(self) -> None:
        assert build_backup_manifest([], now=NOW).filename == "chatgpt_backup_2026-02-03.json"

    def test_embeds_conversations_verbatim(self) -> None:
        conversations = [
            make_conversation([make_message("user", "¿Qué tal?")]),
            {"id": "odd", "unexpected": [1, 2, 3]},
        ]
        backup = json.loads(build_backup_manifest(conversations, now=NOW).content)
        assert backup == {
            "exported_at": "2026-02-03T13:53:47.760Z",
            "total_conversations": 2,
            "conversations": conversations,
        }

    def test_non_ascii_kept_readable(self) -> None:
        content = build_backup_manifest([{"title": "Café"}], now=NOW).content
        assert "Café" in content
        assert content.startswith("{\n  ")

    def test_empty(self) -> None:
        backup = json.loads(build_backup_manifest([], now=NOW).content)
        assert backup["total_conversations"] == 0
        assert backup["conversations"] == []


class TestIsoformatUtc:
    def test_converts_to_utc(self) -> None:
        moment = datetime.fromisoformat("2026-02-03T15:53:47.5+02:00")
        assert isoformat_utc(moment) == "2026-02-03T13:53:47.500Z"
