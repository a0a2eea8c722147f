"""Export pipeline: load conversations, render them, and deliver the files."""

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gpt_exporter.export.archive import archive
from gpt_exporter.export.backup import build_backup_manifest
from gpt_exporter.export.state import ExportState
from gpt_exporter.logging import get_logger
from gpt_exporter.markdown import DEFAULT_TOOL_CALL_KEYS, transform
from gpt_exporter.markdown.document import DEFAULT_BASE_URL
from gpt_exporter.models import ExportedFile
from gpt_exporter.timestamps import utc_now

logger = get_logger("export.pipeline")

# Bundle into a ZIP when more files than this would be written
DEFAULT_ZIP_THRESHOLD = 3


@dataclass
class ExportResult:
    """Outcome of one export run."""

    conversations: int = 0
    skipped: int = 0
    failed: int = 0
    written: list[Path] = field(default_factory=list)
    archive_path: Path | None = None

    @property
    def file_count(self) -> int:
        return len(self.written)


def load_conversations(path: Path) -> list[dict[str, Any]]:
    """Load raw conversations from an export file.

    Accepts the export's JSON array or a backup manifest object with a
    "conversations" list.

    Raises:
        ValueError: If the file holds neither shape
        json.JSONDecodeError: If the file is not valid JSON
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("conversations")
    if not isinstance(data, list):
        raise ValueError(f"No conversation list found in {path}")

    conversations = [conv for conv in data if isinstance(conv, dict)]
    if len(conversations) != len(data):
        logger.warning(
            "Ignored non-object entries: path=%s ignored=%d", path, len(data) - len(conversations)
        )
    return conversations


def find_conversation(conversations: Iterable[dict[str, Any]], conversation_id: str) -> dict[str, Any] | None:
    """Find a conversation by full id or by id prefix (e.g. its short id)."""
    for conv in conversations:
        conv_id = str(conv.get("conversation_id") or conv.get("id") or "")
        if conv_id and conv_id.startswith(conversation_id):
            return conv
    return None


def render_markdown_files(
    conversations: list[dict[str, Any]],
    tool_call_keys: Iterable[str] = DEFAULT_TOOL_CALL_KEYS,
    base_url: str = DEFAULT_BASE_URL,
) -> tuple[list[ExportedFile], list[dict[str, Any]]]:
    """Transform conversations, isolating failures.

    Returns:
        Tuple of (rendered files, conversations that rendered successfully)
    """
    files: list[ExportedFile] = []
    rendered: list[dict[str, Any]] = []
    for conv in conversations:
        try:
            files.append(transform(conv, tool_call_keys=tool_call_keys, base_url=base_url))
        except Exception:
            logger.exception(
                "Error rendering conversation: id=%s", conv.get("conversation_id") or conv.get("id")
            )
            continue
        rendered.append(conv)
    return files, rendered


def write_file(output_path: Path, exported: ExportedFile) -> Path:
    """Write one exported file below output_path, creating folders.

    Raises:
        ValueError: If the filename resolves outside output_path
    """
    dest = output_path / exported.filename
    if not dest.resolve().is_relative_to(output_path.resolve()):
        raise ValueError(f"Refusing to write outside {output_path}: {exported.filename}")
    dest.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(exported.content, bytes):
        dest.write_bytes(exported.content)
    else:
        dest.write_text(exported.content, encoding="utf-8")
    return dest


def export_conversations(
    conversations: list[dict[str, Any]],
    output_path: Path,
    formats: Iterable[str] = ("markdown",),
    zip_threshold: int = DEFAULT_ZIP_THRESHOLD,
    state: ExportState | None = None,
    new_only: bool = False,
    limit: int = 0,
    tool_call_keys: Iterable[str] = DEFAULT_TOOL_CALL_KEYS,
    base_url: str = DEFAULT_BASE_URL,
    now: datetime | None = None,
) -> ExportResult:
    """Run one export.

    Args:
        conversations: Raw conversation dicts
        output_path: Directory receiving the files
        formats: Any of "markdown" and "json"
        zip_threshold: Bundle into a ZIP when more files than this
        state: Export tracker; conversations are marked exported when given
        new_only: Only export conversations that are new or updated
        limit: Maximum number of conversations (0 for no limit)
        tool_call_keys: JSON keys marking internal tool-call messages
        base_url: Base for reconstructed source URLs
        now: Export time (defaults to the current UTC time)

    Returns:
        ExportResult with counts and written paths
    """
    now = now or utc_now()
    formats = set(formats)
    result = ExportResult()

    selected = conversations[:limit] if limit > 0 else list(conversations)
    if new_only and state is not None:
        pending = state.filter_needing_export(selected)
        result.skipped = len(selected) - len(pending)
        selected = pending

    files: list[ExportedFile] = []
    exported = selected
    if "markdown" in formats:
        files, exported = render_markdown_files(selected, tool_call_keys, base_url)
        result.failed = len(selected) - len(exported)
    if "json" in formats and selected:
        files.append(build_backup_manifest(selected, now=now))

    result.conversations = len(exported)

    if not files:
        logger.info("Nothing to export: skipped=%d", result.skipped)
        return result

    output_path.mkdir(parents=True, exist_ok=True)

    if len(files) > zip_threshold:
        date_str = now.astimezone(timezone.utc).strftime("%Y-%m-%d")
        bundle = ExportedFile(
            filename=f"ChatGPT_Export_{date_str}.zip",
            content=archive(files, modified=now.astimezone(timezone.utc).replace(tzinfo=None)),
        )
        result.archive_path = write_file(output_path, bundle)
        result.written.append(result.archive_path)
        logger.info("Wrote archive: path=%s files=%d", result.archive_path, len(files))
    else:
        for exported_file in files:
            result.written.append(write_file(output_path, exported_file))
        logger.info("Wrote files: count=%d output=%s", len(files), output_path)

    if state is not None:
        state.mark_multiple_exported(exported, exported_at=int(now.timestamp()))

    return result
