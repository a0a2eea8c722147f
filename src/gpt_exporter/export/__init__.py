"""Delivery of exported conversations: backups, archives and tracking."""

from .archive import archive
from .backup import build_backup_manifest
from .pipeline import export_conversations, load_conversations
from .state import ExportState

__all__ = [
    "ExportState",
    "archive",
    "build_backup_manifest",
    "export_conversations",
    "load_conversations",
]
