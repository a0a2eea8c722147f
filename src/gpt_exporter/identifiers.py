"""Stable identifiers derived from conversation titles and ids.

document_key() is the only place a document's base name is computed. It is
used both for the file a conversation is written to and for the wikilink
another conversation uses to point at it, so the two can never disagree.
"""

import re

from gpt_exporter.text import normalize_encoding

UNTITLED_FILENAME = "Untitled_Conversation"
MAX_FILENAME_LENGTH = 200
SHORT_ID_LENGTH = 8

_WHITESPACE_RUNS = re.compile(r"\s+")
# Invalid on Windows: \ / : * ? " < > |
_INVALID_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')
_UNDERSCORE_RUNS = re.compile(r"_+")


def short_id(conversation_id: str | None) -> str:
    """First 8 characters of a conversation id, or "" when missing.

    The leading 8 hex digits of a ChatGPT conversation id encode its
    creation time, so collisions within one account are unlikely but
    not ruled out.
    """
    if not conversation_id or not isinstance(conversation_id, str):
        return ""
    return conversation_id[:SHORT_ID_LENGTH]


def sanitize_filename_component(text: str | None) -> str:
    """Make text safe to use as a single path component."""
    if not text or not isinstance(text, str):
        return UNTITLED_FILENAME

    filename = normalize_encoding(text)
    filename = _WHITESPACE_RUNS.sub("_", filename)
    filename = _INVALID_FILENAME_CHARS.sub("_", filename)
    filename = _UNDERSCORE_RUNS.sub("_", filename).strip("_")

    if len(filename) > MAX_FILENAME_LENGTH:
        # Trim again so truncation never leaves a trailing underscore
        filename = filename[:MAX_FILENAME_LENGTH].rstrip("_")

    return filename or UNTITLED_FILENAME


def document_key(title: str | None, conversation_id: str | None) -> str:
    """Base name (no extension) shared by output files and wikilinks.

    Example:
        document_key("Unusual Adjective", "6981fddd-2834-8394-9b08-a9b19891753c")
        -> "Unusual_Adjective_6981fddd"
    """
    sanitized = sanitize_filename_component(title)
    short = short_id(conversation_id)
    if not short:
        return sanitized
    return f"{sanitized}_{short}"
