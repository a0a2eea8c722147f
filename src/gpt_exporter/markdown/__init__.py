"""Conversation graph to Obsidian Markdown conversion."""

from .document import build_body, build_frontmatter, find_branch_origin, output_path, transform
from .walker import DEFAULT_TOOL_CALL_KEYS, extract_messages, should_skip_message

__all__ = [
    "DEFAULT_TOOL_CALL_KEYS",
    "build_body",
    "build_frontmatter",
    "extract_messages",
    "find_branch_origin",
    "output_path",
    "should_skip_message",
    "transform",
]
