"""Assemble a conversation into an Obsidian Markdown document.

Output layout:

    ---
    title: "<title>"
    aliases:
      - "<short id>"
      - "<title> <short id>"
    parent:
      - "[[<parent document key>]]"
    type: gpt-chat
    model-name: <model slug>
    chronum: <int creation seconds>
    created: YYYY-MM-DDTHH:MM
    updated: YYYY-MM-DDTHH:MM
    tags:
      - gpt-chat
      - <project tag>
    project: "<project name>"
    source: https://chatgpt.com/c/<id>
    ---

    # <title>

    > [!me:]
    > question

    #### ChatGPT:
    answer
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from gpt_exporter.identifiers import UNTITLED_FILENAME, document_key, sanitize_filename_component, short_id
from gpt_exporter.logging import get_logger
from gpt_exporter.markdown.rewrite import escape_hex_colors, prepare_turns, render_turns, wrap_image_groups
from gpt_exporter.markdown.walker import DEFAULT_TOOL_CALL_KEYS, extract_messages
from gpt_exporter.models import ChatTurn, ConversationGraph, ExportedFile
from gpt_exporter.text import normalize_encoding, sanitize_project_tag
from gpt_exporter.timestamps import format_truncated_date, get_chronum

logger = get_logger("markdown.document")

DEFAULT_TITLE = "Untitled Conversation"
DOCUMENT_TYPE = "gpt-chat"
BASE_TAG = "gpt-chat"
UNKNOWN_MODEL = "unknown"
DEFAULT_BASE_URL = "https://chatgpt.com"


@dataclass
class BranchOrigin:
    """The conversation this one was branched from."""

    conversation_id: str
    title: str

    @property
    def wikilink(self) -> str:
        return f"[[{document_key(self.title, self.conversation_id)}]]"


def display_title(graph: ConversationGraph) -> str:
    return normalize_encoding((graph.title or DEFAULT_TITLE).strip()) or DEFAULT_TITLE


def frontmatter_safe(value: str) -> str:
    """Replace double quotes so the value can sit inside a quoted YAML scalar."""
    return value.replace('"', "'") if value else value


def find_branch_origin(graph: ConversationGraph) -> BranchOrigin | None:
    """Search every node for branch-origin metadata; first match wins."""
    for node in graph.nodes.values():
        if node.message is None:
            continue
        metadata = node.message.metadata
        if metadata.branching_from_conversation_id and metadata.branching_from_conversation_title:
            return BranchOrigin(
                conversation_id=metadata.branching_from_conversation_id,
                title=metadata.branching_from_conversation_title,
            )
    return None


def detect_model(graph: ConversationGraph) -> str:
    for node in graph.nodes.values():
        if node.message is not None and node.message.metadata.model_slug:
            return node.message.metadata.model_slug
    return UNKNOWN_MODEL


def source_url(graph: ConversationGraph, base_url: str = DEFAULT_BASE_URL) -> str:
    base_url = base_url.rstrip("/")
    if graph.project_id:
        return f"{base_url}/g/{graph.project_id}/c/{graph.id}"
    return f"{base_url}/c/{graph.id}"


def _yaml_list(key: str, items: list[str]) -> str:
    if not items:
        return f"{key}:\n  - "
    return "\n".join([f"{key}:"] + [f"  - {item}" for item in items])


def build_frontmatter(graph: ConversationGraph, base_url: str = DEFAULT_BASE_URL) -> str:
    """Build the YAML front matter block, delimiters included.

    Values are emitted in a fixed key order. Aliases are always quoted:
    an 8-digit hex id like "12345678" would otherwise parse as a number.
    """
    title = frontmatter_safe(display_title(graph))
    short = short_id(graph.id)
    project = graph.project

    aliases = [f'"{short}"', f'"{title} {short}"'] if short else []

    origin = find_branch_origin(graph)
    parent = [f'"{origin.wikilink}"'] if origin else []

    tags = [BASE_TAG]
    project_tag = sanitize_project_tag(project) if project else ""
    if project_tag:
        tags.append(project_tag)

    chronum = get_chronum(graph.created_at)

    lines = [
        "---",
        f'title: "{title}"',
        _yaml_list("aliases", aliases),
        _yaml_list("parent", parent),
        f"type: {DOCUMENT_TYPE}",
        f"model-name: {detect_model(graph)}",
        f"chronum: {'null' if chronum is None else chronum}",
        f"created: {format_truncated_date(graph.created_at)}",
        f"updated: {format_truncated_date(graph.updated_at)}",
        _yaml_list("tags", tags),
    ]
    if project:
        lines.append(f'project: "{frontmatter_safe(project)}"')
    lines.append(f"source: {source_url(graph, base_url)}")
    lines.append("---")
    return "\n".join(lines)


def build_body(title: str, turns: list[ChatTurn]) -> str:
    """Render the heading and message blocks.

    Image groups are fenced before hex colors are escaped, so the new
    fences protect their JSON from escaping.
    """
    blocks = render_turns(prepare_turns(turns))
    body = "\n".join([f"# {title}", "", "\n\n".join(blocks)])
    body = wrap_image_groups(body)
    return escape_hex_colors(body)


def output_path(graph: ConversationGraph) -> str:
    """Relative output path; project conversations go in a project folder."""
    filename = document_key(display_title(graph), graph.id) + ".md"
    project = graph.project
    if project:
        folder = sanitize_filename_component(project)
        # "." and ".." are not usable folder names
        if folder in (".", ".."):
            folder = UNTITLED_FILENAME
        return f"{folder}/{filename}"
    return filename


def transform(
    graph: ConversationGraph | dict[str, Any],
    tool_call_keys: Iterable[str] = DEFAULT_TOOL_CALL_KEYS,
    base_url: str = DEFAULT_BASE_URL,
) -> ExportedFile:
    """Convert one conversation into a Markdown document.

    Args:
        graph: Parsed conversation, or the raw export dict
        tool_call_keys: JSON keys marking internal tool-call messages
        base_url: Base for the reconstructed source URL

    Returns:
        ExportedFile with the relative path and Markdown text
    """
    if not isinstance(graph, ConversationGraph):
        graph = ConversationGraph.from_dict(graph)

    turns = extract_messages(graph, tool_call_keys)
    frontmatter = build_frontmatter(graph, base_url)
    body = build_body(display_title(graph), turns)

    logger.debug("Rendered conversation: id=%s turns=%d", graph.id, len(turns))

    return ExportedFile(filename=output_path(graph), content="\n".join([frontmatter, "", body]))
