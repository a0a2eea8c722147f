"""Conversation graph data models.

Parsed leniently from the raw ChatGPT export shape:

    {
      "conversation_id": "...", "title": "...",
      "create_time": 1770126827.76, "update_time": 1770127000.1,
      "current_node": "<leaf id>",
      "mapping": {"<node id>": {"id": ..., "parent": ..., "children": [...],
                                "message": {...} | null}},
      "_projectId": "...", "_projectName": "..."
    }

Missing or malformed fields fall back to empty values; parsing never raises.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ContentKind(str, Enum):
    """Closed set of message content kinds."""

    TEXT = "text"
    MULTIMODAL_TEXT = "multimodal_text"
    CODE = "code"
    EXECUTION_OUTPUT = "execution_output"
    MODEL_EDITABLE_CONTEXT = "model_editable_context"
    USER_EDITABLE_CONTEXT = "user_editable_context"
    THOUGHTS = "thoughts"
    REASONING_RECAP = "reasoning_recap"
    TETHER_BROWSING_CODE = "tether_browsing_code"
    TETHER_BROWSING_DISPLAY = "tether_browsing_display"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ContentKind":
        try:
            return cls(value)
        except (TypeError, ValueError):
            return cls.UNKNOWN

    @property
    def is_internal(self) -> bool:
        """Administrative kinds that never reach output."""
        return self in INTERNAL_CONTENT_KINDS


INTERNAL_CONTENT_KINDS = frozenset({
    ContentKind.MODEL_EDITABLE_CONTEXT,
    ContentKind.USER_EDITABLE_CONTEXT,
    ContentKind.THOUGHTS,
    ContentKind.REASONING_RECAP,
    ContentKind.TETHER_BROWSING_CODE,
    ContentKind.TETHER_BROWSING_DISPLAY,
})


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


@dataclass
class Content:
    kind: ContentKind
    parts: list[Any] = field(default_factory=list)
    text: str = ""

    @classmethod
    def from_dict(cls, raw: Any) -> "Content | None":
        if isinstance(raw, str):
            return cls(kind=ContentKind.TEXT, parts=[raw])
        if not isinstance(raw, dict):
            return None
        parts = raw.get("parts")
        text = raw.get("text")
        return cls(
            kind=ContentKind.parse(raw.get("content_type")),
            parts=list(parts) if isinstance(parts, list) else [],
            text=text if isinstance(text, str) else "",
        )


@dataclass
class CitationCandidate:
    url: str | None = None
    title: str | None = None


@dataclass
class CitationReference:
    """Maps an in-body marker (e.g. "citeturn0search0") to its sources."""

    matched_text: str
    candidates: list[CitationCandidate] = field(default_factory=list)

    @property
    def url(self) -> str | None:
        for candidate in self.candidates:
            if candidate.url:
                return candidate.url
        return None

    @property
    def title(self) -> str | None:
        for candidate in self.candidates:
            if candidate.title:
                return candidate.title
        return None

    @classmethod
    def from_dict(cls, raw: Any) -> "CitationReference | None":
        if not isinstance(raw, dict):
            return None
        matched_text = raw.get("matched_text")
        if not isinstance(matched_text, str) or not matched_text:
            return None

        candidates = []
        # Newer exports carry an items list; older ones put url/title inline
        items = raw.get("items")
        for item in items if isinstance(items, list) else []:
            if isinstance(item, dict):
                candidates.append(
                    CitationCandidate(_str_or_none(item.get("url")), _str_or_none(item.get("title")))
                )
        if raw.get("url") or raw.get("title"):
            candidates.append(
                CitationCandidate(_str_or_none(raw.get("url")), _str_or_none(raw.get("title")))
            )
        return cls(matched_text=matched_text, candidates=candidates)


@dataclass
class MessageMetadata:
    model_slug: str | None = None
    is_visually_hidden: bool = False
    content_references: list[CitationReference] = field(default_factory=list)
    branching_from_conversation_id: str | None = None
    branching_from_conversation_title: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> "MessageMetadata":
        if not isinstance(raw, dict):
            return cls()
        references = []
        raw_refs = raw.get("content_references")
        for ref in raw_refs if isinstance(raw_refs, list) else []:
            parsed = CitationReference.from_dict(ref)
            if parsed is not None:
                references.append(parsed)
        return cls(
            model_slug=_str_or_none(raw.get("model_slug")) or None,
            is_visually_hidden=bool(raw.get("is_visually_hidden_from_conversation")),
            content_references=references,
            branching_from_conversation_id=_str_or_none(raw.get("branching_from_conversation_id")) or None,
            branching_from_conversation_title=_str_or_none(raw.get("branching_from_conversation_title")) or None,
        )


@dataclass
class Message:
    role: str  # user, assistant, tool, system
    content: Content | None
    metadata: MessageMetadata = field(default_factory=MessageMetadata)

    @classmethod
    def from_dict(cls, raw: Any) -> "Message | None":
        if not isinstance(raw, dict):
            return None
        author = raw.get("author")
        role = author.get("role") if isinstance(author, dict) else None
        return cls(
            role=str(role) if role else "unknown",
            content=Content.from_dict(raw.get("content")),
            metadata=MessageMetadata.from_dict(raw.get("metadata")),
        )


@dataclass
class Node:
    id: str
    parent_id: str | None = None
    child_ids: list[str] = field(default_factory=list)
    message: Message | None = None

    @classmethod
    def from_dict(cls, node_id: str, raw: Any) -> "Node":
        if not isinstance(raw, dict):
            return cls(id=node_id)
        children = raw.get("children")
        return cls(
            id=node_id,
            parent_id=_str_or_none(raw.get("parent")),
            child_ids=[str(c) for c in children] if isinstance(children, list) else [],
            message=Message.from_dict(raw.get("message")),
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class ConversationGraph:
    """One conversation: an id-indexed arena of nodes plus metadata."""

    id: str = ""
    title: str = ""
    created_at: Any = None  # seconds, numeric string, or ISO string
    updated_at: Any = None
    current_leaf_id: str | None = None
    nodes: dict[str, Node] = field(default_factory=dict)
    project_id: str | None = None
    project_name: str | None = None

    @property
    def project(self) -> str | None:
        """Project name, or None when absent or blank."""
        if not self.project_name:
            return None
        return self.project_name.strip() or None

    @classmethod
    def from_dict(cls, raw: Any) -> "ConversationGraph":
        if not isinstance(raw, dict):
            return cls()

        mapping = raw.get("mapping")
        nodes: dict[str, Node] = {}
        if isinstance(mapping, dict):
            for node_id, node in mapping.items():
                nodes[str(node_id)] = Node.from_dict(str(node_id), node)

        title = raw.get("title")
        return cls(
            id=_str_or_none(raw.get("conversation_id") or raw.get("id")) or "",
            title=title if isinstance(title, str) else "",
            created_at=raw.get("create_time"),
            updated_at=raw.get("update_time"),
            current_leaf_id=_str_or_none(raw.get("current_node")) or None,
            nodes=nodes,
            project_id=_str_or_none(raw.get("_projectId") or raw.get("project_id")) or None,
            project_name=_str_or_none(raw.get("_projectName") or raw.get("project_name")),
        )


@dataclass
class ChatTurn:
    """One rendered turn of the active conversation path."""

    role: str  # user or assistant
    content: str
    references: list[CitationReference] = field(default_factory=list)


@dataclass
class ExportedFile:
    """A generated output file, relative to the export directory."""

    filename: str
    content: str | bytes
