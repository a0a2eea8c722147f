"""Reconstruct the active conversation thread from the node graph.

A ChatGPT conversation is a tree: every edit or regeneration forks a new
branch. Only the branch ending at ``current_node`` is what the user sees, so
we walk from that leaf up through ``parent`` links to the root and keep the
messages that carry real user/assistant content.
"""

import json
import re
from collections.abc import Callable, Iterable

from gpt_exporter.logging import get_logger
from gpt_exporter.models import ChatTurn, Content, ContentKind, ConversationGraph, Message, Node

logger = get_logger("markdown.walker")

# Keys of the JSON payloads the assistant emits when it calls an internal
# tool (web search, browsing, shopping). Not exhaustive; configurable.
DEFAULT_TOOL_CALL_KEYS = frozenset({
    "search_query",
    "open",
    "find",
    "image_query",
    "product_query",
    "response_length",
    "selections",
    "tags",
})

FUNCTION_CALL_PREFIXES = ("mainline_search(",)
CHAT_ROLES = ("user", "assistant")
SKIPPED_ROLES = frozenset({"system", "tool"})
IMAGE_PLACEHOLDER = "[Image]"

_PRODUCTS_BLOCK_START = re.compile(r"^products\s*\{")
FENCE = "```"


def _extract_part(part: object) -> str:
    if isinstance(part, str):
        return part
    if isinstance(part, dict):
        if part.get("content_type") == "image_asset_pointer":
            return IMAGE_PLACEHOLDER
        text = part.get("text")
        if isinstance(text, str) and text:
            return text
    return ""


def _extract_parts(content: Content) -> str:
    return "\n".join(_extract_part(part) for part in content.parts)


def _extract_fenced(content: Content) -> str:
    if not content.text:
        return ""
    return f"{FENCE}\n{content.text}\n{FENCE}"


def _extract_nothing(content: Content) -> str:
    return ""


# Every ContentKind must have an entry here.
CONTENT_EXTRACTORS: dict[ContentKind, Callable[[Content], str]] = {
    ContentKind.TEXT: _extract_parts,
    ContentKind.MULTIMODAL_TEXT: _extract_parts,
    ContentKind.CODE: _extract_fenced,
    ContentKind.EXECUTION_OUTPUT: _extract_fenced,
    ContentKind.MODEL_EDITABLE_CONTEXT: _extract_nothing,
    ContentKind.USER_EDITABLE_CONTEXT: _extract_nothing,
    ContentKind.THOUGHTS: _extract_nothing,
    ContentKind.REASONING_RECAP: _extract_nothing,
    ContentKind.TETHER_BROWSING_CODE: _extract_nothing,
    ContentKind.TETHER_BROWSING_DISPLAY: _extract_nothing,
    ContentKind.UNKNOWN: _extract_nothing,
}


def extract_text(content: Content | None) -> str:
    """Convert a message's content into plain text.

    Text parts are joined with newlines, image attachments become
    "[Image]", and code/execution output is wrapped in a code fence.
    """
    if content is None:
        return ""
    return CONTENT_EXTRACTORS[content.kind](content)


def strip_code_fence(text: str) -> str:
    """Remove one layer of surrounding ``` fence (and its language tag)."""
    inner = text.strip()
    if not inner.startswith(FENCE):
        return inner

    end = inner.rfind(FENCE)
    if end <= len(FENCE):
        return inner

    start = inner.find("\n")
    if start == -1 or start > end:
        start = len(FENCE)
    else:
        start += 1
    return inner[start:end].strip()


def is_tool_call_json(text: str, tool_call_keys: Iterable[str] = DEFAULT_TOOL_CALL_KEYS) -> bool:
    """True if text is a JSON object addressed to an internal tool."""
    if not (text.startswith("{") and text.endswith("}")):
        return False
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        # Not JSON after all; treat as ordinary content
        return False
    if not isinstance(parsed, dict):
        return False
    return not parsed.keys().isdisjoint(tool_call_keys)


def is_function_call(text: str) -> bool:
    return text.startswith(FUNCTION_CALL_PREFIXES) or bool(_PRODUCTS_BLOCK_START.match(text))


def should_skip_message(
    message: Message | None,
    tool_call_keys: Iterable[str] = DEFAULT_TOOL_CALL_KEYS,
) -> bool:
    """Decide whether a message is noise rather than conversation content.

    Skips system/tool messages, hidden messages, internal content kinds
    (context, thoughts, browsing), empty messages and assistant messages
    that are really internal tool invocations.
    """
    if message is None:
        return True

    if message.role in SKIPPED_ROLES:
        return True

    if message.metadata.is_visually_hidden:
        return True

    if message.content is not None and message.content.kind.is_internal:
        return True

    text = extract_text(message.content)
    if not text.strip():
        return True

    if message.role == "assistant":
        inner = strip_code_fence(text)
        if is_tool_call_json(inner, tool_call_keys):
            return True
        if is_function_call(inner):
            return True

    return False


def find_start_node(graph: ConversationGraph) -> str | None:
    """Return the leaf to start from: current_node, else the first childless node."""
    if graph.current_leaf_id:
        return graph.current_leaf_id
    for node_id, node in graph.nodes.items():
        if not node.child_ids:
            return node_id
    return None


def walk_active_path(graph: ConversationGraph) -> list[Node]:
    """Return the non-root nodes on the active path, oldest first.

    The walk is iterative and bounded by the node count, so a corrupt
    mapping with a parent cycle still terminates.
    """
    start = find_start_node(graph)
    if start is None:
        logger.debug("No start node found: conversation=%s", graph.id)
        return []

    path: list[Node] = []
    current: str | None = start
    for _ in range(len(graph.nodes)):
        if current is None:
            break
        node = graph.nodes.get(current)
        if node is None or node.is_root:
            break
        path.append(node)
        current = node.parent_id
    else:
        if current is not None and current in graph.nodes and not graph.nodes[current].is_root:
            logger.warning("Walk bound reached, parent cycle suspected: conversation=%s", graph.id)

    path.reverse()
    return path


def extract_messages(
    graph: ConversationGraph,
    tool_call_keys: Iterable[str] = DEFAULT_TOOL_CALL_KEYS,
) -> list[ChatTurn]:
    """Extract the ordered user/assistant turns of the active thread.

    Args:
        graph: Conversation to walk
        tool_call_keys: JSON keys that mark an assistant tool invocation

    Returns:
        Turns oldest to newest; empty for an empty or rootless graph
    """
    tool_call_keys = frozenset(tool_call_keys)
    turns: list[ChatTurn] = []

    for node in walk_active_path(graph):
        message = node.message
        if message is None or message.content is None:
            continue
        if should_skip_message(message, tool_call_keys):
            continue
        turns.append(
            ChatTurn(
                role=message.role,
                content=extract_text(message.content),
                references=message.metadata.content_references,
            )
        )

    # Final role filter; the skip predicate only drops system/tool
    return [turn for turn in turns if turn.role in CHAT_ROLES]
