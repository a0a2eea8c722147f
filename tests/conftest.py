"""Shared fixtures for building raw ChatGPT conversation exports."""

from typing import Any

import pytest

CONVERSATION_ID = "6981fddd-2834-8394-9b08-a9b19891753c"


def make_message(
    role: str,
    text: str | None = None,
    content_type: str = "text",
    parts: list[Any] | None = None,
    metadata: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a raw export message."""
    if parts is None:
        parts = [text] if text is not None else []
    content: dict[str, Any] = {"content_type": content_type}
    if content_type in ("code", "execution_output"):
        content["text"] = text or ""
    else:
        content["parts"] = parts
    return {
        "id": f"msg-{role}",
        "author": {"role": role},
        "content": content,
        "metadata": metadata or {},
    }


def make_conversation(
    messages: list[dict[str, Any]],
    title: str = "Unusual Adjective",
    conversation_id: str = CONVERSATION_ID,
    create_time: Any = 1770126827.760625,
    update_time: Any = 1770127000.0,
    **extra: Any,
) -> dict[str, Any]:
    """Build a linear raw conversation: root -> messages[0] -> ... -> leaf."""
    mapping: dict[str, Any] = {
        "root": {"id": "root", "parent": None, "children": [], "message": None},
    }
    parent = "root"
    for index, message in enumerate(messages):
        node_id = f"n{index}"
        mapping[node_id] = {"id": node_id, "parent": parent, "children": [], "message": message}
        mapping[parent]["children"].append(node_id)
        parent = node_id

    conversation = {
        "conversation_id": conversation_id,
        "title": title,
        "create_time": create_time,
        "update_time": update_time,
        "current_node": parent,
        "mapping": mapping,
    }
    conversation.update(extra)
    return conversation


@pytest.fixture
def simple_conversation() -> dict[str, Any]:
    """A short user/assistant exchange."""
    return make_conversation([
        make_message("system", ""),
        make_message("user", "What is an unusual adjective?"),
        make_message("assistant", "Try *crepuscular*.", metadata={"model_slug": "gpt-4o"}),
    ])
