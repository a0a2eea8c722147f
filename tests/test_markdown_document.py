"""Tests for Markdown document assembly."""

from typing import Any

import pytest
from conftest import CONVERSATION_ID, make_conversation, make_message

from gpt_exporter.markdown.document import (
    BranchOrigin,
    build_body,
    build_frontmatter,
    detect_model,
    find_branch_origin,
    output_path,
    source_url,
    transform,
)
from gpt_exporter.models import ChatTurn, ConversationGraph

EXPECTED_DOCUMENT = "\n".join([
    "---",
    'title: "Unusual Adjective"',
    "aliases:",
    '  - "6981fddd"',
    '  - "Unusual Adjective 6981fddd"',
    "parent:",
    "  - ",
    "type: gpt-chat",
    "model-name: gpt-4o",
    "chronum: 1770126827",
    "created: 2026-02-03T13:53",
    "updated: 2026-02-03T13:56",
    "tags:",
    "  - gpt-chat",
    "source: https://chatgpt.com/c/6981fddd-2834-8394-9b08-a9b19891753c",
    "---",
    "",
    "# Unusual Adjective",
    "",
    "> [!me:]",
    "> What is an unusual adjective?",
    "",
    "#### ChatGPT:",
    "Try *crepuscular*.",
])


def frontmatter_lines(raw: dict[str, Any]) -> list[str]:
    return build_frontmatter(ConversationGraph.from_dict(raw)).split("\n")


class TestTransform:
    """Tests for transform function."""

    def test_full_document(self, simple_conversation: dict[str, Any]) -> None:
        exported = transform(simple_conversation)
        assert exported.filename == "Unusual_Adjective_6981fddd.md"
        assert exported.content == EXPECTED_DOCUMENT

    def test_accepts_parsed_graph(self, simple_conversation: dict[str, Any]) -> None:
        graph = ConversationGraph.from_dict(simple_conversation)
        assert transform(graph).content == transform(simple_conversation).content

    def test_empty_conversation_is_valid_document(self) -> None:
        """A conversation with no messages still yields front matter and heading."""
        exported = transform(make_conversation([]))
        assert exported.content.startswith("---\n")
        assert "\n---\n\n# Unusual Adjective\n" in exported.content
        assert "model-name: unknown" in exported.content

    def test_custom_tool_call_keys(self) -> None:
        raw = make_conversation([
            make_message("user", "draw"),
            make_message("assistant", '{"canvas": "x"}'),
            make_message("assistant", "Done."),
        ])
        content = transform(raw, tool_call_keys={"canvas"}).content
        assert '{"canvas": "x"}' not in content
        assert "Done." in content

    def test_custom_base_url(self, simple_conversation: dict[str, Any]) -> None:
        content = transform(simple_conversation, base_url="https://example.test/").content
        assert f"source: https://example.test/c/{CONVERSATION_ID}" in content

    def test_hex_colors_escaped_outside_code(self) -> None:
        raw = make_conversation([
            make_message("user", "Which color?"),
            make_message("assistant", "Use #ccc here.\n```css\na { color: #ccc; }\n```"),
        ])
        content = transform(raw).content
        assert "Use \\#ccc here." in content
        assert "a { color: #ccc; }" in content

    def test_missing_title(self) -> None:
        raw = make_conversation([make_message("user", "hi")], title="")
        exported = transform(raw)
        assert exported.filename == "Untitled_Conversation_6981fddd.md"
        assert 'title: "Untitled Conversation"' in exported.content

    def test_garbage_input(self) -> None:
        """A malformed mapping degrades to an empty document rather than raising."""
        exported = transform({"mapping": "nope"})
        assert exported.filename == "Untitled_Conversation.md"
        assert exported.content.startswith("---\n")


class TestBuildFrontmatter:
    """Tests for build_frontmatter function."""

    def test_key_order(self, simple_conversation: dict[str, Any]) -> None:
        keys = [
            line.split(":", 1)[0]
            for line in frontmatter_lines(simple_conversation)
            if line and not line.startswith((" ", "---"))
        ]
        assert keys == [
            "title", "aliases", "parent", "type", "model-name",
            "chronum", "created", "updated", "tags", "source",
        ]

    def test_title_quotes_replaced(self) -> None:
        lines = frontmatter_lines(make_conversation([], title='Say "hi"'))
        assert lines[1] == "title: \"Say 'hi'\""

    def test_corrupted_middle_dot_repaired(self) -> None:
        lines = frontmatter_lines(make_conversation([], title="A ┬╖ B"))
        assert lines[1] == 'title: "A · B"'

    def test_numeric_short_id_alias_quoted(self) -> None:
        lines = frontmatter_lines(make_conversation([], conversation_id="12345678-aaaa"))
        assert '  - "12345678"' in lines

    def test_branch_parent(self) -> None:
        """A branched conversation links back to its origin document."""
        raw = make_conversation([
            make_message("user", "continue", metadata={
                "branching_from_conversation_id": "69821234-0000-0000-0000-000000000000",
                "branching_from_conversation_title": "Unusual Adjective",
            }),
        ])
        lines = frontmatter_lines(raw)
        index = lines.index("parent:")
        assert lines[index + 1] == '  - "[[Unusual_Adjective_69821234]]"'

    def test_no_branch_parent_is_empty_item(self, simple_conversation: dict[str, Any]) -> None:
        lines = frontmatter_lines(simple_conversation)
        index = lines.index("parent:")
        assert lines[index + 1] == "  - "

    def test_project_tag_and_source(self) -> None:
        raw = make_conversation(
            [],
            _projectId="g-p-abc123",
            _projectName="Tëster's Pläýground",
        )
        lines = frontmatter_lines(raw)
        assert "  - tester-s-playground" in lines
        assert 'project: "Tëster\'s Pläýground"' in lines
        assert lines[-2] == f"source: https://chatgpt.com/g/g-p-abc123/c/{CONVERSATION_ID}"

    def test_symbol_only_project_has_no_tag(self) -> None:
        lines = frontmatter_lines(make_conversation([], _projectName="&#!"))
        index = lines.index("tags:")
        assert lines[index + 1:index + 3] == ["  - gpt-chat", 'project: "&#!"']

    def test_chronum_null(self) -> None:
        lines = frontmatter_lines(make_conversation([], create_time=None))
        assert "chronum: null" in lines

    def test_iso_timestamps(self) -> None:
        lines = frontmatter_lines(
            make_conversation([], create_time="2026-02-03T13:53:47Z", update_time="2026-02-04T08:00:00Z")
        )
        assert "created: 2026-02-03T13:53" in lines
        assert "updated: 2026-02-04T08:00" in lines


class TestFindBranchOrigin:
    """Tests for find_branch_origin function."""

    def test_requires_id_and_title(self) -> None:
        raw = make_conversation([
            make_message("user", "a", metadata={"branching_from_conversation_id": "abc"}),
        ])
        assert find_branch_origin(ConversationGraph.from_dict(raw)) is None

    def test_found_on_any_node(self) -> None:
        raw = make_conversation([
            make_message("user", "a"),
            make_message("assistant", "b", metadata={
                "branching_from_conversation_id": "abcdef12-3456",
                "branching_from_conversation_title": "Origin",
            }),
        ])
        origin = find_branch_origin(ConversationGraph.from_dict(raw))
        assert origin == BranchOrigin(conversation_id="abcdef12-3456", title="Origin")
        assert origin.wikilink == "[[Origin_abcdef12]]"


class TestDetectModel:
    def test_first_slug_wins(self) -> None:
        raw = make_conversation([
            make_message("user", "a"),
            make_message("assistant", "b", metadata={"model_slug": "gpt-4o"}),
            make_message("assistant", "c", metadata={"model_slug": "o3"}),
        ])
        assert detect_model(ConversationGraph.from_dict(raw)) == "gpt-4o"

    def test_unknown(self) -> None:
        assert detect_model(ConversationGraph()) == "unknown"


class TestOutputPath:
    """Tests for output_path and source_url functions."""

    def test_project_folder(self) -> None:
        graph = ConversationGraph.from_dict(make_conversation([], _projectName="My Project: 2026"))
        assert output_path(graph) == "My_Project_2026/Unusual_Adjective_6981fddd.md"

    @pytest.mark.parametrize("project", [".", ".."])
    def test_dot_project_folder_replaced(self, project: str) -> None:
        graph = ConversationGraph.from_dict(make_conversation([], _projectName=project))
        assert output_path(graph) == "Untitled_Conversation/Unusual_Adjective_6981fddd.md"

    def test_blank_project_ignored(self) -> None:
        graph = ConversationGraph.from_dict(make_conversation([], _projectName="   "))
        assert output_path(graph) == "Unusual_Adjective_6981fddd.md"

    def test_source_url_strips_trailing_slash(self) -> None:
        graph = ConversationGraph(id="abc")
        assert source_url(graph, "https://chatgpt.com/") == "https://chatgpt.com/c/abc"


class TestBuildBody:
    """Tests for build_body function."""

    def test_heading_only(self) -> None:
        assert build_body("Title", []) == "# Title\n\n"

    def test_image_group_json_not_escaped(self) -> None:
        """Image groups are fenced before color escaping, so #fff inside survives."""
        text = 'See:\n\ue200image_group\ue202{"query":["#fff"]}\ue201'
        body = build_body("T", [ChatTurn("assistant", text)])
        assert 'image_group{"query":["#fff"]}' in body
        assert "\\#fff" not in body
