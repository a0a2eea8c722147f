"""Text rewrites that turn extracted message text into Obsidian Markdown.

Each stage is a pure function on strings so it can be tested on its own.
render_turns() and document.build_body() apply them in this order:

1. rewrite_citations      (assistant turns)
2. format_user_callout    (user turns)
3. wrap_image_groups      (whole body)
4. escape_hex_colors      (whole body, after 3 so new fences protect content)
5. JSON-only assistant turns followed by another assistant turn get fenced
"""

import re
from collections.abc import Iterable

from gpt_exporter.models import ChatTurn, CitationReference

ASSISTANT_HEADER = "#### ChatGPT:"
USER_CALLOUT_HEADER = "> [!me:]"

_PRODUCTS_BLOCK = re.compile(r"products\s*\{.*?\}(?=\n|$)", re.MULTILINE | re.DOTALL)
_CITATION_MARKER = re.compile(r"cite[a-zA-Z0-9]+")
_WHITESPACE_CHAR = re.compile(r"\s")

# U+E200 image_group U+E202 {json} U+E201
_IMAGE_GROUP = re.compile("\ue200image_group\ue202(\\{[^\ue201]*\\})\ue201")

# 3 (#RGB), 4 (#RGBA), 6 (#RRGGBB) or 8 (#RRGGBBAA) hex digits
_HEX_COLOR = re.compile(
    r"(?<!\\)#([0-9A-Fa-f]{3}|[0-9A-Fa-f]{4}|[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})(?![0-9A-Fa-f])"
)
_INLINE_CODE = re.compile(r"(`[^`]*`)")


def _is_fence_marker(line: str, markers: tuple[str, ...] = ("```",)) -> bool:
    return line.strip().startswith(markers)


def strip_products_blocks(text: str) -> str:
    """Remove leftover shopping-tool ``products { ... }`` blocks."""
    return _PRODUCTS_BLOCK.sub("", text)


def strip_citation_markers(text: str) -> str:
    return _CITATION_MARKER.sub("", text)


def rewrite_citations(text: str, references: Iterable[CitationReference] = ()) -> str:
    """Replace citation markers with inline ``([Title](URL))`` links.

    Longer markers are substituted first so a marker that is a prefix of
    another one cannot break it. Every occurrence is replaced. References
    without a URL are skipped, and any marker still left afterwards is
    removed.
    """
    output = strip_products_blocks(text)

    ordered = sorted(references, key=lambda ref: len(ref.matched_text), reverse=True)
    for ref in ordered:
        url = ref.url
        if not url:
            continue
        marker = _WHITESPACE_CHAR.sub(" ", ref.matched_text)
        if marker in output:
            output = output.replace(marker, f" ([{ref.title or url}]({url}))")

    return strip_citation_markers(output)


def format_user_callout(content: str) -> str:
    """Prefix each line with "> " for an Obsidian callout body.

    Lines inside ``` fences, and the fence lines themselves, are left alone.
    A quoted line in the user's text ("> x") becomes "> > x".
    The "> [!me:]" header is added by the caller.
    """
    if not content:
        return ""

    result = []
    inside_fence = False
    for line in content.split("\n"):
        if _is_fence_marker(line):
            inside_fence = not inside_fence
            result.append(line)
        elif inside_fence:
            result.append(line)
        else:
            result.append(f"> {line}")
    return "\n".join(result)


def wrap_image_groups(text: str) -> str:
    """Turn image_group control sequences into fenced code."""
    if not text:
        return text
    return _IMAGE_GROUP.sub(lambda m: f"```\nimage_group{m.group(1)}\n```", text)


def escape_hex_colors(text: str) -> str:
    """Escape ``#ccc``-style color codes so Obsidian doesn't read them as tags.

    Code fences (``` or ~~~) and inline backtick spans are left untouched.
    """
    if not text:
        return text

    result = []
    inside_fence = False
    for line in text.split("\n"):
        if _is_fence_marker(line, ("```", "~~~")):
            inside_fence = not inside_fence
            result.append(line)
        elif inside_fence:
            result.append(line)
        else:
            segments = _INLINE_CODE.split(line)
            result.append("".join(
                segment if segment.startswith("`") and segment.endswith("`") and len(segment) > 1
                else _HEX_COLOR.sub(r"\\#\1", segment)
                for segment in segments
            ))
    return "\n".join(result)


def is_json_object(text: str) -> bool:
    stripped = text.strip()
    return stripped.startswith("{") and stripped.endswith("}")


def render_assistant_block(content: str, fence: bool = False) -> str:
    if fence:
        return f"{ASSISTANT_HEADER}\n```\n{content}\n```"
    return f"{ASSISTANT_HEADER}\n{content}"


def render_user_block(content: str) -> str:
    return f"{USER_CALLOUT_HEADER}\n{format_user_callout(content)}"


def prepare_turns(turns: Iterable[ChatTurn]) -> list[ChatTurn]:
    """Apply citation rewriting and drop turns left empty by it."""
    prepared = []
    for turn in turns:
        content = turn.content
        if turn.role == "assistant":
            content = rewrite_citations(content, turn.references)
        content = content.strip()
        if content:
            prepared.append(ChatTurn(role=turn.role, content=content, references=turn.references))
    return prepared


def render_turns(turns: list[ChatTurn]) -> list[str]:
    """Render prepared turns to Markdown blocks."""
    blocks = []
    for index, turn in enumerate(turns):
        if turn.role == "user":
            blocks.append(render_user_block(turn.content))
            continue
        next_turn = turns[index + 1] if index + 1 < len(turns) else None
        followed_by_assistant = next_turn is not None and next_turn.role == "assistant"
        blocks.append(
            render_assistant_block(turn.content, fence=is_json_object(turn.content) and followed_by_assistant)
        )
    return blocks
