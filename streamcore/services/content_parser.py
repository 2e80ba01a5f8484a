"""Turns model output into ordered, renderable blocks.

Parsing runs in two passes. The first withholds model "thinking" output;
the second splits what is left into code fences and line-level markdown
blocks. Both passes are safe to re-run on every streamed delta.
"""

import re

from streamcore.models.schemas import (
    BlockquoteBlock,
    CodeBlock,
    HeadingBlock,
    HorizontalRuleBlock,
    ListItem,
    OrderedListBlock,
    ParsedBlock,
    TextBlock,
    UnorderedListBlock,
)

THINKING_PLACEHOLDER = "thinking..."
BULLET = "•"

_THINKING_SECTION = re.compile(r"<(think|thinking)>.*?</\1>", re.S)
_THINKING_OPEN = re.compile(r"<think(?:ing)?>")
_THINKING_PREFIX = re.compile(r"^thinking:", re.M)
_EXCESS_NEWLINES = re.compile(r"\n{3,}")

_CODE_FENCE = re.compile(r"```([A-Za-z0-9_+-]*)[^\n]*?(?:\n|\Z)(.*?)(?:```|\Z)", re.S)
_HEADING = re.compile(r"^(#{1,6})\s+(.*)$")
_HORIZONTAL_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})\s*$")
_ORDERED_ITEM = re.compile(r"^(\d+\.)\s+(.*)$")
_UNORDERED_ITEM = re.compile(r"^([-*+])\s+(.*)$")


def has_thinking_marker(text: str) -> bool:
    return bool(_THINKING_OPEN.search(text) or _THINKING_PREFIX.search(text))


def strip_thinking(text: str) -> str | None:
    """Visible text with thinking withheld, or None when there is no thinking marker.

    Closed sections are removed. From the first unclosed open tag or
    ``thinking:`` line onward everything is withheld, since the model may
    still be mid-thought.
    """
    text = text.replace("\r\n", "\n")
    if not has_thinking_marker(text):
        return None

    cleaned = _THINKING_SECTION.sub("", text)
    cut = len(cleaned)
    for pattern in (_THINKING_OPEN, _THINKING_PREFIX):
        match = pattern.search(cleaned)
        if match:
            cut = min(cut, match.start())
    cleaned = cleaned[:cut]
    return _EXCESS_NEWLINES.sub("\n\n", cleaned).strip()


def _placeholder() -> list[ParsedBlock]:
    return [TextBlock(content=THINKING_PLACEHOLDER, transient=True)]


def parse_content(text: str) -> list[ParsedBlock]:
    """Pure parse of a full or partial response."""
    if not text:
        return []
    text = text.replace("\r\n", "\n")
    visible = strip_thinking(text)
    if visible is None:
        return parse_blocks(text)
    if not visible:
        return _placeholder()
    return parse_blocks(visible)


class ContentParser:
    """Stateful parser for one streamed response.

    Remembers the last text recovered from a thinking-bearing buffer. A
    later buffer without a marker that still contains it renders the
    remembered text, so thinking fragments never flash on screen.
    """

    def __init__(self):
        self._last_clean = ""

    def reset(self) -> None:
        self._last_clean = ""

    def visible_text(self, text: str) -> str:
        text = text.replace("\r\n", "\n")
        cleaned = strip_thinking(text)
        if cleaned is not None:
            if cleaned:
                self._last_clean = cleaned
            return cleaned
        if self._last_clean and self._last_clean in text:
            return self._last_clean
        return text

    def feed(self, text: str) -> list[ParsedBlock]:
        if not text:
            return []
        visible = self.visible_text(text)
        if not visible:
            return _placeholder() if has_thinking_marker(text) else []
        return parse_blocks(visible)


def parse_blocks(text: str) -> list[ParsedBlock]:
    """Split thinking-free text into blocks, code fences first."""
    blocks: list[ParsedBlock] = []
    last_index = 0
    for match in _CODE_FENCE.finditer(text):
        if match.start() > last_index:
            blocks.extend(_parse_lines(text[last_index:match.start()]))
        content = match.group(2)
        if content.endswith("\n"):
            content = content[:-1]
        blocks.append(CodeBlock(content=content, language=match.group(1) or "code"))
        last_index = match.end()
    if last_index < len(text):
        blocks.extend(_parse_lines(text[last_index:]))
    return blocks


def _collect_items(lines: list[str], start: int, pattern: re.Pattern) -> tuple[list[tuple[str, str]], int]:
    items = []
    i = start
    while i < len(lines):
        match = pattern.match(lines[i])
        if not match:
            break
        items.append((match.group(1), match.group(2)))
        i += 1
    return items, i


def _parse_lines(text: str) -> list[ParsedBlock]:
    lines = text.split("\n")
    blocks: list[ParsedBlock] = []
    buffer: list[str] = []

    def flush():
        content = "\n".join(buffer).strip("\n")
        buffer.clear()
        if content.strip():
            blocks.append(TextBlock(content=content))

    i = 0
    while i < len(lines):
        line = lines[i]

        heading = _HEADING.match(line)
        if heading:
            flush()
            blocks.append(HeadingBlock(content=heading.group(2), level=len(heading.group(1))))
            i += 1
            continue

        if _HORIZONTAL_RULE.match(line):
            flush()
            blocks.append(HorizontalRuleBlock())
            i += 1
            continue

        if line.startswith("> "):
            flush()
            quoted = []
            while i < len(lines) and lines[i].startswith("> "):
                quoted.append(lines[i][2:])
                i += 1
            blocks.append(BlockquoteBlock(content="\n".join(quoted)))
            continue

        if _ORDERED_ITEM.match(line):
            flush()
            items, i = _collect_items(lines, i, _ORDERED_ITEM)
            blocks.append(OrderedListBlock(
                items=[ListItem(prefix=prefix, content=content) for prefix, content in items]
            ))
            continue

        if _UNORDERED_ITEM.match(line):
            flush()
            items, i = _collect_items(lines, i, _UNORDERED_ITEM)
            blocks.append(UnorderedListBlock(
                items=[ListItem(prefix=BULLET, content=content) for _, content in items]
            ))
            continue

        buffer.append(line)
        i += 1

    flush()
    return blocks
