"""Recognizes file-edit payloads embedded in model output.

Models asked to edit attached files answer with JSON shaped like
``{"summary": ..., "files": [{"filename": ..., "content": ...}]}``, but often
wrap it in prose or code fences. Candidates are tried from the most to the
least literal reading of the text, and a recovered payload is only trusted
once enough evidence points at a real file edit.
"""

import json
import logging
import re
from typing import Any, Iterator, NamedTuple

from streamcore.models.schemas import FileEditPayload, FileEntry

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 5
ATTACHMENT_MATCH_BONUS = 2
SHAPE_MATCH_BONUS = 2
SUMMARY_BONUS = 1
CONFIDENCE_THRESHOLD = 8

DEFAULT_SUMMARY = "File modifications"

_FENCED_BLOCK = re.compile(r"```(?:json)?[^\S\n]*\n(.*?)\n?```", re.S | re.I)
_LOOSE_KEY = re.compile(r"(['\"])?([A-Za-z0-9_]+)(['\"])?:")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


class ParseResult(NamedTuple):
    ok: bool
    value: Any = None


class FilePathRegistry:
    """Remembers where attached files live so edits can be applied in place."""

    def __init__(self):
        self._paths: dict[str, str] = {}

    def register(self, filename: str, path: str) -> None:
        if filename and path:
            self._paths[filename] = path

    def register_from_json(self, json_string: str) -> int:
        """Register every ``{filename, path}`` pair in a files container; returns how many."""
        parsed = parse_json(json_string)
        if not parsed.ok or not isinstance(parsed.value, dict):
            return 0
        count = 0
        for entry in parsed.value.get("files") or []:
            if isinstance(entry, dict) and entry.get("filename") and entry.get("path"):
                self.register(entry["filename"], entry["path"])
                count += 1
        return count

    def lookup(self, filename: str) -> str | None:
        return self._paths.get(filename)

    def clear(self) -> None:
        self._paths.clear()


def parse_json(text: str) -> ParseResult:
    try:
        return ParseResult(True, json.loads(text))
    except (json.JSONDecodeError, RecursionError):
        return ParseResult(False)


def repair_json(text: str) -> str:
    """Rewrite loose JSON as models often emit it: bare or single-quoted keys,
    single-quoted strings and trailing commas."""
    text = _LOOSE_KEY.sub(r'"\2":', text)
    text = text.replace("'", '"')
    return _TRAILING_COMMA.sub(r"\1", text)


def parse_loose_json(text: str) -> ParseResult:
    parsed = parse_json(text)
    if parsed.ok:
        return parsed
    return parse_json(repair_json(text))


def balanced_spans(text: str, opener: str, closer: str) -> list[tuple[int, int]]:
    """``(start, end)`` of every balanced ``opener...closer`` span, widest first.

    Delimiters inside double-quoted strings are ignored, honouring
    backslash escapes.
    """
    spans: list[tuple[int, int]] = []
    stack: list[int] = []
    in_string = False
    escaped = False
    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            stack.append(i)
        elif char == closer and stack:
            start = stack.pop()
            spans.append((start, i + 1))
    spans.sort(key=lambda span: (span[0] - span[1], span[0]))
    return spans


def _is_file_object(obj: Any) -> bool:
    return isinstance(obj, dict) and bool(obj.get("filename")) and "content" in obj


def _is_files_container(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    files = obj.get("files")
    return (
        isinstance(files, list)
        and len(files) > 0
        and all(_is_file_object(f) for f in files)
    )


def _is_file_array(obj: Any) -> bool:
    return isinstance(obj, list) and len(obj) > 0 and all(_is_file_object(f) for f in obj)


def _structural(obj: Any) -> bool:
    return _is_files_container(obj) or _is_file_object(obj)


def _candidates(text: str) -> Iterator[tuple[str, Any]]:
    """Structurally valid JSON values recovered from ``text``, most literal first."""
    whole = parse_json(text.strip())
    if whole.ok and _structural(whole.value):
        yield "whole", whole.value

    for block in _FENCED_BLOCK.finditer(text):
        fenced = parse_json(block.group(1).strip())
        if fenced.ok and _structural(fenced.value):
            yield "fenced", fenced.value

    file_arrays = []
    for start, end in balanced_spans(text, "[", "]"):
        parsed = parse_loose_json(text[start:end])
        if parsed.ok and _is_file_array(parsed.value):
            file_arrays.append((start, end, parsed.value))

    for start, end in balanced_spans(text, "{", "}"):
        # Elements of a bare file array are read together with their siblings.
        if any(a_start < start and end < a_end for a_start, a_end, _ in file_arrays):
            continue
        parsed = parse_loose_json(text[start:end])
        if parsed.ok and _structural(parsed.value):
            yield "object", parsed.value

    for _, _, value in file_arrays:
        yield "array", value


def calculate_confidence(data: Any, had_attachments: bool) -> int:
    confidence = BASE_CONFIDENCE
    files = data.get("files") if isinstance(data, dict) else None
    if isinstance(files, list) and had_attachments:
        confidence += ATTACHMENT_MATCH_BONUS
    if isinstance(files, list) and files and all(_is_file_object(f) for f in files):
        confidence += SHAPE_MATCH_BONUS
    if isinstance(data, dict) and data.get("summary") and files:
        confidence += SUMMARY_BONUS
    return confidence


def _normalize(data: Any) -> dict:
    if isinstance(data, list):
        return {"summary": DEFAULT_SUMMARY, "files": data}
    if "files" not in data and _is_file_object(data):
        return {"summary": f"File: {data['filename']}", "files": [data]}
    return {**data, "summary": data.get("summary") or DEFAULT_SUMMARY}


def _to_payload(data: dict, registry: FilePathRegistry | None) -> FileEditPayload:
    files = []
    for entry in data["files"]:
        filename = str(entry["filename"])
        content = entry.get("content")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            content = json.dumps(content, indent=2)
        path = entry.get("path") or (registry.lookup(filename) if registry else None)
        files.append(FileEntry(
            filename=filename,
            content=content,
            path=str(path) if path else None,
        ))
    return FileEditPayload(summary=str(data["summary"]), files=files)


def detect_file_edit(
    text: str,
    had_attachments: bool,
    registry: FilePathRegistry | None = None,
) -> FileEditPayload | None:
    """Return the file-edit payload carried by ``text``, or None for ordinary output."""
    if not text or not text.strip():
        return None

    # The first structural match decides; weaker readings of the same text are not retried.
    source, data = next(_candidates(text), (None, None))
    if source is None:
        return None

    confidence = calculate_confidence(data, had_attachments)
    normalized = _normalize(data)
    has_content = any(f.get("content") for f in normalized["files"])
    has_summary = isinstance(data, dict) and bool(data.get("summary"))

    accepted = (
        (had_attachments and has_content)
        or confidence >= CONFIDENCE_THRESHOLD
        or (has_summary and had_attachments)
    )
    logger.debug(
        "File edit candidate from %s: confidence=%d accepted=%s", source, confidence, accepted
    )
    if not accepted:
        return None
    return _to_payload(normalized, registry)
