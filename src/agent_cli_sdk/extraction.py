"""Recover JSON values from free-form agent text and validate them."""

from __future__ import annotations

import json
import re
from collections.abc import Iterator, Mapping
from typing import Any

from agent_cli_sdk.errors import ParseError
from agent_cli_sdk.models import ResponseValidator

_FENCED_BLOCK = re.compile(r"```(?:json)?[ \t]*\r?\n(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json(text: str) -> Any:
    """Extract the first JSON value from ``text``.

    Tries, in order: the whole text, the first fenced code block (optionally
    tagged ``json``), then the first balanced ``{...}`` span that parses.
    """

    if not isinstance(text, str):
        raise ParseError("Invalid input: expected non-empty string")
    if not text.strip():
        raise ParseError("Invalid input: expected non-empty string", text)

    stripped = text.strip()
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    fenced = _FENCED_BLOCK.search(stripped)
    if fenced is not None:
        try:
            return json.loads(fenced.group(1).strip())
        except json.JSONDecodeError:
            pass

    for span in _balanced_object_spans(stripped):
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            continue

    raise ParseError("No valid JSON found in text", text)


def safe_parse(text: str, validator: ResponseValidator | None = None) -> Any:
    """Extract JSON from ``text`` and, when given, validate it with ``validator``."""

    parsed = extract_json(text)
    if validator is None:
        return parsed

    result = validator.safe_parse(parsed)
    if _field(result, "success"):
        return _field(result, "data", parsed)

    raise ParseError(_validation_message(_field(result, "error")), text)


def _balanced_object_spans(text: str) -> Iterator[str]:
    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            yield text[start : end + 1]
        start = text.find("{", start + 1)


def _matching_brace(text: str, start: int) -> int | None:
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
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
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _validation_message(error: Any) -> str:
    issues = _field(error, "issues")
    if isinstance(issues, list | tuple) and issues:
        details = ", ".join(_format_issue(issue) for issue in issues)
        return f"JSON validation failed: {details}"
    message = _field(error, "message")
    if isinstance(message, str) and message:
        return f"JSON validation failed: {message}"
    return "JSON validation failed"


def _format_issue(issue: Any) -> str:
    path = _field(issue, "path")
    if isinstance(path, list | tuple) and path:
        location = ".".join(str(part) for part in path)
    elif isinstance(path, str) and path:
        location = path
    else:
        location = "root"
    message = _field(issue, "message")
    return f"{location}: {message if isinstance(message, str) else 'Unknown error'}"


def _field(source: Any, name: str, default: Any = None) -> Any:
    if source is None:
        return default
    if isinstance(source, Mapping):
        return source.get(name, default)
    return getattr(source, name, default)
