# src/ktc_taskboard/directory/json_repair.py

"""
Lenient JSON parsing for the directory webhook.

The spreadsheet automation behind the webhook does not always emit valid
JSON. Known defects:
- `"data": {...}, {...}` without the surrounding array brackets
- `{{ ... }}` used as an array marker
- trailing commas before `}` / `]`

parse_payload() tries strict parsing first, then a fixed sequence of
textual repairs, and finally salvages whatever record objects it can
find in the raw text.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from typing import Any

from ..core.errors import PayloadFormatError

logger = logging.getLogger(__name__)

DATA_KEY = '"data":'

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_DOUBLE_OPEN = re.compile(r"\{\s*\{")
_DOUBLE_CLOSE = re.compile(r"\}\s*\}")

INVALID_FORMAT_MESSAGE = (
    "Định dạng dữ liệu từ máy chủ không hợp lệ. "
    "Vui lòng kiểm tra lại cấu trúc Webhook (Data phải là một Array)."
)


def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def collapse_doubled_braces(text: str) -> str:
    text = _DOUBLE_OPEN.sub("{", text)
    return _DOUBLE_CLOSE.sub("}", text)


def bracket_data_run(text: str) -> str | None:
    """
    Wrap the object run after `"data":` in `[...]`.

    The run goes from the first `{` after the key up to (not including) the
    last `}` of the text, which closes the root object. Without a data key
    the whole text is wrapped instead. None when there is nothing to do.
    """
    key_idx = text.find(DATA_KEY)
    if key_idx == -1:
        return f"[{text}]"

    start = text.find("{", key_idx)
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None

    content = text[start:end].strip()
    if content.startswith("["):
        return None
    return text[:start] + "[" + content + "]" + text[end:]


def _candidates(text: str) -> Iterator[tuple[str, str]]:
    no_commas = strip_trailing_commas(text)
    yield "trailing-commas", no_commas

    bracketed = bracket_data_run(no_commas)
    if bracketed is not None:
        yield "data-brackets", bracketed

    collapsed = strip_trailing_commas(collapse_doubled_braces(text))
    yield "doubled-braces", collapsed

    bracketed = bracket_data_run(collapsed)
    if bracketed is not None:
        yield "doubled-braces+data-brackets", bracketed


def outer_objects(text: str) -> Iterator[str]:
    """
    Yield every outermost balanced `{...}` span of `text`.

    Braces inside quoted strings do not count. An object that is never
    closed is skipped, and scanning resumes just inside its opening brace.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                yield text[start : i + 1]

    if depth:
        yield from outer_objects(text[start + 1 :])


def _loads_object(chunk: str) -> dict[str, Any] | None:
    for attempt in (chunk, strip_trailing_commas(chunk)):
        try:
            value = json.loads(attempt)
        except ValueError:
            continue
        return value if isinstance(value, dict) else None
    return None


def extract_objects(text: str) -> list[dict[str, Any]]:
    """
    Parse each outermost object in `text` on its own.

    An object that does not parse is searched again for the objects it
    contains, so one broken record inside a wrapper loses only itself.
    """
    found: list[dict[str, Any]] = []
    for chunk in outer_objects(text):
        value = _loads_object(chunk)
        if value is not None:
            found.append(value)
        else:
            found.extend(extract_objects(chunk[1:-1]))
    return found


def parse_payload(text: str) -> Any:
    """
    Strict parse, then repairs, then object salvage.

    Raises PayloadFormatError only when nothing at all can be recovered.
    """
    text = text.strip()
    try:
        return json.loads(text)
    except ValueError:
        logger.warning("Directory payload is not valid JSON; applying repairs.")

    tried: set[str] = {text}
    for stage, candidate in _candidates(text):
        if candidate in tried:
            continue
        tried.add(candidate)
        try:
            value = json.loads(candidate)
        except ValueError:
            continue
        logger.info("Directory payload repaired stage=%s", stage)
        return value

    objects = extract_objects(text)
    if objects:
        logger.warning("Directory payload salvaged objects=%d", len(objects))
        return objects

    raise PayloadFormatError(INVALID_FORMAT_MESSAGE)
