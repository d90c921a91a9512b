"""Front-matter codec for blog markdown files.

On-disk format::

    ---
    title: "Post title"
    summary: "One line"
    date: "2025-06-08"
    draft: false
    tools: ["python", "git"]
    ---

    Body markdown...

``serialize()`` always writes this canonical block.  ``parse()`` accepts
it back exactly, and also reads hand-written files: bare YAML scalars,
YAML dates, unquoted lists, and legacy blocks that are not valid YAML
(unquoted colons in titles) through a lenient ``key: value`` reader.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime

import yaml

from ..errors import MalformedDocument
from .models import FrontMatter

logger = logging.getLogger(__name__)

KEY_ORDER = ("title", "summary", "date", "draft", "tools")

# Opening delimiter on the first line, closing delimiter on a line of its own
_BLOCK_PATTERN = re.compile(
    r"\A\ufeff?\s*---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)

# Characters PyYAML treats as line breaks or rejects as non-printable
_YAML_UNSAFE = re.compile("[\x7f-\x9f\u2028\u2029\ufeff\ufffe\uffff]")

_TRUE_WORDS = ("true", "yes", "on", "1")

_DATE_FORMATS = ("%Y-%m-%d", "%b %d, %Y", "%B %d, %Y", "%d %b %Y")


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _quote(value: str) -> str:
    quoted = json.dumps(value, ensure_ascii=False)
    return _YAML_UNSAFE.sub(lambda m: "\\u%04x" % ord(m.group()), quoted)


def serialize(meta: FrontMatter, body: str) -> str:
    """Render *meta* and *body* as a markdown file with a canonical block.

    Strings are double-quoted with JSON escaping, which is also a valid
    YAML double-quoted scalar, so quotes and backslashes in values
    survive a round trip.
    """
    tools = ", ".join(_quote(tool) for tool in meta.tools)
    lines = [
        "---",
        f"title: {_quote(meta.title)}",
        f"summary: {_quote(meta.summary)}",
        f"date: {_quote(meta.date)}",
        f"draft: {'true' if meta.draft else 'false'}",
        f"tools: [{tools}]",
        "---",
        "",
    ]
    return "\n".join(lines) + "\n" + body


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse(text: str) -> tuple[FrontMatter, str]:
    """Split *text* into front matter and body.

    Raises:
        MalformedDocument: If the text does not open with a ``---`` line
            followed later by a closing ``---`` line.
    """
    match = _BLOCK_PATTERN.match(text)
    if match is None:
        raise MalformedDocument("Document has no front-matter block")

    block = match.group(1)
    body = text[match.end() :]
    # One blank separator line belongs to the block
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]

    values = _load_block(block)
    return _to_front_matter(values), body


def _load_block(block: str) -> dict:
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        logger.debug("Front matter is not valid YAML, reading leniently: %s", e)
        return _load_lenient(block)

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.debug(
            "Front matter root is %s, reading leniently", type(data).__name__
        )
        return _load_lenient(block)
    return {str(k).lower(): v for k, v in data.items()}


def _load_lenient(block: str) -> dict:
    """Read ``key: value`` lines, splitting on the first colon only."""
    values: dict = {}
    for line in block.split("\n"):
        line = line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, _, raw = line.partition(":")
        key = key.strip().lower()
        if key in KEY_ORDER:
            values[key] = _lenient_value(raw.strip())
    return values


def _lenient_value(raw: str):
    if raw.startswith("[") and raw.endswith("]"):
        try:
            return json.loads(raw)
        except ValueError:
            return raw
    return _unquote(raw)


def _unquote(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        try:
            return json.loads(raw)
        except ValueError:
            return raw[1:-1]
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1].replace("''", "'")
    return raw


def _to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_WORDS


def _to_list(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = [_to_text(item) for item in value]
    else:
        text = _to_text(value).strip()
        if text.startswith("[") and text.endswith("]"):
            text = text[1:-1]
        items = [_unquote(part.strip()) for part in text.split(",")]
    return [item for item in items if item]


def _to_front_matter(values: dict) -> FrontMatter:
    return FrontMatter(
        title=_to_text(values.get("title")),
        summary=_to_text(values.get("summary")),
        date=_to_text(values.get("date")),
        draft=_to_bool(values.get("draft")),
        tools=_to_list(values.get("tools")),
    )


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def normalize_date(value: str) -> str:
    """Return *value* as ``yyyy-MM-dd`` when it is a recognized date.

    Accepted inputs: ``yyyy-MM-dd``, ISO 8601 date-times (``Z`` suffix
    allowed) and month-name forms like ``Jun 8, 2025``.  Anything else is
    returned stripped but otherwise unchanged.
    """
    cleaned = value.replace('"', "").strip()
    if not cleaned:
        return ""

    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        pass

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue

    return cleaned
