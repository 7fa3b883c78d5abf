"""Parse and format code fence info strings.

A fence such as::

    ```graphviz {engine="circo" hide=false .wide #arch}

yields ``BlockInfo(language="graphviz", attributes={"engine": "circo",
"hide": False, "class": "wide", "id": "arch"})``.  Attributes may be
wrapped in braces or written bare after the language, separated by
whitespace or commas, using ``=`` or ``:`` between key and value.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any

from .errors import BlockAttributeError
from .models import BlockInfo

# ---------------------------------------------------------------------------
# Lexical helpers
# ---------------------------------------------------------------------------

_LANGUAGE_RE = re.compile(r"[^\s{]+")
_KEY_RE = re.compile(r"[A-Za-z_][\w\-]*")
_NAME_RE = re.compile(r"[\w\-]+")
_BARE_VALUE_RE = re.compile(r"[^\s,\]}]+")
_INT_RE = re.compile(r"-?\d+")
_FLOAT_RE = re.compile(r"-?\d+\.\d*|-?\.\d+")

_SEPARATORS = " \t\r\n,"


def _skip(text: str, pos: int, chars: str = _SEPARATORS) -> int:
    while pos < len(text) and text[pos] in chars:
        pos += 1
    return pos


def _coerce(token: str) -> Any:
    """Turn an unquoted token into bool / None / number / str."""
    lowered = token.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    if _INT_RE.fullmatch(token):
        return int(token)
    if _FLOAT_RE.fullmatch(token):
        return float(token)
    return token


def _read_quoted(text: str, pos: int) -> tuple[str, int]:
    quote = text[pos]
    pos += 1
    chars: list[str] = []
    while pos < len(text):
        ch = text[pos]
        if ch == "\\" and pos + 1 < len(text):
            chars.append(text[pos + 1])
            pos += 2
            continue
        if ch == quote:
            return "".join(chars), pos + 1
        chars.append(ch)
        pos += 1
    raise BlockAttributeError(f"Unterminated string starting with {quote}")


def _read_value(text: str, pos: int) -> tuple[Any, int]:
    if pos >= len(text):
        raise BlockAttributeError("Missing value after '='")

    ch = text[pos]
    if ch in "\"'":
        return _read_quoted(text, pos)

    if ch == "[":
        items: list[Any] = []
        pos += 1
        while True:
            pos = _skip(text, pos)
            if pos >= len(text):
                raise BlockAttributeError("Unterminated list")
            if text[pos] == "]":
                return items, pos + 1
            item, pos = _read_value(text, pos)
            items.append(item)

    m = _BARE_VALUE_RE.match(text, pos)
    if not m:
        raise BlockAttributeError(f"Unexpected character {ch!r} at position {pos}")
    return _coerce(m.group()), m.end()


def _normalize_key(key: str) -> str:
    return key.lower().replace("-", "_")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_block_attributes(text: str) -> dict[str, Any]:
    """Parse the attribute part of a fence info string.

    Raises ``BlockAttributeError`` on malformed input.
    """
    text = text.strip()
    if text.startswith("{"):
        if not text.endswith("}"):
            raise BlockAttributeError("Missing closing '}' in block attributes")
        text = text[1:-1]

    attributes: dict[str, Any] = {}
    classes: list[str] = []
    pos = 0

    while True:
        pos = _skip(text, pos)
        if pos >= len(text):
            break

        ch = text[pos]
        if ch in ".#":
            m = _NAME_RE.match(text, pos + 1)
            if not m:
                raise BlockAttributeError(f"Empty {ch} shorthand at position {pos}")
            if ch == ".":
                classes.append(m.group())
            else:
                attributes["id"] = m.group()
            pos = m.end()
            continue

        m = _KEY_RE.match(text, pos)
        if not m:
            raise BlockAttributeError(f"Unexpected character {ch!r} at position {pos}")
        key = _normalize_key(m.group())
        pos = _skip(text, m.end(), " \t")

        if pos < len(text) and text[pos] in "=:":
            value, pos = _read_value(text, _skip(text, pos + 1, " \t"))
        else:
            value = True

        if key == "class":
            if isinstance(value, list):
                classes.extend(str(v) for v in value)
            else:
                classes.extend(str(value).split())
            continue
        attributes[key] = value

    if classes:
        attributes["class"] = " ".join(dict.fromkeys(classes))
    return attributes


def normalize_block_info(info: BlockInfo) -> BlockInfo:
    """Lower-case the language and de-duplicate class names."""
    attributes = dict(info.attributes)
    if isinstance(attributes.get("class"), str):
        attributes["class"] = " ".join(dict.fromkeys(attributes["class"].split()))
    return BlockInfo(language=info.language.strip().lower(), attributes=attributes)


def parse_block_info(info: str) -> BlockInfo:
    """Split ``"lang {attrs}"`` into a normalized ``BlockInfo``."""
    info = info.strip()
    if not info:
        return BlockInfo()

    language = ""
    rest = info
    if not info.startswith("{"):
        m = _LANGUAGE_RE.match(info)
        language = m.group() if m else ""
        rest = info[len(language):]

    attributes = parse_block_attributes(rest) if rest.strip() else {}
    return normalize_block_info(BlockInfo(language=language, attributes=attributes))


def stringify_block_attributes(attributes: dict[str, Any]) -> str:
    """Render attributes as an HTML attribute string (values escaped)."""
    parts: list[str] = []
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, bool):
            text = "true" if value else "false"
        elif isinstance(value, (list, dict)):
            text = json.dumps(value)
        else:
            text = str(value)
        parts.append(f'{key}="{html.escape(text, quote=True)}"')
    return " ".join(parts)


def ensure_class_in_attributes(
    attributes: dict[str, Any], class_name: str,
) -> dict[str, Any]:
    """Return a copy of *attributes* whose ``class`` contains *class_name*."""
    existing = str(attributes.get("class") or "")
    if class_name in existing.split():
        return dict(attributes)
    return {**attributes, "class": f"{existing} {class_name}".strip()}


def open_tag(tag: str, attributes: dict[str, Any]) -> str:
    """``<tag attr="...">`` with no trailing space when there are no attributes."""
    attrs = stringify_block_attributes(attributes)
    return f"<{tag} {attrs}>" if attrs else f"<{tag}>"
