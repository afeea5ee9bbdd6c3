"""
Byte spans for values inside a TOML document.

``tomllib`` does not report positions, so spans for the few values that
diagnostics point at (``provider``, ``value``, ``default_provider``) are
recovered by scanning the registered source text. A span that cannot be
located is simply ``None``.
"""

import re
import tomllib
from typing import Optional

from fnox.config.spanned import Span

_HEADER = re.compile(r"^[ \t]*\[\[?([^\]\n]+)\]\]?[ \t]*(?:#.*)?$", re.M)
_STRING = r'"((?:[^"\\\n]|\\.)*)"' + r"|'([^'\n]*)'"
_LINE_COL = re.compile(r"at line (\d+), column (\d+)")


def _normalize_table(name: str) -> str:
    parts = [part.strip().strip('"').strip("'") for part in name.split(".")]
    return ".".join(parts)


def _byte_offset(text: str, index: int) -> int:
    return len(text[:index].encode("utf-8"))


def _to_byte_span(text: str, start: int, end: int) -> Span:
    return (_byte_offset(text, start), _byte_offset(text, end))


def _table_region(text: str, table: str) -> Optional[tuple[int, int]]:
    """Character range covering the body of ``[table]`` ("" is the root table)."""
    headers = [(m.start(), m.end(), _normalize_table(m.group(1))) for m in _HEADER.finditer(text)]
    if table == "":
        return (0, headers[0][0] if headers else len(text))
    for index, (_, end, name) in enumerate(headers):
        if name == table:
            stop = headers[index + 1][0] if index + 1 < len(headers) else len(text)
            return (end, stop)
    return None


def _key_pattern(key: str) -> str:
    escaped = re.escape(key)
    return rf"""(?:"{escaped}"|'{escaped}'|{escaped})"""


def _find_assignment(
    text: str, key: str, start: int, end: int, line_anchored: bool = True
) -> Optional[Span]:
    anchor = r"^[ \t]*" if line_anchored else r"(?:^|[{,])[ \t]*"
    pattern = re.compile(anchor + _key_pattern(key) + r"[ \t]*=[ \t]*(?:" + _STRING + ")", re.M)
    match = pattern.search(text, start, end)
    if not match:
        return None
    group = 1 if match.group(1) is not None else 2
    # include the quotes
    return _to_byte_span(text, match.start(group) - 1, match.end(group) + 1)


def find_default_provider_span(text: str, profile: Optional[str] = None) -> Optional[Span]:
    table = "" if profile is None else f"profiles.{profile}"
    region = _table_region(text, table)
    if region is None:
        return None
    return _find_assignment(text, "default_provider", *region)


def find_secret_field_span(
    text: str, key: str, field: str, profile: Optional[str] = None
) -> Optional[Span]:
    """Locate ``field`` of secret ``key``, written inline or as its own table."""
    prefix = "secrets" if profile is None else f"profiles.{profile}.secrets"

    region = _table_region(text, prefix)
    if region is not None:
        inline = re.compile(r"^[ \t]*" + _key_pattern(key) + r"[ \t]*=[ \t]*\{([^\n]*)\}", re.M)
        match = inline.search(text, *region)
        if match:
            span = _find_assignment(
                text, field, match.start(1) - 1, match.end(1), line_anchored=False
            )
            if span is not None:
                return span

    region = _table_region(text, f"{prefix}.{key}")
    if region is not None:
        return _find_assignment(text, field, *region)
    return None


def parse_error_span(text: str, error: tomllib.TOMLDecodeError) -> Optional[Span]:
    """Best-effort byte span of the character a TOML parse error points at."""
    pos = getattr(error, "pos", None)
    if pos is None:
        match = _LINE_COL.search(str(error))
        if not match:
            return None
        line, column = int(match.group(1)), int(match.group(2))
        lines = text.splitlines(keepends=True)
        pos = sum(len(chunk) for chunk in lines[: line - 1]) + column - 1
    pos = max(0, min(pos, len(text)))
    start = _byte_offset(text, pos)
    return (start, start + 1)


def parse_error_message(error: tomllib.TOMLDecodeError) -> str:
    message = getattr(error, "msg", None) or str(error)
    return _LINE_COL.sub("", message).replace("()", "").strip()
