"""Parse the ČOI risky e-shop feed into a ``domain -> reason`` mapping.

The published file has no header row, uses ``;`` (older exports ``,``) as the
delimiter and wraps the reason in single quotes, e.g.::

    vintedworld.store;'Jako provozovatel webu není uveden nikdo...'
    fake.cz

Every non-blank line is a data row.
"""

from __future__ import annotations

from collections.abc import Mapping

import structlog

from .errors import ParseRowError
from .normalizer import normalize
from .yaml_config import get_strings

log = structlog.get_logger()

_UTF8_BOM = b"\xef\xbb\xbf"


def default_reason() -> str:
    return get_strings()["default_reason"]


def detect_delimiter(first_line: str) -> str:
    """Delimiter for the whole file, decided from the first line only."""
    return ";" if ";" in first_line else ","


def _strip_layer(value: str, quote: str) -> str:
    if value.startswith(quote):
        value = value[1:]
    if value.endswith(quote):
        value = value[:-1]
    return value


def _clean_column(value: str) -> str:
    return _strip_layer(_strip_layer(value.strip(), '"'), "'")


def parse_row(line: str, delimiter: str, fallback_reason: str) -> tuple[str, str] | None:
    """Turn one trimmed, non-blank line into ``(domain, reason)``.

    Returns ``None`` when the domain column normalizes to nothing.
    """
    columns = [_clean_column(c) for c in line.split(delimiter)]
    domain = normalize(columns[0])
    if not domain:
        return None
    reason = columns[1] if len(columns) > 1 and columns[1] else fallback_reason
    return domain, reason


def parse(raw_text: str | None) -> dict[str, str]:
    """Parse raw feed text. Never raises; bad rows are logged and skipped."""
    domains: dict[str, str] = {}
    try:
        lines = raw_text.strip().split("\n")
        delimiter = detect_delimiter(lines[0])
        fallback_reason = default_reason()
        skipped = 0

        for line_no, raw_line in enumerate(lines, start=1):
            line = raw_line.strip()
            if not line:
                continue
            try:
                row = parse_row(line, delimiter, fallback_reason)
            except Exception as exc:
                skipped += 1
                err = ParseRowError(line_no, line, str(exc))
                log.warning("feed_row_skipped", line_no=err.line_no, line=err.line[:200], error=err.detail)
                continue
            if row is None:
                skipped += 1
                continue
            domain, reason = row
            domains[domain] = reason
    except Exception:
        log.exception("feed_parse_failed")
        return {}

    log.info("feed_parsed", entries=len(domains), skipped=skipped, delimiter=delimiter)
    return domains


def serialize(entries: Mapping[str, str], delimiter: str = ";") -> str:
    """Render entries in the feed's own format (no header, quoted reason)."""
    return "\n".join(f"{domain}{delimiter}'{reason}'" for domain, reason in entries.items())


def decode_feed(raw: bytes, encoding: str = "windows-1250") -> str:
    """Decode feed bytes: UTF-8 when valid (BOM stripped), else ``encoding``."""
    if raw.startswith(_UTF8_BOM):
        raw = raw[len(_UTF8_BOM):]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode(encoding, errors="replace")
