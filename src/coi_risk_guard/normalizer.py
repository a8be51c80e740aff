"""Reduce arbitrary domain or URL strings to a canonical lowercase hostname."""

from __future__ import annotations

import re
from urllib.parse import urlsplit

import idna

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_SCHEME = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
_AUTHORITY_END = re.compile(r"[/?#]")
_EDGE_JUNK = re.compile(r"^[\s.]+|[\s.]+$")
# ASCII outside LDH, dots and underscores is reinterpreted by URL parsing
_FOREIGN_ASCII = re.compile(r"[^a-z0-9._\-\u0080-\U0010ffff]")
_LABEL = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

INTERNAL_SUFFIXES = (".local", ".localhost")


def _manual_strip(value: str) -> str:
    value = _SCHEME.sub("", value)
    authority = _AUTHORITY_END.split(value, maxsplit=1)[0]
    host = authority.rpartition("@")[2]
    return host.split(":", 1)[0].strip().lower()


def _to_ascii(host: str) -> str:
    if host.isascii():
        return host
    try:
        return idna.encode(host, uts46=True).decode("ascii")
    except (idna.IDNAError, UnicodeError):
        return host


def _finish(host: str) -> str:
    host = _EDGE_JUNK.sub("", host.lower())
    host = _EDGE_JUNK.sub("", _to_ascii(host))
    # IPv6 literals, leftover credentials and brackets are never a listed merchant
    if _FOREIGN_ASCII.search(host) or any(ch.isspace() for ch in host):
        return ""
    return host


def normalize(value: str | None) -> str:
    """Return the canonical hostname for a domain or URL, or ``""``.

    Accepts bare domains (``Shop.cz``), domains with paths, ports or
    credentials (``user@shop.cz:8080/x``) and full URLs. Never raises.
    """
    if not value or not isinstance(value, str):
        return ""
    value = _CONTROL_CHARS.sub("", value).strip()
    if not value:
        return ""

    candidate = value if _SCHEME.match(value) else f"http://{value}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        host = None
    if not host:
        host = _manual_strip(value)
    return _finish(host)


def extract_domain(url: str | None) -> str:
    """Hostname of an http(s) navigation URL; ``""`` for anything else."""
    if not url or not isinstance(url, str):
        return ""
    url = _CONTROL_CHARS.sub("", url).strip()
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return ""
    if parts.scheme.lower() not in ("http", "https") or not host:
        return ""
    return _finish(host)


def is_valid_hostname(host: str) -> bool:
    """LDH syntax check for a canonical hostname, rejecting local names."""
    if len(host) < 3 or len(host) > 253:
        return False
    if host == "localhost" or host.endswith(INTERNAL_SUFFIXES):
        return False
    return all(_LABEL.match(label) for label in host.split("."))
