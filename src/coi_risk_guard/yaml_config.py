"""Load strings and configuration from config.yml."""

from __future__ import annotations

import os
from pathlib import Path

import yaml

# Installed: point COI_GUARD_CONFIG_PATH at the deployed file
# In dev: config.yml is at the project root (same dir as pyproject.toml)
_CONFIG_PATH = Path(os.environ.get("COI_GUARD_CONFIG_PATH", "config.yml"))

_cache: dict | None = None

_DEFAULT_STRINGS = {
    "default_reason": "Zařazeno do seznamu rizikových e-shopů ČOI",
    "risky_label": "RIZIKOVÝ",
    "overridden_label": "POVOLENO",
    "safe_label": "OK",
    "protection_off_notice": "Ochrana je vypnuta.",
}


def _load() -> dict:
    global _cache
    if _cache is None:
        with open(_CONFIG_PATH, encoding="utf-8") as f:
            _cache = yaml.safe_load(f) or {}
    return _cache


def get_defaults() -> dict:
    """Return the defaults section, or empty dict if config is unavailable."""
    try:
        return _load().get("defaults", {})
    except (FileNotFoundError, OSError):
        return {}


def get_strings() -> dict[str, str]:
    """Return user-facing strings, falling back to the built-in Czech texts."""
    try:
        configured = _load().get("strings", {})
    except (FileNotFoundError, OSError):
        configured = {}
    return {**_DEFAULT_STRINGS, **configured}
