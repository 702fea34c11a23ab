"""Shared canonical normalization functions for CRM payloads.

Imported by the gateway (response parsing) and the tool layer (input cleanup).
"""

from __future__ import annotations

from typing import Any


def digits_only(raw: str) -> str:
    """Keep only digits; the CRM phone filter matches on bare digits."""
    return "".join(c for c in raw if c.isdigit())


def parse_int(value: Any) -> int | None:
    """Best-effort integer parsing.  Returns ``None`` for unparseable input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            return int(stripped)
        except ValueError:
            return None
    return None


def clean_str(value: Any) -> str | None:
    """Return a stripped string, or ``None`` for missing/blank values."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def normalize_sites(raw: str | list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    """Split a comma-separated site list, preserving order and dropping duplicates."""
    if not raw:
        return ()
    items = raw.split(",") if isinstance(raw, str) else list(raw)
    seen: set[str] = set()
    sites: list[str] = []
    for item in items:
        code = str(item).strip()
        if code and code not in seen:
            seen.add(code)
            sites.append(code)
    return tuple(sites)


def normalize_status(raw: Any) -> str:
    """Lower-case status code; unknown shapes become ``""`` (ignored by the core)."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()
