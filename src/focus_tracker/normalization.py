"""Utilities to normalize application classes and window titles."""

from __future__ import annotations

import re
from typing import Optional

from .models import WindowIdentity

_BROWSER_SUFFIXES: dict[str, tuple[str, ...]] = {
    "firefox": (" \u2014 Mozilla Firefox", " - Mozilla Firefox"),
    "google-chrome": (" - Google Chrome",),
    "chromium": (" - Chromium",),
    "brave-browser": (" - Brave",),
    "microsoft-edge": (" - Microsoft Edge",),
}

_FIELD_BREAKS = re.compile(r"[\t\r\n]+")


def sanitize_field(value: Optional[str]) -> str:
    """Make a value safe for a single tab-separated column."""
    if not value:
        return ""
    cleaned = _FIELD_BREAKS.sub(" ", value)
    return re.sub(r"\s{2,}", " ", cleaned).strip()


def normalize_window_title(app_class: Optional[str], window_title: Optional[str]) -> str:
    """Remove common browser suffixes to surface tab names."""
    normalized = sanitize_field(window_title)
    if not normalized or not app_class:
        return normalized

    suffixes = _BROWSER_SUFFIXES.get(app_class.lower())
    if suffixes:
        for suffix in suffixes:
            if normalized.endswith(suffix):
                normalized = normalized[: -len(suffix)].rstrip(" -")
                break

    normalized = _strip_tab_count(normalized)
    return normalized.strip()


def normalize_identity(identity: WindowIdentity) -> WindowIdentity:
    app_class = sanitize_field(identity.app_class)
    return WindowIdentity(app_class, normalize_window_title(app_class, identity.title))


_EXTRA_TAB_COUNT_PATTERN = re.compile(r"\s+and\s+\d+\s+more\s+pages?", re.IGNORECASE)


def _strip_tab_count(value: str) -> str:
    cleaned = _EXTRA_TAB_COUNT_PATTERN.sub("", value)
    return cleaned.strip(" -|")
