"""Target-language helpers: prompt labels and script detection."""

from __future__ import annotations

import re
from typing import Dict, Pattern

_SCRIPT_PATTERNS: Dict[str, Pattern[str]] = {
    "zh": re.compile(r"[\u4e00-\u9fff]"),
    "ja": re.compile(r"[\u3040-\u30ff]"),
    "ko": re.compile(r"[\uac00-\ud7af]"),
}

_LANGUAGE_NAMES: Dict[str, str] = {
    "zh": "Chinese (Simplified)",
    "ja": "Japanese",
    "ko": "Korean",
}


def is_already_translated(text: str, target_language: str = "zh") -> bool:
    """Return True when ``text`` already contains the target language's script."""
    if not text:
        return False
    pattern = _SCRIPT_PATTERNS.get(target_language)
    if pattern is None:
        raise ValueError(f"Unsupported target language: {target_language!r}")
    return pattern.search(text) is not None


def language_name(target_language: str) -> str:
    try:
        return _LANGUAGE_NAMES[target_language]
    except KeyError:
        raise ValueError(f"Unsupported target language: {target_language!r}") from None
