"""Value types passed between callers and the translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class SourceItem:
    """A news item as supplied by the caller."""

    id: str
    title: str
    summary: Optional[str] = None


@dataclass(frozen=True)
class Translation:
    """Container for a translated (or fallback) title/summary pair.

    ``translated`` tells a real translation from the original text handed
    back on failure; it does not take part in equality.
    """

    title: str
    summary: Optional[str] = None
    translated: bool = field(default=True, compare=False)

    @classmethod
    def original(cls, item: SourceItem) -> "Translation":
        return cls(title=item.title, summary=item.summary, translated=False)


@dataclass(frozen=True)
class TranslatedItem:
    """Per-item result of a batch translation, in input order."""

    id: str
    title: str
    summary: Optional[str] = None
    translated: bool = False
