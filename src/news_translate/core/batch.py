"""Prompt composition and tolerant reply parsing for provider calls.

A batch prompt lists items as numbered blocks::

    1. Title: Fire breaks out downtown
    Summary: Crews responded overnight.

    2. Title: Markets rally

The provider is asked to answer in the same shape. Its reply is free text,
so parsing never fails as a whole: every ordinal that cannot be recovered
simply has no record, and the item at that position falls back on its own.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .language import language_name
from .models import SourceItem

logger = logging.getLogger(__name__)

_ORDINAL_LINE = re.compile(r"^[*#\s]*(\d+)\s*\.(?!\d)\**\s*(.*)$")
_FIELD_LINE = re.compile(r"^[*\-\s]*(title|summary)\s*\**\s*[:：]\s*\**\s*(.*?)\s*$", re.IGNORECASE | re.DOTALL)
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class PendingEntry:
    fingerprint: str
    item: SourceItem


@dataclass(frozen=True)
class BatchRequest:
    """One outbound provider call and the entries it covers, in ordinal order."""

    system: str
    prompt: str
    entries: Tuple[PendingEntry, ...]

    @property
    def is_batch(self) -> bool:
        return len(self.entries) > 1


@dataclass(frozen=True)
class ParsedRecord:
    ordinal: int
    title: str
    summary: Optional[str] = None


def dedupe_entries(entries: Iterable[PendingEntry]) -> List[PendingEntry]:
    """Keep the first entry per fingerprint, preserving order."""
    seen = set()
    unique: List[PendingEntry] = []
    for entry in entries:
        if entry.fingerprint in seen:
            continue
        seen.add(entry.fingerprint)
        unique.append(entry)
    return unique


def chunk_entries(entries: Sequence[PendingEntry], max_batch_size: int) -> Iterator[List[PendingEntry]]:
    if max_batch_size < 1:
        raise ValueError("max_batch_size must be >= 1")
    unique = dedupe_entries(entries)
    for start in range(0, len(unique), max_batch_size):
        yield unique[start:start + max_batch_size]


def compose_single(
    entry: PendingEntry,
    target_language: str = "zh",
    system_prompt: Optional[str] = None,
) -> BatchRequest:
    lang = language_name(target_language)
    item = entry.item
    if item.summary:
        prompt = (
            f"Translate the following news title and summary to {lang}. Keep it natural and concise."
            f"\n\nTitle: {item.title}\n\nSummary: {item.summary}"
        )
    else:
        prompt = (
            f"Translate the following news title to {lang}. Keep it natural and concise."
            f"\n\nTitle: {item.title}"
        )
    system = system_prompt or f"You are a professional translator. Translate to {lang} only, no explanations."
    return BatchRequest(system=system, prompt=prompt, entries=(entry,))


def compose_batch(
    entries: Sequence[PendingEntry],
    target_language: str = "zh",
    system_prompt: Optional[str] = None,
) -> BatchRequest:
    """Build a numbered prompt for ``entries``.

    Raises:
        ValueError: If ``entries`` is empty.
    """
    unique = dedupe_entries(entries)
    if not unique:
        raise ValueError("cannot compose an empty batch")

    lang = language_name(target_language)
    blocks = []
    for ordinal, entry in enumerate(unique, start=1):
        block = f"{ordinal}. Title: {_one_line(entry.item.title)}"
        if entry.item.summary:
            block += f"\nSummary: {_one_line(entry.item.summary)}"
        blocks.append(block)

    prompt = (
        f"Translate the following {len(unique)} news items to {lang}. "
        "Keep translations natural and concise. Format your response as shown - "
        'each item numbered, on its own lines with "Title:" and "Summary:" prefixes:'
        "\n\n" + "\n\n".join(blocks)
    )
    system = system_prompt or (
        f"You are a professional translator. Translate to {lang} only, no explanations. "
        'Keep the same numbered format: "N. Title: ...\\nSummary: ..." for each item.'
    )
    return BatchRequest(system=system, prompt=prompt, entries=tuple(unique))


def parse_batch_reply(text: str) -> Dict[int, ParsedRecord]:
    """Recover numbered records from a free-text reply.

    A line starting with ``<n>.`` opens record ``n`` and closes the previous
    one. ``Title:``/``Summary:`` lines fill the open record. Text before the
    first ordinal, records without a title and repeated ordinals (first
    occurrence wins) are discarded.
    """
    records: Dict[int, ParsedRecord] = {}
    ordinal: Optional[int] = None
    fields: Dict[str, str] = {}

    def flush() -> None:
        if ordinal is None:
            return
        title = fields.get("title")
        if not title:
            logger.debug("第 %d 项缺少标题，已丢弃", ordinal)
            return
        if ordinal in records:
            logger.debug("重复的序号 %d，保留首次出现", ordinal)
            return
        records[ordinal] = ParsedRecord(ordinal=ordinal, title=title, summary=fields.get("summary") or None)

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        match = _ORDINAL_LINE.match(line)
        if match:
            flush()
            ordinal = int(match.group(1))
            fields = {}
            rest = match.group(2).strip()
            if rest:
                _apply_line(rest, fields, bare_is_title=True)
            continue

        if ordinal is None:
            continue
        _apply_line(line, fields, bare_is_title=False)

    flush()
    return records


def reassociate(
    entries: Sequence[PendingEntry],
    records: Dict[int, ParsedRecord],
) -> List[Optional[ParsedRecord]]:
    """Map ordinal ``k`` to ``entries[k-1]``; unmatched positions are None."""
    out: List[Optional[ParsedRecord]] = [None] * len(entries)
    for ordinal, record in records.items():
        if 1 <= ordinal <= len(entries):
            out[ordinal - 1] = record
        else:
            logger.warning("序号 %d 超出批次范围 (共 %d 项)，已忽略", ordinal, len(entries))
    return out


def parse_single_reply(text: str, has_summary: bool) -> Optional[ParsedRecord]:
    """Parse the reply to a single-item prompt.

    Without a summary the whole reply is the title. With one, the reply is
    expected as ``Title: ...`` and ``Summary: ...`` paragraphs; if that shape
    is not found the whole reply is taken as the title.
    """
    cleaned = text.strip()
    if not cleaned:
        return None

    if not has_summary:
        title = _strip_prefix(cleaned, "title")
        return ParsedRecord(ordinal=1, title=title) if title else None

    parts = [p.strip() for p in _PARAGRAPH_BREAK.split(cleaned) if p.strip()]
    if len(parts) >= 2:
        title = _strip_prefix(parts[0], "title")
        summary = _strip_prefix(parts[1], "summary")
        if title:
            return ParsedRecord(ordinal=1, title=title, summary=summary or None)

    fields: Dict[str, str] = {}
    for line in cleaned.splitlines():
        if line.strip():
            _apply_line(line.strip(), fields, bare_is_title=False)
    if fields.get("title"):
        return ParsedRecord(ordinal=1, title=fields["title"], summary=fields.get("summary") or None)

    return ParsedRecord(ordinal=1, title=cleaned)


def _apply_line(line: str, fields: Dict[str, str], bare_is_title: bool) -> None:
    match = _FIELD_LINE.match(line)
    if match:
        key = match.group(1).lower()
        value = match.group(2).strip().strip("*").strip()
        if value and key not in fields:
            fields[key] = value
        return
    if bare_is_title and "title" not in fields:
        fields["title"] = line


def _strip_prefix(text: str, field_name: str) -> str:
    match = _FIELD_LINE.match(text)
    if match and match.group(1).lower() == field_name:
        return match.group(2).strip()
    return text.strip()


def _one_line(text: str) -> str:
    return " ".join(text.split())
