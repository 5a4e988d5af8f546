"""TTL translation cache with JSON snapshot persistence."""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from typing import Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..infra.storage import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_SNAPSHOT_KEY = "worldmonitor-translation-cache"


class CacheEntry(BaseModel):
    """Translated text for one fingerprint."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    fingerprint: str = Field(exclude=True)
    translated_title: str = Field(alias="translatedTitle")
    translated_summary: Optional[str] = Field(default=None, alias="translatedSummary")
    created_at: float = Field(alias="createdAt")

    def age(self, now: float) -> float:
        return now - self.created_at


class TranslationCache:
    """Store translations by fingerprint, with a secondary index by item id.

    Expiry is lazy: entries at or past the TTL read as absent and are only
    dropped by ``compact()`` or when a snapshot is written.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._snapshot_key = snapshot_key
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._ids: Dict[str, str] = {}
        self._lock = threading.RLock()

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def max_entries(self) -> Optional[int]:
        return self._max_entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def is_valid(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        current = self._clock() if now is None else now
        return entry.age(current) < self._ttl

    def get(self, fingerprint: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(fingerprint)
        if entry is None or not self.is_valid(entry):
            return None
        return entry

    def put(self, fingerprint: str, translated_title: str, translated_summary: Optional[str] = None) -> CacheEntry:
        entry = CacheEntry(
            fingerprint=fingerprint,
            translated_title=translated_title,
            translated_summary=translated_summary,
            created_at=self._clock(),
        )
        with self._lock:
            self._entries[fingerprint] = entry
        return entry

    def get_by_id(self, item_id: str) -> Optional[CacheEntry]:
        with self._lock:
            fingerprint = self._ids.get(item_id)
        if fingerprint is None:
            return None
        return self.get(fingerprint)

    def put_for_id(
        self,
        item_id: str,
        fingerprint: str,
        translated_title: str,
        translated_summary: Optional[str] = None,
    ) -> CacheEntry:
        with self._lock:
            entry = self.put(fingerprint, translated_title, translated_summary)
            self._ids[item_id] = fingerprint
        return entry

    def link_id(self, item_id: str, fingerprint: str) -> None:
        """Point ``item_id`` at an existing fingerprint entry."""
        with self._lock:
            if fingerprint in self._entries:
                self._ids[item_id] = fingerprint

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._ids.clear()

    def compact(self) -> int:
        """Drop expired entries, then the oldest ones above ``max_entries``.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            before = len(self._entries)
            self._entries = {fp: e for fp, e in self._entries.items() if self.is_valid(e, now)}
            if self._max_entries is not None and len(self._entries) > self._max_entries:
                newest = sorted(self._entries.values(), key=lambda e: e.created_at, reverse=True)
                self._entries = {e.fingerprint: e for e in newest[: self._max_entries]}
            self._ids = {item_id: fp for item_id, fp in self._ids.items() if fp in self._entries}
            removed = before - len(self._entries)
        if removed:
            logger.debug("缓存压缩: 移除 %d 条", removed)
        return removed

    # ------------------------------------------------------------------
    # Snapshot persistence
    # ------------------------------------------------------------------
    def load_snapshot(self) -> int:
        """Admit still-valid entries from the durable store.

        A missing, unreadable or corrupt snapshot counts as an empty cache.

        Returns:
            Number of entries admitted.
        """
        try:
            raw = self._store.read(self._snapshot_key)
        except Exception as exc:
            logger.warning("读取翻译缓存失败: %s", exc)
            return 0
        if not raw:
            return 0

        try:
            data = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("翻译缓存快照损坏: %s", exc)
            return 0
        if not isinstance(data, dict):
            logger.warning("翻译缓存快照格式错误: %s", type(data).__name__)
            return 0

        now = self._clock()
        admitted = 0
        with self._lock:
            for fingerprint, value in data.items():
                if not isinstance(value, dict):
                    continue
                try:
                    entry = CacheEntry(fingerprint=fingerprint, **value)
                except (TypeError, ValidationError):
                    logger.debug("跳过无效缓存条目 %s", fingerprint)
                    continue
                if not math.isfinite(entry.created_at) or entry.created_at > now:
                    logger.debug("跳过时间戳异常的缓存条目 %s", fingerprint)
                    continue
                if not self.is_valid(entry, now):
                    continue
                current = self._entries.get(fingerprint)
                if current is None or current.created_at < entry.created_at:
                    self._entries[fingerprint] = entry
                admitted += 1
        logger.info("翻译缓存已加载: %d 条", admitted)
        return admitted

    def save_snapshot(self) -> bool:
        """Write all valid entries to the durable store; failures are logged."""
        now = self._clock()
        with self._lock:
            valid = {fp: e for fp, e in self._entries.items() if self.is_valid(e, now)}
        payload = {fp: e.model_dump(by_alias=True) for fp, e in valid.items()}
        try:
            self._store.write(self._snapshot_key, json.dumps(payload, ensure_ascii=False).encode("utf-8"))
        except Exception as exc:
            logger.warning("保存翻译缓存失败: %s", exc)
            return False
        logger.info("翻译缓存已保存: %d 条", len(payload))
        return True
