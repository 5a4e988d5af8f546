"""Process-scoped owner of the translation cache and in-flight registry."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..config.schemas import CacheConfig, TranslationConfig
from ..infra.storage import FileKeyValueStore, KeyValueStore
from .cache import DEFAULT_SNAPSHOT_KEY, DEFAULT_TTL_SECONDS, TranslationCache
from .inflight import InFlightRegistry
from .models import Translation

logger = logging.getLogger(__name__)


class TranslationService:
    """Shared state with an explicit lifecycle.

    ``init()`` loads the persisted snapshot and ``shutdown()`` writes it back.
    Both are best effort and never raise for storage problems.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        snapshot_key: str = DEFAULT_SNAPSHOT_KEY,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = TranslationCache(
            store,
            ttl_seconds=ttl_seconds,
            snapshot_key=snapshot_key,
            max_entries=max_entries,
            clock=clock,
        )
        self.registry: InFlightRegistry[Translation] = InFlightRegistry()
        self._started = False

    @classmethod
    def from_config(cls, translation: TranslationConfig, cache: CacheConfig) -> "TranslationService":
        return cls(
            FileKeyValueStore(cache.storage_dir),
            ttl_seconds=translation.ttl_seconds,
            snapshot_key=cache.snapshot_key,
            max_entries=cache.max_entries,
        )

    @property
    def started(self) -> bool:
        return self._started

    def init(self) -> int:
        admitted = self.cache.load_snapshot()
        self._started = True
        return admitted

    def shutdown(self) -> bool:
        if len(self.registry):
            logger.info("关闭时仍有 %d 个翻译请求进行中，结果不会写入快照", len(self.registry))
        saved = self.cache.save_snapshot()
        self._started = False
        return saved

    def __enter__(self) -> "TranslationService":
        self.init()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
