"""Translation coordinator: cache, dedup, batching and fallback."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

from ..config.schemas import TranslationConfig
from .batch import (
    PendingEntry,
    ParsedRecord,
    chunk_entries,
    compose_batch,
    compose_single,
    parse_batch_reply,
    parse_single_reply,
    reassociate,
)
from .errors import EmptyReply, FailureKind, NetworkFailure, ParseFailure, TranslationError
from .fingerprint import fingerprint
from .inflight import Ticket
from .language import is_already_translated
from .models import SourceItem, TranslatedItem, Translation
from .service import TranslationService
from .translator import Provider

logger = logging.getLogger(__name__)

ResultCallback = Callable[[TranslatedItem], None]


@dataclass
class CoordinatorStats:
    provider_calls: int = 0
    cache_hits: int = 0
    follower_joins: int = 0
    failures: Dict[FailureKind, int] = field(default_factory=dict)

    def copy(self) -> "CoordinatorStats":
        return CoordinatorStats(
            provider_calls=self.provider_calls,
            cache_hits=self.cache_hits,
            follower_joins=self.follower_joins,
            failures=dict(self.failures),
        )


class TranslationCoordinator:
    """Public entry point used by the display layer.

    Per fingerprint the flow is: cache check, then in-flight dedup, then one
    provider call (alone or in a batch), then cache write. Any failure hands
    back the original text and leaves the cache untouched, so the next call
    tries again. Callers never see an exception from the provider side.
    """

    def __init__(
        self,
        service: TranslationService,
        provider: Provider,
        config: Optional[TranslationConfig] = None,
        system_prompt: Optional[str] = None,
    ) -> None:
        self._service = service
        self._provider = provider
        self._config = config or TranslationConfig()
        self._system_prompt = system_prompt
        self._pending: List[PendingEntry] = []
        self._pending_lock = threading.Lock()
        self._stats = CoordinatorStats()
        self._stats_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def target_language(self) -> str:
        return self._config.target_language

    @property
    def stats(self) -> CoordinatorStats:
        with self._stats_lock:
            return self._stats.copy()

    def is_already_translated(self, text: str) -> bool:
        return is_already_translated(text, self._config.target_language)

    def translate(self, item: SourceItem) -> Translation:
        """Translate one item, blocking until its result is known."""
        if self._skip(item):
            return Translation.original(item)

        fp = fingerprint(item.title, item.summary)
        cached = self._from_cache(fp, item)
        if cached is not None:
            return cached

        ticket = self._acquire(fp, item)
        if ticket.is_leader and not ticket.future.done():
            self._enqueue([PendingEntry(fp, item)])
            self._drain({fp})
        return ticket.wait()

    def translate_batch(
        self,
        items: Sequence[SourceItem],
        on_result: Optional[ResultCallback] = None,
    ) -> List[TranslatedItem]:
        """Translate ``items`` and return results in input order.

        ``on_result`` is called once per item as soon as that item is known,
        possibly from another caller's thread, and always before this method
        returns.
        """
        results: List[Optional[TranslatedItem]] = [None] * len(items)
        item_futures: List["Future[TranslatedItem]"] = []
        tickets: Dict[str, Ticket[Translation]] = {}
        own_entries: List[PendingEntry] = []

        def deliver(index: int, item: SourceItem, translation: Translation) -> TranslatedItem:
            result = TranslatedItem(
                id=item.id,
                title=translation.title,
                summary=translation.summary,
                translated=translation.translated,
            )
            results[index] = result
            if translation.translated:
                self._service.cache.link_id(item.id, fingerprint(item.title, item.summary))
            if on_result is not None:
                try:
                    on_result(result)
                except Exception:
                    logger.exception("结果回调执行失败: %s", item.id)
            return result

        for index, item in enumerate(items):
            if self._skip(item):
                deliver(index, item, Translation.original(item))
                continue

            fp = fingerprint(item.title, item.summary)
            cached = self._from_cache(fp, item)
            if cached is not None:
                deliver(index, item, cached)
                continue

            ticket = tickets.get(fp)
            if ticket is None:
                ticket = self._acquire(fp, item)
                tickets[fp] = ticket
                if ticket.is_leader and not ticket.future.done():
                    own_entries.append(PendingEntry(fp, item))
            item_futures.append(self._forward(ticket, index, item, deliver))

        if own_entries:
            self._enqueue(own_entries)
            self._drain({e.fingerprint for e in own_entries})

        wait_futures(item_futures)
        return [r for r in results if r is not None]

    def submit(self, item: SourceItem) -> "Future[Translation]":
        """Translate in the background; cancelling the future does not stop the shared call."""
        return self._get_executor().submit(self.translate, item)

    def lookup(self, item: SourceItem) -> Optional[Translation]:
        """Cached translation for ``item`` if one is still valid; never calls the provider."""
        entry = self._service.cache.get(fingerprint(item.title, item.summary))
        if entry is None:
            return None
        return self._to_translation(item, entry.translated_title, entry.translated_summary)

    def get_cached(self, item_id: str) -> Optional[Translation]:
        """Cached translation for an already displayed item, by caller id."""
        entry = self._service.cache.get_by_id(item_id)
        if entry is None:
            return None
        return Translation(title=entry.translated_title, summary=entry.translated_summary)

    def remember(self, item: SourceItem, title: str, summary: Optional[str] = None) -> None:
        """Record a translation obtained elsewhere for ``item``."""
        fp = fingerprint(item.title, item.summary)
        self._service.cache.put_for_id(item.id, fp, title, summary)
        self._maybe_compact()

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "TranslationCoordinator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Cache and dedup
    # ------------------------------------------------------------------
    def _skip(self, item: SourceItem) -> bool:
        return not item.title.strip() or self.is_already_translated(item.title)

    def _from_cache(self, fp: str, item: SourceItem) -> Optional[Translation]:
        entry = self._service.cache.get(fp)
        if entry is None:
            return None
        self._service.cache.link_id(item.id, fp)
        self._bump("cache_hits")
        return self._to_translation(item, entry.translated_title, entry.translated_summary)

    def _acquire(self, fp: str, item: SourceItem) -> Ticket[Translation]:
        ticket = self._service.registry.try_acquire(fp)
        if not ticket.is_leader:
            self._bump("follower_joins")
            return ticket
        # Another leader may have finished between our cache check and acquire.
        cached = self._from_cache(fp, item)
        if cached is not None:
            self._service.registry.resolve(fp, cached)
        return ticket

    @staticmethod
    def _forward(
        ticket: Ticket[Translation],
        index: int,
        item: SourceItem,
        deliver: Callable[[int, SourceItem, Translation], TranslatedItem],
    ) -> "Future[TranslatedItem]":
        forwarded: "Future[TranslatedItem]" = Future()

        def on_done(shared: "Future[Translation]") -> None:
            forwarded.set_result(deliver(index, item, shared.result()))

        ticket.future.add_done_callback(on_done)
        return forwarded

    @staticmethod
    def _to_translation(item: SourceItem, title: str, summary: Optional[str]) -> Translation:
        if not item.summary:
            return Translation(title=title, summary=item.summary)
        return Translation(title=title, summary=summary or item.summary)

    # ------------------------------------------------------------------
    # Batch window and dispatch
    # ------------------------------------------------------------------
    def _enqueue(self, entries: Sequence[PendingEntry]) -> None:
        with self._pending_lock:
            self._pending.extend(entries)

    def _take_batch(self, own: Set[str]) -> List[PendingEntry]:
        """Pop one batch led by the caller's own entries, topped up with others."""
        with self._pending_lock:
            mine = [e for e in self._pending if e.fingerprint in own]
            if not mine:
                return []
            others = [e for e in self._pending if e.fingerprint not in own]
            batch = next(chunk_entries(mine + others, self._config.max_batch_size))
            taken = {e.fingerprint for e in batch}
            self._pending = [e for e in self._pending if e.fingerprint not in taken]
        return batch

    def _drain(self, own: Set[str]) -> None:
        """Dispatch batches while any of ``own`` is still waiting in the window.

        Entries of ``own`` that are gone were taken by another caller, which
        resolves them; the caller then just waits on its futures.
        """
        if self._config.batch_window_ms:
            time.sleep(self._config.batch_window_ms / 1000.0)
        while True:
            batch = self._take_batch(own)
            if not batch:
                return
            self._dispatch(batch)

    def _dispatch(self, entries: List[PendingEntry]) -> None:
        resolved: Set[str] = set()
        try:
            if len(entries) == 1:
                request = compose_single(entries[0], self._config.target_language, self._system_prompt)
            else:
                request = compose_batch(entries, self._config.target_language, self._system_prompt)

            self._bump("provider_calls")
            logger.info("发送翻译请求: %d 项", len(request.entries))
            try:
                reply = self._provider.complete(request)
                if not reply or not reply.strip():
                    raise EmptyReply("空回复")
            except TranslationError as exc:
                self._fail_all(entries, exc, resolved)
                return
            except Exception as exc:
                self._fail_all(entries, NetworkFailure(f"翻译请求异常: {exc}"), resolved)
                return

            if request.is_batch:
                records = reassociate(request.entries, parse_batch_reply(reply))
            else:
                only = request.entries[0].item
                records = [parse_single_reply(reply, has_summary=bool(only.summary))]

            for ordinal, (entry, record) in enumerate(zip(request.entries, records), start=1):
                if record is None:
                    self._fail(entry, ParseFailure(f"第 {ordinal} 项无法解析"))
                else:
                    self._succeed(entry, record)
                resolved.add(entry.fingerprint)
        finally:
            leftovers = [e for e in entries if e.fingerprint not in resolved]
            if leftovers:
                self._fail_all(leftovers, ParseFailure("批次处理中断"), resolved)

    def _succeed(self, entry: PendingEntry, record: ParsedRecord) -> None:
        item = entry.item
        summary = record.summary if item.summary else None
        self._service.cache.put_for_id(item.id, entry.fingerprint, record.title, summary)
        self._maybe_compact()
        self._service.registry.resolve(entry.fingerprint, self._to_translation(item, record.title, summary))

    def _fail(self, entry: PendingEntry, error: TranslationError) -> None:
        with self._stats_lock:
            self._stats.failures[error.kind] = self._stats.failures.get(error.kind, 0) + 1
        logger.warning("翻译失败 (%s): %s，使用原文: %s", error.kind.value, error, entry.item.title[:50])
        self._service.registry.resolve_failure(entry.fingerprint, Translation.original(entry.item))

    def _fail_all(self, entries: Sequence[PendingEntry], error: TranslationError, resolved: Set[str]) -> None:
        for entry in entries:
            if entry.fingerprint in resolved:
                continue
            self._fail(entry, error)
            resolved.add(entry.fingerprint)

    def _maybe_compact(self) -> None:
        cache = self._service.cache
        if cache.max_entries is not None and len(cache) > cache.max_entries:
            cache.compact()

    def _bump(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self._stats, counter, getattr(self._stats, counter) + 1)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._config.max_workers,
                    thread_name_prefix="translate",
                )
            return self._executor
