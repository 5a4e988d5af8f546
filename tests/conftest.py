"""Shared fixtures: fake clock, in-memory store and a scripted provider."""

from __future__ import annotations

import threading
from typing import Callable, List, Optional, Union

import pytest

from news_translate.config.schemas import TranslationConfig
from news_translate.core.batch import BatchRequest
from news_translate.core.coordinator import TranslationCoordinator
from news_translate.core.service import TranslationService
from news_translate.infra.storage import MemoryKeyValueStore

START = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = START) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Reply = Union[str, Exception, Callable[[BatchRequest], str]]


class DummyProvider:
    """Returns scripted replies in order; the last one repeats."""

    def __init__(self, replies: Optional[List[Reply]] = None, gate: Optional[threading.Event] = None) -> None:
        self.replies = list(replies or [])
        self.gate = gate
        self.requests: List[BatchRequest] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.requests)

    def complete(self, request: BatchRequest) -> str:
        with self._lock:
            self.requests.append(request)
            reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if self.gate is not None:
            assert self.gate.wait(timeout=5), "provider gate was never released"
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def service(store: MemoryKeyValueStore, clock: FakeClock) -> TranslationService:
    return TranslationService(store, clock=clock)


@pytest.fixture
def make_coordinator(service: TranslationService):
    created: List[TranslationCoordinator] = []

    def factory(provider: DummyProvider, **config) -> TranslationCoordinator:
        coordinator = TranslationCoordinator(service, provider, config=TranslationConfig(**config))
        created.append(coordinator)
        return coordinator

    yield factory
    for coordinator in created:
        coordinator.close()
