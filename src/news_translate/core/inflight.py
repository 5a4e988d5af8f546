"""Registry of fingerprints with an outstanding provider call."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Role(str, Enum):
    LEADER = "leader"
    FOLLOWER = "follower"


@dataclass(frozen=True)
class Ticket(Generic[T]):
    """Outcome of ``try_acquire``: the caller's role and the shared result."""

    fingerprint: str
    role: Role
    future: "Future[T]"

    @property
    def is_leader(self) -> bool:
        return self.role is Role.LEADER

    def wait(self, timeout: Optional[float] = None) -> T:
        return self.future.result(timeout=timeout)


class InFlightRegistry(Generic[T]):
    """Hand out one leader per fingerprint; everyone else follows.

    Each marker is a ``Future`` resolved exactly once, so the leader and all
    followers observe the same value. The marker is removed before the
    future is completed, which lets a caller woken by the result start a
    fresh attempt immediately.
    """

    def __init__(self) -> None:
        self._markers: Dict[str, "Future[T]"] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._markers)

    def is_in_flight(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._markers

    def try_acquire(self, fingerprint: str) -> Ticket[T]:
        with self._lock:
            future = self._markers.get(fingerprint)
            if future is not None:
                return Ticket(fingerprint, Role.FOLLOWER, future)
            future = Future()
            future.set_running_or_notify_cancel()
            self._markers[fingerprint] = future
            return Ticket(fingerprint, Role.LEADER, future)

    def resolve(self, fingerprint: str, result: T) -> bool:
        """Deliver ``result`` to every waiter and drop the marker."""
        return self._complete(fingerprint, result)

    def resolve_failure(self, fingerprint: str, fallback: T) -> bool:
        """Deliver the fallback value; the marker is dropped so a later call may retry."""
        return self._complete(fingerprint, fallback)

    def _complete(self, fingerprint: str, value: T) -> bool:
        with self._lock:
            future = self._markers.pop(fingerprint, None)
        if future is None:
            logger.debug("未找到进行中的请求: %s", fingerprint)
            return False
        future.set_result(value)
        return True
