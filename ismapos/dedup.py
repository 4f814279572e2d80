"""Collapse concurrent identical read requests into one backend call."""
from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def request_key(operation: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build the dedup key for ``operation`` called with ``params``.

    Keys are sorted and ``None`` values dropped, so ``{"a": 1, "b": 2}`` and
    ``{"b": 2, "a": 1, "c": None}`` describe the same request.
    """

    cleaned = {k: v for k, v in (params or {}).items() if v is not None}
    return f"{operation}:{json.dumps(cleaned, sort_keys=True, default=str, separators=(',', ':'))}"


@dataclass
class _InFlight:
    future: Future = field(default_factory=Future)
    callers: int = 1


class RequestDeduplicator:
    """Map of request key to the call currently running for it.

    The first caller for a key runs the call in its own thread; callers that
    arrive before it settles wait for the same outcome. The entry is removed
    as soon as the call settles, so nothing is cached past that point.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[str, _InFlight] = {}

    def run(self, key: str, call: Callable[[], T]) -> T:
        with self._lock:
            entry = self._pending.get(key)
            leader = entry is None
            if leader:
                entry = self._pending[key] = _InFlight()
            else:
                entry.callers += 1
        if not leader:
            logger.debug("Joining in-flight request %s", key)
            return entry.future.result()

        try:
            result = call()
        except BaseException as exc:
            self._evict(key)
            entry.future.set_exception(exc)
            raise
        self._evict(key)
        entry.future.set_result(result)
        return result

    def _evict(self, key: str) -> None:
        # evict before publishing so a caller arriving now starts a fresh request
        with self._lock:
            self._pending.pop(key, None)

    # ------------------------------------------------------------------
    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def callers(self, key: str) -> int:
        """Number of callers waiting on ``key`` (0 when nothing is in flight)."""

        with self._lock:
            entry = self._pending.get(key)
            return entry.callers if entry else 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
