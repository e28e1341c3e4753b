"""
services/task_cache.py — Process-local TTL cache for single-task reads.

A best-effort accelerator, never a source of truth: losing it (restart, a
second worker process) changes latency only. One instance is created per
Flask app in create_app() and injected into task_service calls; nothing in
this module is global.

Semantics:
  get(task_id)         → snapshot, or None if never cached OR expired
  put(task_id, value)  → store snapshot; (re)starts its TTL
  invalidate(task_id)  → remove unconditionally; no-op if absent

Snapshots are plain dicts (serialized tasks), so a cached value never holds a
SQLAlchemy object bound to a finished session. Copies go in and come out, so
a caller mutating a response cannot rewrite the cached entry.

All operations take the same lock. Per-key atomicity is all the callers need;
there is no multi-key operation.
"""

from __future__ import annotations

import copy
import threading
import time
from typing import Any, Callable


class TaskCache:

    def __init__(
            self,
            ttl_seconds: float = 600,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[int, tuple[float, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def get(self, task_id: int) -> dict[str, Any] | None:
        with self._lock:
            entry = self._entries.get(task_id)
            if entry is None:
                return None
            expires_at, snapshot = entry
            if self._clock() >= expires_at:
                # Expired entries are dropped lazily, on the read that finds them.
                del self._entries[task_id]
                return None
            return copy.deepcopy(snapshot)

    def put(self, task_id: int, snapshot: dict[str, Any]) -> None:
        with self._lock:
            self._entries[task_id] = (self._clock() + self.ttl_seconds, copy.deepcopy(snapshot))

    def invalidate(self, task_id: int) -> None:
        with self._lock:
            self._entries.pop(task_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<TaskCache ttl={self.ttl_seconds}s entries={len(self)}>"
