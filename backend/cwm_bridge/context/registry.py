# =============================
# backend/cwm_bridge/context/registry.py
# =============================
from __future__ import annotations
import logging
import secrets
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ..config import CONTEXT_IDLE_SEC
from ..errors import NotFound
from ..powershell.bootstrap import CredentialBundle

log = logging.getLogger(__name__)

ID_BYTES = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Context:
    id: str
    created_at: datetime
    last_accessed_at: datetime
    connected: bool = False
    credentials: Optional[CredentialBundle] = None


class ContextRegistry:
    """Thread-safe in-memory store of contexts keyed by their opaque id.

    The operations below are the only way to read or mutate records; ``get``
    hands out copies so a caller can never edit the stored state directly.
    """

    def __init__(self, idle_seconds: float = CONTEXT_IDLE_SEC, clock: Callable[[], datetime] = _utcnow):
        self._idle = timedelta(seconds=idle_seconds)
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, Context] = {}

    def create(self) -> str:
        now = self._clock()
        with self._lock:
            cid = secrets.token_hex(ID_BYTES)
            while cid in self._data:
                cid = secrets.token_hex(ID_BYTES)
            self._data[cid] = Context(id=cid, created_at=now, last_accessed_at=now)
        log.info("Created context %s", cid)
        return cid

    def get(self, context_id: str) -> Context:
        with self._lock:
            return replace(self._require(context_id))

    def touch(self, context_id: str) -> None:
        now = self._clock()
        with self._lock:
            ctx = self._require(context_id)
            if now > ctx.last_accessed_at:
                ctx.last_accessed_at = now

    # both may run after a command finishes, when the context can already be
    # deleted or swept; a missing record is left alone
    def mark_connected(self, context_id: str, credentials: CredentialBundle | None = None) -> None:
        with self._lock:
            ctx = self._data.get(context_id)
            if ctx is None:
                return
            ctx.connected = True
            if credentials is not None:
                ctx.credentials = credentials

    def mark_disconnected(self, context_id: str) -> None:
        with self._lock:
            ctx = self._data.get(context_id)
            if ctx is not None:
                ctx.connected = False

    def delete(self, context_id: str) -> bool:
        with self._lock:
            existed = self._data.pop(context_id, None) is not None
        if existed:
            log.info("Deleted context %s", context_id)
        return existed

    def sweep(self, now: datetime | None = None, idle: timedelta | float | None = None) -> list[str]:
        """Evict contexts idle for strictly longer than ``idle``; return their ids."""
        now = now or self._clock()
        if idle is None:
            idle = self._idle
        elif not isinstance(idle, timedelta):
            idle = timedelta(seconds=idle)
        with self._lock:
            stale = [cid for cid, ctx in self._data.items() if now - ctx.last_accessed_at > idle]
            for cid in stale:
                del self._data[cid]
        for cid in stale:
            log.info("Removing stale context: %s", cid)
        return stale

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, context_id: object) -> bool:
        with self._lock:
            return context_id in self._data

    def _require(self, context_id: str) -> Context:
        ctx = self._data.get(context_id)
        if ctx is None:
            raise NotFound(context_id)
        return ctx


class ContextSweeper:
    """Background thread that periodically calls ``registry.sweep()``."""

    def __init__(self, registry: ContextRegistry, interval: float):
        self._registry = registry
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._interval <= 0 or self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="context-sweeper", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._registry.sweep()
            except Exception:
                log.exception("Context sweep failed")


registry = ContextRegistry()
