"""Fixed-window rate limiting for inbound requests.

Each key (usually ``"<endpoint>:<client ip>"``) gets a counting window of
``window_ms`` milliseconds. Every attempt in the window is counted; attempts
beyond ``limit`` are rejected until the window rolls over.

The default store lives in process memory, so limits are per worker: behind
N workers a client can make ``N * limit`` requests per window. Pass a shared
``RateLimitStore`` implementation to enforce a global limit.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateLimitState:
    """Counter for one key.

    Attributes:
        key: Rate-limit key.
        window_start: Window start, epoch milliseconds.
        count: Attempts recorded in the current window.
    """

    key: str
    window_start: int
    count: int


@dataclass
class RateLimitResult:
    """Admission decision.

    Attributes:
        ok: True if the request is admitted.
        remaining: Attempts left in the window, never negative.
        limit: Attempts allowed per window.
        reset_at: Window end, epoch milliseconds.
    """

    ok: bool
    remaining: int
    limit: int
    reset_at: int

    @property
    def reset(self) -> int:
        """Window end, epoch seconds."""
        return self.reset_at // 1000


class RateLimitStore(ABC):
    """Storage for per-key counters.

    ``hit`` must be atomic: read, reset-or-increment and write happen as a
    single step with respect to other callers.
    """

    @abstractmethod
    def hit(self, key: str, window_ms: int, now_ms: int) -> RateLimitState:
        """Record an attempt for ``key`` and return the updated state.

        Starts a new window with ``count=1`` when there is no entry or when
        ``now_ms`` has reached ``window_start + window_ms``; otherwise
        increments ``count``.
        """

    @abstractmethod
    def get(self, key: str) -> RateLimitState | None:
        """Return the current state for ``key`` without recording an attempt."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store. Entries are never evicted."""

    def __init__(self) -> None:
        self._states: dict[str, RateLimitState] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, window_ms: int, now_ms: int) -> RateLimitState:
        with self._lock:
            state = self._states.get(key)
            if state is None or now_ms >= state.window_start + window_ms:
                state = RateLimitState(key=key, window_start=now_ms, count=1)
                self._states[key] = state
            else:
                state.count += 1
            return RateLimitState(key=state.key, window_start=state.window_start, count=state.count)

    def get(self, key: str) -> RateLimitState | None:
        with self._lock:
            state = self._states.get(key)
            if state is None:
                return None
            return RateLimitState(key=state.key, window_start=state.window_start, count=state.count)

    def clear(self) -> None:
        with self._lock:
            self._states.clear()

    def __len__(self) -> int:
        return len(self._states)


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Fixed-window limiter.

    Args:
        limit: Attempts admitted per window.
        window_ms: Window length in milliseconds.
        store: Counter storage. Defaults to a fresh in-memory store.
        clock: Time source returning epoch milliseconds.
    """

    def __init__(
        self,
        limit: int = 60,
        window_ms: int = 60_000,
        store: RateLimitStore | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if limit < 1 or window_ms < 1:
            raise ValueError("limit and window_ms must be positive")
        self.limit = limit
        self.window_ms = window_ms
        self.store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    def check(self, key: str) -> RateLimitResult:
        """Record an attempt for ``key`` and decide whether to admit it."""
        state = self.store.hit(key, self.window_ms, self._clock())
        return RateLimitResult(
            ok=state.count <= self.limit,
            remaining=max(0, self.limit - state.count),
            limit=self.limit,
            reset_at=state.window_start + self.window_ms,
        )


_default_store = InMemoryRateLimitStore()


def rate_limit(key: str, limit: int = 60, window_ms: int = 60_000) -> RateLimitResult:
    """Check ``key`` against the process-wide in-memory store."""
    return RateLimiter(limit, window_ms, store=_default_store).check(key)


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Standard rate-limit response headers."""
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    }


def get_client_ip(headers: Mapping[str, str]) -> str:
    """Best-effort client address from proxy headers.

    Looks at the first ``X-Forwarded-For`` entry, then ``CF-Connecting-IP``,
    then ``X-Real-IP``. Header lookup is case-insensitive for Starlette
    headers; plain dicts should use lower-case keys.
    """
    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    cf_ip = (headers.get("cf-connecting-ip") or "").strip()
    real_ip = (headers.get("x-real-ip") or "").strip()
    return forwarded or cf_ip or real_ip or "unknown"
