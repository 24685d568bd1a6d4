"""
RATE LIMITING
=============
Sliding-window request quotas keyed by client address.
"""

# FLOW:
# - Each limiter records a hit per key and decides allowed/denied.
# - Pipeline stages run general -> api -> sensitive for matching requests.
# - Each applied limiter adds its own X-RateLimit-<Name>-* headers; the
#   unprefixed X-RateLimit-* trio comes from the last one evaluated.
# WHY:
# - Slows scraping and brute-force probing; failures count like successes.
# HOW:
# - In-memory timestamp log per key behind a pluggable store. Counters are
#   per process: several server instances each enforce their own quota.

from __future__ import annotations

import math
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Protocol

from Security.error_handling import QuotaExceeded

USERS_PREFIX = "/api/users"
SENSITIVE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_at)),
        }

    def scoped_headers(self, limiter_name: str) -> dict[str, str]:
        """Same quota under a per-limiter prefix, e.g. X-RateLimit-General-Remaining."""
        prefix = f"X-RateLimit-{limiter_name.capitalize()}-"
        return {prefix + name[len("X-RateLimit-"):]: value for name, value in self.headers().items()}


class RateLimitStore(Protocol):
    def hit(self, key: str, now: float, limit: int, window_seconds: int) -> RateLimitDecision: ...

    def reset(self, key: str | None = None) -> None: ...


class InMemoryRateLimitStore:
    def __init__(self):
        self._hits: defaultdict[str, list[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def _cleanup(self, key: str, now: float, window_seconds: int) -> list[float]:
        hits = [t for t in self._hits[key] if now - t < window_seconds]
        self._hits[key] = hits
        return hits

    def hit(self, key: str, now: float, limit: int, window_seconds: int) -> RateLimitDecision:
        with self._lock:
            hits = self._cleanup(key, now, window_seconds)
            if len(hits) >= limit:
                return RateLimitDecision(False, limit, 0, hits[0] + window_seconds)
            hits.append(now)
            return RateLimitDecision(True, limit, limit - len(hits), hits[0] + window_seconds)

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: int,
        message: str,
        store: RateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self.store = store or InMemoryRateLimitStore()
        self.clock = clock

    def check(self, key: str) -> RateLimitDecision:
        return self.store.hit(f"{self.name}:{key}", self.clock(), self.limit, self.window_seconds)

    def reset(self) -> None:
        self.store.reset()


def client_key(client_host: str | None, forwarded_for: str | None, trust_proxy: bool) -> str:
    # One trusted hop: the proxy appends the peer it saw as the last entry.
    if trust_proxy and forwarded_for:
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        if hops:
            return hops[-1]
    return client_host or "unknown"


def create_rate_limiters(settings: dict, store_factory: Callable[[], RateLimitStore] = InMemoryRateLimitStore):
    window_minutes = settings["GENERAL_RATE_WINDOW"] // 60
    sensitive_minutes = settings["SENSITIVE_RATE_WINDOW"] // 60
    return {
        "general": SlidingWindowRateLimiter(
            "general",
            settings["GENERAL_RATE_LIMIT"],
            settings["GENERAL_RATE_WINDOW"],
            f"too many requests from this IP, please try again after {window_minutes} minutes",
            store_factory(),
        ),
        "api": SlidingWindowRateLimiter(
            "api",
            settings["API_RATE_LIMIT"],
            settings["API_RATE_WINDOW"],
            "API rate limit exceeded, please try again later",
            store_factory(),
        ),
        "sensitive": SlidingWindowRateLimiter(
            "sensitive",
            settings["SENSITIVE_RATE_LIMIT"],
            settings["SENSITIVE_RATE_WINDOW"],
            f"too many attempts, please try again after {sensitive_minutes} minutes",
            store_factory(),
        ),
    }


def is_api_request(ctx) -> bool:
    return ctx.path == USERS_PREFIX or ctx.path.startswith(USERS_PREFIX + "/")


def is_sensitive_request(ctx) -> bool:
    return ctx.method in SENSITIVE_METHODS and is_api_request(ctx)


def make_limiter_stage(limiter: SlidingWindowRateLimiter, applies: Callable | None = None):
    def limit_requests(ctx) -> None:
        if applies is not None and not applies(ctx):
            return
        decision = limiter.check(ctx.client_key)
        quota_headers = decision.headers()
        ctx.response_headers.update(decision.scoped_headers(limiter.name))
        ctx.response_headers.update(quota_headers)
        if not decision.allowed:
            retry_after = max(0, math.ceil(decision.reset_at - limiter.clock()))
            raise QuotaExceeded(
                limiter.name,
                limiter.limit,
                math.ceil(decision.reset_at),
                limiter.message,
                headers={**quota_headers, "Retry-After": str(retry_after)},
            )

    return limit_requests
