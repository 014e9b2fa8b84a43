"""
auth/ratelimit.py -- Per-client request throttling with named policies.

Built on the `limits` library (the engine underneath slowapi) so the window
state lives in a pluggable storage backend:

  memory://             -- process-local, the default
  redis://host:6379/0   -- shared across workers

Strategy: moving (sliding) window. A hit is recorded only when it is allowed,
so a rejected attempt leaves the window untouched, and entries fall out of
the window purely by age -- once the window duration has passed since a hit,
that hit no longer counts.

Policies are named so the gateway never handles raw limit strings:
  general -- every /api/ request
  auth    -- register, login, verify
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass

from limits import RateLimitItem, parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from auth.exceptions import RateLimited

logger = logging.getLogger("condoswift.auth")

GENERAL = "general"
AUTH = "auth"

DEFAULT_POLICIES: dict[str, str] = {
    GENERAL: "100 per 15 minutes",
    AUTH: "5 per 15 minutes",
}

_REJECTION_MESSAGES: dict[str, str] = {
    GENERAL: "Too many requests from this IP, please try again later.",
    AUTH: "Too many authentication attempts, please try again later.",
}


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    remaining: int
    retry_after: int = 0  # seconds; 0 when allowed


class RateLimiter:
    """Sliding-window limiter keyed by (policy, client key).

    Usage:
        limiter = RateLimiter({"auth": "5 per 15 minutes"})
        decision = limiter.allow("203.0.113.7", "auth")
        limiter.check("203.0.113.7", "auth")   # raises RateLimited when exhausted
    """

    def __init__(self, policies: dict[str, str] | None = None, storage_uri: str = "memory://") -> None:
        self._items: dict[str, RateLimitItem] = {
            name: parse(limit) for name, limit in (policies or DEFAULT_POLICIES).items()
        }
        self._storage = storage_from_string(storage_uri)
        self._strategy = MovingWindowRateLimiter(self._storage)

    def policy(self, name: str) -> RateLimitItem:
        try:
            return self._items[name]
        except KeyError:
            raise ValueError(f"Unknown rate-limit policy: {name!r}") from None

    def allow(self, client_key: str, policy: str) -> RateDecision:
        item = self.policy(policy)
        if self._strategy.hit(item, policy, client_key):
            _reset_time, remaining = self._strategy.get_window_stats(item, policy, client_key)
            return RateDecision(allowed=True, remaining=remaining)

        reset_time, _remaining = self._strategy.get_window_stats(item, policy, client_key)
        retry_after = max(1, math.ceil(reset_time - time.time()))
        logger.info("Rate limit hit: policy=%s client=%s retry_after=%ds", policy, client_key, retry_after)
        return RateDecision(allowed=False, remaining=0, retry_after=retry_after)

    def check(self, client_key: str, policy: str) -> None:
        decision = self.allow(client_key, policy)
        if not decision.allowed:
            raise RateLimited(decision.retry_after, _REJECTION_MESSAGES.get(policy))

    def reset(self) -> None:
        """Drop every window in the backing storage."""
        self._storage.reset()
