"""
Sliding-window rate limiting with an explicit ``limit(key)`` contract.

Route-level limits use Flask-Limiter decorators (see extensions.limiter);
handlers that need the result in hand (headers, custom keys) call the named
limiters here. Both share the moving-window strategy from ``limits``.
"""
from __future__ import annotations

import json
import time
from dataclasses import dataclass

from flask import current_app, request
from flask_limiter.util import get_remote_address
from limits import parse
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

from orgcms.errors import RateLimited

_EXT_KEY = "orgcms.ratelimit"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # epoch seconds

    def headers(self) -> dict:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


def init_rate_limits(app) -> None:
    storage = storage_from_string(app.config.get("RATELIMIT_STORAGE_URI") or "memory://")
    app.extensions[_EXT_KEY] = MovingWindowRateLimiter(storage)


def _strategy() -> MovingWindowRateLimiter:
    return current_app.extensions[_EXT_KEY]


def reset_rate_limits() -> None:
    _strategy().storage.reset()


class RateLimiter:
    """A named limiter whose rate comes from app config (e.g. ``"3/minute"``)."""

    def __init__(self, name: str, config_key: str, default: str):
        self.name = name
        self.config_key = config_key
        self.default = default

    def _item(self):
        return parse(current_app.config.get(self.config_key) or self.default)

    def limit(self, key: str) -> RateLimitResult:
        item = self._item()
        if not current_app.config.get("RATELIMIT_ENABLED", True):
            return RateLimitResult(True, item.amount, item.amount, int(time.time()))
        strategy = _strategy()
        allowed = strategy.hit(item, self.name, key)
        stats = strategy.get_window_stats(item, self.name, key)
        return RateLimitResult(allowed, item.amount, max(0, stats.remaining), int(stats.reset_time))

    def check(self, key: str) -> RateLimitResult:
        """``limit`` that raises RateLimited (429) when the window is exhausted."""
        result = self.limit(key)
        if not result.allowed:
            current_app.logger.warning(json.dumps({
                "event": "rate_limited",
                "limiter": self.name,
                "key": key,
                "path": request.path,
            }))
            raise RateLimited(headers=result.headers())
        return result


auth_rate_limit = RateLimiter("auth", "AUTH_RATE_LIMIT", "3/minute")
api_rate_limit = RateLimiter("api", "API_RATE_LIMIT", "10/minute")
strict_rate_limit = RateLimiter("strict", "STRICT_RATE_LIMIT", "1/minute")


def client_ip() -> str:
    # Forwarded headers are only honored through ProxyFix (PROXY_FIX_X_FOR hops)
    return get_remote_address() or "unknown"
