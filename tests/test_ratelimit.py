from orgcms.services.ratelimit import RateLimiter, auth_rate_limit, strict_rate_limit
from orgcms.errors import RateLimited

import pytest


def test_sliding_window_counts_down(app):
    with app.test_request_context("/x"):
        results = [auth_rate_limit.limit("k1") for _ in range(4)]
    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results[:3]] == [2, 1, 0]
    assert all(r.limit == 3 for r in results)


def test_keys_are_independent(app):
    with app.test_request_context("/x"):
        assert strict_rate_limit.limit("a").allowed
        assert not strict_rate_limit.limit("a").allowed
        assert strict_rate_limit.limit("b").allowed


def test_check_raises_with_headers(app):
    with app.test_request_context("/x"):
        strict_rate_limit.check("c")
        with pytest.raises(RateLimited) as exc:
            strict_rate_limit.check("c")
    assert exc.value.headers["X-RateLimit-Remaining"] == "0"
    assert int(exc.value.headers["X-RateLimit-Reset"]) > 0


def test_rate_comes_from_config(app, monkeypatch):
    monkeypatch.setitem(app.config, "CUSTOM_LIMIT", "2/minute")
    limiter = RateLimiter("custom", "CUSTOM_LIMIT", "50/minute")
    with app.test_request_context("/x"):
        assert [limiter.limit("k").allowed for _ in range(3)] == [True, True, False]


def test_disabled_always_allows(app, monkeypatch):
    monkeypatch.setitem(app.config, "RATELIMIT_ENABLED", False)
    with app.test_request_context("/x"):
        assert all(strict_rate_limit.limit("d").allowed for _ in range(5))
