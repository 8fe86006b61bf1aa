from __future__ import annotations

from typing import List, Tuple

import pytest
from starlette.requests import Request

from commitboard.config import RateLimitRule
from commitboard.service.ratelimit import SlidingWindowLimiter, client_address


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _request(headers: List[Tuple[str, str]] | None = None, client: Tuple[str, int] | None = ("10.0.0.1", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(name.lower().encode(), value.encode()) for name, value in headers or []],
        "client": client,
    }
    return Request(scope)


def test_admits_up_to_cap_within_window() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(3, 60, clock=clock)

    assert [limiter.hit("a") for _ in range(4)] == [True, True, True, False]
    assert limiter.remaining("a") == 0
    assert limiter.hit("b") is True


def test_window_slides() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(2, 60, clock=clock)
    limiter.hit("a")
    clock.advance(30)
    limiter.hit("a")

    assert limiter.hit("a") is False
    assert limiter.reset_after("a") == pytest.approx(30)

    clock.advance(30)
    assert limiter.hit("a") is True
    assert limiter.hit("a") is False


def test_release_returns_capacity() -> None:
    limiter = SlidingWindowLimiter(1, 60, clock=FakeClock())
    limiter.hit("a")
    limiter.release("a")

    assert limiter.remaining("a") == 1
    assert limiter.reset_after("a") == 0.0


def test_from_rule_uses_rule_values() -> None:
    limiter = SlidingWindowLimiter.from_rule(RateLimitRule(window_seconds=900, max_requests=100))

    assert limiter.max_requests == 100
    assert limiter.window_seconds == 900.0


def test_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        SlidingWindowLimiter(0, 60)


def test_client_address_uses_last_forwarded_hop() -> None:
    request = _request([("X-Forwarded-For", "198.51.100.1, 203.0.113.7")])

    assert client_address(request) == "203.0.113.7"
    assert client_address(request, trust_proxy=False) == "10.0.0.1"


def test_client_address_falls_back_to_peer_then_unknown() -> None:
    assert client_address(_request()) == "10.0.0.1"
    assert client_address(_request(client=None)) == "unknown"


def test_expired_clients_are_evicted() -> None:
    clock = FakeClock()
    limiter = SlidingWindowLimiter(5, 60, clock=clock)
    for index in range(1000):
        limiter.hit(f"198.51.100.{index}")

    clock.advance(61)
    limiter.hit("203.0.113.1")

    assert list(limiter._hits) == ["203.0.113.1"]


def test_queries_do_not_track_unseen_clients() -> None:
    limiter = SlidingWindowLimiter(5, 60, clock=FakeClock())

    assert limiter.remaining("203.0.113.9") == 5
    assert limiter.reset_after("203.0.113.9") == 0.0
    assert limiter._hits == {}
