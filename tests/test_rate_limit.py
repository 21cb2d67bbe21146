from starlette.requests import Request

from webstack.services.rate_limit import FixedWindowRateLimiter, client_id_from_request, fingerprint_hash


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _request(headers: dict[str, str]) -> Request:
    raw = [(key.lower().encode(), value.encode()) for key, value in headers.items()]
    return Request({"type": "http", "method": "POST", "path": "/", "headers": raw})


def test_window_allows_then_blocks():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(clock=clock)

    results = [limiter.check("c1", max_requests=3, window_seconds=60) for _ in range(3)]
    assert [result.remaining for result in results] == [2, 1, 0]
    assert all(result.allowed for result in results)

    blocked = limiter.check("c1", max_requests=3, window_seconds=60)
    assert blocked.allowed is False
    assert blocked.retry_after == 60
    assert blocked.headers()["Retry-After"] == "60"

    clock.now += 61
    assert limiter.check("c1", max_requests=3, window_seconds=60).allowed is True


def test_prefixes_and_clients_are_isolated():
    limiter = FixedWindowRateLimiter(clock=FakeClock())
    assert limiter.check("c1", max_requests=1, window_seconds=60, prefix="a").allowed is True
    assert limiter.check("c1", max_requests=1, window_seconds=60, prefix="b").allowed is True
    assert limiter.check("c2", max_requests=1, window_seconds=60, prefix="a").allowed is True
    assert limiter.check("c1", max_requests=1, window_seconds=60, prefix="a").allowed is False


def test_expired_windows_are_pruned():
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(clock=clock)
    limiter.check("c1", max_requests=1, window_seconds=10)

    clock.now += 200
    limiter.check("c2", max_requests=1, window_seconds=10)
    assert list(limiter._windows) == [":c2"]


def test_fingerprint_hash():
    assert fingerprint_hash("") == "hash_0"
    assert fingerprint_hash("a") == "hash_61"
    assert fingerprint_hash("ab") == f"hash_{97 * 31 + 98:x}"


def test_client_id_prefers_forwarded_headers():
    assert client_id_from_request(_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})) == "203.0.113.5"
    assert client_id_from_request(_request({"X-Real-IP": "203.0.113.6"})) == "203.0.113.6"

    fingerprint = client_id_from_request(_request({"User-Agent": "Mozilla", "Accept-Language": "en-US"}))
    assert fingerprint == fingerprint_hash("Mozilla:en-US")
