import fnmatch
from types import SimpleNamespace

import pytest
from starlette.requests import Request

from readiness.services.session_store import Role, SessionStore
from readiness.utils.cache import CacheService
from readiness.utils.rate_limiter import RateLimitExceeded, RateLimiter, rate_limiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def make_request(sessions, token=None, ip="10.0.0.1"):
    headers = [(b"authorization", f"Bearer {token}".encode())] if token else []
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/courses",
        "headers": headers,
        "client": (ip, 5000),
        "app": SimpleNamespace(state=SimpleNamespace(sessions=sessions)),
    }
    return Request(scope)


def test_minute_window_slides():
    clock = FakeClock()
    limiter = RateLimiter(requests_per_minute=2, requests_per_hour=100, clock=clock)
    request = make_request(SessionStore())

    limiter.check(request)
    clock.now += 10
    limiter.check(request)
    with pytest.raises(RateLimitExceeded) as err:
        limiter.check(request)
    assert err.value.window == "minute"
    assert err.value.retry_after == 51

    clock.now += 51
    limiter.check(request)


def test_hour_window():
    clock = FakeClock()
    limiter = RateLimiter(requests_per_minute=100, requests_per_hour=3, clock=clock)
    request = make_request(SessionStore())
    for _ in range(3):
        limiter.check(request)
        clock.now += 120
    with pytest.raises(RateLimitExceeded) as err:
        limiter.check(request)
    assert err.value.window == "hour"
    assert err.value.to_detail()["error"] == "rate_limit_exceeded"


def test_logged_in_users_have_separate_budgets():
    sessions = SessionStore()
    alice = sessions.login("alice", Role.STUDENT)
    bob = sessions.login("bob", Role.STUDENT)
    limiter = RateLimiter(requests_per_minute=1, requests_per_hour=10, clock=FakeClock())

    assert limiter.client_id(make_request(sessions, alice.token)) == "user:alice"
    assert limiter.client_id(make_request(sessions, "stale")) == "ip:10.0.0.1"

    limiter.check(make_request(sessions, alice.token))
    limiter.check(make_request(sessions, bob.token))
    with pytest.raises(RateLimitExceeded):
        limiter.check(make_request(sessions, alice.token))


def test_middleware_returns_429(client, monkeypatch):
    monkeypatch.setitem(rate_limiter.windows, "minute", (60, 2))
    assert client.get("/api/courses").status_code == 200
    assert client.get("/api/courses").status_code == 200

    response = client.get("/api/courses")
    assert response.status_code == 429
    assert int(response.headers["retry-after"]) > 0
    assert response.json()["error"] == "rate_limit_exceeded"
    assert client.get("/health").status_code == 200


class FakeRedis:
    def __init__(self):
        self.data = {}
        self.ttls = {}

    def get(self, key):
        return self.data.get(key)

    def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    def scan_iter(self, match):
        return [k for k in list(self.data) if fnmatch.fnmatch(k, match)]

    def delete(self, *keys):
        for key in keys:
            self.data.pop(key, None)


def test_unreachable_redis_disables_cache():
    cache = CacheService(url="redis://127.0.0.1:1/0")
    assert not cache.enabled
    assert cache.get_plan("alice", "r-1") is None
    assert cache.store_plan("alice", "r-1", {"recommendations": []}) is False
    assert cache.invalidate() == 0


def test_plans_keyed_by_student_and_result():
    cache = CacheService(url="redis://127.0.0.1:1/0", ttl=60)
    cache.redis_client = FakeRedis()

    assert cache.store_plan("alice", "r-1", {"studyTips": ["a"]})
    cache.store_plan("alice", "r-2", {"studyTips": ["b"]})
    cache.store_plan("bob", "r-3", {"studyTips": ["c"]})

    assert cache.get_plan("alice", "r-1") == {"studyTips": ["a"]}
    assert cache.redis_client.ttls["learning_path:alice:r-1"] == 60
    assert cache.invalidate("alice") == 2
    assert cache.get_plan("alice", "r-2") is None
    assert cache.get_plan("bob", "r-3") == {"studyTips": ["c"]}
    assert cache.invalidate() == 1


def test_corrupt_entry_is_a_miss():
    cache = CacheService(url="redis://127.0.0.1:1/0")
    cache.redis_client = FakeRedis()
    cache.redis_client.data["learning_path:alice:r-1"] = "{not json"
    assert cache.get_plan("alice", "r-1") is None
