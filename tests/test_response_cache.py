from streamcore.services.response_cache import ResponseCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestResponseCache:
    def test_get_missing_returns_none(self):
        assert ResponseCache().get("http://x.test/models") is None

    def test_put_then_get(self):
        cache = ResponseCache()
        cache.put("http://x.test/models", None, {"data": []})
        assert cache.get("http://x.test/models") == {"data": []}

    def test_key_includes_headers(self):
        cache = ResponseCache()
        cache.put("http://x.test/models", {"Authorization": "Bearer a"}, "a")
        assert cache.get("http://x.test/models", {"Authorization": "Bearer b"}) is None
        assert cache.get("http://x.test/models", {"authorization": "Bearer a"}) == "a"

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = ResponseCache(ttl_seconds=60, clock=clock)
        cache.put("http://x.test/models", None, "v")
        clock.now = 59.9
        assert cache.get("http://x.test/models") == "v"
        clock.now = 60.0
        assert cache.get("http://x.test/models") is None
        assert len(cache) == 0

    def test_least_recently_used_is_evicted(self):
        cache = ResponseCache(max_entries=2)
        cache.put("http://x.test/a", None, "a")
        cache.put("http://x.test/b", None, "b")
        cache.get("http://x.test/a")
        cache.put("http://x.test/c", None, "c")
        assert len(cache) == 2
        assert cache.get("http://x.test/b") is None
        assert cache.get("http://x.test/a") == "a"
        assert cache.get("http://x.test/c") == "c"

    def test_clear(self):
        cache = ResponseCache()
        cache.put("http://x.test/a", None, "a")
        cache.clear()
        assert len(cache) == 0
