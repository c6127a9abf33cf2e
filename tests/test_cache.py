"""
Tests for the read-through cache.
"""

import json

from datasprint.cache import ReadThroughCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class CountingLoader:
    def __init__(self, values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


class TestReadThroughCache:

    def test_serves_cached_value_within_ttl(self):
        loader = CountingLoader(["a", "b"])
        clock = FakeClock()
        cache = ReadThroughCache(loader, ttl_seconds=60, clock=clock)

        assert cache.get() == "a"
        clock.now += 59
        assert cache.get() == "a"
        assert loader.calls == 1

    def test_reloads_after_ttl(self):
        loader = CountingLoader(["a", "b"])
        clock = FakeClock()
        cache = ReadThroughCache(loader, ttl_seconds=60, clock=clock)

        cache.get()
        clock.now += 60
        assert cache.get() == "b"
        assert loader.calls == 2

    def test_invalidate_forces_reload(self):
        loader = CountingLoader(["a", "b"])
        cache = ReadThroughCache(loader, ttl_seconds=60, clock=FakeClock())
        cache.get()
        cache.invalidate()
        assert cache.peek() is None
        assert cache.get() == "b"

    def test_zero_ttl_always_loads(self):
        loader = CountingLoader(["a", "b", "c"])
        cache = ReadThroughCache(loader, ttl_seconds=0, clock=FakeClock())
        assert [cache.get(), cache.get(), cache.get()] == ["a", "b", "c"]

    def test_none_is_cached(self):
        loader = CountingLoader([None])
        cache = ReadThroughCache(loader, ttl_seconds=60, clock=FakeClock())
        assert cache.get() is None
        assert cache.get() is None
        assert loader.calls == 1


class TestPersistence:

    def test_value_restored_from_file(self, tmp_path):
        path = tmp_path / "challenges.json"
        clock = FakeClock()
        ReadThroughCache(CountingLoader([[1, 2]]), ttl_seconds=60, path=str(path), clock=clock).get()

        loader = CountingLoader([[3]])
        restored = ReadThroughCache(loader, ttl_seconds=60, path=str(path), clock=clock)
        assert restored.get() == [1, 2]
        assert loader.calls == 0

    def test_stale_file_is_reloaded(self, tmp_path):
        path = tmp_path / "challenges.json"
        clock = FakeClock()
        ReadThroughCache(CountingLoader([[1]]), ttl_seconds=60, path=str(path), clock=clock).get()

        clock.now += 120
        restored = ReadThroughCache(CountingLoader([[2]]), ttl_seconds=60, path=str(path), clock=clock)
        assert restored.peek() == [1]
        assert restored.get() == [2]

    def test_serializers_are_applied(self, tmp_path):
        path = tmp_path / "value.json"
        cache = ReadThroughCache(
            CountingLoader([{"n": 1}]), ttl_seconds=60, path=str(path),
            serialize=lambda v: {"wrapped": v}, deserialize=lambda d: d["wrapped"],
            clock=FakeClock(),
        )
        cache.get()
        with open(path) as f:
            assert json.load(f)["value"] == {"wrapped": {"n": 1}}

    def test_invalidate_removes_file(self, tmp_path):
        path = tmp_path / "value.json"
        cache = ReadThroughCache(CountingLoader(["a"]), ttl_seconds=60, path=str(path), clock=FakeClock())
        cache.get()
        assert path.exists()
        cache.invalidate()
        assert not path.exists()

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "value.json"
        path.write_text("{not json")
        loader = CountingLoader(["fresh"])
        cache = ReadThroughCache(loader, ttl_seconds=60, path=str(path), clock=FakeClock())
        assert cache.get() == "fresh"
        assert loader.calls == 1
