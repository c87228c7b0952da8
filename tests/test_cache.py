import pytest

from venue_enrichment.core.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(10, clock=clock)
    cache.set("https://oakviewhall.com/", "page")

    clock.now += 9.9
    assert cache.get("https://oakviewhall.com/") == "page"

    clock.now += 0.1
    assert cache.get("https://oakviewhall.com/") is None


def test_get_default_and_clear():
    cache = TTLCache(60)
    assert cache.get("missing", "fallback") == "fallback"

    cache.set("a", 1)
    cache.clear()
    assert cache.get("a") is None


def test_instances_do_not_share_entries():
    first = TTLCache(60)
    second = TTLCache(60)
    first.set("a", 1)
    assert second.get("a") is None


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        TTLCache(0)
