"""Tests for the watchlist display cache."""

from __future__ import annotations

from cardwatch.engine.pricing import build_display
from cardwatch.services.display_cache import DisplayCache

from tests.conftest import make_card, make_record


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _displays():
    return [build_display(make_card(make_record()))]


class TestDisplayCache:
    def test_miss_then_hit(self) -> None:
        cache = DisplayCache(ttl_seconds=300, clock=FakeClock())
        displays = _displays()

        assert cache.get("ash") is None
        cache.put("ash", displays)
        assert cache.get("ash") == displays

    def test_entries_expire_at_ttl(self) -> None:
        clock = FakeClock()
        cache = DisplayCache(ttl_seconds=300, clock=clock)
        cache.put("ash", _displays())

        clock.now += 299
        assert cache.get("ash") is not None
        clock.now += 1
        assert cache.get("ash") is None
        assert len(cache) == 0

    def test_invalidate_only_touches_one_profile(self) -> None:
        cache = DisplayCache(ttl_seconds=300, clock=FakeClock())
        cache.put("ash", _displays())
        cache.put("misty", _displays())

        cache.invalidate("ash")
        cache.invalidate("brock")

        assert cache.get("ash") is None
        assert cache.get("misty") is not None

    def test_clear(self) -> None:
        cache = DisplayCache(ttl_seconds=300, clock=FakeClock())
        cache.put("ash", _displays())
        cache.put("misty", _displays())

        cache.clear()

        assert len(cache) == 0

    def test_returned_list_is_a_copy(self) -> None:
        cache = DisplayCache(ttl_seconds=300, clock=FakeClock())
        cache.put("ash", _displays())

        cache.get("ash").clear()

        assert len(cache.get("ash")) == 1

    def test_default_ttl_from_settings(self) -> None:
        clock = FakeClock()
        cache = DisplayCache(clock=clock)
        cache.put("ash", _displays())

        clock.now += 299
        assert cache.get("ash") is not None
