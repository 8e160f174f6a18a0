"""Tests for scholion.cache."""
import pytest

from scholion.cache import DEFAULT_CAPACITY, TextCache
from scholion.structures import cache_key

from conftest import make_entry


class TestGetAndPut:
    def test_miss_returns_none(self, clock) -> None:
        cache = TextCache(clock=clock)
        assert cache.get(cache_key(1)) is None

    def test_get_returns_latest_put(self, clock) -> None:
        cache = TextCache(clock=clock)
        key = cache_key(1)
        cache.put(key, make_entry(1, "first"))
        cache.put(key, make_entry(1, "second"))
        assert cache.get(key).markup_text == "second"
        assert len(cache) == 1

    def test_language_is_part_of_key(self, clock) -> None:
        cache = TextCache(clock=clock)
        cache.put(cache_key(1, "GR"), make_entry(1, "greek"))
        cache.put(cache_key(1, "EN"), make_entry(1, "english", language="EN"))
        assert cache.get(cache_key(1, "GR")).markup_text == "greek"
        assert cache.get(cache_key(1, "EN")).markup_text == "english"

    def test_default_language(self) -> None:
        assert cache_key(4) == (4, "GR")
        assert cache_key(4, None) == (4, "GR")

    def test_default_capacity(self) -> None:
        assert TextCache().capacity == DEFAULT_CAPACITY == 100

    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError):
            TextCache(0)


class TestShouldFetch:
    def test_true_when_absent(self, clock) -> None:
        cache = TextCache(clock=clock)
        assert cache.should_fetch(cache_key(9))

    def test_false_when_present(self, clock) -> None:
        cache = TextCache(clock=clock)
        cache.put(cache_key(9), make_entry(9))
        assert not cache.should_fetch(cache_key(9))

    def test_does_not_mutate(self, clock) -> None:
        cache = TextCache(clock=clock)
        cache.should_fetch(cache_key(9))
        assert len(cache) == 0
        assert cache_key(9) not in cache

    def test_does_not_refresh_recency(self, clock) -> None:
        cache = TextCache(2, clock=clock)
        cache.put(cache_key(1), make_entry(1))
        cache.put(cache_key(2), make_entry(2))
        cache.should_fetch(cache_key(1))
        cache.put(cache_key(3), make_entry(3))
        assert cache.keys() == [cache_key(2), cache_key(3)]


class TestEviction:
    def test_get_protects_recently_read_entry(self, clock) -> None:
        cache = TextCache(2, clock=clock)
        cache.put(cache_key(1), make_entry(1, "a"))
        cache.put(cache_key(2), make_entry(2, "b"))
        cache.get(cache_key(1))
        cache.put(cache_key(3), make_entry(3, "c"))

        assert cache_key(2) not in cache
        assert cache.get(cache_key(1)).markup_text == "a"
        assert cache.get(cache_key(3)).markup_text == "c"

    def test_size_never_exceeds_capacity(self, clock) -> None:
        cache = TextCache(5, clock=clock)
        for text_id in range(20):
            cache.put(cache_key(text_id), make_entry(text_id))
            assert len(cache) <= 5
        assert sorted(key[0] for key in cache.keys()) == [15, 16, 17, 18, 19]

    def test_overwrite_refreshes_recency(self, clock) -> None:
        cache = TextCache(2, clock=clock)
        cache.put(cache_key(1), make_entry(1))
        cache.put(cache_key(2), make_entry(2))
        cache.put(cache_key(1), make_entry(1, "again"))
        cache.put(cache_key(3), make_entry(3))
        assert cache_key(1) in cache
        assert cache_key(2) not in cache

    def test_get_protects_entry_when_clock_does_not_advance(self) -> None:
        cache = TextCache(2, clock=lambda: 1000.0)
        cache.put(cache_key(1), make_entry(1))
        cache.put(cache_key(2), make_entry(2))
        cache.get(cache_key(1))
        cache.put(cache_key(3), make_entry(3))
        assert cache.keys() == [cache_key(1), cache_key(3)]

    def test_overwrite_refreshes_recency_when_clock_does_not_advance(self) -> None:
        cache = TextCache(2, clock=lambda: 1000.0)
        cache.put(cache_key(1), make_entry(1))
        cache.put(cache_key(2), make_entry(2))
        cache.put(cache_key(1), make_entry(1, "again"))
        cache.put(cache_key(3), make_entry(3))
        assert cache.keys() == [cache_key(1), cache_key(3)]

    def test_clear(self, clock) -> None:
        cache = TextCache(clock=clock)
        cache.put(cache_key(1), make_entry(1))
        cache.clear()
        assert len(cache) == 0
