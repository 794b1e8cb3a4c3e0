"""
Unit Tests for the Dataset Cache.
"""

from timeclock.services.cache import DEFAULT_TTL, DatasetCache
from timeclock.sheets.enums import Dataset


def make_cache(clock) -> DatasetCache:
    return DatasetCache({"roster": 300, "on_work": 60, "ledger": 30, "stats": 120}, clock=clock)


def test_empty_entry_is_invalid(fake_clock):
    cache = make_cache(fake_clock)
    assert cache.is_valid("roster") is False
    assert cache.get("roster") is None


def test_valid_within_ttl_then_stale(fake_clock):
    cache = make_cache(fake_clock)
    cache.set(Dataset.ON_WORK, ["a"])

    fake_clock.advance(59)
    assert cache.is_valid(Dataset.ON_WORK)

    fake_clock.advance(1)
    assert not cache.is_valid(Dataset.ON_WORK)
    assert cache.get(Dataset.ON_WORK) == ["a"]


def test_empty_list_counts_as_payload(fake_clock):
    cache = make_cache(fake_clock)
    cache.set("ledger", [])
    assert cache.is_valid("ledger")
    assert cache.get("ledger") == []


def test_enum_and_string_keys_are_the_same_entry(fake_clock):
    cache = make_cache(fake_clock)
    cache.set(Dataset.ROSTER, ["Alice"])
    assert cache.get("roster") == ["Alice"]


def test_invalidate_single_and_all(fake_clock):
    cache = make_cache(fake_clock)
    cache.set("roster", ["Alice"])
    cache.set("on_work", ["session"])

    cache.invalidate("on_work")
    assert cache.get("on_work") is None
    assert cache.get("roster") == ["Alice"]

    cache.invalidate()
    assert cache.get("roster") is None


def test_unknown_key_gets_default_ttl(fake_clock):
    cache = make_cache(fake_clock)
    assert cache.ttl("something_else") == DEFAULT_TTL


def test_ttl_override_and_exact_restore(fake_clock):
    cache = make_cache(fake_clock)
    cache.apply_ttl_override(3600)
    assert {cache.ttl(k) for k in ("roster", "on_work", "ledger", "stats")} == {3600}

    cache.restore_base_ttls()
    assert cache.ttl("roster") == 300
    assert cache.ttl("on_work") == 60
    assert cache.ttl("ledger") == 30
    assert cache.ttl("stats") == 120


def test_snapshot(fake_clock):
    cache = make_cache(fake_clock)
    cache.set("roster", ["Alice", "Bob"])
    fake_clock.advance(10)

    snapshot = cache.snapshot()
    assert snapshot["roster"]["hasData"] is True
    assert snapshot["roster"]["valid"] is True
    assert snapshot["roster"]["ageSeconds"] == 10.0
    assert snapshot["roster"]["size"] == 2
    assert snapshot["ledger"]["hasData"] is False
