from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from status_checks.cache import StatusCache
from status_checks.models import CacheEntry, SiteStatus, StatusSnapshot, StatusSource


NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _snap(site_id: str, status: SiteStatus = SiteStatus.OPERATIONAL) -> StatusSnapshot:
    return StatusSnapshot(site_id=site_id, status=status, checked_at=NOW, response_time_ms=100)


def _entry(*site_ids: str, fetched_at: datetime = NOW) -> CacheEntry:
    return CacheEntry(snapshots={s: _snap(s) for s in site_ids}, fetched_at=fetched_at)


def test_new_cache_is_empty_and_stale() -> None:
    cache = StatusCache()
    assert cache.entry.is_empty
    assert cache.entry.fetched_at is None
    assert cache.is_fresh(30, now=NOW) is False
    assert cache.fresh_entry(30, now=NOW) is None


def test_freshness_window_is_strict() -> None:
    cache = StatusCache(_entry("a"))
    assert cache.is_fresh(30, now=NOW + timedelta(seconds=29.9)) is True
    assert cache.is_fresh(timedelta(seconds=30), now=NOW + timedelta(seconds=30)) is False
    assert cache.is_fresh(0, now=NOW) is False


def test_replace_swaps_whole_entry() -> None:
    cache = StatusCache(_entry("a", "b"))
    old = cache.entry
    new = _entry("a", "b", fetched_at=NOW + timedelta(seconds=5))

    assert cache.replace(new) is old
    assert cache.entry is new
    assert set(old.snapshots) == {"a", "b"}


def test_entry_snapshots_are_read_only() -> None:
    entry = _entry("a")
    with pytest.raises(TypeError):
        entry.snapshots["b"] = _snap("b")  # type: ignore[index]


def test_patch_is_copy_on_write_and_keeps_fetched_at() -> None:
    entry = CacheEntry(snapshots={"a": _snap("a"), "b": _snap("b")}, fetched_at=NOW, source=StatusSource.LIVE)
    cache = StatusCache(entry)
    updated = _snap("b", SiteStatus.OUTAGE)

    previous = cache.patch(updated)

    assert previous is entry
    assert entry.snapshots["b"].status is SiteStatus.OPERATIONAL
    assert cache.entry.snapshots["b"] is updated
    assert cache.entry.snapshots["a"] is entry.snapshots["a"]
    assert cache.entry.fetched_at == NOW


def test_patch_on_empty_cache_does_not_publish_partial_round() -> None:
    cache = StatusCache()
    cache.patch(_snap("a"))
    assert cache.entry.is_empty


def test_patch_from_another_source_leaves_entry_alone() -> None:
    entry = CacheEntry(snapshots={"a": _snap("a")}, fetched_at=NOW, source=StatusSource.LIVE)
    cache = StatusCache(entry)
    updated = _snap("a", SiteStatus.DEGRADED)

    assert cache.patch(updated, source=StatusSource.STATIC) is entry
    assert cache.entry is entry

    assert cache.patch(updated, source=StatusSource.LIVE) is entry
    assert cache.entry.snapshots["a"] is updated
    assert cache.entry.source is StatusSource.LIVE
