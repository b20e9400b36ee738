from __future__ import annotations

import threading
from datetime import datetime, timedelta

from status_checks.models import CacheEntry, StatusSnapshot, StatusSource, utc_now


class StatusCache:
    """
    Holds exactly one CacheEntry.

    Entries are immutable; ``replace`` and ``patch`` swap the whole entry under
    a lock so readers see either the old round or the new one, never a mix.
    """

    def __init__(self, entry: CacheEntry | None = None) -> None:
        self._lock = threading.Lock()
        self._entry = entry if entry is not None else CacheEntry()

    @property
    def entry(self) -> CacheEntry:
        with self._lock:
            return self._entry

    def is_fresh(self, ttl: timedelta | float, now: datetime | None = None) -> bool:
        return self.fresh_entry(ttl, now) is not None

    def fresh_entry(self, ttl: timedelta | float, now: datetime | None = None) -> CacheEntry | None:
        if not isinstance(ttl, timedelta):
            ttl = timedelta(seconds=float(ttl))
        entry = self.entry
        if entry.fetched_at is None:
            return None
        now = now or utc_now()
        return entry if (now - entry.fetched_at) < ttl else None

    def replace(self, entry: CacheEntry) -> CacheEntry:
        with self._lock:
            previous = self._entry
            self._entry = entry
        return previous

    def patch(self, snapshot: StatusSnapshot, *, source: StatusSource | None = None) -> CacheEntry:
        """
        Swap in an entry with one site's snapshot replaced.

        An empty cache stays empty: a single probe never counts as a round.
        When ``source`` is given and differs from the cached round's source the
        entry is left alone, so live and static snapshots never share a round.
        Returns the entry that was live before the call.
        """
        with self._lock:
            previous = self._entry
            if previous.is_empty:
                return previous
            if source is not None and previous.source is not StatusSource(source):
                return previous
            self._entry = previous.with_snapshot(snapshot)
        return previous
