from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Mapping, Sequence, Union

from status_checks.models import ChangeSeverity, SiteStatus, StatusChangeEvent, StatusSnapshot, utc_now
from status_checks.sites import SiteRegistry


LOGGER = logging.getLogger("status-monitor")

SnapshotSet = Union[Mapping[str, StatusSnapshot], Iterable[StatusSnapshot]]

_LOG_LEVELS = {
    ChangeSeverity.RECOVERY: logging.INFO,
    ChangeSeverity.WARNING: logging.WARNING,
    ChangeSeverity.CRITICAL: logging.ERROR,
}


def _as_mapping(snapshots: SnapshotSet) -> dict[str, StatusSnapshot]:
    if isinstance(snapshots, Mapping):
        return dict(snapshots)
    return {s.site_id: s for s in snapshots}


def diff_snapshots(
    previous: SnapshotSet,
    current: SnapshotSet,
    *,
    order: Sequence[str] | None = None,
    occurred_at: datetime | None = None,
) -> list[StatusChangeEvent]:
    """
    One event per site present in both rounds whose status changed.

    Sites only in ``current`` (added) or only in ``previous`` (removed) are
    skipped. Events follow ``order`` when given, otherwise the order of
    ``current``.
    """
    prev_by_id = _as_mapping(previous)
    curr_by_id = _as_mapping(current)
    if not prev_by_id or not curr_by_id:
        return []

    if order is None:
        ids = list(curr_by_id)
    else:
        ids = [site_id for site_id in order if site_id in curr_by_id]

    occurred_at = occurred_at or utc_now()
    events: list[StatusChangeEvent] = []
    for site_id in ids:
        old = prev_by_id.get(site_id)
        if old is None:
            continue
        new = curr_by_id[site_id]
        if old.status is new.status:
            continue
        events.append(
            StatusChangeEvent(
                site_id=site_id,
                old_status=old.status,
                new_status=new.status,
                occurred_at=occurred_at,
            )
        )
    return events


def describe_event(event: StatusChangeEvent, site_name: str | None = None) -> str:
    name = site_name or event.site_id
    if event.new_status is SiteStatus.OPERATIONAL:
        return f"{name} is now operational"
    if event.new_status is SiteStatus.DEGRADED:
        return f"{name} is experiencing degraded performance"
    return f"{name} is currently down"


def log_change_event(event: StatusChangeEvent, site_name: str | None = None) -> None:
    LOGGER.log(
        _LOG_LEVELS[event.severity],
        "Status change severity=%s site=%s %s->%s: %s",
        event.severity.value,
        event.site_id,
        event.old_status.value,
        event.new_status.value,
        describe_event(event, site_name),
    )


class ChangeFeed:
    """
    Hands transition events to external consumers through asyncio queues.

    Each subscriber gets its own bounded queue; a full queue drops its oldest
    event so a stalled consumer never blocks a status round.
    """

    def __init__(self, *, maxsize: int = 256) -> None:
        self._maxsize = max(1, int(maxsize))
        self._subscribers: list[asyncio.Queue[StatusChangeEvent]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> asyncio.Queue[StatusChangeEvent]:
        queue: asyncio.Queue[StatusChangeEvent] = asyncio.Queue(maxsize=self._maxsize)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[StatusChangeEvent]) -> None:
        try:
            self._subscribers.remove(queue)
        except ValueError:
            pass

    def publish(self, events: Iterable[StatusChangeEvent]) -> int:
        published = 0
        for event in events:
            published += 1
            for queue in list(self._subscribers):
                if queue.full():
                    dropped = queue.get_nowait()
                    LOGGER.warning(
                        "Change feed subscriber is full; dropped event site=%s %s->%s",
                        dropped.site_id,
                        dropped.old_status.value,
                        dropped.new_status.value,
                    )
                queue.put_nowait(event)
        return published


async def drain_change_events(queue: asyncio.Queue, registry: SiteRegistry) -> None:
    """Log every event arriving on ``queue`` until cancelled."""
    while True:
        event = await queue.get()
        site_name = registry.get(event.site_id).name if event.site_id in registry else None
        log_change_event(event, site_name)
