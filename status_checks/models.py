from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class SiteStatus(str, Enum):
    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def label(self) -> str:
        return _LABELS[self]


_SEVERITY = {
    SiteStatus.OPERATIONAL: 0,
    SiteStatus.DEGRADED: 1,
    SiteStatus.OUTAGE: 2,
}

_LABELS = {
    SiteStatus.OPERATIONAL: "Operational",
    SiteStatus.DEGRADED: "Degraded Performance",
    SiteStatus.OUTAGE: "Outage",
}


class StatusSource(str, Enum):
    LIVE = "live"
    STATIC = "static"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StatusSnapshot:
    site_id: str
    status: SiteStatus
    checked_at: datetime
    # None when the probe never completed (timeout).
    response_time_ms: int | None = None
    error_detail: str | None = None
    http_status: int | None = None


@dataclass(frozen=True)
class CacheEntry:
    """
    One complete snapshot round, or the empty pre-first-check entry.

    The mapping is wrapped read-only; a newer round replaces the whole entry.
    """

    snapshots: Mapping[str, StatusSnapshot] = field(default_factory=dict)
    fetched_at: datetime | None = None
    source: StatusSource = StatusSource.LIVE

    def __post_init__(self) -> None:
        if not isinstance(self.snapshots, MappingProxyType):
            object.__setattr__(self, "snapshots", MappingProxyType(dict(self.snapshots)))

    @property
    def is_empty(self) -> bool:
        return not self.snapshots

    def with_snapshot(self, snapshot: StatusSnapshot) -> CacheEntry:
        merged = dict(self.snapshots)
        merged[snapshot.site_id] = snapshot
        return CacheEntry(snapshots=merged, fetched_at=self.fetched_at, source=self.source)


@dataclass(frozen=True)
class HealthMetrics:
    operational_percentage: int
    average_response_time: int
    total_sites: int
    sites_with_issues: tuple[str, ...]
    status: SiteStatus
    source: StatusSource

    def to_dict(self) -> dict[str, Any]:
        return {
            "operationalPercentage": self.operational_percentage,
            "averageResponseTime": self.average_response_time,
            "totalSites": self.total_sites,
            "sitesWithIssues": list(self.sites_with_issues),
            "status": self.status.value,
            "source": self.source.value,
        }


class ChangeSeverity(str, Enum):
    RECOVERY = "recovery"
    WARNING = "warning"
    CRITICAL = "critical"


# Seconds a consumer should keep the signal visible; None means until dismissed.
_DISPLAY_SECONDS: dict[ChangeSeverity, float | None] = {
    ChangeSeverity.RECOVERY: 8.0,
    ChangeSeverity.WARNING: 10.0,
    ChangeSeverity.CRITICAL: None,
}


@dataclass(frozen=True)
class StatusChangeEvent:
    site_id: str
    old_status: SiteStatus
    new_status: SiteStatus
    occurred_at: datetime

    @property
    def severity(self) -> ChangeSeverity:
        if self.new_status is SiteStatus.OPERATIONAL:
            return ChangeSeverity.RECOVERY
        if self.new_status is SiteStatus.DEGRADED:
            return ChangeSeverity.WARNING
        return ChangeSeverity.CRITICAL

    @property
    def sticky(self) -> bool:
        return self.severity is ChangeSeverity.CRITICAL

    @property
    def display_seconds(self) -> float | None:
        return _DISPLAY_SECONDS[self.severity]

    def to_dict(self) -> dict[str, Any]:
        return {
            "siteId": self.site_id,
            "oldStatus": self.old_status.value,
            "newStatus": self.new_status.value,
            "occurredAt": self.occurred_at.isoformat(),
            "severity": self.severity.value,
            "sticky": self.sticky,
        }


@dataclass(frozen=True)
class AggregateResult:
    snapshots: tuple[StatusSnapshot, ...]
    metrics: HealthMetrics
    events: tuple[StatusChangeEvent, ...]
    fetched_at: datetime | None
    # False when served from a fresh cache without probing.
    refreshed: bool
