from __future__ import annotations

from datetime import datetime
from typing import Any

from status_checks.models import AggregateResult, StatusSnapshot, utc_now
from status_checks.sites import SiteDescriptor, SiteRegistry


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def build_site_record(site: SiteDescriptor, snapshot: StatusSnapshot | None) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": site.id,
        "name": site.name,
        "description": site.description,
        "url": site.url,
        "icon": site.icon,
        "status": None,
        "statusText": None,
        "lastChecked": None,
        "responseTime": None,
        "httpStatus": None,
        "error": None,
    }
    if snapshot is None:
        return record
    record.update(
        {
            "status": snapshot.status.value,
            "statusText": snapshot.status.label,
            "lastChecked": _iso(snapshot.checked_at),
            "responseTime": snapshot.response_time_ms,
            "httpStatus": snapshot.http_status,
            "error": snapshot.error_detail,
        }
    )
    return record


def build_status_payload(
    result: AggregateResult,
    registry: SiteRegistry,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Whole-registry response body consumed by the dashboard."""
    by_id = {s.site_id: s for s in result.snapshots}
    sites = [build_site_record(site, by_id.get(site.id)) for site in registry if site.id in by_id]
    return {
        "timestamp": _iso(now or utc_now()),
        "overall": result.metrics.status.value,
        "metrics": result.metrics.to_dict(),
        "sites": sites,
        "lastChecked": _iso(result.fetched_at),
        "events": [e.to_dict() for e in result.events],
    }
