from __future__ import annotations

import math
from typing import Iterable, Sequence

from status_checks.models import HealthMetrics, SiteStatus, StatusSnapshot, StatusSource


def round_half_up(value: float) -> int:
    return int(math.floor(float(value) + 0.5))


def overall_status(statuses: Iterable[SiteStatus]) -> SiteStatus:
    worst = SiteStatus.OPERATIONAL
    for status in statuses:
        if status.severity > worst.severity:
            worst = status
    return worst


def _ordered(snapshots: Iterable[StatusSnapshot], order: Sequence[str] | None) -> list[StatusSnapshot]:
    items = list(snapshots)
    if order is None:
        return items
    rank = {site_id: idx for idx, site_id in enumerate(order)}
    # Ids outside the registry order keep their relative position after the known ones.
    return sorted(items, key=lambda s: rank.get(s.site_id, len(rank)))


def compute_health_metrics(
    snapshots: Iterable[StatusSnapshot],
    *,
    order: Sequence[str] | None = None,
    source: StatusSource = StatusSource.LIVE,
) -> HealthMetrics:
    """
    Derive system-wide health from one snapshot set.

    - operational_percentage: share of operational sites, 0 for an empty set
    - average_response_time: mean over operational sites with a timing, else 0
    - sites_with_issues: non-operational ids in registry order
    - status: worst status present (outage > degraded > operational)

    ``source`` is passed through untouched.
    """
    items = _ordered(snapshots, order)
    total = len(items)

    operational = [s for s in items if s.status is SiteStatus.OPERATIONAL]
    if total:
        operational_percentage = round_half_up(100.0 * len(operational) / total)
    else:
        operational_percentage = 0

    timings = [s.response_time_ms for s in operational if s.response_time_ms is not None]
    average_response_time = round_half_up(sum(timings) / len(timings)) if timings else 0

    return HealthMetrics(
        operational_percentage=operational_percentage,
        average_response_time=average_response_time,
        total_sites=total,
        sites_with_issues=tuple(s.site_id for s in items if s.status is not SiteStatus.OPERATIONAL),
        status=overall_status(s.status for s in items),
        source=StatusSource(source),
    )
