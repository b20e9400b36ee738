from __future__ import annotations

from datetime import datetime, timezone

import pytest

from status_checks.metrics import compute_health_metrics, overall_status, round_half_up
from status_checks.models import SiteStatus, StatusSnapshot, StatusSource


NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _snap(site_id: str, status: SiteStatus, ms: int | None = None) -> StatusSnapshot:
    return StatusSnapshot(site_id=site_id, status=status, checked_at=NOW, response_time_ms=ms)


def test_empty_set_yields_zeroes() -> None:
    m = compute_health_metrics([])
    assert (m.operational_percentage, m.average_response_time) == (0, 0)
    assert m.total_sites == 0
    assert m.sites_with_issues == ()
    assert m.status is SiteStatus.OPERATIONAL


def test_all_operational_percentage_and_average() -> None:
    snaps = [_snap(f"s{i}", SiteStatus.OPERATIONAL, ms) for i, ms in enumerate([100, 200, 300, 400])]
    m = compute_health_metrics(snaps)
    assert (m.operational_percentage, m.average_response_time) == (100, 250)
    assert m.total_sites == 4
    assert m.status is SiteStatus.OPERATIONAL


def test_mixed_set_averages_operational_sites_only() -> None:
    snaps = [
        _snap("a", SiteStatus.OPERATIONAL, 100),
        _snap("b", SiteStatus.DEGRADED, 900),
        _snap("c", SiteStatus.OUTAGE, None),
    ]
    m = compute_health_metrics(snaps)
    assert m.operational_percentage in (33, 34)
    assert m.average_response_time == 100
    assert m.sites_with_issues == ("b", "c")
    assert m.status is SiteStatus.OUTAGE


def test_operational_sites_without_timing_are_skipped_in_average() -> None:
    snaps = [_snap("a", SiteStatus.OPERATIONAL, None), _snap("b", SiteStatus.OPERATIONAL, 120)]
    assert compute_health_metrics(snaps).average_response_time == 120

    only_untimed = [_snap("a", SiteStatus.OPERATIONAL, None)]
    assert compute_health_metrics(only_untimed).average_response_time == 0


@pytest.mark.parametrize(
    ("value", "expected"),
    [(33.333, 33), (66.667, 67), (150.5, 151), (0.5, 1), (0.49, 0)],
)
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


def test_severity_ordering() -> None:
    with_outage = [
        _snap("a", SiteStatus.OPERATIONAL, 10),
        _snap("b", SiteStatus.DEGRADED),
        _snap("c", SiteStatus.OUTAGE),
        _snap("d", SiteStatus.DEGRADED),
    ]
    assert compute_health_metrics(with_outage).status is SiteStatus.OUTAGE

    without_outage = [s if s.status is not SiteStatus.OUTAGE else _snap("c", SiteStatus.DEGRADED) for s in with_outage]
    assert compute_health_metrics(without_outage).status is SiteStatus.DEGRADED

    assert overall_status([]) is SiteStatus.OPERATIONAL


def test_compute_is_deterministic() -> None:
    snaps = [
        _snap("a", SiteStatus.OPERATIONAL, 101),
        _snap("b", SiteStatus.OPERATIONAL, 250),
        _snap("c", SiteStatus.DEGRADED, 3000),
    ]
    first = compute_health_metrics(snaps, source=StatusSource.STATIC)
    second = compute_health_metrics(snaps, source=StatusSource.STATIC)
    assert first == second
    assert first.source is StatusSource.STATIC


def test_sites_with_issues_follow_registry_order() -> None:
    snaps = [
        _snap("z", SiteStatus.OUTAGE),
        _snap("a", SiteStatus.DEGRADED),
        _snap("m", SiteStatus.OPERATIONAL, 50),
    ]
    m = compute_health_metrics(snaps, order=["a", "m", "z"])
    assert m.sites_with_issues == ("a", "z")
    issues = set(m.sites_with_issues)
    assert issues == {s.site_id for s in snaps if s.status is not SiteStatus.OPERATIONAL}


def test_metrics_to_dict_uses_dashboard_keys() -> None:
    m = compute_health_metrics([_snap("a", SiteStatus.OPERATIONAL, 100)])
    assert m.to_dict() == {
        "operationalPercentage": 100,
        "averageResponseTime": 100,
        "totalSites": 1,
        "sitesWithIssues": [],
        "status": "operational",
        "source": "live",
    }
