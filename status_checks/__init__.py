"""Status checking and aggregation engine for the site status monitor."""

from .aggregator import StatusAggregator
from .cache import StatusCache
from .changes import ChangeFeed, diff_snapshots
from .checker import HttpHealthChecker, StaticHealthChecker
from .errors import AggregationError, SiteNotFoundError, StatusCheckError
from .metrics import compute_health_metrics
from .models import CacheEntry, HealthMetrics, SiteStatus, StatusChangeEvent, StatusSnapshot, StatusSource
from .sites import SiteDescriptor, SiteRegistry

__all__ = [
    "AggregationError",
    "CacheEntry",
    "ChangeFeed",
    "HealthMetrics",
    "HttpHealthChecker",
    "SiteDescriptor",
    "SiteNotFoundError",
    "SiteRegistry",
    "SiteStatus",
    "StaticHealthChecker",
    "StatusAggregator",
    "StatusCache",
    "StatusChangeEvent",
    "StatusCheckError",
    "StatusSnapshot",
    "StatusSource",
    "compute_health_metrics",
    "diff_snapshots",
]
