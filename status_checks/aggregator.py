from __future__ import annotations

import asyncio
import dataclasses
import logging
import time

from status_checks.cache import StatusCache
from status_checks.changes import ChangeFeed, diff_snapshots
from status_checks.checker import DEFAULT_TIMEOUT_SECONDS, HealthChecker
from status_checks.errors import AggregationError, StatusCheckError
from status_checks.metrics import compute_health_metrics
from status_checks.models import AggregateResult, CacheEntry, StatusChangeEvent, StatusSnapshot, utc_now
from status_checks.sites import SiteRegistry


LOGGER = logging.getLogger("status-monitor")

DEFAULT_CACHE_TTL_SECONDS = 30.0
DEFAULT_CHECK_CONCURRENCY = 10


def _log_refresh_outcome(task: asyncio.Task) -> None:
    # Retrieves the exception even when every waiting caller was cancelled.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        LOGGER.warning("Status refresh failed: %s", exc)


class StatusAggregator:
    """
    Serves whole-registry and single-site status from a shared StatusCache.

    Full refreshes are single-flight with block-and-share semantics: while a
    round is running, every caller that needs a refresh (forced or stale)
    awaits that same round and receives its result. A round is published to
    the cache only once every site has a snapshot; on failure the previous
    entry stays in place.
    """

    def __init__(
        self,
        registry: SiteRegistry,
        checker: HealthChecker,
        cache: StatusCache | None = None,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_concurrency: int = DEFAULT_CHECK_CONCURRENCY,
        feed: ChangeFeed | None = None,
        fallback: HealthChecker | None = None,
    ) -> None:
        self.registry = registry
        self.checker = checker
        self.cache = cache if cache is not None else StatusCache()
        self.ttl_seconds = float(ttl_seconds)
        self.timeout_seconds = float(timeout_seconds)
        self.max_concurrency = max(1, int(max_concurrency))
        self.feed = feed if feed is not None else ChangeFeed()
        self.fallback = fallback
        self.rounds_started = 0
        self._inflight: asyncio.Task[AggregateResult] | None = None

    @property
    def refresh_in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def get_all(self, force_refresh: bool = False) -> AggregateResult:
        if not force_refresh:
            entry = self.cache.fresh_entry(self.ttl_seconds)
            if entry is not None:
                return self._build_result(entry, events=(), refreshed=False)

        task = self._inflight
        if task is None or task.done():
            task = asyncio.create_task(self._refresh(), name="status-refresh")
            task.add_done_callback(_log_refresh_outcome)
            self._inflight = task
        else:
            LOGGER.debug("Joining in-flight status refresh")
        # Shielded so one caller going away does not cancel the round for the others.
        return await asyncio.shield(task)

    async def get_one(self, site_id: str, force_refresh: bool = False) -> StatusSnapshot:
        site = self.registry.get(site_id)

        if not force_refresh:
            entry = self.cache.fresh_entry(self.ttl_seconds)
            if entry is not None:
                cached = entry.snapshots.get(site_id)
                if cached is not None:
                    return cached

        try:
            snapshot = await self.checker.check(site, self.timeout_seconds)
        except StatusCheckError:
            raise
        except Exception as e:
            raise AggregationError(f"single-site check failed for {site_id}: {type(e).__name__}: {e}") from e

        # A snapshot from a different source than the cached round is returned but never merged into it.
        previous = self.cache.patch(snapshot, source=self.checker.source)
        if previous.source is not self.checker.source:
            return snapshot
        old = previous.snapshots.get(site_id)
        if old is not None:
            self.feed.publish(diff_snapshots([old], [snapshot], occurred_at=snapshot.checked_at))
        return snapshot

    async def _refresh(self) -> AggregateResult:
        try:
            try:
                return await self._run_round(self.checker)
            except AggregationError:
                if self.fallback is None:
                    raise
                LOGGER.warning("Live status round failed; serving a %s round instead", self.fallback.source.value)
                return await self._run_round(self.fallback)
        finally:
            self._inflight = None

    async def _run_round(self, checker: HealthChecker) -> AggregateResult:
        self.rounds_started += 1
        started = time.perf_counter()
        try:
            snapshots = await self._probe_all(checker)
            missing = [site_id for site_id in self.registry.ids if site_id not in snapshots]
            if missing:
                raise AggregationError(f"incomplete status round; missing sites: {', '.join(missing)}")
            entry = CacheEntry(snapshots=snapshots, fetched_at=utc_now(), source=checker.source)
            result = self._build_result(entry, events=(), refreshed=True)
        except AggregationError:
            raise
        except Exception as e:
            LOGGER.exception("Status round failed")
            raise AggregationError(f"status round failed: {type(e).__name__}: {e}") from e

        # Diff against the entry actually displaced, which may carry single-site
        # patches made while this round was probing.
        previous = self.cache.replace(entry)
        if previous.source is entry.source:
            events = diff_snapshots(
                previous.snapshots,
                entry.snapshots,
                order=self.registry.ids,
                occurred_at=entry.fetched_at,
            )
            result = dataclasses.replace(result, events=tuple(events))
        self.feed.publish(result.events)
        LOGGER.info(
            "Status round done source=%s sites=%s issues=%s overall=%s elapsed_ms=%s",
            entry.source.value,
            result.metrics.total_sites,
            len(result.metrics.sites_with_issues),
            result.metrics.status.value,
            round((time.perf_counter() - started) * 1000.0, 1),
        )
        return result

    async def _probe_all(self, checker: HealthChecker) -> dict[str, StatusSnapshot]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _one(site) -> StatusSnapshot:
            async with semaphore:
                return await checker.check(site, self.timeout_seconds)

        results = await asyncio.gather(*(_one(site) for site in self.registry))
        return {snap.site_id: snap for snap in results}

    def _build_result(
        self,
        entry: CacheEntry,
        *,
        events: tuple[StatusChangeEvent, ...],
        refreshed: bool,
    ) -> AggregateResult:
        ordered = tuple(entry.snapshots[site_id] for site_id in self.registry.ids if site_id in entry.snapshots)
        metrics = compute_health_metrics(ordered, order=self.registry.ids, source=entry.source)
        return AggregateResult(
            snapshots=ordered,
            metrics=metrics,
            events=events,
            fetched_at=entry.fetched_at,
            refreshed=refreshed,
        )
