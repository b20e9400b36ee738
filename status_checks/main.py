from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import httpx

from status_checks.aggregator import DEFAULT_CACHE_TTL_SECONDS, DEFAULT_CHECK_CONCURRENCY, StatusAggregator
from status_checks.changes import ChangeFeed, drain_change_events
from status_checks.checker import (
    DEFAULT_SLOW_THRESHOLD_MS,
    DEFAULT_TIMEOUT_SECONDS,
    HealthChecker,
    HttpHealthChecker,
    StaticHealthChecker,
)
from status_checks.models import StatusSource
from status_checks.report import build_status_payload
from status_checks.sites import DEFAULT_CONFIG_PATH, SiteRegistry, load_config, load_registry


LOGGER = logging.getLogger("status-monitor")

USER_AGENT = "status-monitor/0.1 (+uptime probe)"


@dataclass(frozen=True)
class MonitorTuning:
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    slow_threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS
    check_concurrency: int = DEFAULT_CHECK_CONCURRENCY
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    source: StatusSource = StatusSource.LIVE
    static_seed: int | None = None
    # Serve a static round when a live round fails as a whole.
    static_fallback: bool = False


def _coerce_float(value: Any, *, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float(default)


def _coerce_int(value: Any, *, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


def _parse_source(value: Any) -> StatusSource:
    s = str(value or "").strip().lower() or StatusSource.LIVE.value
    try:
        return StatusSource(s)
    except ValueError:
        raise ValueError(f"source must be 'live' or 'static', got {value!r}") from None


def tuning_from_config(config: dict[str, Any]) -> MonitorTuning:
    seed_raw = config.get("static_seed")
    return MonitorTuning(
        timeout_seconds=max(0.1, _coerce_float(config.get("timeout_seconds"), default=DEFAULT_TIMEOUT_SECONDS)),
        slow_threshold_ms=max(1, _coerce_int(config.get("slow_threshold_ms"), default=DEFAULT_SLOW_THRESHOLD_MS)),
        check_concurrency=max(1, _coerce_int(config.get("check_concurrency"), default=DEFAULT_CHECK_CONCURRENCY)),
        cache_ttl_seconds=max(0.0, _coerce_float(config.get("cache_ttl_seconds"), default=DEFAULT_CACHE_TTL_SECONDS)),
        source=_parse_source(config.get("source")),
        static_seed=None if seed_raw is None else _coerce_int(seed_raw, default=0),
        static_fallback=bool(config.get("static_fallback", False)),
    )


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(headers={"User-Agent": USER_AGENT})


def build_checker(tuning: MonitorTuning, http_client: httpx.AsyncClient | None) -> HealthChecker:
    if tuning.source is StatusSource.STATIC:
        return StaticHealthChecker(seed=tuning.static_seed)
    if http_client is None:
        raise ValueError("live source requires an http client")
    return HttpHealthChecker(http_client, slow_threshold_ms=tuning.slow_threshold_ms)


def build_aggregator(
    registry: SiteRegistry,
    tuning: MonitorTuning,
    http_client: httpx.AsyncClient | None,
    *,
    feed: ChangeFeed | None = None,
) -> StatusAggregator:
    fallback = None
    if tuning.static_fallback and tuning.source is StatusSource.LIVE:
        fallback = StaticHealthChecker(seed=tuning.static_seed)
    return StatusAggregator(
        registry,
        build_checker(tuning, http_client),
        ttl_seconds=tuning.cache_ttl_seconds,
        timeout_seconds=tuning.timeout_seconds,
        max_concurrency=tuning.check_concurrency,
        feed=feed,
        fallback=fallback,
    )


async def run_loop(config_path: Path, *, once: bool, interval_seconds: float, static: bool = False) -> int:
    config = load_config(config_path)
    registry = load_registry(config)
    tuning = tuning_from_config(config)
    if static:
        tuning = replace(tuning, source=StatusSource.STATIC)

    LOGGER.info(
        "Monitoring %s site(s) source=%s concurrency=%s timeout=%ss",
        len(registry),
        tuning.source.value,
        tuning.check_concurrency,
        tuning.timeout_seconds,
    )

    feed = ChangeFeed()
    queue = feed.subscribe()
    async with build_http_client() as http_client:
        aggregator = build_aggregator(registry, tuning, http_client, feed=feed)
        drain = asyncio.create_task(drain_change_events(queue, registry))
        try:
            while True:
                result = await aggregator.get_all(force_refresh=True)
                if once:
                    payload = build_status_payload(result, registry)
                    print(json.dumps(payload, indent=2, ensure_ascii=False))
                    # Any issue makes the one-shot run fail for cron/CI callers.
                    return 0 if not result.metrics.sites_with_issues else 1
                await asyncio.sleep(max(1.0, float(interval_seconds)))
        finally:
            drain.cancel()
            try:
                await drain
            except asyncio.CancelledError:
                pass


def main() -> int:
    parser = argparse.ArgumentParser(description="Site status monitor")
    parser.add_argument(
        "--config",
        default=os.getenv("STATUS_MONITOR_CONFIG_PATH", str(DEFAULT_CONFIG_PATH)),
        help="Path to YAML config (site registry + probe tuning)",
    )
    parser.add_argument("--once", action="store_true", help="Run one status round, print JSON and exit")
    parser.add_argument(
        "--interval",
        type=float,
        default=60.0,
        help="Seconds between rounds when polling",
    )
    parser.add_argument("--static", action="store_true", help="Use simulated statuses instead of live probes")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (INFO, WARNING, ...)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return asyncio.run(
        run_loop(Path(args.config), once=bool(args.once), interval_seconds=args.interval, static=bool(args.static))
    )


if __name__ == "__main__":
    raise SystemExit(main())
