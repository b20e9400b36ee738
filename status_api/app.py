from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from status_api.schema import ErrorResponse, HealthResponse, StatusResponse
from status_api.settings import ServiceSettings
from status_checks.aggregator import StatusAggregator
from status_checks.changes import ChangeFeed, drain_change_events
from status_checks.errors import AggregationError, SiteNotFoundError
from status_checks.main import build_aggregator, build_http_client, tuning_from_config
from status_checks.report import build_site_record, build_status_payload
from status_checks.sites import load_config, load_registry


LOGGER = logging.getLogger("status-api")

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _parse_refresh(value: str | None) -> bool:
    return str(value or "").strip().lower() in _TRUTHY


def _error(status_code: int, error: str, message: str | None = None) -> JSONResponse:
    body: dict[str, Any] = {"error": error}
    if message is not None:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def create_app(
    settings: ServiceSettings | None = None,
    *,
    aggregator: StatusAggregator | None = None,
) -> FastAPI:
    app = FastAPI(title="Site Status Monitor", version="0.1.0")
    app.state.settings = settings or ServiceSettings()
    app.state.aggregator = aggregator
    app.state.http_client = None
    app.state.event_task = None

    @app.on_event("startup")
    async def _startup() -> None:
        if app.state.aggregator is None:
            settings2: ServiceSettings = app.state.settings
            config = load_config(Path(settings2.config_path))
            registry = load_registry(config)
            tuning = settings2.apply(tuning_from_config(config))
            app.state.http_client = build_http_client()
            app.state.aggregator = build_aggregator(registry, tuning, app.state.http_client, feed=ChangeFeed())
            LOGGER.info(
                "Serving status for %s site(s) source=%s ttl=%ss",
                len(registry),
                tuning.source.value,
                tuning.cache_ttl_seconds,
            )
        queue = app.state.aggregator.feed.subscribe()
        app.state.event_queue = queue
        app.state.event_task = asyncio.create_task(drain_change_events(queue, app.state.aggregator.registry))

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        task = app.state.event_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            app.state.aggregator.feed.unsubscribe(app.state.event_queue)
        if app.state.http_client is not None:
            await app.state.http_client.aclose()
            app.state.http_client = None

    @app.get("/health", response_model=HealthResponse)
    def health() -> dict[str, Any]:
        return {"ok": True, "ts": time.time()}

    @app.get(
        "/api/status",
        response_model=None,
        responses={
            200: {"model": StatusResponse, "description": "Whole-registry status (or SiteResponse when siteId is set)"},
            404: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
        },
    )
    async def api_status(
        req: Request,
        site_id: str | None = Query(None, alias="siteId"),
        refresh: str | None = None,
    ):
        agg: StatusAggregator = req.app.state.aggregator
        force_refresh = _parse_refresh(refresh)
        try:
            if site_id:
                site = agg.registry.get(site_id)
                snapshot = await agg.get_one(site_id, force_refresh=force_refresh)
                return {"site": build_site_record(site, snapshot)}

            result = await agg.get_all(force_refresh=force_refresh)
            return build_status_payload(result, agg.registry)
        except SiteNotFoundError:
            return _error(404, "Site not found")
        except AggregationError as exc:
            LOGGER.error("Status aggregation failed: %s", exc)
            return _error(500, "Failed to check site status", str(exc))
        except Exception as exc:
            LOGGER.exception("Unexpected error in status endpoint")
            return _error(500, "Failed to check site status", f"internal_error: {type(exc).__name__}")

    return app
