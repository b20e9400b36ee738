from __future__ import annotations

import asyncio
import logging
import random
import re
import time
from typing import Protocol
from urllib.parse import urlsplit, urlunsplit

import httpx

from status_checks.errors import ProbeError
from status_checks.models import SiteStatus, StatusSnapshot, StatusSource, utc_now
from status_checks.sites import SiteDescriptor


LOGGER = logging.getLogger("status-monitor")

DEFAULT_SLOW_THRESHOLD_MS = 2000
DEFAULT_TIMEOUT_SECONDS = 10.0

DEFAULT_MAINTENANCE_TEXT = [
    "under maintenance",
    "scheduled maintenance",
    "temporarily unavailable",
    "we'll be back",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
]

# Headers a server uses to signal it is answering but not healthy.
WARNING_HEADERS = ("warning", "retry-after")

_SCRIPT_AND_STYLE_RE = re.compile(r"(?is)<(script|style)[^>]*>.*?</\1>")
_HTML_TAG_RE = re.compile(r"(?is)<[^>]+>")


class HealthChecker(Protocol):
    source: StatusSource

    async def check(self, site: SiteDescriptor, timeout: float) -> StatusSnapshot: ...


def _normalize_text(s: str) -> str:
    return re.sub(r"\s+", " ", s).strip().lower()


def _html_to_visible_text(html: str) -> str:
    without_scripts = _SCRIPT_AND_STYLE_RE.sub(" ", html)
    without_tags = _HTML_TAG_RE.sub(" ", without_scripts)
    return _normalize_text(without_tags)


def _safe_url(url: str) -> str:
    """
    Keep querystrings (tokens, tracking ids) out of error details and logs.
    """
    s = (url or "").strip()
    if not s:
        return s
    try:
        parts = urlsplit(s)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    except ValueError:
        return s[:500]


def _elapsed_ms(started: float) -> int:
    return max(0, int(round((time.perf_counter() - started) * 1000.0)))


class HttpHealthChecker:
    """
    Probes a site with a single GET and classifies the answer.

    Every fault (timeout, connection error, unexpected exception) becomes an
    outage snapshot; nothing but cancellation leaves ``check``.
    """

    source = StatusSource.LIVE

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        slow_threshold_ms: int = DEFAULT_SLOW_THRESHOLD_MS,
        warning_text_any: list[str] | None = None,
    ) -> None:
        self._client = client
        self.slow_threshold_ms = max(1, int(slow_threshold_ms))
        if warning_text_any is None:
            warning_text_any = list(DEFAULT_MAINTENANCE_TEXT)
        self.warning_text_any = [t.lower() for t in warning_text_any if t]

    async def check(self, site: SiteDescriptor, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> StatusSnapshot:
        timeout = max(0.001, float(timeout))
        started = time.perf_counter()
        try:
            # httpx enforces per-phase timeouts; the outer guard bounds the whole exchange.
            return await asyncio.wait_for(self._probe(site, timeout, started), timeout=timeout + 1.0)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return StatusSnapshot(
                site_id=site.id,
                status=SiteStatus.OUTAGE,
                checked_at=utc_now(),
                response_time_ms=None,
                error_detail=f"timeout after {timeout:g}s",
            )
        except httpx.RequestError as e:
            return StatusSnapshot(
                site_id=site.id,
                status=SiteStatus.OUTAGE,
                checked_at=utc_now(),
                response_time_ms=_elapsed_ms(started),
                error_detail=f"connection_error: {type(e).__name__}: {e}",
            )
        except Exception as e:
            LOGGER.warning("Probe for site=%s url=%s failed unexpectedly: %s", site.id, _safe_url(site.url), e)
            return StatusSnapshot(
                site_id=site.id,
                status=SiteStatus.OUTAGE,
                checked_at=utc_now(),
                response_time_ms=None,
                error_detail=f"probe_error: {type(e).__name__}: {e}",
            )

    async def _probe(self, site: SiteDescriptor, timeout: float, started: float) -> StatusSnapshot:
        resp = await self._client.get(site.url, follow_redirects=True, timeout=timeout)
        elapsed_ms = _elapsed_ms(started)
        status, detail = self.classify(resp, elapsed_ms)
        return StatusSnapshot(
            site_id=site.id,
            status=status,
            checked_at=utc_now(),
            response_time_ms=elapsed_ms,
            error_detail=detail,
            http_status=resp.status_code,
        )

    def classify(self, resp: httpx.Response, elapsed_ms: int) -> tuple[SiteStatus, str | None]:
        code = resp.status_code
        if code >= 500:
            return SiteStatus.OUTAGE, f"http_status: {code} at {_safe_url(str(resp.url))}"
        if code >= 400:
            return SiteStatus.DEGRADED, f"http_status: {code} at {_safe_url(str(resp.url))}"

        for name in WARNING_HEADERS:
            value = resp.headers.get(name)
            if value is not None:
                return SiteStatus.DEGRADED, f"warning_header: {name}: {str(value)[:200]}"

        if self.warning_text_any:
            try:
                body = resp.text or ""
            except (UnicodeDecodeError, LookupError) as e:
                raise ProbeError(f"undecodable body: {e}") from e
            visible = _html_to_visible_text(body)
            hits = [kw for kw in self.warning_text_any if kw in visible]
            if hits:
                return SiteStatus.DEGRADED, f"maintenance_text: {', '.join(hits)}"

        if elapsed_ms > self.slow_threshold_ms:
            return SiteStatus.DEGRADED, f"slow_response: {elapsed_ms}ms > {self.slow_threshold_ms}ms"

        return SiteStatus.OPERATIONAL, None


class StaticHealthChecker:
    """
    Simulated data source used when live probing is unavailable.

    Roughly 80% of sites come back operational; the rest split evenly between
    degraded and outage. Pass ``seed`` for reproducible rounds.
    """

    source = StatusSource.STATIC

    def __init__(self, seed: int | None = None) -> None:
        self._rng = random.Random(seed)

    async def check(self, site: SiteDescriptor, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> StatusSnapshot:
        roll = self._rng.random()
        if roll > 0.8:
            status = SiteStatus.DEGRADED if self._rng.random() > 0.5 else SiteStatus.OUTAGE
        else:
            status = SiteStatus.OPERATIONAL

        if status is SiteStatus.OUTAGE:
            return StatusSnapshot(
                site_id=site.id,
                status=status,
                checked_at=utc_now(),
                response_time_ms=None,
                error_detail="simulated outage",
            )
        return StatusSnapshot(
            site_id=site.id,
            status=status,
            checked_at=utc_now(),
            response_time_ms=self._rng.randint(100, 600),
        )
