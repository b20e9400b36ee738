from __future__ import annotations

import os
from dataclasses import dataclass, field, replace

from status_checks.main import MonitorTuning
from status_checks.models import StatusSource
from status_checks.sites import DEFAULT_CONFIG_PATH


def _env_bool(name: str) -> bool | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    s = str(raw).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return None


def _env_int(name: str) -> int | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _env_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    try:
        return float(str(raw).strip())
    except ValueError:
        return None


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return str(default)
    s = str(raw).strip()
    return s if s else str(default)


def _env_source(name: str) -> StatusSource | None:
    raw = str(os.getenv(name) or "").strip().lower()
    if not raw:
        return None
    try:
        return StatusSource(raw)
    except ValueError:
        return None


@dataclass(frozen=True)
class ServiceSettings:
    # Site registry + probe tuning (YAML). The overrides below win when set.
    config_path: str = field(default_factory=lambda: _env_str("STATUS_MONITOR_CONFIG_PATH", str(DEFAULT_CONFIG_PATH)))

    cache_ttl_seconds: float | None = field(default_factory=lambda: _env_float("STATUS_CACHE_TTL_SECONDS"))
    probe_timeout_seconds: float | None = field(default_factory=lambda: _env_float("STATUS_PROBE_TIMEOUT_SECONDS"))
    slow_threshold_ms: int | None = field(default_factory=lambda: _env_int("STATUS_SLOW_THRESHOLD_MS"))
    check_concurrency: int | None = field(default_factory=lambda: _env_int("STATUS_CHECK_CONCURRENCY"))
    source: StatusSource | None = field(default_factory=lambda: _env_source("STATUS_SOURCE"))
    static_seed: int | None = field(default_factory=lambda: _env_int("STATUS_STATIC_SEED"))
    static_fallback: bool | None = field(default_factory=lambda: _env_bool("STATUS_STATIC_FALLBACK"))

    # Web server.
    host: str = field(default_factory=lambda: _env_str("STATUS_API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("STATUS_API_PORT") or 8120)

    def apply(self, tuning: MonitorTuning) -> MonitorTuning:
        overrides: dict[str, object] = {}
        if self.cache_ttl_seconds is not None:
            overrides["cache_ttl_seconds"] = max(0.0, float(self.cache_ttl_seconds))
        if self.probe_timeout_seconds is not None:
            overrides["timeout_seconds"] = max(0.1, float(self.probe_timeout_seconds))
        if self.slow_threshold_ms is not None:
            overrides["slow_threshold_ms"] = max(1, int(self.slow_threshold_ms))
        if self.check_concurrency is not None:
            overrides["check_concurrency"] = max(1, int(self.check_concurrency))
        if self.source is not None:
            overrides["source"] = self.source
        if self.static_seed is not None:
            overrides["static_seed"] = int(self.static_seed)
        if self.static_fallback is not None:
            overrides["static_fallback"] = bool(self.static_fallback)
        return replace(tuning, **overrides) if overrides else tuning
