from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


StatusValue = Literal["operational", "degraded", "outage"]


class ErrorResponse(BaseModel):
    error: str
    message: str | None = None


class HealthResponse(BaseModel):
    ok: bool
    ts: float


class SiteRecord(BaseModel):
    id: str
    name: str
    description: str = ""
    url: str
    icon: str
    status: StatusValue | None = None
    statusText: str | None = None
    lastChecked: str | None = None
    responseTime: int | None = Field(None, ge=0)
    httpStatus: int | None = None
    error: str | None = None


class HealthMetricsModel(BaseModel):
    operationalPercentage: int = Field(..., ge=0, le=100)
    averageResponseTime: int = Field(..., ge=0)
    totalSites: int = Field(..., ge=0)
    sitesWithIssues: list[str]
    status: StatusValue
    source: Literal["live", "static"]


class StatusChangeModel(BaseModel):
    siteId: str
    oldStatus: StatusValue
    newStatus: StatusValue
    occurredAt: str
    severity: Literal["recovery", "warning", "critical"]
    sticky: bool


class StatusResponse(BaseModel):
    timestamp: str
    overall: StatusValue
    metrics: HealthMetricsModel
    sites: list[SiteRecord]
    lastChecked: str | None = None
    events: list[StatusChangeModel] = Field(default_factory=list)


class SiteResponse(BaseModel):
    site: SiteRecord
