from __future__ import annotations


class StatusCheckError(Exception):
    pass


class ProbeError(StatusCheckError):
    """Raised inside a checker; always converted to an outage snapshot before leaving it."""


class SiteNotFoundError(StatusCheckError):
    def __init__(self, site_id: str) -> None:
        super().__init__(f"site_not_found: {site_id}")
        self.site_id = site_id


class AggregationError(StatusCheckError):
    pass
