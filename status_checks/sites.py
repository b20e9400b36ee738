from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Sequence
from urllib.parse import urlsplit

import yaml

from status_checks.errors import SiteNotFoundError


DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yaml")
DEFAULT_ICON = "monitor"


@dataclass(frozen=True)
class SiteDescriptor:
    id: str
    name: str
    url: str
    description: str = ""
    # Symbolic tag only; the dashboard maps it to an icon.
    icon: str = DEFAULT_ICON


class SiteRegistry:
    """Ordered, read-only list of monitored sites."""

    def __init__(self, sites: Sequence[SiteDescriptor]) -> None:
        self._sites = tuple(sites)
        self._by_id: dict[str, SiteDescriptor] = {}
        for site in self._sites:
            if site.id in self._by_id:
                raise ValueError(f"Duplicate site id: {site.id}")
            self._by_id[site.id] = site

    def __iter__(self) -> Iterator[SiteDescriptor]:
        return iter(self._sites)

    def __len__(self) -> int:
        return len(self._sites)

    def __contains__(self, site_id: object) -> bool:
        return site_id in self._by_id

    @property
    def ids(self) -> list[str]:
        return [s.id for s in self._sites]

    def get(self, site_id: str) -> SiteDescriptor:
        try:
            return self._by_id[site_id]
        except KeyError:
            raise SiteNotFoundError(site_id) from None


def load_config(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError("Config YAML must be a mapping")
    return data


def _validate_url(url: str, *, where: str) -> str:
    s = str(url or "").strip()
    parts = urlsplit(s)
    if parts.scheme not in {"http", "https"} or not parts.netloc:
        raise ValueError(f"{where}.url must be an absolute http(s) URL, got {url!r}")
    return s


def normalize_site_entries(sites_cfg: Any) -> list[SiteDescriptor]:
    if not isinstance(sites_cfg, list) or not sites_cfg:
        raise ValueError("Config must contain a non-empty 'sites' list")

    sites: list[SiteDescriptor] = []
    for idx, entry in enumerate(sites_cfg):
        if not isinstance(entry, dict):
            raise ValueError(f"sites[{idx}] must be a mapping, got {type(entry).__name__}")

        site_id = str(entry.get("id") or "").strip()
        if not site_id:
            raise ValueError(f"sites[{idx}].id is required")

        url = _validate_url(entry.get("url"), where=f"sites[{idx}]")
        name = str(entry.get("name") or "").strip() or site_id
        sites.append(
            SiteDescriptor(
                id=site_id,
                name=name,
                url=url,
                description=str(entry.get("description") or "").strip(),
                icon=str(entry.get("icon") or "").strip() or DEFAULT_ICON,
            )
        )
    return sites


def load_registry(config: dict[str, Any]) -> SiteRegistry:
    return SiteRegistry(normalize_site_entries(config.get("sites")))
