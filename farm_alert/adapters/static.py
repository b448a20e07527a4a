"""In-process SiteDirectory for embedding and tests."""

from __future__ import annotations

import logging

from farm_alert.adapters.base import SiteDirectory
from farm_alert.domain.weather import Site

logger = logging.getLogger(__name__)


class StaticSiteDirectory(SiteDirectory):
    """A mutable list of sites, kept in registration order.

    Usage:
        directory = StaticSiteDirectory()
        directory.register(Site(site_id="farm-1", owner_id="u1", latitude=48.8, longitude=2.3))
    """

    def __init__(self, sites: list[Site] | None = None) -> None:
        self._sites: dict[str, Site] = {}
        for site in sites or []:
            self.register(site)

    def register(self, site: Site) -> None:
        self._sites[site.site_id] = site
        logger.info("Registered site %s (owner %s)", site.site_id, site.owner_id)

    def remove(self, site_id: str) -> bool:
        return self._sites.pop(site_id, None) is not None

    async def list_active_sites(self) -> list[Site]:
        return list(self._sites.values())
