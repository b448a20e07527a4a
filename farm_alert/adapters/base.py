"""Abstract contracts for the external collaborators of the alert pipeline.

Architectural rules:
    1. A SnapshotSource returns a fully valid Snapshot or raises
       TransientFetchError.  It never touches the alert store.
    2. A SiteDirectory only lists sites; site CRUD lives elsewhere.
    3. No rule logic lives in an adapter — only fetching and mapping.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from farm_alert.domain.weather import Site, Snapshot


class SnapshotSource(ABC):
    """Produces normalized weather snapshots for a site."""

    @abstractmethod
    async def fetch(self, site: Site) -> Snapshot:
        """Return current conditions plus forecast for *site*.

        Raises:
            TransientFetchError: If the provider is unreachable, rate
                limited, or returns something that cannot be normalized.
        """
        ...

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Human-readable name of the weather provider."""
        ...


class SiteDirectory(ABC):
    """Lists the sites the scheduler must monitor."""

    @abstractmethod
    async def list_active_sites(self) -> list[Site]:
        ...
