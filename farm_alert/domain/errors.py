"""Error taxonomy for the alert pipeline.

Each error is contained at its own level:
    - TransientFetchError:    skip the site, continue the cycle.
    - ConflictError:          benign, the alert is already active.
    - DeliveryTargetInvalid:  prune the push target, continue delivery.
    - DeliveryError:          log and drop, no retry within the cycle.
    - StoreUnavailable:       abort the current cycle, retry next interval.
"""

from __future__ import annotations


class FarmAlertError(Exception):
    """Base class for all farm-alert errors."""


class TransientFetchError(FarmAlertError):
    """The snapshot source could not produce a snapshot for a site."""

    def __init__(self, site_id: str, reason: str) -> None:
        self.site_id = site_id
        self.reason = reason
        super().__init__(f"Snapshot fetch failed for site '{site_id}': {reason}")


class ConflictError(FarmAlertError):
    """An active alert already exists for the (site, rule type) pair."""

    def __init__(self, site_id: str, rule_type: str) -> None:
        self.site_id = site_id
        self.rule_type = rule_type
        super().__init__(f"Active '{rule_type}' alert already exists for site '{site_id}'")


class StoreUnavailable(FarmAlertError):
    """The alert store cannot be read or written."""


class DeliveryTargetInvalid(FarmAlertError):
    """A push target is permanently gone and must be pruned."""

    def __init__(self, endpoint: str, status_code: int | None = None) -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(f"Delivery target gone ({status_code}): {endpoint}")


class DeliveryError(FarmAlertError):
    """A push delivery failed for a reason that may be transient."""

    def __init__(self, endpoint: str, reason: str) -> None:
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(f"Delivery to {endpoint} failed: {reason}")


class SiteNotFoundError(FarmAlertError):
    """An on-demand check named a site that is not active."""
