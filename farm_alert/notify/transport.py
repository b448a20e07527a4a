"""Push transports.

A PushTransport delivers one payload to one target and classifies failure:
    - DeliveryTargetInvalid: the subscription is gone (HTTP 404/410).
    - DeliveryError:         anything else; the caller logs and drops it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from pywebpush import WebPushException, webpush

from farm_alert.domain.delivery import DeliveryTarget
from farm_alert.domain.errors import DeliveryError, DeliveryTargetInvalid

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = (404, 410)


class PushTransport(ABC):
    @abstractmethod
    async def send(self, target: DeliveryTarget, payload: dict[str, Any]) -> None:
        """Deliver *payload* to *target* or raise a delivery error."""
        ...


class WebPushTransport(PushTransport):
    """Web Push (VAPID) delivery via pywebpush.

    pywebpush is blocking, so each send runs in a worker thread.
    """

    def __init__(
        self,
        vapid_private_key: str,
        vapid_email: str,
        timeout: int = 10,
    ) -> None:
        if not vapid_private_key:
            raise ValueError("vapid_private_key is required for web push")
        self._private_key = vapid_private_key
        self._claims = {"sub": vapid_email}
        self._timeout = timeout

    async def send(self, target: DeliveryTarget, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(self._send_blocking, target, json.dumps(payload))

    def _send_blocking(self, target: DeliveryTarget, data: str) -> None:
        try:
            webpush(
                subscription_info=target.subscription_info(),
                data=data,
                vapid_private_key=self._private_key,
                vapid_claims=dict(self._claims),
                timeout=self._timeout,
            )
        except WebPushException as exc:
            status = getattr(getattr(exc, "response", None), "status_code", None)
            if status in GONE_STATUS_CODES:
                raise DeliveryTargetInvalid(target.endpoint, status) from exc
            raise DeliveryError(target.endpoint, f"web push rejected ({status}): {exc}") from exc
        except Exception as exc:
            raise DeliveryError(target.endpoint, str(exc)) from exc
