"""Tests for NotificationDispatcher and the web push transport."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest
from pywebpush import WebPushException

from farm_alert.domain.alert import Alert
from farm_alert.domain.delivery import DeliveryTarget
from farm_alert.domain.enums import RuleType, Severity
from farm_alert.domain.errors import DeliveryError, DeliveryTargetInvalid
from farm_alert.notify.dispatcher import NotificationDispatcher
from farm_alert.notify.transport import PushTransport, WebPushTransport
from farm_alert.store.subscription_store import InMemorySubscriptionStore

from tests.test_weather import _BASE


class FakeTransport(PushTransport):
    """Records sends; raises the configured exception per endpoint."""

    def __init__(self, failures: dict[str, Exception] | None = None) -> None:
        self.failures = failures or {}
        self.sent: list[tuple[str, dict]] = []

    async def send(self, target: DeliveryTarget, payload: dict) -> None:
        exc = self.failures.get(target.endpoint)
        if exc is not None:
            raise exc
        self.sent.append((target.endpoint, payload))


class BrokenSubscriptions(InMemorySubscriptionStore):
    async def active_targets(self, owner_id: str):
        raise RuntimeError("subscription table locked")


def _alert(**overrides) -> Alert:
    base = {
        "alert_id": uuid4(),
        "site_id": "farm-1",
        "owner_id": "owner-1",
        "rule_type": RuleType.FROST,
        "severity": Severity.HIGH,
        "title": "Frost risk",
        "description": "Frost risk detected. Minimum expected temperature: -1.2°C",
        "recommendation": "Protect crops.",
        "triggered_at": _BASE,
    }
    base.update(overrides)
    return Alert(**base)


async def _subscriptions(*endpoints: str, owner_id: str = "owner-1") -> InMemorySubscriptionStore:
    subs = InMemorySubscriptionStore()
    for endpoint in endpoints:
        await subs.register(owner_id, endpoint, p256dh="key", auth="secret")
    return subs


class TestDispatch:
    @pytest.mark.asyncio
    async def test_delivers_to_every_target(self) -> None:
        subs = await _subscriptions("https://push/a", "https://push/b")
        transport = FakeTransport()
        result = await NotificationDispatcher(subs, transport).dispatch("owner-1", _alert())

        assert result.targets == 2
        assert result.delivered == 2
        assert sorted(e for e, _ in transport.sent) == ["https://push/a", "https://push/b"]

    @pytest.mark.asyncio
    async def test_gone_target_pruned_others_delivered(self) -> None:
        subs = await _subscriptions("https://push/a", "https://push/gone", "https://push/c")
        transport = FakeTransport({"https://push/gone": DeliveryTargetInvalid("https://push/gone", 410)})

        result = await NotificationDispatcher(subs, transport).dispatch("owner-1", _alert())

        assert result.delivered == 2
        assert result.pruned == 1
        remaining = [t.endpoint for t in await subs.active_targets("owner-1")]
        assert "https://push/gone" not in remaining
        assert len(remaining) == 2

    @pytest.mark.asyncio
    async def test_transient_failure_is_dropped_not_pruned(self) -> None:
        subs = await _subscriptions("https://push/a", "https://push/flaky")
        transport = FakeTransport({"https://push/flaky": DeliveryError("https://push/flaky", "timeout")})

        result = await NotificationDispatcher(subs, transport).dispatch("owner-1", _alert())

        assert result.delivered == 1
        assert result.failed == 1
        assert result.pruned == 0
        assert len(await subs.active_targets("owner-1")) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_never_propagates(self) -> None:
        subs = await _subscriptions("https://push/a")
        transport = FakeTransport({"https://push/a": RuntimeError("boom")})
        result = await NotificationDispatcher(subs, transport).dispatch("owner-1", _alert())
        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_no_targets(self) -> None:
        subs = await _subscriptions("https://push/other", owner_id="owner-2")
        transport = FakeTransport()
        result = await NotificationDispatcher(subs, transport).dispatch("owner-1", _alert())
        assert not result.attempted
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_subscription_lookup_failure_is_contained(self) -> None:
        result = await NotificationDispatcher(BrokenSubscriptions(), FakeTransport()).dispatch(
            "owner-1", _alert(),
        )
        assert result.targets == 0


class TestPayload:
    def test_payload_shape(self) -> None:
        alert = _alert()
        dispatcher = NotificationDispatcher(
            InMemorySubscriptionStore(), FakeTransport(), clock=lambda: _BASE + timedelta(minutes=1),
        )
        payload = dispatcher.build_payload(alert)

        assert payload["title"] == "❄️ Frost risk"
        assert payload["body"].startswith("🟠 ")
        assert "-1.2" in payload["body"]
        assert payload["data"]["alert_id"] == str(alert.alert_id)
        assert payload["data"]["type"] == "weather_alert"
        assert payload["data"]["severity"] == "high"
        assert payload["data"]["timestamp"] == (_BASE + timedelta(minutes=1)).isoformat()


class TestWebPushTransport:
    def _target(self) -> DeliveryTarget:
        return DeliveryTarget(owner_id="owner-1", endpoint="https://push/a", p256dh="k", auth="s")

    @pytest.mark.asyncio
    async def test_success(self) -> None:
        transport = WebPushTransport("private-key", "mailto:ops@example.com")
        with patch("farm_alert.notify.transport.webpush") as webpush:
            await transport.send(self._target(), {"title": "t"})
        kwargs = webpush.call_args.kwargs
        assert kwargs["subscription_info"]["endpoint"] == "https://push/a"
        assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 410])
    async def test_gone_status_is_invalid_target(self, status: int) -> None:
        transport = WebPushTransport("private-key", "mailto:ops@example.com")
        exc = WebPushException("gone", response=SimpleNamespace(status_code=status, text="gone"))
        with patch("farm_alert.notify.transport.webpush", side_effect=exc):
            with pytest.raises(DeliveryTargetInvalid) as info:
                await transport.send(self._target(), {"title": "t"})
        assert info.value.status_code == status

    @pytest.mark.asyncio
    async def test_other_status_is_delivery_error(self) -> None:
        transport = WebPushTransport("private-key", "mailto:ops@example.com")
        exc = WebPushException("server", response=SimpleNamespace(status_code=503, text="busy"))
        with patch("farm_alert.notify.transport.webpush", side_effect=exc):
            with pytest.raises(DeliveryError):
                await transport.send(self._target(), {"title": "t"})

    def test_requires_private_key(self) -> None:
        with pytest.raises(ValueError):
            WebPushTransport("", "mailto:ops@example.com")
