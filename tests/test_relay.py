"""Test relay routing logic."""

from __future__ import annotations

import json

import pytest

from gymrelay.core.constants import Role
from gymrelay.core.errors import MessageValidationError
from gymrelay.events import HardwareEvent
from gymrelay.gateway.bus import Bus
from gymrelay.gateway.relay import EventRelay, parse_frame
from gymrelay.gateway.router import Connection, TenantRouter
from tests.harness import RecordingTarget
from tests.mocks import MockTransport


def _setup(strict: bool = False):
    bus = Bus()
    router = TenantRouter()
    relay = EventRelay(router, bus, strict=strict)
    target = RecordingTarget()
    bus.register(target)
    return router, relay, target


def _join(router: TenantRouter, gym: str, role: Role) -> Connection:
    conn = Connection(tenant_id=gym, role=role, transport=MockTransport())
    router.join(conn)
    return conn


class TestParseFrame:
    def test_event_and_data(self):
        text = json.dumps({"event": "cloud-command", "data": {"action": "UNLOCK"}})
        assert parse_frame(text) == ("cloud-command", {"action": "UNLOCK"})

    def test_missing_data_is_none(self):
        assert parse_frame('{"event": "hardware-event"}') == ("hardware-event", None)

    @pytest.mark.parametrize("text", ["not json", "[1, 2]", '{"data": {}}', '{"event": 5}', ""])
    def test_malformed_frames_rejected(self, text):
        with pytest.raises(MessageValidationError) as exc_info:
            parse_frame(text)
        assert exc_info.value.code == "malformed_frame"


class TestCloudCommand:
    def test_admin_command_reaches_bridge(self):
        # Arrange
        router, relay, _ = _setup()
        admin = _join(router, "42", Role.ADMIN)
        bridge = _join(router, "42", Role.BRIDGE)

        # Act
        delivered = relay.handle(admin, "cloud-command", {"action": "UNLOCK", "userId": "101"})

        # Assert
        assert delivered == 1
        assert bridge.transport.sent == [("cloud-command", {"action": "UNLOCK", "userId": "101"})]
        assert admin.transport.sent == []

    def test_command_reaches_other_admins_too(self):
        router, relay, _ = _setup()
        a1 = _join(router, "42", Role.ADMIN)
        a2 = _join(router, "42", Role.ADMIN)

        relay.handle(a1, "cloud-command", {"action": "UNLOCK"})

        assert a2.transport.frames("cloud-command") == [{"action": "UNLOCK"}]

    def test_no_role_enforcement(self):
        router, relay, _ = _setup()
        bridge = _join(router, "42", Role.BRIDGE)
        admin = _join(router, "42", Role.ADMIN)

        relay.handle(bridge, "cloud-command", {"action": "REBOOT"})

        assert admin.transport.frames("cloud-command") == [{"action": "REBOOT"}]

    def test_command_never_crosses_gyms(self):
        router, relay, _ = _setup()
        admin = _join(router, "42", Role.ADMIN)
        other_bridge = _join(router, "7", Role.BRIDGE)

        assert relay.handle(admin, "cloud-command", {"action": "UNLOCK"}) == 0
        assert other_bridge.transport.sent == []

    def test_command_is_not_published_on_bus(self):
        bus = Bus()
        target = RecordingTarget()
        bus.register(target)
        router = TenantRouter()
        relay = EventRelay(router, bus)
        admin = _join(router, "42", Role.ADMIN)
        _join(router, "42", Role.BRIDGE)

        assert relay.handle(admin, "cloud-command", {"action": "UNLOCK", "userId": "101"}) == 1

        assert target.commands == []
        assert target.hardware == []
        assert bus.stats()["published"] == 0
        assert bus.stats()["unclaimed"] == 0


class TestHardwareEvent:
    def test_event_relayed_verbatim_and_published(self):
        # Arrange
        router, relay, target = _setup()
        bridge = _join(router, "42", Role.BRIDGE)
        admin = _join(router, "42", Role.ADMIN)
        payload = {"type": "ATTENDANCE", "userId": 101}

        # Act
        relay.handle(bridge, "hardware-event", payload)

        # Assert
        assert admin.transport.sent == [("hardware-event", {"type": "ATTENDANCE", "userId": 101})]
        assert bridge.transport.sent == []
        assert len(target.hardware) == 1
        evt = target.hardware[0]
        assert isinstance(evt, HardwareEvent)
        assert evt.tenant_id == "42"
        assert evt.type == "ATTENDANCE"
        assert evt.timestamp  # defaulted

    def test_relayed_payload_does_not_gain_timestamp(self):
        router, relay, _ = _setup()
        bridge = _join(router, "42", Role.BRIDGE)
        admin = _join(router, "42", Role.ADMIN)

        relay.handle(bridge, "hardware-event", {"type": "ATTENDANCE"})

        assert "timestamp" not in admin.transport.frames("hardware-event")[0]

    def test_non_object_payload_relayed_not_published(self):
        router, relay, target = _setup()
        bridge = _join(router, "42", Role.BRIDGE)
        admin = _join(router, "42", Role.ADMIN)

        relay.handle(bridge, "hardware-event", "raw-string")

        assert admin.transport.frames("hardware-event") == ["raw-string"]
        assert target.hardware == []

    def test_unknown_fields_pass_through(self):
        router, relay, _ = _setup()
        bridge = _join(router, "42", Role.BRIDGE)
        admin = _join(router, "42", Role.ADMIN)
        payload = {"type": "SCAN", "userId": 1, "finger": "left-index", "nested": {"a": [1, 2]}}

        relay.handle(bridge, "hardware-event", payload)

        assert admin.transport.frames("hardware-event") == [payload]


class TestValidation:
    def test_unknown_event_rejected(self):
        router, relay, _ = _setup()
        conn = _join(router, "42", Role.ADMIN)
        with pytest.raises(MessageValidationError) as exc_info:
            relay.handle(conn, "bridge-status", {"status": "ONLINE"})
        assert exc_info.value.code == "unknown_event"

    def test_lenient_mode_forwards_incomplete_payloads(self):
        router, relay, _ = _setup(strict=False)
        admin = _join(router, "42", Role.ADMIN)
        bridge = _join(router, "42", Role.BRIDGE)

        relay.handle(admin, "cloud-command", {"userId": "1"})

        assert bridge.transport.frames("cloud-command") == [{"userId": "1"}]

    def test_strict_mode_requires_action(self):
        router, relay, _ = _setup(strict=True)
        admin = _join(router, "42", Role.ADMIN)
        bridge = _join(router, "42", Role.BRIDGE)

        with pytest.raises(MessageValidationError) as exc_info:
            relay.handle(admin, "cloud-command", {"userId": "1"})

        assert exc_info.value.code == "invalid_payload"
        assert bridge.transport.sent == []

    def test_strict_mode_requires_hardware_type(self):
        router, relay, target = _setup(strict=True)
        bridge = _join(router, "42", Role.BRIDGE)

        with pytest.raises(MessageValidationError):
            relay.handle(bridge, "hardware-event", "not-an-object")
        assert target.hardware == []

    def test_strict_mode_accepts_valid_payloads(self):
        router, relay, target = _setup(strict=True)
        bridge = _join(router, "42", Role.BRIDGE)
        admin = _join(router, "42", Role.ADMIN)

        relay.handle(bridge, "hardware-event", {"type": "ATTENDANCE", "userId": 1})
        relay.handle(admin, "cloud-command", {"action": "UNLOCK"})

        assert len(target.hardware) == 1
        assert bridge.transport.frames("cloud-command") == [{"action": "UNLOCK"}]
