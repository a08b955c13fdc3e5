"""Protocol constants: roles, wire event names, bridge status values."""

from __future__ import annotations

from enum import Enum
from typing import Literal


class Role(str, Enum):
    """Client type declared at handshake."""

    BRIDGE = "BRIDGE"
    ADMIN = "ADMIN"


BridgeStatus = Literal["ONLINE", "OFFLINE"]
ONLINE: BridgeStatus = "ONLINE"
OFFLINE: BridgeStatus = "OFFLINE"

# Inbound
CLOUD_COMMAND = "cloud-command"
HARDWARE_EVENT = "hardware-event"
RELAYED_EVENTS: tuple[str, ...] = (CLOUD_COMMAND, HARDWARE_EVENT)

# Outbound
BRIDGE_STATUS = "bridge-status"
ERROR = "error"

GROUP_PREFIX = "gym_"

# Close code sent after an authentication error frame
CLOSE_AUTH_FAILED = 4001
CLOSE_DUPLICATE_BRIDGE = 4009
