"""In-process event bus and event payloads.

The transceiver driver emits lifecycle events, the bus client emits raw
message events, and command handlers emit rename/removal events for other
extensions.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, TypeAlias

from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.structs import Device, Group, InterviewStatus, MeshDeviceProtocol

logger = get_logger(__name__)


class BridgeEvent(StrEnum):
    DEVICE_JOINED = "deviceJoined"
    DEVICE_INTERVIEW = "deviceInterview"
    DEVICE_ANNOUNCE = "deviceAnnounce"
    DEVICE_LEAVE = "deviceLeave"
    MQTT_MESSAGE = "mqttMessage"
    DEVICE_RENAMED = "deviceRenamed"
    GROUP_RENAMED = "groupRenamed"
    DEVICE_REMOVED = "deviceRemoved"


@dataclass(frozen=True, slots=True)
class DeviceJoinedEvent:
    device: MeshDeviceProtocol


@dataclass(frozen=True, slots=True)
class DeviceInterviewEvent:
    device: MeshDeviceProtocol
    status: InterviewStatus


@dataclass(frozen=True, slots=True)
class DeviceAnnounceEvent:
    device: MeshDeviceProtocol


@dataclass(frozen=True, slots=True)
class DeviceLeaveEvent:
    ieee_addr: str


@dataclass(frozen=True, slots=True)
class MQTTMessageEvent:
    topic: str
    payload: str


@dataclass(frozen=True, slots=True)
class DeviceRenamedEvent:
    device: Device
    from_name: str
    to_name: str
    homeassistant_rename: bool = False


@dataclass(frozen=True, slots=True)
class GroupRenamedEvent:
    group: Group
    from_name: str
    to_name: str
    homeassistant_rename: bool = False


@dataclass(frozen=True, slots=True)
class DeviceRemovedEvent:
    device: Device
    ieee_addr: str
    friendly_name: str
    external: bool = False


Listener: TypeAlias = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """Named listeners, awaited in registration order on ``emit``."""

    lp: str = "event_bus:"

    def __init__(self) -> None:
        self._listeners: defaultdict[BridgeEvent, list[tuple[object, Listener]]] = defaultdict(list)

    def on(self, event: BridgeEvent, listener: Listener, owner: object = None) -> None:
        self._listeners[event].append((owner, listener))

    def remove_listeners(self, owner: object) -> None:
        """Drop every listener registered by ``owner``."""
        for event, listeners in self._listeners.items():
            self._listeners[event] = [entry for entry in listeners if entry[0] is not owner]

    def listener_count(self, event: BridgeEvent) -> int:
        return len(self._listeners[event])

    async def emit(self, event: BridgeEvent, data: object) -> None:
        lp = f"{self.lp}emit:"
        for _owner, listener in list(self._listeners[event]):
            try:
                result = listener(data)
                if result is not None:
                    await result
            except Exception:
                logger.exception("%s Listener %r failed for event '%s'", lp, listener, event)
