"""Core data structures and typing protocols for the legacy bridge."""

from __future__ import annotations

import asyncio
import os
from argparse import Namespace
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, TypeAlias

from pydantic import BaseModel

from legacy_bridge.const import (
    BRIDGE_BASE_TOPIC,
    BRIDGE_MQTT_CONN_DELAY,
    BRIDGE_MQTT_HOST,
    BRIDGE_MQTT_PASS,
    BRIDGE_MQTT_PORT,
    BRIDGE_MQTT_USER,
    BRIDGE_SETTINGS_FILE,
)

if TYPE_CHECKING:
    from legacy_bridge.mqtt.client import MQTTClient


class Definition(BaseModel):
    """Capability definition resolved for a device model."""

    model: str
    vendor: str
    description: str


class CoordinatorMeta(BaseModel):
    """Firmware metadata reported by the coordinator."""

    revision: int | str = 0
    extra: dict[str, Any] = {}


class CoordinatorVersion(BaseModel):
    """Coordinator radio type and firmware metadata."""

    type: str
    meta: CoordinatorMeta = CoordinatorMeta()


class BridgeVersion(BaseModel):
    version: str
    commit_hash: str


class MeshDeviceProtocol(Protocol):
    """Device record owned by the transceiver driver."""

    ieee_addr: str
    network_address: int
    type: str
    model_id: str | None
    manufacturer_id: int | None
    manufacturer_name: str | None
    power_source: str | None
    hardware_version: int | None
    software_build_id: str | None
    date_code: str | None
    last_seen: int | None

    async def remove_from_network(self) -> None:
        """Ask the device to leave, then drop it from the driver database."""
        ...

    async def remove_from_database(self) -> None:
        """Drop the device from the driver database without contacting it."""
        ...


class MeshGroupProtocol(Protocol):
    """Network-level group owned by the transceiver driver."""

    group_id: int
    members: list[MeshDeviceProtocol]

    async def remove_from_network(self) -> None:
        """Remove the group from every member, then from the driver database."""
        ...

    async def remove_from_database(self) -> None:
        """Drop the group from the driver database only."""
        ...


class MeshDriverProtocol(Protocol):
    """Transceiver driver consumed by the legacy surface."""

    async def permit_join(self, permit: bool) -> None:
        """Open or close the network for joining."""
        ...

    def get_permit_join(self) -> bool:
        """Current join permission."""
        ...

    async def reset(self, kind: str) -> None:
        """Reset the coordinator ("soft" or "hard")."""
        ...

    async def get_coordinator_version(self) -> CoordinatorVersion:
        """Coordinator type and firmware metadata."""
        ...

    async def get_network_parameters(self) -> dict[str, Any]:
        """PAN id, extended PAN id, channel."""
        ...

    def get_devices(self) -> Iterable[MeshDeviceProtocol]:
        """All known devices, coordinator included."""
        ...

    def get_device_by_ieee(self, ieee_addr: str) -> MeshDeviceProtocol | None:
        """Live device with this hardware address."""
        ...

    def get_group_by_id(self, group_id: int) -> MeshGroupProtocol | None:
        """Network group with this id."""
        ...

    async def create_group(self, group_id: int) -> MeshGroupProtocol:
        """Create a network group."""
        ...

    async def touchlink_factory_reset_first(self) -> bool:
        """Factory reset the first touchlink responder; False when none answered."""
        ...

    def find_definition(self, device: MeshDeviceProtocol) -> Definition | None:
        """Capability definition for a device, None when the model is unsupported."""
        ...


@dataclass(frozen=True, slots=True)
class Device:
    """Resolved device: settings view joined with the live driver record."""

    ieee_addr: str
    network_address: int
    friendly_name: str
    definition: Definition | None
    mesh: MeshDeviceProtocol
    settings: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class Group:
    """Resolved group: settings view joined with the network group."""

    id: int
    friendly_name: str
    members: list[str]
    mesh: MeshGroupProtocol


Entity: TypeAlias = Device | Group


class InterviewStatus(StrEnum):
    STARTED = "started"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class RemovalAction(Enum):
    """Device removal variants: (topic keyword, outcome tag, log verb, label)."""

    REMOVE = ("remove", "removed", "Removing", "remove")
    FORCE_REMOVE = ("force_remove", "force_removed", "Force removing", "force remove")
    BAN = ("ban", "banned", "Banning", "ban")

    def __init__(self, keyword: str, outcome: str, verb: str, label: str) -> None:
        self.keyword: str = keyword
        self.outcome: str = outcome
        self.verb: str = verb
        self.label: str = label

    @property
    def database_only(self) -> bool:
        return self is RemovalAction.FORCE_REMOVE


@dataclass(frozen=True, slots=True)
class HandlerOutcome:
    """Result every command handler hands back to the dispatcher."""

    ok: bool
    detail: str | None = None

    @classmethod
    def success(cls, detail: str | None = None) -> HandlerOutcome:
        return cls(ok=True, detail=detail)

    @classmethod
    def failure(cls, detail: str) -> HandlerOutcome:
        return cls(ok=False, detail=detail)


class LastJoinedDevice:
    """Friendly name of the most recent device to join during this process.

    Written by the event translator on every join, read by ``rename_last``.
    """

    __slots__ = ("_friendly_name",)

    def __init__(self) -> None:
        self._friendly_name: str | None = None

    def record(self, friendly_name: str) -> None:
        self._friendly_name = friendly_name

    @property
    def friendly_name(self) -> str | None:
        return self._friendly_name


class BridgeEnv(BaseModel):
    """Environment values re-read after an ``--env`` file is loaded."""

    mqtt_host: str = BRIDGE_MQTT_HOST
    mqtt_port: int = int(BRIDGE_MQTT_PORT)
    mqtt_user: str | None = BRIDGE_MQTT_USER
    mqtt_pass: str | None = BRIDGE_MQTT_PASS
    base_topic: str = BRIDGE_BASE_TOPIC
    mqtt_conn_delay: int = BRIDGE_MQTT_CONN_DELAY
    settings_file: str = BRIDGE_SETTINGS_FILE
    driver: str | None = None
    commit: str | None = None


class GlobalObject:
    """Singleton container for process-wide services."""

    mqtt_client: MQTTClient | None = None
    loop: asyncio.AbstractEventLoop | None = None
    tasks: ClassVar[list[asyncio.Task[Any]]] = []
    env: BridgeEnv = BridgeEnv()
    cli_args: Namespace | None = None

    _instance: GlobalObject | None = None

    def __new__(cls, *_args: Any, **_kwargs: Any) -> GlobalObject:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.reload_env()
        return cls._instance

    def reload_env(self) -> None:
        """Re-evaluate environment variables."""
        self.env.mqtt_host = os.environ.get("BRIDGE_MQTT_HOST", "localhost")
        self.env.mqtt_port = int(os.environ.get("BRIDGE_MQTT_PORT", "1883"))
        self.env.mqtt_user = os.environ.get("BRIDGE_MQTT_USER")
        self.env.mqtt_pass = os.environ.get("BRIDGE_MQTT_PASS")
        self.env.base_topic = os.environ.get("BRIDGE_BASE_TOPIC", BRIDGE_BASE_TOPIC).rstrip("/") or BRIDGE_BASE_TOPIC
        self.env.settings_file = os.environ.get("BRIDGE_SETTINGS_FILE", BRIDGE_SETTINGS_FILE)
        self.env.driver = os.environ.get("BRIDGE_DRIVER") or None
        self.env.commit = os.environ.get("BRIDGE_COMMIT") or None
        try:
            self.env.mqtt_conn_delay = int(os.environ.get("BRIDGE_MQTT_CONN_DELAY", str(BRIDGE_MQTT_CONN_DELAY)))
        except ValueError:
            self.env.mqtt_conn_delay = BRIDGE_MQTT_CONN_DELAY
