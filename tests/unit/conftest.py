"""Shared fixtures for unit tests.

Provides an in-memory settings store, a MagicMock transceiver driver with a
coordinator, two end devices and one network group, and an AsyncMock bus
client whose publishes can be inspected with the helpers below.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from legacy_bridge.events import EventBus
from legacy_bridge.legacy import BridgeLegacy
from legacy_bridge.mqtt.topics import TopicMatcher
from legacy_bridge.settings import Settings
from legacy_bridge.state import State
from legacy_bridge.structs import CoordinatorMeta, CoordinatorVersion, Definition

BASE_TOPIC = "mesh2mqtt"
COORDINATOR_IEEE = "0x00124b0018e1f0a1"
BULB_IEEE = "0x00158d0001a2b3c4"
SENSOR_IEEE = "0x00158d000ffffff1"

DEFINITIONS: dict[str, Definition] = {
    "LED1545G12": Definition(model="LED1545G12", vendor="IKEA", description="TRADFRI bulb E27 980 lumen"),
}

JSONDict = dict[str, Any]


def make_mesh_device(
    ieee_addr: str,
    device_type: str = "Router",
    model_id: str | None = "LED1545G12",
    network_address: int = 0x1A2B,
) -> MagicMock:
    """Driver-side device record with AsyncMock removal methods."""
    device = MagicMock()
    device.ieee_addr = ieee_addr
    device.network_address = network_address
    device.type = device_type
    device.model_id = model_id
    device.manufacturer_id = 4476
    device.manufacturer_name = "IKEA of Sweden"
    device.power_source = "Mains (single phase)"
    device.hardware_version = 1
    device.software_build_id = "2.0.022"
    device.date_code = "20190311"
    device.last_seen = 1700000000000
    device.remove_from_network = AsyncMock()
    device.remove_from_database = AsyncMock()
    return device


def make_mesh_group(group_id: int, members: list[MagicMock] | None = None) -> MagicMock:
    group = MagicMock()
    group.group_id = group_id
    group.members = members or []
    group.remove_from_network = AsyncMock()
    group.remove_from_database = AsyncMock()
    return group


@pytest.fixture(autouse=True)
def _restore_log_level() -> Iterator[None]:
    """Undo package-wide level changes made by log_level commands."""
    root = logging.getLogger("legacy_bridge")
    level = root.level
    yield
    root.setLevel(level)


@pytest.fixture
def settings_data() -> JSONDict:
    return {
        "mqtt": {"base_topic": BASE_TOPIC},
        "advanced": {"last_seen": "disable", "elapsed": False},
        "devices": {
            BULB_IEEE: {"friendly_name": "bulb1", "retain": False},
            SENSOR_IEEE: {"friendly_name": "sensor1"},
        },
        "groups": {
            "1": {"friendly_name": "living_room", "devices": [BULB_IEEE]},
        },
        "ban": [],
        "whitelist": [],
    }


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "configuration.yaml"


@pytest.fixture
def settings(settings_data: JSONDict, settings_path: Path) -> Settings:
    return Settings(settings_data, settings_path)


@pytest.fixture
def mesh_devices() -> dict[str, MagicMock]:
    return {
        COORDINATOR_IEEE: make_mesh_device(COORDINATOR_IEEE, "Coordinator", None, 0x0000),
        BULB_IEEE: make_mesh_device(BULB_IEEE),
        SENSOR_IEEE: make_mesh_device(SENSOR_IEEE, "EndDevice", "lumi.sensor_unknown", 0x3C4D),
    }


@pytest.fixture
def mesh_groups(mesh_devices: dict[str, MagicMock]) -> dict[int, MagicMock]:
    return {1: make_mesh_group(1, [mesh_devices[BULB_IEEE]])}


@pytest.fixture
def mock_driver(mesh_devices: dict[str, MagicMock], mesh_groups: dict[int, MagicMock]) -> MagicMock:
    """Transceiver driver fake backed by the mesh_devices / mesh_groups dicts."""

    async def _create_group(group_id: int) -> MagicMock:
        group = make_mesh_group(group_id)
        mesh_groups[group_id] = group
        return group

    driver = MagicMock()
    driver.permit_join = AsyncMock()
    driver.get_permit_join = MagicMock(return_value=False)
    driver.reset = AsyncMock()
    driver.get_coordinator_version = AsyncMock(
        return_value=CoordinatorVersion(type="zStack3x0", meta=CoordinatorMeta(revision=20210708)),
    )
    driver.get_network_parameters = AsyncMock(
        return_value={"panID": 6754, "extendedPanID": "0xdddddddddddddddd", "channel": 11},
    )
    driver.get_devices = MagicMock(side_effect=lambda: list(mesh_devices.values()))
    driver.get_device_by_ieee = MagicMock(side_effect=mesh_devices.get)
    driver.get_group_by_id = MagicMock(side_effect=lambda group_id: mesh_groups.get(int(group_id)))
    driver.create_group = AsyncMock(side_effect=_create_group)
    driver.touchlink_factory_reset_first = AsyncMock(return_value=True)
    driver.find_definition = MagicMock(side_effect=lambda device: DEFINITIONS.get(device.model_id))
    return driver


@pytest.fixture
def mock_mqtt_client() -> AsyncMock:
    """Bus client fake; publish always succeeds."""
    client: AsyncMock = AsyncMock()
    client.publish = AsyncMock(return_value=True)
    return client


@pytest.fixture
def topics() -> TopicMatcher:
    return TopicMatcher(BASE_TOPIC)


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def state() -> State:
    runtime_state = State()
    _ = runtime_state.set(BULB_IEEE, {"state": "ON", "brightness": 200})
    return runtime_state


@pytest.fixture
def bridge(
    settings: Settings,
    mock_driver: MagicMock,
    state: State,
    event_bus: EventBus,
    mock_mqtt_client: AsyncMock,
    topics: TopicMatcher,
) -> BridgeLegacy:
    return BridgeLegacy(settings, mock_driver, state, event_bus, mock_mqtt_client, topics, commit="abc1234")


def config_topic(command: str) -> str:
    return f"{BASE_TOPIC}/bridge/config/{command}"


def published(client: AsyncMock, topic: str) -> list[tuple[str, dict[str, Any]]]:
    """(payload, kwargs) for every publish to ``topic``, in order."""
    return [
        (call.args[1], dict(call.kwargs))
        for call in client.publish.await_args_list
        if call.args[0] == topic
    ]


def log_entries(client: AsyncMock) -> list[JSONDict]:
    """Decoded ``bridge/log`` envelopes, in publish order."""
    return [json.loads(payload) for payload, _ in published(client, f"{BASE_TOPIC}/bridge/log")]
