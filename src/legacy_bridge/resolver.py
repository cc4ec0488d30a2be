"""Resolve free-form identifiers to Device or Group views."""

from __future__ import annotations

from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.settings import Settings
from legacy_bridge.structs import Device, Entity, Group, MeshDeviceProtocol, MeshDriverProtocol

logger = get_logger(__name__)


class EntityResolver:
    """Joins settings entries with live driver records.

    Lookup order: settings (group id or name, device address or name), then
    live devices by hardware address for devices that have no settings entry.
    Returns None when the identifier names nothing, or names a settings entry
    with no live counterpart.
    """

    lp: str = "resolver:"

    def __init__(self, settings: Settings, driver: MeshDriverProtocol) -> None:
        self.settings = settings
        self.driver = driver

    def resolve(self, identifier: str | int) -> Entity | None:
        entry = self.settings.get_entity(identifier)
        if entry is not None and entry["type"] == "group":
            mesh_group = self.driver.get_group_by_id(entry["ID"])
            if mesh_group is None:
                logger.debug("%s Group '%s' is configured but unknown to the network", self.lp, identifier)
                return None
            return Group(
                id=entry["ID"],
                friendly_name=entry["friendlyName"],
                members=list(entry.get("devices", [])),
                mesh=mesh_group,
            )

        ieee_addr = entry["ID"] if entry is not None else str(identifier)
        mesh_device = self.driver.get_device_by_ieee(ieee_addr)
        if mesh_device is None:
            return None
        return self.device_view(mesh_device)

    def device_view(self, mesh_device: MeshDeviceProtocol) -> Device:
        """Device view for a live record; unconfigured devices are named by address."""
        entry = self.settings.get_device(mesh_device.ieee_addr)
        return Device(
            ieee_addr=mesh_device.ieee_addr,
            network_address=mesh_device.network_address,
            friendly_name=entry["friendlyName"] if entry else mesh_device.ieee_addr,
            definition=self.driver.find_definition(mesh_device),
            mesh=mesh_device,
            settings=entry or {},
        )

    def is_group(self, identifier: str | int) -> bool:
        return self.settings.get_group(identifier) is not None
