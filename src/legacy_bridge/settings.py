"""YAML-backed settings store.

Document layout::

    mqtt:
      base_topic: mesh2mqtt
    advanced:
      last_seen: disable
      elapsed: false
    devices:
      '0x00158d0001a2b3c4':
        friendly_name: bulb1
        retain: true
    groups:
      '1':
        friendly_name: living_room
        devices: ['0x00158d0001a2b3c4']
    ban: []
    whitelist: []

Devices are keyed by hardware address and groups by numeric id (stored as
strings, like the legacy file). Friendly names are unique across both
sections.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import yaml

from legacy_bridge.exceptions import FriendlyNameConflictError, SettingsError, UnknownEntityError
from legacy_bridge.logging_abstraction import get_logger

logger = get_logger(__name__)

_DEFAULTS: dict[str, Any] = {
    "mqtt": {},
    "advanced": {"last_seen": "disable", "elapsed": False},
    "devices": {},
    "groups": {},
    "ban": [],
    "whitelist": [],
}


def _is_group_id(identifier: object) -> bool:
    if isinstance(identifier, bool):
        return False
    if isinstance(identifier, int):
        return True
    return isinstance(identifier, str) and identifier.isdigit()


class Settings:
    """In-memory settings document, persisted to ``path`` after every mutation."""

    lp: str = "settings:"

    def __init__(self, data: dict[str, Any] | None = None, path: Path | None = None) -> None:
        self.path: Path | None = path
        self._data: dict[str, Any] = copy.deepcopy(_DEFAULTS)
        for key, value in (data or {}).items():
            self._data[key] = value if value is not None else copy.deepcopy(_DEFAULTS.get(key))
        for section in ("devices", "groups"):
            self._data[section] = {str(k): (v or {}) for k, v in self._data[section].items()}

    @classmethod
    def load(cls, path: Path) -> Settings:
        """Read a settings file; a missing file yields defaults bound to ``path``."""
        lp = f"{cls.lp}load:"
        if not path.exists():
            logger.warning("%s Settings file %s not found, starting with defaults", lp, path)
            return cls(path=path)
        try:
            with path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError:
            logger.exception("%s Failed to parse settings file: %s", lp, path)
            raise
        if not isinstance(data, dict):
            msg = f"Settings file {path} must contain a mapping"
            raise SettingsError(msg)
        logger.info(
            "%s Loaded settings",
            lp,
            extra={"path": str(path), "devices": len(data.get("devices") or {}), "groups": len(data.get("groups") or {})},
        )
        return cls(data, path)

    def write(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w") as f:
            yaml.safe_dump(self._data, f, sort_keys=False, default_flow_style=False)

    def as_dict(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    # generic access

    def get(self, path: list[str] | tuple[str, ...], default: Any = None) -> Any:
        node: Any = self._data
        for key in path:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    def set(self, path: list[str] | tuple[str, ...], value: Any) -> None:
        if not path:
            msg = "Settings path must not be empty"
            raise SettingsError(msg)
        node = self._data
        for key in path[:-1]:
            node = node.setdefault(key, {})
        node[path[-1]] = value
        self.write()

    # entity views

    def _device_view(self, ieee_addr: str) -> dict[str, Any]:
        entry = self._data["devices"][ieee_addr]
        return {**copy.deepcopy(entry), "ID": ieee_addr, "friendlyName": entry.get("friendly_name", ieee_addr)}

    def _group_view(self, group_key: str) -> dict[str, Any]:
        entry = self._data["groups"][group_key]
        return {
            "devices": [],
            **copy.deepcopy(entry),
            "ID": int(group_key),
            "friendlyName": entry.get("friendly_name", f"group_{group_key}"),
        }

    def get_device(self, identifier: str) -> dict[str, Any] | None:
        """Device settings by hardware address or friendly name."""
        if identifier in self._data["devices"]:
            return self._device_view(identifier)
        for ieee_addr, entry in self._data["devices"].items():
            if entry.get("friendly_name") == identifier:
                return self._device_view(ieee_addr)
        return None

    def get_group(self, identifier: str | int) -> dict[str, Any] | None:
        """Group settings by numeric id or friendly name."""
        if _is_group_id(identifier) and str(identifier) in self._data["groups"]:
            return self._group_view(str(identifier))
        for group_key, entry in self._data["groups"].items():
            if entry.get("friendly_name") == identifier:
                return self._group_view(group_key)
        return None

    def get_groups(self) -> list[dict[str, Any]]:
        return [self._group_view(group_key) for group_key in self._data["groups"]]

    def get_entity(self, identifier: str | int) -> dict[str, Any] | None:
        """Device or group settings view tagged with ``type``; groups win on numeric ids."""
        group = self.get_group(identifier)
        if group is not None:
            return {**group, "type": "group"}
        if isinstance(identifier, str):
            device = self.get_device(identifier)
            if device is not None:
                return {**device, "type": "device"}
        return None

    def _name_in_use(self, friendly_name: str) -> bool:
        return self.get_device(friendly_name) is not None or self.get_group(friendly_name) is not None

    # mutations

    def change_friendly_name(self, old: str, new: str) -> None:
        entity = self.get_entity(old)
        if entity is None:
            raise UnknownEntityError(old)
        if new != entity["friendlyName"] and self._name_in_use(new):
            raise FriendlyNameConflictError(new)
        section = "groups" if entity["type"] == "group" else "devices"
        self._data[section][str(entity["ID"])]["friendly_name"] = new
        self.write()

    def change_entity_options(self, identifier: str | int, options: dict[str, Any]) -> None:
        """Merge ``options`` into an entity's settings; friendly_name cannot be changed here."""
        entity = self.get_entity(identifier)
        if entity is None:
            raise UnknownEntityError(identifier)
        section = "groups" if entity["type"] == "group" else "devices"
        entry = self._data[section][str(entity["ID"])]
        entry.update({k: v for k, v in options.items() if k not in ("friendly_name", "ID")})
        self.write()

    def add_group(self, friendly_name: str, group_id: int | str | None = None) -> dict[str, Any]:
        """Register a group; ``group_id`` defaults to one past the highest id in use."""
        if self._name_in_use(friendly_name):
            raise FriendlyNameConflictError(friendly_name)
        if group_id is None:
            used = [int(k) for k in self._data["groups"]]
            group_id = max(used, default=0) + 1
        elif not _is_group_id(group_id):
            msg = f"Group ID '{group_id}' is not a number"
            raise SettingsError(msg)
        group_key = str(int(group_id))
        if group_key in self._data["groups"]:
            msg = f"Group ID '{group_key}' is already in use"
            raise SettingsError(msg)
        self._data["groups"][group_key] = {"friendly_name": friendly_name, "devices": []}
        self.write()
        return self._group_view(group_key)

    def remove_group(self, identifier: str | int) -> None:
        group = self.get_group(identifier)
        if group is None:
            raise UnknownEntityError(identifier)
        del self._data["groups"][str(group["ID"])]
        self.write()

    def remove_device(self, ieee_addr: str) -> None:
        """Drop a device entry and its group memberships; unknown addresses are ignored."""
        changed = self._data["devices"].pop(ieee_addr, None) is not None
        for entry in self._data["groups"].values():
            members = entry.get("devices") or []
            if ieee_addr in members:
                entry["devices"] = [m for m in members if m != ieee_addr]
                changed = True
        if changed:
            self.write()

    def ban_device(self, ieee_addr: str) -> None:
        ban = self._data.setdefault("ban", [])
        if ieee_addr not in ban:
            ban.append(ieee_addr)
            self.write()

    def whitelist_device(self, ieee_addr: str) -> None:
        whitelist = self._data.setdefault("whitelist", [])
        if ieee_addr not in whitelist:
            whitelist.append(ieee_addr)
            self.write()

    @property
    def base_topic(self) -> str | None:
        return self.get(["mqtt", "base_topic"])
