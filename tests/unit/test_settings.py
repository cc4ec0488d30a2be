"""Unit tests for the YAML settings store."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from conftest import BULB_IEEE, SENSOR_IEEE, JSONDict

from legacy_bridge.exceptions import FriendlyNameConflictError, SettingsError, UnknownEntityError
from legacy_bridge.settings import Settings


class TestSettingsLoad:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        settings = Settings.load(tmp_path / "absent.yaml")

        assert settings.get(["advanced", "last_seen"]) == "disable"
        assert settings.get_groups() == []
        assert settings.get(["ban"]) == []

    def test_round_trip(self, settings_data: JSONDict, settings_path: Path):
        settings_path.write_text(yaml.safe_dump(settings_data))

        settings = Settings.load(settings_path)

        assert settings.base_topic == "mesh2mqtt"
        assert settings.get_device("bulb1") is not None

    def test_non_mapping_rejected(self, settings_path: Path):
        settings_path.write_text("- just\n- a list\n")

        with pytest.raises(SettingsError):
            _ = Settings.load(settings_path)

    def test_mutations_are_persisted(self, settings: Settings, settings_path: Path):
        settings.set(["advanced", "last_seen"], "epoch")

        written = yaml.safe_load(settings_path.read_text())
        assert written["advanced"]["last_seen"] == "epoch"

    def test_in_memory_store_never_writes(self, settings_data: JSONDict, tmp_path: Path):
        settings = Settings(settings_data)

        settings.set(["advanced", "elapsed"], True)

        assert list(tmp_path.iterdir()) == []


class TestEntityLookup:
    def test_device_by_address_and_name(self, settings: Settings):
        by_address = settings.get_device(BULB_IEEE)
        by_name = settings.get_device("bulb1")

        assert by_address == by_name
        assert by_address is not None
        assert by_address["ID"] == BULB_IEEE
        assert by_address["friendlyName"] == "bulb1"

    def test_group_by_id_and_name(self, settings: Settings):
        assert settings.get_group(1) == settings.get_group("1") == settings.get_group("living_room")

    def test_get_entity_tags_type(self, settings: Settings):
        device = settings.get_entity("sensor1")
        group = settings.get_entity("living_room")

        assert device is not None and device["type"] == "device"
        assert group is not None and group["type"] == "group"
        assert settings.get_entity("ghost") is None

    def test_views_are_copies(self, settings: Settings):
        group = settings.get_group(1)
        assert group is not None

        group["devices"].append(SENSOR_IEEE)

        assert settings.get_group(1)["devices"] == [BULB_IEEE]  # type: ignore[index]


class TestMutations:
    def test_change_friendly_name(self, settings: Settings):
        settings.change_friendly_name("bulb1", "kitchen")

        assert settings.get_device("kitchen") is not None
        assert settings.get_device("bulb1") is None

    def test_rename_to_used_name_rejected(self, settings: Settings):
        with pytest.raises(FriendlyNameConflictError):
            settings.change_friendly_name("bulb1", "living_room")

    def test_rename_unknown_rejected(self, settings: Settings):
        with pytest.raises(UnknownEntityError):
            settings.change_friendly_name("ghost", "spirit")

    def test_entity_options_cannot_rename(self, settings: Settings):
        settings.change_entity_options("bulb1", {"friendly_name": "sneaky", "qos": 1})

        device = settings.get_device(BULB_IEEE)
        assert device is not None
        assert device["friendlyName"] == "bulb1"
        assert device["qos"] == 1

    def test_add_group_allocates_next_id(self, settings: Settings):
        group = settings.add_group("kitchen")

        assert group["ID"] == 2
        assert group["devices"] == []

    def test_add_group_rejects_used_id(self, settings: Settings):
        with pytest.raises(SettingsError, match="already in use"):
            _ = settings.add_group("kitchen", 1)

    def test_add_group_rejects_non_numeric_id(self, settings: Settings):
        with pytest.raises(SettingsError, match="not a number"):
            _ = settings.add_group("kitchen", "abc")

    def test_remove_group(self, settings: Settings):
        settings.remove_group("living_room")

        assert settings.get_groups() == []
        with pytest.raises(UnknownEntityError):
            settings.remove_group("living_room")

    def test_remove_device_strips_memberships(self, settings: Settings):
        settings.remove_device(BULB_IEEE)

        assert settings.get_device(BULB_IEEE) is None
        assert settings.get_group(1)["devices"] == []  # type: ignore[index]

    def test_remove_unknown_device_is_ignored(self, settings: Settings, settings_path: Path):
        settings.remove_device("0xdeadbeef")

        assert not settings_path.exists()

    def test_ban_and_whitelist_deduplicate(self, settings: Settings):
        settings.ban_device(BULB_IEEE)
        settings.ban_device(BULB_IEEE)
        settings.whitelist_device(SENSOR_IEEE)
        settings.whitelist_device(SENSOR_IEEE)

        assert settings.get(["ban"]) == [BULB_IEEE]
        assert settings.get(["whitelist"]) == [SENSOR_IEEE]
