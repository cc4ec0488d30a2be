"""Unit tests for helpers in utils, version and main."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from _pytest.monkeypatch import MonkeyPatch

from legacy_bridge import version
from legacy_bridge.events import EventBus
from legacy_bridge.exceptions import DriverLoadError
from legacy_bridge.main import load_driver
from legacy_bridge.utils import load_factory, stable_stringify


class TestStableStringify:
    def test_sorted_and_compact(self):
        assert stable_stringify({"b": 1, "a": {"d": [1, 2], "c": None}}) == '{"a":{"c":null,"d":[1,2]},"b":1}'

    def test_insertion_order_does_not_matter(self):
        assert stable_stringify({"x": 1, "y": 2}) == stable_stringify({"y": 2, "x": 1})


class TestLoadFactory:
    def test_resolves_attribute(self):
        assert load_factory("legacy_bridge.utils:stable_stringify") is stable_stringify

    @pytest.mark.parametrize("path", ["legacy_bridge.utils", ":factory", "legacy_bridge.utils:"])
    def test_malformed_path(self, path: str):
        with pytest.raises(DriverLoadError, match="must look like"):
            _ = load_factory(path)

    def test_missing_module(self):
        with pytest.raises(DriverLoadError, match="Could not import"):
            _ = load_factory("legacy_bridge.no_such_module:factory")

    def test_missing_attribute(self):
        with pytest.raises(DriverLoadError, match="not found"):
            _ = load_factory("legacy_bridge.utils:no_such_factory")


class TestLoadDriver:
    def test_factory_receives_event_bus(self, monkeypatch: MonkeyPatch):
        driver = MagicMock()
        factory = MagicMock(return_value=driver)
        monkeypatch.setattr("legacy_bridge.main.load_factory", lambda _path: factory)
        bus = EventBus()

        assert load_driver("acme.mesh:create", bus) is driver
        factory.assert_called_once_with(bus)

    def test_factory_failure_wrapped(self, monkeypatch: MonkeyPatch):
        monkeypatch.setattr(
            "legacy_bridge.main.load_factory",
            lambda _path: MagicMock(side_effect=OSError("serial port busy")),
        )

        with pytest.raises(DriverLoadError, match="serial port busy"):
            _ = load_driver("acme.mesh:create", EventBus())


class TestBridgeVersion:
    @pytest.mark.asyncio
    async def test_explicit_commit(self):
        info = await version.get_bridge_version("deadbeef")

        assert info.commit_hash == "deadbeef"
        assert info.version == version.__version__

    @pytest.mark.asyncio
    async def test_unknown_without_hash(self, monkeypatch: MonkeyPatch, tmp_path):
        monkeypatch.setattr(version, "BRIDGE_COMMIT", None)
        monkeypatch.setattr(version, "_HASH_FILE", tmp_path / ".hash")

        info = await version.get_bridge_version()

        assert info.commit_hash == "unknown"

    @pytest.mark.asyncio
    async def test_hash_file(self, monkeypatch: MonkeyPatch, tmp_path):
        hash_file = tmp_path / ".hash"
        _ = hash_file.write_text("1a2b3c\n")
        monkeypatch.setattr(version, "BRIDGE_COMMIT", None)
        monkeypatch.setattr(version, "_HASH_FILE", hash_file)

        info = await version.get_bridge_version()

        assert info.commit_hash == "1a2b3c"
