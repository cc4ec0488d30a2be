"""Handlers for the legacy ``<base>/bridge/config/<command>`` topics.

Every handler takes ``(topic, message)`` and returns a HandlerOutcome.
Bad input, unknown devices for removal/whitelist and driver failures are
soft: logged, optionally reported on ``bridge/log``, returned as a failure.
Commands that require an entity to exist (``device_options``,
``remove_group``) raise EntityNotFoundError and leave reporting to the
dispatcher.
"""

from __future__ import annotations

import json
from typing import Any

from legacy_bridge.const import (
    ALLOWED_ELAPSED,
    ALLOWED_LAST_SEEN,
    ALLOWED_LOG_LEVELS,
    COORDINATOR_FRIENDLY_NAME,
    REMOVE_DOCS_URL,
)
from legacy_bridge.events import (
    BridgeEvent,
    DeviceRemovedEvent,
    DeviceRenamedEvent,
    EventBus,
    GroupRenamedEvent,
)
from legacy_bridge.exceptions import EntityNotFoundError, InvalidPayloadError, SettingsError
from legacy_bridge.legacy.log_channel import BridgeLogChannel, PublisherProtocol
from legacy_bridge.legacy.state_publisher import StatePublisher
from legacy_bridge.logging_abstraction import get_logger, set_log_level
from legacy_bridge.mqtt.topics import TopicMatcher, is_get_query
from legacy_bridge.resolver import EntityResolver
from legacy_bridge.settings import Settings
from legacy_bridge.state import State
from legacy_bridge.structs import (
    CoordinatorVersion,
    Device,
    Group,
    HandlerOutcome,
    LastJoinedDevice,
    MeshDeviceProtocol,
    MeshDriverProtocol,
    RemovalAction,
)
from legacy_bridge.utils import now_ms, stable_stringify

logger = get_logger(__name__)

RENAME_FORMAT_ERROR = 'Invalid rename message format expected {"old": "friendly_name", "new": "new_name"} got %s'


def _json_object(message: str, *required: str) -> dict[str, Any]:
    """Parse a JSON object payload that must carry every key in ``required``."""
    try:
        data = json.loads(message)
    except json.JSONDecodeError as e:
        msg = "Failed to parse message as JSON"
        raise InvalidPayloadError(msg, message) from e
    if not isinstance(data, dict) or any(key not in data for key in required):
        msg = f"Invalid JSON message, should contain {' and '.join(f'{key!r}' for key in required)}"
        raise InvalidPayloadError(msg, message)
    return data


class LegacyCommandHandlers:
    """The fourteen legacy commands plus the shared rename and removal routines."""

    lp: str = "legacy:"

    def __init__(
        self,
        settings: Settings,
        driver: MeshDriverProtocol,
        resolver: EntityResolver,
        state: State,
        event_bus: EventBus,
        mqtt: PublisherProtocol,
        topics: TopicMatcher,
        log_channel: BridgeLogChannel,
        state_publisher: StatePublisher,
        last_joined: LastJoinedDevice,
    ) -> None:
        self.settings = settings
        self.driver = driver
        self.resolver = resolver
        self.state = state
        self.event_bus = event_bus
        self.mqtt = mqtt
        self.topics = topics
        self.log_channel = log_channel
        self.state_publisher = state_publisher
        self.last_joined = last_joined

    # network / bridge settings

    async def permit_join(self, _topic: str, message: str) -> HandlerOutcome:
        permit = message.lower() == "true"
        await self.driver.permit_join(permit)
        logger.info("%s Permit join set to %s", self.lp, permit)
        await self.state_publisher.publish()
        return HandlerOutcome.success()

    async def reset(self, _topic: str, _message: str) -> HandlerOutcome:
        try:
            await self.driver.reset("soft")
        except Exception as e:
            logger.error("%s Soft reset failed: %s", self.lp, e)
            return HandlerOutcome.failure(f"Soft reset failed: {e}")
        logger.info("%s Soft resetted coordinator", self.lp)
        return HandlerOutcome.success()

    async def last_seen(self, _topic: str, message: str) -> HandlerOutcome:
        if message not in ALLOWED_LAST_SEEN:
            logger.error("%s %s is not an allowed value, possible: %s", self.lp, message, ",".join(ALLOWED_LAST_SEEN))
            return HandlerOutcome.failure(f"'{message}' is not an allowed last_seen value")
        self.settings.set(["advanced", "last_seen"], message)
        logger.info("%s Set last_seen to %s", self.lp, message)
        return HandlerOutcome.success()

    async def elapsed(self, _topic: str, message: str) -> HandlerOutcome:
        if message not in ALLOWED_ELAPSED:
            logger.error("%s %s is not an allowed value, possible: %s", self.lp, message, ",".join(ALLOWED_ELAPSED))
            return HandlerOutcome.failure(f"'{message}' is not an allowed elapsed value")
        self.settings.set(["advanced", "elapsed"], message == "true")
        logger.info("%s Set elapsed to %s", self.lp, message)
        return HandlerOutcome.success()

    async def log_level(self, _topic: str, message: str) -> HandlerOutcome:
        level = message.lower()
        if level not in ALLOWED_LOG_LEVELS:
            logger.error(
                "%s Could not set log level to '%s'. Allowed level: '%s'",
                self.lp,
                level,
                ",".join(ALLOWED_LOG_LEVELS),
            )
            return HandlerOutcome.failure(f"'{level}' is not an allowed log level")
        logger.info("%s Switching log level to '%s'", self.lp, level)
        set_log_level(level)
        await self.state_publisher.publish()
        return HandlerOutcome.success()

    # enumeration

    def _device_payload(self, device: MeshDeviceProtocol, coordinator: CoordinatorVersion) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "ieeeAddr": device.ieee_addr,
            "type": device.type,
            "networkAddress": device.network_address,
        }
        if device.type == "Coordinator":
            payload["friendly_name"] = COORDINATOR_FRIENDLY_NAME
            payload["softwareBuildID"] = coordinator.type
            payload["dateCode"] = str(coordinator.meta.revision)
            payload["lastSeen"] = now_ms()
            return payload

        definition = self.driver.find_definition(device)
        configured = self.settings.get_device(device.ieee_addr)
        payload["model"] = definition.model if definition else device.model_id
        payload["vendor"] = definition.vendor if definition else "-"
        payload["description"] = definition.description if definition else "-"
        payload["friendly_name"] = configured["friendlyName"] if configured else device.ieee_addr
        payload["manufacturerID"] = device.manufacturer_id
        payload["manufacturerName"] = device.manufacturer_name
        payload["powerSource"] = device.power_source
        payload["modelID"] = device.model_id
        payload["hardwareVersion"] = device.hardware_version
        payload["softwareBuildID"] = device.software_build_id
        payload["dateCode"] = device.date_code
        payload["lastSeen"] = device.last_seen
        return payload

    async def devices(self, topic: str, _message: str) -> HandlerOutcome:
        coordinator = await self.driver.get_coordinator_version()
        devices = [self._device_payload(device, coordinator) for device in self.driver.get_devices()]
        if is_get_query(topic):
            await self.mqtt.publish(self.topics.devices_topic, stable_stringify(devices), retain=False)
        else:
            await self.log_channel.send("devices", devices)
        return HandlerOutcome.success(f"{len(devices)} devices")

    async def groups(self, _topic: str, _message: str) -> HandlerOutcome:
        payload = [{k: v for k, v in group.items() if k != "friendlyName"} for group in self.settings.get_groups()]
        await self.log_channel.send("groups", payload)
        return HandlerOutcome.success(f"{len(payload)} groups")

    # renaming

    async def rename(self, _topic: str, message: str) -> HandlerOutcome:
        try:
            data = _json_object(message, "old", "new")
        except InvalidPayloadError:
            data = None
        if data is None or not data["old"] or not data["new"]:
            logger.error(RENAME_FORMAT_ERROR, message)
            return HandlerOutcome.failure("Invalid rename message format")
        return await self._rename(str(data["old"]), str(data["new"]))

    async def rename_last(self, _topic: str, message: str) -> HandlerOutcome:
        last_name = self.last_joined.friendly_name
        if last_name is None:
            logger.error("%s Cannot rename last joined device, no device has joined during this session", self.lp)
            return HandlerOutcome.failure("No device has joined during this session")
        return await self._rename(last_name, message)

    async def _rename(self, from_name: str, to_name: str) -> HandlerOutcome:
        """Rename in settings, announce it, and report; failures leave partial state as is."""
        try:
            is_group = self.resolver.is_group(from_name)
            self.settings.change_friendly_name(from_name, to_name)
            logger.info("%s Successfully renamed - %s to %s", self.lp, from_name, to_name)

            entity = self.resolver.resolve(to_name)
            if isinstance(entity, Group):
                await self.event_bus.emit(
                    BridgeEvent.GROUP_RENAMED,
                    GroupRenamedEvent(group=entity, from_name=from_name, to_name=to_name),
                )
            elif isinstance(entity, Device):
                await self.event_bus.emit(
                    BridgeEvent.DEVICE_RENAMED,
                    DeviceRenamedEvent(device=entity, from_name=from_name, to_name=to_name),
                )
            else:
                raise EntityNotFoundError(to_name)

            await self.log_channel.send(
                f"{'group' if is_group else 'device'}_renamed",
                {"from": from_name, "to": to_name},
            )
        except Exception as e:
            logger.error("%s Failed to rename - %s to %s (%s)", self.lp, from_name, to_name, e)
            return HandlerOutcome.failure(f"Failed to rename {from_name} to {to_name}")
        return HandlerOutcome.success()

    # per-entity settings

    async def device_options(self, _topic: str, message: str) -> HandlerOutcome:
        try:
            data = _json_object(message, "friendly_name", "options")
        except InvalidPayloadError as e:
            logger.error("%s %s", self.lp, e)
            return HandlerOutcome.failure(e.reason)
        options = data["options"]
        if not isinstance(options, dict):
            logger.error("%s Invalid JSON message, \"options\" should be an object", self.lp)
            return HandlerOutcome.failure("options must be an object")

        entity = self.settings.get_entity(data["friendly_name"])
        if entity is None:
            raise EntityNotFoundError(data["friendly_name"])
        self.settings.change_entity_options(entity["ID"], options)
        logger.info(
            "%s Changed device specific options of '%s' (%s)",
            self.lp,
            data["friendly_name"],
            stable_stringify(options),
        )
        return HandlerOutcome.success()

    async def whitelist(self, _topic: str, message: str) -> HandlerOutcome:
        try:
            entity = self.settings.get_entity(message)
            if entity is None:
                raise EntityNotFoundError(message)
            if entity["type"] != "device":
                raise EntityNotFoundError(message, "device")
            self.settings.whitelist_device(str(entity["ID"]))
            logger.info("%s Whitelisted '%s'", self.lp, entity["friendlyName"])
            await self.log_channel.send("device_whitelisted", {"friendly_name": entity["friendlyName"]})
        except Exception as e:
            logger.error("%s Failed to whitelist '%s' '%s'", self.lp, message, e)
            return HandlerOutcome.failure(str(e))
        return HandlerOutcome.success()

    # groups

    async def add_group(self, _topic: str, message: str) -> HandlerOutcome:
        group_id: Any = None
        name: Any = None
        try:
            data: Any = json.loads(message)
        except json.JSONDecodeError:
            data = message
        if isinstance(data, dict):
            if "id" in data:
                group_id = data["id"]
                name = f"group_{group_id}"
            if "friendly_name" in data:
                name = data["friendly_name"]
        elif isinstance(data, str):
            name = data.strip()

        if not name:
            logger.error("%s Failed to add group, missing friendly_name!", self.lp)
            return HandlerOutcome.failure("missing friendly_name")
        name = str(name)

        try:
            group = self.settings.add_group(name, group_id)
        except SettingsError as e:
            logger.error("%s Failed to add group '%s': %s", self.lp, name, e)
            return HandlerOutcome.failure(str(e))

        try:
            await self.driver.create_group(group["ID"])
        except Exception as e:
            self.settings.remove_group(group["ID"])
            logger.error("%s Failed to create group '%s' on the network: %s", self.lp, name, e)
            return HandlerOutcome.failure(f"Failed to create group '{name}'")

        await self.log_channel.send("group_added", name)
        logger.info("%s Added group '%s'", self.lp, name)
        return HandlerOutcome.success()

    async def remove_group(self, _topic: str, message: str) -> HandlerOutcome:
        return await self._remove_group(message, database_only=False)

    async def force_remove_group(self, _topic: str, message: str) -> HandlerOutcome:
        return await self._remove_group(message, database_only=True)

    async def _remove_group(self, message: str, database_only: bool) -> HandlerOutcome:
        entity = self.resolver.resolve(message)
        if not isinstance(entity, Group):
            raise EntityNotFoundError(message, "group")

        if database_only:
            await entity.mesh.remove_from_database()
        else:
            await entity.mesh.remove_from_network()
        self.settings.remove_group(entity.id)

        await self.log_channel.send("group_removed", message)
        logger.info("%s Removed group '%s'", self.lp, entity.friendly_name)
        return HandlerOutcome.success()

    # device removal

    async def remove(self, _topic: str, message: str) -> HandlerOutcome:
        return await self._remove_device(RemovalAction.REMOVE, message)

    async def force_remove(self, _topic: str, message: str) -> HandlerOutcome:
        return await self._remove_device(RemovalAction.FORCE_REMOVE, message)

    async def ban(self, _topic: str, message: str) -> HandlerOutcome:
        return await self._remove_device(RemovalAction.BAN, message)

    async def _remove_device(self, action: RemovalAction, message: str) -> HandlerOutcome:
        """Remove a device from the network (or database only) and forget it.

        A ban adds the address to the ban list whether or not removal worked.
        Identifiers that resolve to a group are never banned.
        """
        identifier = message.strip()
        entity = self.resolver.resolve(identifier)
        if not isinstance(entity, Device):
            logger.error("%s Cannot %s, device '%s' does not exist", self.lp, action.label, message)
            await self.log_channel.send(f"device_{action.outcome}_failed", message)
            if action is RemovalAction.BAN and entity is None:
                configured = self.settings.get_device(identifier)
                self.settings.ban_device(configured["ID"] if configured else identifier)
            return HandlerOutcome.failure(f"Device '{identifier}' does not exist")

        try:
            logger.info("%s %s '%s'", self.lp, action.verb, entity.friendly_name)
            if action.database_only:
                await entity.mesh.remove_from_database()
            else:
                await entity.mesh.remove_from_network()
        except Exception as e:
            logger.error("%s Failed to %s %s (%s)", self.lp, action.label, entity.friendly_name, e)
            logger.error("%s See %s for more info", self.lp, REMOVE_DOCS_URL)
            await self.log_channel.send(f"device_{action.outcome}_failed", message)
            outcome = HandlerOutcome.failure(f"Failed to {action.label} {entity.friendly_name}")
        else:
            await self.event_bus.emit(
                BridgeEvent.DEVICE_REMOVED,
                DeviceRemovedEvent(device=entity, ieee_addr=entity.ieee_addr, friendly_name=entity.friendly_name),
            )
            self.settings.remove_device(entity.ieee_addr)
            self.state.remove(entity.ieee_addr)
            logger.info("%s Successfully %s %s", self.lp, action.outcome, entity.friendly_name)
            await self.log_channel.send(f"device_{action.outcome}", message)
            outcome = HandlerOutcome.success()

        if action is RemovalAction.BAN:
            self.settings.ban_device(entity.ieee_addr)
        return outcome

    # touchlink

    async def touchlink_factory_reset(self, _topic: str, _message: str) -> HandlerOutcome:
        logger.info("%s Starting touchlink factory reset...", self.lp)
        await self.log_channel.send("touchlink", "reset_started", {"status": "started"})
        if await self.driver.touchlink_factory_reset_first():
            logger.info("%s Successfully factory reset device through Touchlink", self.lp)
            await self.log_channel.send("touchlink", "reset_success", {"status": "success"})
            return HandlerOutcome.success()
        logger.warning("%s Failed to factory reset device through Touchlink", self.lp)
        await self.log_channel.send("touchlink", "reset_failed", {"status": "failed"})
        return HandlerOutcome.failure("No touchlink device responded")
