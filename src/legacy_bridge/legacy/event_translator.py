"""Translate mesh lifecycle events into ``bridge/log`` entries.

Also forwards raw bus messages to the command dispatcher, and records the
friendly name of the last device to join for ``rename_last``.
"""

from __future__ import annotations

from typing import assert_never

from legacy_bridge.events import (
    BridgeEvent,
    DeviceAnnounceEvent,
    DeviceInterviewEvent,
    DeviceJoinedEvent,
    DeviceLeaveEvent,
    EventBus,
    MQTTMessageEvent,
)
from legacy_bridge.legacy.log_channel import BridgeLogChannel
from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.mqtt.command_routing import CommandDispatcher
from legacy_bridge.resolver import EntityResolver
from legacy_bridge.structs import InterviewStatus, LastJoinedDevice

logger = get_logger(__name__)


class EventTranslator:
    lp: str = "EventTranslator:"

    def __init__(
        self,
        log_channel: BridgeLogChannel,
        resolver: EntityResolver,
        dispatcher: CommandDispatcher,
        last_joined: LastJoinedDevice,
    ) -> None:
        self.log_channel = log_channel
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.last_joined = last_joined

    def subscribe(self, bus: EventBus) -> None:
        bus.on(BridgeEvent.DEVICE_JOINED, self.on_device_joined, owner=self)
        bus.on(BridgeEvent.DEVICE_INTERVIEW, self.on_device_interview, owner=self)
        bus.on(BridgeEvent.DEVICE_ANNOUNCE, self.on_device_announce, owner=self)
        bus.on(BridgeEvent.DEVICE_LEAVE, self.on_device_leave, owner=self)
        bus.on(BridgeEvent.MQTT_MESSAGE, self.on_mqtt_message, owner=self)

    async def on_device_joined(self, event: DeviceJoinedEvent) -> None:
        friendly_name = self.resolver.device_view(event.device).friendly_name
        self.last_joined.record(friendly_name)
        logger.info("%s Device '%s' joined", self.lp, friendly_name)
        await self.log_channel.send("device_connected", {"friendly_name": friendly_name})

    async def on_device_interview(self, event: DeviceInterviewEvent) -> None:
        device = self.resolver.device_view(event.device)
        status = InterviewStatus(event.status)
        match status:
            case InterviewStatus.SUCCESSFUL:
                if device.definition is not None:
                    meta = {
                        "friendly_name": device.friendly_name,
                        "model": device.definition.model,
                        "vendor": device.definition.vendor,
                        "description": device.definition.description,
                        "supported": True,
                    }
                else:
                    meta = {"friendly_name": device.friendly_name, "supported": False}
                await self.log_channel.send("pairing", "interview_successful", meta)
            case InterviewStatus.FAILED:
                await self.log_channel.send("pairing", "interview_failed", {"friendly_name": device.friendly_name})
            case InterviewStatus.STARTED:
                await self.log_channel.send("pairing", "interview_started", {"friendly_name": device.friendly_name})
            case _:
                assert_never(status)

    async def on_device_announce(self, event: DeviceAnnounceEvent) -> None:
        friendly_name = self.resolver.device_view(event.device).friendly_name
        await self.log_channel.send("device_announced", "announce", {"friendly_name": friendly_name})

    async def on_device_leave(self, event: DeviceLeaveEvent) -> None:
        # settings entry may already be gone, so report the address only
        await self.log_channel.send("device_removed", "left_network", {"friendly_name": event.ieee_addr})

    async def on_mqtt_message(self, event: MQTTMessageEvent) -> None:
        _ = await self.dispatcher.dispatch(event.topic, event.payload)
