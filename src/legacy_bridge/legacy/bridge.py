"""Wiring for the legacy command surface."""

from __future__ import annotations

from legacy_bridge.events import EventBus
from legacy_bridge.legacy.event_translator import EventTranslator
from legacy_bridge.legacy.handlers import LegacyCommandHandlers
from legacy_bridge.legacy.log_channel import BridgeLogChannel, PublisherProtocol
from legacy_bridge.legacy.state_publisher import StatePublisher
from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.mqtt.command_routing import CommandDispatcher, CommandRegistry, LegacyCommand
from legacy_bridge.mqtt.topics import TopicMatcher
from legacy_bridge.resolver import EntityResolver
from legacy_bridge.settings import Settings
from legacy_bridge.state import State
from legacy_bridge.structs import LastJoinedDevice, MeshDriverProtocol

logger = get_logger(__name__)


class BridgeLegacy:
    """Legacy ``bridge/config`` extension.

    Builds the command table once, subscribes to the event bus and publishes
    the retained status snapshot when started. ``stop`` unsubscribes.
    """

    lp: str = "BridgeLegacy:"

    def __init__(
        self,
        settings: Settings,
        driver: MeshDriverProtocol,
        state: State,
        event_bus: EventBus,
        mqtt: PublisherProtocol,
        topics: TopicMatcher,
        commit: str | None = None,
    ) -> None:
        self.event_bus = event_bus
        self.topics = topics
        self.last_joined = LastJoinedDevice()
        self.resolver = EntityResolver(settings, driver)
        self.log_channel = BridgeLogChannel(mqtt, topics)
        self.state_publisher = StatePublisher(mqtt, driver, topics, commit)
        self.handlers = LegacyCommandHandlers(
            settings=settings,
            driver=driver,
            resolver=self.resolver,
            state=state,
            event_bus=event_bus,
            mqtt=mqtt,
            topics=topics,
            log_channel=self.log_channel,
            state_publisher=self.state_publisher,
            last_joined=self.last_joined,
        )
        self.registry = self._build_registry()
        self.dispatcher = CommandDispatcher(topics, self.registry)
        self.translator = EventTranslator(self.log_channel, self.resolver, self.dispatcher, self.last_joined)
        self.translator.subscribe(event_bus)

    def _build_registry(self) -> CommandRegistry:
        h = self.handlers
        registry = CommandRegistry()
        registry.register(LegacyCommand.PERMIT_JOIN, h.permit_join)
        registry.register(LegacyCommand.LAST_SEEN, h.last_seen)
        registry.register(LegacyCommand.ELAPSED, h.elapsed)
        registry.register(LegacyCommand.RESET, h.reset)
        registry.register(LegacyCommand.LOG_LEVEL, h.log_level)
        registry.register(LegacyCommand.DEVICES, h.devices)
        registry.register(LegacyCommand.DEVICES_GET, h.devices)
        registry.register(LegacyCommand.GROUPS, h.groups)
        registry.register(LegacyCommand.RENAME, h.rename)
        registry.register(LegacyCommand.RENAME_LAST, h.rename_last)
        registry.register(LegacyCommand.REMOVE, h.remove)
        registry.register(LegacyCommand.FORCE_REMOVE, h.force_remove)
        registry.register(LegacyCommand.BAN, h.ban)
        registry.register(LegacyCommand.DEVICE_OPTIONS, h.device_options)
        registry.register(LegacyCommand.ADD_GROUP, h.add_group)
        registry.register(LegacyCommand.REMOVE_GROUP, h.remove_group)
        registry.register(LegacyCommand.FORCE_REMOVE_GROUP, h.force_remove_group)
        registry.register(LegacyCommand.WHITELIST, h.whitelist)
        registry.register(LegacyCommand.TOUCHLINK_FACTORY_RESET, h.touchlink_factory_reset)
        registry.freeze()
        return registry

    async def start(self) -> None:
        logger.info("%s Publishing bridge status to %s", self.lp, self.topics.config_topic)
        _ = await self.state_publisher.publish()

    async def stop(self) -> None:
        self.event_bus.remove_listeners(self.translator)
        logger.debug("%s Unsubscribed from event bus", self.lp)
