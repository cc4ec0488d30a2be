"""Publisher for ``<base>/bridge/log`` envelopes."""

from __future__ import annotations

from typing import Any, Protocol

from legacy_bridge.mqtt.topics import TopicMatcher
from legacy_bridge.utils import stable_stringify


class PublisherProtocol(Protocol):
    async def publish(self, topic: str, msg_data: str | bytes, retain: bool = False, qos: int = 0) -> bool:
        """Publish to the bus."""
        ...


class BridgeLogChannel:
    """Serializes ``{type, message, meta?}`` envelopes with deterministic key order."""

    def __init__(self, mqtt: PublisherProtocol, topics: TopicMatcher) -> None:
        self.mqtt = mqtt
        self.topics = topics

    async def send(self, log_type: str, message: Any, meta: dict[str, Any] | None = None) -> bool:
        envelope: dict[str, Any] = {"type": log_type, "message": message}
        if meta is not None:
            envelope["meta"] = meta
        return await self.mqtt.publish(self.topics.log_topic, stable_stringify(envelope))
