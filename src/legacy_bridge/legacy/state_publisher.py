"""Retained bridge status snapshot on ``<base>/bridge/config``."""

from __future__ import annotations

from typing import Any

from legacy_bridge.legacy.log_channel import PublisherProtocol
from legacy_bridge.logging_abstraction import get_log_level, get_logger
from legacy_bridge.mqtt.topics import TopicMatcher
from legacy_bridge.structs import MeshDriverProtocol
from legacy_bridge.utils import stable_stringify
from legacy_bridge.version import get_bridge_version

logger = get_logger(__name__)


class StatePublisher:
    lp: str = "StatePublisher:"

    def __init__(
        self,
        mqtt: PublisherProtocol,
        driver: MeshDriverProtocol,
        topics: TopicMatcher,
        commit: str | None = None,
    ) -> None:
        self.mqtt = mqtt
        self.driver = driver
        self.topics = topics
        self.commit = commit

    async def build(self) -> dict[str, Any]:
        info = await get_bridge_version(self.commit)
        coordinator = await self.driver.get_coordinator_version()
        return {
            "version": info.version,
            "commit": info.commit_hash,
            "coordinator": coordinator.model_dump(),
            "network": await self.driver.get_network_parameters(),
            "log_level": get_log_level(),
            "permit_join": self.driver.get_permit_join(),
        }

    async def publish(self) -> bool:
        payload = await self.build()
        logger.debug("%s Publishing bridge status", self.lp, extra={"permit_join": payload["permit_join"]})
        return await self.mqtt.publish(self.topics.config_topic, stable_stringify(payload), retain=True, qos=0)
