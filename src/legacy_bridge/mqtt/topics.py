"""Topic helpers for the legacy ``bridge/config`` namespace."""

from __future__ import annotations

import re


class TopicMatcher:
    """Extracts the command keyword from ``<base>/bridge/config/<rest>``.

    ``<rest>`` must be a word, a word followed by ``/get``, or a word
    followed by ``/factory_reset``; anything else yields None.
    """

    def __init__(self, base_topic: str) -> None:
        self.base_topic: str = base_topic
        self._pattern: re.Pattern[str] = re.compile(
            rf"{re.escape(base_topic)}/bridge/config/(\w+/get|\w+/factory_reset|\w+)",
        )

    def match(self, topic: str) -> str | None:
        found = self._pattern.fullmatch(topic)
        return found.group(1) if found else None

    # outbound topics

    @property
    def log_topic(self) -> str:
        return f"{self.base_topic}/bridge/log"

    @property
    def config_topic(self) -> str:
        return f"{self.base_topic}/bridge/config"

    @property
    def devices_topic(self) -> str:
        return f"{self.base_topic}/bridge/config/devices"

    @property
    def state_topic(self) -> str:
        return f"{self.base_topic}/bridge/state"

    @property
    def subscription(self) -> str:
        return f"{self.base_topic}/bridge/config/#"


def is_get_query(topic: str) -> bool:
    return topic.rsplit("/", 1)[-1] == "get"
