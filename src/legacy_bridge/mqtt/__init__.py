"""MQTT package for the legacy bridge.

- client.py: broker connection, publishing, inbound message fan-out
- topics.py: ``bridge/config`` topic matching and outbound topic names
- command_routing.py: command registry and dispatcher
"""

from .client import MQTTClient
from .command_routing import CommandDispatcher, CommandRegistry, LegacyCommand
from .topics import TopicMatcher, is_get_query

__all__ = [
    "CommandDispatcher",
    "CommandRegistry",
    "LegacyCommand",
    "MQTTClient",
    "TopicMatcher",
    "is_get_query",
]
