"""Legacy ``bridge/config`` command surface and ``bridge/log`` event feed."""

from .bridge import BridgeLegacy
from .event_translator import EventTranslator
from .handlers import LegacyCommandHandlers
from .log_channel import BridgeLogChannel
from .state_publisher import StatePublisher

__all__ = [
    "BridgeLegacy",
    "BridgeLogChannel",
    "EventTranslator",
    "LegacyCommandHandlers",
    "StatePublisher",
]
