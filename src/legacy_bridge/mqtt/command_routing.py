"""Command routing for the legacy ``bridge/config`` topics.

Maps the keyword extracted by :class:`TopicMatcher` to exactly one handler
and applies the single failure policy of the legacy surface: whatever a
handler does, the dispatcher logs the outcome and carries on.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from enum import StrEnum
from types import MappingProxyType
from typing import TypeAlias

from legacy_bridge.exceptions import EntityNotFoundError
from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.mqtt.topics import TopicMatcher
from legacy_bridge.structs import HandlerOutcome

logger = get_logger(__name__)


class LegacyCommand(StrEnum):
    """Closed set of keywords accepted under ``<base>/bridge/config/``."""

    PERMIT_JOIN = "permit_join"
    LAST_SEEN = "last_seen"
    ELAPSED = "elapsed"
    RESET = "reset"
    LOG_LEVEL = "log_level"
    DEVICES = "devices"
    DEVICES_GET = "devices/get"
    GROUPS = "groups"
    RENAME = "rename"
    RENAME_LAST = "rename_last"
    REMOVE = "remove"
    FORCE_REMOVE = "force_remove"
    BAN = "ban"
    DEVICE_OPTIONS = "device_options"
    ADD_GROUP = "add_group"
    REMOVE_GROUP = "remove_group"
    FORCE_REMOVE_GROUP = "force_remove_group"
    WHITELIST = "whitelist"
    TOUCHLINK_FACTORY_RESET = "touchlink/factory_reset"

    @classmethod
    def from_keyword(cls, keyword: str) -> LegacyCommand | None:
        try:
            return cls(keyword)
        except ValueError:
            return None


CommandHandler: TypeAlias = Callable[[str, str], Awaitable[HandlerOutcome]]


class CommandRegistry:
    """Keyword -> handler table, filled at startup and frozen before use."""

    lp: str = "CommandRegistry:"

    def __init__(self) -> None:
        self._pending: dict[LegacyCommand, CommandHandler] = {}
        self._table: Mapping[LegacyCommand, CommandHandler] | None = None

    def register(self, command: LegacyCommand, handler: CommandHandler) -> None:
        if self._table is not None:
            msg = f"Cannot register '{command}': registry is frozen"
            raise RuntimeError(msg)
        if command in self._pending:
            msg = f"Handler for '{command}' already registered"
            raise ValueError(msg)
        self._pending[command] = handler

    def freeze(self) -> None:
        """Seal the table; every LegacyCommand must have a handler."""
        missing = [command.value for command in LegacyCommand if command not in self._pending]
        if missing:
            msg = f"No handler registered for: {', '.join(missing)}"
            raise ValueError(msg)
        self._table = MappingProxyType(dict(self._pending))
        logger.debug("%s Frozen with %d commands", self.lp, len(self._table))

    @property
    def frozen(self) -> bool:
        return self._table is not None

    def get(self, command: LegacyCommand) -> CommandHandler:
        if self._table is None:
            msg = "Command registry used before freeze()"
            raise RuntimeError(msg)
        return self._table[command]


class CommandDispatcher:
    """Routes one bus message to its handler and logs the outcome."""

    lp: str = "CommandDispatcher:"

    def __init__(self, matcher: TopicMatcher, registry: CommandRegistry) -> None:
        self.matcher = matcher
        self.registry = registry

    async def dispatch(self, topic: str, payload: str) -> HandlerOutcome | None:
        """Run the handler for ``topic``; None when the topic carries no known command."""
        lp = f"{self.lp}dispatch:"
        keyword = self.matcher.match(topic)
        if keyword is None:
            return None
        command = LegacyCommand.from_keyword(keyword)
        if command is None:
            logger.debug("%s Ignoring unsupported keyword '%s'", lp, keyword)
            return None

        handler = self.registry.get(command)
        logger.debug("%s %s => %s", lp, topic, command.value)
        try:
            outcome = await handler(topic, payload)
        except EntityNotFoundError as e:
            logger.error("%s '%s' failed: %s", lp, command.value, e)
            return HandlerOutcome.failure(str(e))
        except Exception as e:
            logger.exception("%s '%s' raised", lp, command.value)
            return HandlerOutcome.failure(f"{type(e).__name__}: {e}")

        if not outcome.ok:
            logger.debug("%s '%s' reported failure: %s", lp, command.value, outcome.detail)
        return outcome
