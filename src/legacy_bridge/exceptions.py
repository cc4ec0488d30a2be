"""Exception types raised by the legacy bridge.

``EntityNotFoundError`` marks a hard failure: a handler asserted that an
entity exists and it did not. Everything else under ``BridgeError`` is
reported by the handler that hit it.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for legacy bridge errors."""


class EntityNotFoundError(BridgeError):
    """A device or group that a command requires does not exist.

    Attributes:
        identifier: The identifier that failed to resolve
        kind: "entity", "device" or "group"

    """

    def __init__(self, identifier: object, kind: str = "entity") -> None:
        self.identifier: object = identifier
        self.kind: str = kind
        super().__init__(f"{kind.capitalize()} '{identifier}' does not exist")


class InvalidPayloadError(BridgeError):
    """Command payload could not be parsed or is missing required fields."""

    def __init__(self, reason: str, payload: str = "") -> None:
        self.reason: str = reason
        self.payload: str = payload
        super().__init__(reason)


class SettingsError(BridgeError):
    """Settings store rejected a mutation."""


class UnknownEntityError(SettingsError):
    """Settings store has no device or group with this identifier."""

    def __init__(self, identifier: object) -> None:
        self.identifier: object = identifier
        super().__init__(f"Device or group '{identifier}' does not exist")


class FriendlyNameConflictError(SettingsError):
    """Friendly name is already used by another device or group."""

    def __init__(self, friendly_name: str) -> None:
        self.friendly_name: str = friendly_name
        super().__init__(f"Friendly name '{friendly_name}' is already in use")


class DriverLoadError(BridgeError):
    """Transceiver driver factory could not be imported or called."""
