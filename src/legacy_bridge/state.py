"""Last-known device state, keyed by hardware address."""

from __future__ import annotations

from typing import Any

from legacy_bridge.logging_abstraction import get_logger

logger = get_logger(__name__)


class State:
    lp: str = "state:"

    def __init__(self) -> None:
        self._state: dict[str, dict[str, Any]] = {}

    def __contains__(self, ieee_addr: object) -> bool:
        return ieee_addr in self._state

    def get(self, ieee_addr: str) -> dict[str, Any]:
        return dict(self._state.get(ieee_addr, {}))

    def set(self, ieee_addr: str, update: dict[str, Any]) -> dict[str, Any]:
        """Merge ``update`` into the stored state and return the result."""
        merged = {**self._state.get(ieee_addr, {}), **update}
        self._state[ieee_addr] = merged
        return dict(merged)

    def remove(self, ieee_addr: str) -> None:
        if self._state.pop(ieee_addr, None) is not None:
            logger.debug("%s Dropped state for %s", self.lp, ieee_addr)
