"""
Correlation ids for log lines produced while handling one bus message or event.

The id lives in a context variable, so every task spawned for an inbound
message carries its own id and interleaved handlers stay distinguishable.
"""

from __future__ import annotations

import contextvars
import uuid
from collections.abc import Generator
from contextlib import contextmanager

__all__ = [
    "correlation_context",
    "ensure_correlation_id",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "legacy_bridge_correlation_id",
    default=None,
)


def generate_correlation_id() -> str:
    """Return a fresh 32 character hex id."""
    return uuid.uuid4().hex


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: str | None = None) -> Generator[str]:
    """
    Scope a correlation id to a block, restoring the outer id on exit.

    Args:
        correlation_id: Id to use; a new one is generated when omitted

    Yields:
        The id active inside the block

    Example:
        with correlation_context() as corr_id:
            await dispatcher.dispatch(topic, payload)
    """
    previous_id = get_correlation_id()
    active_id = correlation_id or generate_correlation_id()
    set_correlation_id(active_id)
    try:
        yield active_id
    finally:
        set_correlation_id(previous_id)


def ensure_correlation_id() -> str:
    """Return the current id, creating one for task entry points that have none."""
    current_id = get_correlation_id()
    if current_id is None:
        current_id = generate_correlation_id()
        set_correlation_id(current_id)
    return current_id
