"""Logging layer for the legacy bridge.

Handlers live on the package root logger so that one call to
``set_log_level`` changes the verbosity of every module at once. Output is
human-readable, JSON lines, or both, and every record carries the
correlation id of the message being handled.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from typing_extensions import override

__all__ = [
    "BridgeLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "configure_logging",
    "get_log_level",
    "get_logger",
    "set_log_level",
]

# legacy verbosity names <-> stdlib levels
_LEVELS_BY_NAME: dict[str, int] = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
_NAMES_BY_LEVEL: dict[int, str] = {level: name for name, level in _LEVELS_BY_NAME.items()}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        from legacy_bridge.correlation import get_correlation_id

        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            log_data["context"] = dict(cast("Mapping[str, object]", extra_data))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Console formatter: timestamp, level, location, short correlation id."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        from legacy_bridge.correlation import get_correlation_id

        correlation_id = get_correlation_id()
        record.correlation_id = f"[{correlation_id[:8]}]" if correlation_id else "[--------]"
        formatted = super().format(record)

        extra_data = getattr(record, "extra_data", None)
        if isinstance(extra_data, Mapping) and extra_data:
            context_map = cast("Mapping[str, object]", extra_data)
            formatted = f"{formatted} | " + " | ".join(f"{k}={v}" for k, v in context_map.items())

        return formatted


def _root_logger() -> logging.Logger:
    from legacy_bridge.const import BRIDGE_LOG_NAME

    return logging.getLogger(BRIDGE_LOG_NAME)


def configure_logging(
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
    level: int | None = None,
) -> logging.Logger:
    """Attach output handlers to the package root logger (idempotent).

    Args:
        log_format: "json", "human" or "both"
        json_file: Path for JSON lines output; JSON output is skipped without one
        human_output: "stdout", "stderr" or a file path
        level: Initial level, defaults to DEBUG when BRIDGE_DEBUG is set

    """
    from legacy_bridge.const import (
        BRIDGE_DEBUG,
        BRIDGE_LOG_FORMAT,
        BRIDGE_LOG_HUMAN_OUTPUT,
        BRIDGE_LOG_JSON_FILE,
    )

    root = _root_logger()
    if root.handlers:
        return root

    log_format = log_format or BRIDGE_LOG_FORMAT
    json_file = json_file or BRIDGE_LOG_JSON_FILE
    human_output = human_output or BRIDGE_LOG_HUMAN_OUTPUT
    if level is None:
        level = logging.DEBUG if BRIDGE_DEBUG else logging.INFO
    root.setLevel(level)

    if log_format in ("json", "both") and json_file:
        try:
            json_path = Path(json_file)
            json_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(json_path, mode="a")
        except OSError as e:
            print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)
        else:
            json_handler.setFormatter(JSONFormatter())
            root.addHandler(json_handler)

    if log_format in ("human", "both"):
        if human_output == "stderr":
            human_handler: logging.Handler = logging.StreamHandler(sys.stderr)
        elif human_output in (None, "", "stdout"):
            human_handler = logging.StreamHandler(sys.stdout)
        else:
            try:
                human_path = Path(human_output)
                human_path.parent.mkdir(parents=True, exist_ok=True)
                human_handler = logging.FileHandler(human_path, mode="a")
            except OSError as e:
                print(f"Warning: Failed to create human log file {human_output}: {e}", file=sys.stderr)
                human_handler = logging.StreamHandler(sys.stdout)
        human_handler.setFormatter(HumanReadableFormatter())
        root.addHandler(human_handler)

    return root


def set_log_level(name: str) -> None:
    """Set package-wide verbosity from a legacy level name.

    Raises:
        ValueError: name is not one of error, warn, info, debug

    """
    try:
        level = _LEVELS_BY_NAME[name.lower()]
    except KeyError:
        msg = f"Unknown log level '{name}'"
        raise ValueError(msg) from None
    _root_logger().setLevel(level)


def get_log_level() -> str:
    """Current package-wide verbosity as a legacy level name."""
    return _NAMES_BY_LEVEL.get(_root_logger().getEffectiveLevel(), "info")


class BridgeLogger:
    """Thin wrapper over a stdlib logger that accepts a structured ``extra`` mapping.

    Child loggers carry no handlers or level of their own; they inherit both
    from the package root logger.
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)

    def _log(self, level: int, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        extra_payload = {"extra_data": dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=extra_payload, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        log_extra = {"extra_data": dict(extra)} if extra else None
        self.logger.exception(msg, *args, extra=log_extra, stacklevel=2)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(name: str) -> BridgeLogger:
    """Return a BridgeLogger for a module under the package namespace."""
    return BridgeLogger(name)
