from __future__ import annotations

import asyncio
import importlib
import json
import os
import signal
import sys
import time
from collections.abc import Callable
from typing import Any

from legacy_bridge.exceptions import DriverLoadError
from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.structs import GlobalObject

logger = get_logger(__name__)
g = GlobalObject()


def stable_stringify(obj: Any) -> str:
    """Serialize with sorted keys and compact separators, as legacy consumers expect."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def send_signal(signal_num: int):
    """Send a signal to the current process.

    Args:
        signal_num (int): The signal number to send.

    """
    try:
        logger.debug("Sending signal %s to process %s", signal_num, os.getpid())
        os.kill(os.getpid(), signal_num)
    except OSError:
        logger.exception("Failed to send signal %s to process", signal_num)
        raise


def send_sigterm():
    send_signal(signal.SIGTERM)


async def _async_signal_cleanup():
    logger.info("legacy bridge: Starting signal cleanup...")
    if g.mqtt_client:
        logger.debug("Stopping mqtt_client...")
        await g.mqtt_client.stop()
    for task in g.tasks:
        if not task.done():
            logger.debug("legacy bridge: Cancelling task: %s", task.get_name())
            _ = task.cancel()
    logger.info("legacy bridge: Signal cleanup completed")


def signal_handler(signum):
    logger.info("legacy bridge: Intercepted signal: %s (%s)", signal.Signals(signum).name, signum)
    loop = g.loop or asyncio.get_event_loop()
    _ = loop.create_task(_async_signal_cleanup())


def load_factory(path: str) -> Callable[..., Any]:
    """Import ``module:attribute`` and return the attribute.

    Raises:
        DriverLoadError: malformed path, missing module or attribute, or not callable

    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        msg = f"Driver path '{path}' must look like 'package.module:factory'"
        raise DriverLoadError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f"Could not import driver module '{module_name}': {e}"
        raise DriverLoadError(msg) from e
    factory = getattr(module, attr, None)
    if not callable(factory):
        msg = f"Driver factory '{attr}' not found in '{module_name}' or not callable"
        raise DriverLoadError(msg)
    return factory


def check_python_version():
    if sys.version_info < (3, 12):
        logger.error("legacy bridge requires Python 3.12 or newer, running %s", sys.version.split()[0])
        sys.exit(1)
