"""Main entrypoint and lifecycle management for the legacy bridge service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from functools import partial
from pathlib import Path
from typing import Protocol, cast, runtime_checkable

import dotenv
import uvloop

from legacy_bridge.const import BRIDGE_DEBUG, BRIDGE_VERSION, MQTT_CLIENT_START_TASK_NAME
from legacy_bridge.correlation import correlation_context, ensure_correlation_id
from legacy_bridge.events import EventBus
from legacy_bridge.exceptions import DriverLoadError
from legacy_bridge.legacy import BridgeLegacy
from legacy_bridge.logging_abstraction import configure_logging, get_logger, set_log_level
from legacy_bridge.mqtt import MQTTClient, TopicMatcher
from legacy_bridge.settings import Settings
from legacy_bridge.state import State
from legacy_bridge.structs import GlobalObject, MeshDriverProtocol
from legacy_bridge.utils import check_python_version, load_factory, send_sigterm, signal_handler

logger = get_logger(__name__)

# aiomqtt/paho chatter
mqtt_logger = logging.getLogger("mqtt")
mqtt_logger.setLevel(logging.ERROR)
mqtt_logger.propagate = False

g = GlobalObject()


@runtime_checkable
class _CLIArgs(Protocol):
    debug: bool
    env: Path | None
    driver: str | None
    settings: Path | None


def load_driver(path: str, event_bus: EventBus) -> MeshDriverProtocol:
    """Build the transceiver driver from a ``module:factory`` path."""
    factory = load_factory(path)
    try:
        driver = factory(event_bus)
    except Exception as e:
        msg = f"Driver factory '{path}' failed: {e}"
        raise DriverLoadError(msg) from e
    logger.info("Loaded transceiver driver", extra={"driver": path})
    return cast("MeshDriverProtocol", driver)


class LegacyBridgeService:
    """Singleton owning the event loop, the bus client and the legacy extension."""

    lp: str = "LegacyBridgeService:"
    _instance: LegacyBridgeService | None = None
    _initialized: bool = False

    def __new__(cls, *_args: object, **_kwargs: object) -> LegacyBridgeService:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, *_args: object, **_kwargs: object) -> None:
        if getattr(self, "_initialized", False):
            return
        self._initialized = True
        self.bridge: BridgeLegacy | None = None

        loop = uvloop.new_event_loop()
        g.loop = self.loop = loop
        asyncio.set_event_loop(loop)

        logger.info(" Initializing legacy bridge", extra={"version": BRIDGE_VERSION})

        loop.add_signal_handler(signal.SIGINT, partial(signal_handler, signal.SIGINT))
        loop.add_signal_handler(signal.SIGTERM, partial(signal_handler, signal.SIGTERM))
        logger.debug("Signal handlers configured for SIGINT & SIGTERM")

    async def start(self) -> None:
        """Load settings and driver, then run the bus client until cancelled."""
        _ = ensure_correlation_id()
        cli_args = cast("_CLIArgs | None", g.cli_args)

        driver_path = (cli_args.driver if cli_args else None) or g.env.driver
        if not driver_path:
            logger.error(
                " No transceiver driver configured",
                extra={"action_required": "set BRIDGE_DRIVER or pass --driver module:factory"},
            )
            return

        settings_path = (cli_args.settings if cli_args else None) or Path(g.env.settings_file)
        settings = Settings.load(settings_path.expanduser().resolve())

        event_bus = EventBus()
        try:
            driver = load_driver(driver_path, event_bus)
        except DriverLoadError as e:
            logger.error(" Failed to load transceiver driver", extra={"driver": driver_path, "error": str(e)})
            return

        base_topic = settings.base_topic or g.env.base_topic
        topics = TopicMatcher(base_topic)
        mqtt_client = MQTTClient(
            event_bus,
            topics,
            host=g.env.mqtt_host,
            port=g.env.mqtt_port,
            username=g.env.mqtt_user,
            password=g.env.mqtt_pass,
            conn_delay=g.env.mqtt_conn_delay,
        )
        g.mqtt_client = mqtt_client

        self.bridge = BridgeLegacy(settings, driver, State(), event_bus, mqtt_client, topics, commit=g.env.commit)
        mqtt_client.add_initial_connection_callback(self.bridge.start)

        m_start: asyncio.Task[None] = asyncio.Task(mqtt_client.start(), name=MQTT_CLIENT_START_TASK_NAME)
        mqtt_client.start_task = m_start
        g.tasks.append(m_start)
        logger.info(" Starting MQTT client...", extra={"base_topic": base_topic})

        try:
            _ = await asyncio.gather(m_start, return_exceptions=True)
        except Exception as e:
            logger.exception(" Service startup failed", extra={"error": str(e)})
            await self.stop()
            raise
        finally:
            await self.bridge.stop()

    async def stop(self) -> None:
        logger.info(" Shutting down legacy bridge...")
        send_sigterm()


def parse_cli() -> _CLIArgs:
    """Parse CLI arguments for the bridge process."""
    parser = argparse.ArgumentParser(description="Legacy bridge/config command surface for a mesh-to-MQTT gateway")
    _ = parser.add_argument("-D", "--debug", action="store_true", help="Enable debug mode")
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument(
        "--driver",
        help="Transceiver driver factory as 'package.module:factory' (overrides BRIDGE_DRIVER)",
        default=None,
    )
    _ = parser.add_argument("--settings", help="Path to the settings YAML file", default=None, type=Path)
    parsed_args = parser.parse_args()
    g.cli_args = parsed_args
    args = cast("_CLIArgs", cast("object", parsed_args))

    if args.debug:
        set_log_level("debug")
        logger.info("Debug mode enabled via CLI argument")

    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info(" Environment variables loaded", extra={"source": str(env_path)})
            g.reload_env()
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})
    return args


def main() -> None:
    """Run the legacy bridge entry point."""
    _ = configure_logging()
    with correlation_context():
        logger.info("Starting legacy bridge", extra={"version": BRIDGE_VERSION})

        _ = parse_cli()
        if BRIDGE_DEBUG:
            logger.info("Debug logging enabled via configuration")
            set_log_level("debug")

        check_python_version()
        service = LegacyBridgeService()

        try:
            service.loop.run_until_complete(service.start())
        except asyncio.CancelledError:
            logger.info("Legacy bridge cancelled, shutting down...")
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except Exception as e:
            logger.exception(" Fatal error in main loop", extra={"error": str(e)})
        else:
            logger.info(" Legacy bridge stopped gracefully")
        finally:
            if g.loop is not None and not g.loop.is_closed():
                g.loop.close()
            logger.info("Legacy bridge shutdown complete")


if __name__ == "__main__":
    main()
