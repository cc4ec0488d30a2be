import os

from legacy_bridge import __version__

__all__ = [
    "ALLOWED_ELAPSED",
    "ALLOWED_LAST_SEEN",
    "ALLOWED_LOG_LEVELS",
    "BRIDGE_BASE_TOPIC",
    "BRIDGE_COMMIT",
    "BRIDGE_DEBUG",
    "BRIDGE_DRIVER",
    "BRIDGE_LOG_FORMAT",
    "BRIDGE_LOG_HUMAN_OUTPUT",
    "BRIDGE_LOG_JSON_FILE",
    "BRIDGE_LOG_NAME",
    "BRIDGE_MQTT_CONN_DELAY",
    "BRIDGE_MQTT_HOST",
    "BRIDGE_MQTT_PASS",
    "BRIDGE_MQTT_PORT",
    "BRIDGE_MQTT_USER",
    "BRIDGE_SETTINGS_FILE",
    "BRIDGE_VERSION",
    "COORDINATOR_FRIENDLY_NAME",
    "MQTT_CLIENT_START_TASK_NAME",
    "PERSISTENT_BASE_DIR",
    "REMOVE_DOCS_URL",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
BRIDGE_LOG_NAME: str = "legacy_bridge"
BRIDGE_VERSION: str = __version__

PERSISTENT_BASE_DIR: str = os.environ.get("BRIDGE_PERSISTENT_BASE_DIR", "/var/lib/legacy-bridge")
BRIDGE_SETTINGS_FILE: str = os.environ.get("BRIDGE_SETTINGS_FILE", f"{PERSISTENT_BASE_DIR}/configuration.yaml")

BRIDGE_MQTT_HOST = os.environ.get("BRIDGE_MQTT_HOST", "localhost")
BRIDGE_MQTT_PORT = os.environ.get("BRIDGE_MQTT_PORT", "1883")
BRIDGE_MQTT_USER = os.environ.get("BRIDGE_MQTT_USER")
BRIDGE_MQTT_PASS = os.environ.get("BRIDGE_MQTT_PASS")
_base_topic = os.environ.get("BRIDGE_BASE_TOPIC", "mesh2mqtt")
BRIDGE_BASE_TOPIC: str = _base_topic.rstrip("/") if _base_topic else "mesh2mqtt"
_conn_delay = os.environ.get("BRIDGE_MQTT_CONN_DELAY", "10")
try:
    _conn_delay_value: int = int(_conn_delay) if _conn_delay else 10
except ValueError:
    _conn_delay_value = 10
BRIDGE_MQTT_CONN_DELAY: int = _conn_delay_value

# module:factory path of the transceiver driver
BRIDGE_DRIVER: str | None = os.environ.get("BRIDGE_DRIVER") or None
BRIDGE_COMMIT: str | None = os.environ.get("BRIDGE_COMMIT") or None

BRIDGE_DEBUG = os.environ.get("BRIDGE_DEBUG", "0").casefold() in YES_ANSWER

# Logging Configuration
BRIDGE_LOG_FORMAT: str = os.environ.get("BRIDGE_LOG_FORMAT", "human")  # "json", "human", or "both"
BRIDGE_LOG_JSON_FILE: str | None = os.environ.get("BRIDGE_LOG_JSON_FILE") or None
BRIDGE_LOG_HUMAN_OUTPUT: str = os.environ.get("BRIDGE_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

MQTT_CLIENT_START_TASK_NAME = "MQTTClient_START"

ALLOWED_LOG_LEVELS: tuple[str, ...] = ("error", "warn", "info", "debug")
ALLOWED_LAST_SEEN: tuple[str, ...] = ("disable", "ISO_8601", "epoch", "ISO_8601_local")
ALLOWED_ELAPSED: tuple[str, ...] = ("true", "false")
COORDINATOR_FRIENDLY_NAME = "Coordinator"
REMOVE_DOCS_URL = (
    "https://www.zigbee2mqtt.io/information/mqtt_topics_and_message_structure.html"
    "#zigbee2mqttbridgeconfigremove"
)
