"""MQTT client core for the legacy bridge.

Owns the broker connection lifecycle, publishes on behalf of the command
handlers and turns every inbound ``bridge/config`` message into an
``MQTTMessageEvent`` on the event bus, each on its own task.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Awaitable, Callable

import aiomqtt

from legacy_bridge.correlation import correlation_context
from legacy_bridge.events import BridgeEvent, EventBus, MQTTMessageEvent
from legacy_bridge.logging_abstraction import get_logger
from legacy_bridge.mqtt.topics import TopicMatcher
from legacy_bridge.utils import send_sigterm

logger = get_logger(__name__)

AVAILABILITY_ONLINE = b"online"
AVAILABILITY_OFFLINE = b"offline"


class MQTTClient:
    """Broker connection plus publish/receive helpers."""

    lp: str = "mqtt:"
    start_task: asyncio.Task[None] | None = None
    client: aiomqtt.Client | None = None

    def __init__(
        self,
        event_bus: EventBus,
        topics: TopicMatcher,
        host: str = "localhost",
        port: int = 1883,
        username: str | None = None,
        password: str | None = None,
        client_id: str = "legacy_bridge",
        conn_delay: int = 10,
    ) -> None:
        self.event_bus = event_bus
        self.topics = topics
        self.broker_host = host
        self.broker_port = port
        self.broker_username = username
        self.broker_password = password
        self.broker_client_id = client_id
        self.conn_delay = conn_delay
        self._connected = False
        self._own_messages: Counter[tuple[str, bytes]] = Counter()
        self._message_tasks: set[asyncio.Task[None]] = set()
        self._initial_connection_callbacks: list[Callable[[], Awaitable[None]]] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    def add_initial_connection_callback(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Run ``callback`` once, after the first successful connection."""
        self._initial_connection_callbacks.append(callback)

    def _build_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(topic=self.topics.state_topic, payload=AVAILABILITY_OFFLINE, qos=0, retain=True)
        return aiomqtt.Client(
            hostname=self.broker_host,
            port=self.broker_port,
            username=self.broker_username,
            password=self.broker_password,
            identifier=self.broker_client_id,
            will=will,
        )

    def _get_connection_delay(self, lp: str) -> int:
        if self.conn_delay <= 0:
            logger.debug("%s MQTT connection delay is <= 0, which is probably a typo, using 5...", lp)
            return 5
        return self.conn_delay

    async def connect(self) -> bool:
        lp = f"{self.lp}connect:"
        self._connected = False
        self._own_messages.clear()
        self.client = self._build_client()
        try:
            _ = await self.client.__aenter__()
        except aiomqtt.MqttError as mqtt_err_exc:
            logger.exception("%s Connection failed [MqttError]", lp)
            if "code:134" in str(mqtt_err_exc) or "code:135" in str(mqtt_err_exc):
                logger.error(
                    "%s Bad username or password, check your MQTT credentials (username: %s)",
                    lp,
                    self.broker_username,
                )
                send_sigterm()
            return False

        self._connected = True
        logger.info("%s Connected to MQTT broker: %s port: %s", lp, self.broker_host, self.broker_port)
        _ = await self.publish(self.topics.state_topic, AVAILABILITY_ONLINE, retain=True)
        return True

    async def start(self) -> None:
        """Connect, subscribe and receive until cancelled; reconnect on broker errors."""
        itr = 0
        lp = f"{self.lp}start:"
        try:
            while True:
                if not await self.connect():
                    delay = self._get_connection_delay(lp)
                    logger.info(
                        "%s connecting to MQTT broker failed, sleeping for %s seconds before re-trying...",
                        lp,
                        delay,
                    )
                    await asyncio.sleep(delay)
                    continue

                itr += 1
                if itr == 1:
                    for callback in self._initial_connection_callbacks:
                        try:
                            await callback()
                        except Exception:
                            logger.exception("%s Initial connection callback %r failed", lp, callback)

                try:
                    await self._start_receiver(lp)
                except aiomqtt.MqttError:
                    self._connected = False
                    continue
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s MQTT start() EXCEPTION", lp)

    async def _start_receiver(self, lp: str) -> None:
        assert self.client is not None, "client must be initialized"
        await self.client.subscribe(self.topics.subscription, qos=0)
        logger.debug("%s Subscribed to %s. Waiting for MQTT messages...", lp, self.topics.subscription)
        try:
            await self.receive_messages()
        except asyncio.CancelledError:
            logger.debug("%s MQTT receiver task cancelled, propagating...", lp)
            raise
        except aiomqtt.MqttError as msg_err:
            logger.warning("%s MQTT error: %s", lp, msg_err)
            raise

    async def receive_messages(self) -> None:
        lp = f"{self.lp}rcv:"
        assert self.client is not None, "client must be initialized"
        async for message in self.client.messages:
            topic = message.topic.value
            payload = message.payload
            if isinstance(payload, str):
                raw = payload.encode()
            elif isinstance(payload, bytes | bytearray):
                raw = bytes(payload)
            elif payload is None:
                raw = b""
            else:
                raw = str(payload).encode()

            if self._consume_own_message(topic, raw):
                logger.debug("%s Skipping own message on %s", lp, topic)
                continue

            logger.debug("%s >>> %s (%d bytes)", lp, topic, len(raw))
            self.spawn_message_task(topic, raw.decode("utf-8", errors="replace"))

    def spawn_message_task(self, topic: str, payload: str) -> asyncio.Task[None]:
        """Handle one inbound message on its own task so a slow handler never blocks the next."""
        task = asyncio.create_task(self._emit_message(topic, payload), name=f"mqtt_message:{topic}")
        self._message_tasks.add(task)
        task.add_done_callback(self._message_tasks.discard)
        return task

    async def _emit_message(self, topic: str, payload: str) -> None:
        with correlation_context():
            await self.event_bus.emit(BridgeEvent.MQTT_MESSAGE, MQTTMessageEvent(topic=topic, payload=payload))

    def _consume_own_message(self, topic: str, payload: bytes) -> bool:
        key = (topic, payload)
        if self._own_messages[key] > 0:
            self._own_messages[key] -= 1
            if not self._own_messages[key]:
                del self._own_messages[key]
            return True
        return False

    async def publish(self, topic: str, msg_data: str | bytes, retain: bool = False, qos: int = 0) -> bool:
        """Publish a message to the MQTT broker."""
        lp = f"{self.lp}publish:"
        if not self._connected:
            logger.debug("%s Not connected, dropping message for %s", lp, topic)
            return False
        assert self.client is not None, "client must be initialized"
        payload = msg_data.encode() if isinstance(msg_data, str) else msg_data
        if topic.startswith(f"{self.topics.config_topic}/"):
            self._own_messages[(topic, payload)] += 1
        try:
            await self.client.publish(topic, payload, qos=qos, retain=retain)
        except aiomqtt.MqttCodeError as mqtt_code_exc:
            logger.warning("%s [MqttCodeError] -> %s", lp, mqtt_code_exc)
            self._connected = False
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] -> %s", lp, mqtt_err)
            self._connected = False
        else:
            return True
        _ = self._consume_own_message(topic, payload)
        return False

    async def stop(self) -> None:
        lp = f"{self.lp}stop:"
        if self._connected:
            _ = await self.publish(self.topics.state_topic, AVAILABILITY_OFFLINE, retain=True)
        try:
            if self.client is not None:
                logger.debug("%s Disconnecting from broker...", lp)
                await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as ce:
            logger.warning("%s MQTT disconnect failed: %s", lp, ce)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)
        finally:
            self._connected = False
            for task in list(self._message_tasks):
                _ = task.cancel()
            if self.start_task and not self.start_task.done():
                logger.debug("%s FINISHING: Cancelling start task", lp)
                _ = self.start_task.cancel()
