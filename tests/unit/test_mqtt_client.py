"""Unit tests for the MQTT client core."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock, patch

import aiomqtt
import pytest

from legacy_bridge.correlation import get_correlation_id
from legacy_bridge.events import BridgeEvent, EventBus, MQTTMessageEvent
from legacy_bridge.mqtt.client import MQTTClient
from legacy_bridge.mqtt.topics import TopicMatcher


def _message(topic: str, payload: bytes | str | None) -> MagicMock:
    message = MagicMock()
    message.topic.value = topic
    message.payload = payload
    return message


async def _stream(*messages: MagicMock) -> AsyncIterator[MagicMock]:
    for message in messages:
        yield message


@pytest.fixture
def mqtt(event_bus: EventBus, topics: TopicMatcher) -> MQTTClient:
    client = MQTTClient(event_bus, topics, host="broker.local", port=1883)
    client.client = MagicMock()
    client.client.publish = AsyncMock()
    client._connected = True
    return client


async def _drain(client: MQTTClient) -> None:
    _ = await asyncio.gather(*list(client._message_tasks))


class TestPublish:
    @pytest.mark.asyncio
    async def test_publish_encodes_and_forwards(self, mqtt: MQTTClient):
        assert await mqtt.publish("mesh2mqtt/bridge/log", '{"type":"x"}') is True

        mqtt.client.publish.assert_awaited_once_with("mesh2mqtt/bridge/log", b'{"type":"x"}', qos=0, retain=False)  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_publish_while_disconnected(self, mqtt: MQTTClient):
        mqtt._connected = False

        assert await mqtt.publish("mesh2mqtt/bridge/log", "x") is False
        mqtt.client.publish.assert_not_awaited()  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_broker_error_marks_disconnected(self, mqtt: MQTTClient):
        mqtt.client.publish.side_effect = aiomqtt.MqttError("connection lost")  # type: ignore[union-attr]

        assert await mqtt.publish("mesh2mqtt/bridge/config/devices", "[]") is False
        assert mqtt.is_connected is False
        assert mqtt._consume_own_message("mesh2mqtt/bridge/config/devices", b"[]") is False


class TestReceive:
    @pytest.mark.asyncio
    async def test_messages_become_bus_events(self, mqtt: MQTTClient, event_bus: EventBus):
        seen: list[MQTTMessageEvent] = []
        event_bus.on(BridgeEvent.MQTT_MESSAGE, seen.append)
        mqtt.client.messages = _stream(  # type: ignore[union-attr]
            _message("mesh2mqtt/bridge/config/permit_join", b"true"),
            _message("mesh2mqtt/bridge/config/reset", None),
        )

        await mqtt.receive_messages()
        await _drain(mqtt)

        assert sorted((e.topic, e.payload) for e in seen) == [
            ("mesh2mqtt/bridge/config/permit_join", "true"),
            ("mesh2mqtt/bridge/config/reset", ""),
        ]

    @pytest.mark.asyncio
    async def test_own_publishes_are_not_dispatched(self, mqtt: MQTTClient, event_bus: EventBus):
        seen: list[MQTTMessageEvent] = []
        event_bus.on(BridgeEvent.MQTT_MESSAGE, seen.append)
        _ = await mqtt.publish("mesh2mqtt/bridge/config/devices", "[]")
        mqtt.client.messages = _stream(  # type: ignore[union-attr]
            _message("mesh2mqtt/bridge/config/devices", b"[]"),
            _message("mesh2mqtt/bridge/config/devices", b"[]"),
        )

        await mqtt.receive_messages()
        await _drain(mqtt)

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_each_message_gets_own_correlation_id(self, mqtt: MQTTClient, event_bus: EventBus):
        ids: list[str | None] = []
        event_bus.on(BridgeEvent.MQTT_MESSAGE, lambda _event: ids.append(get_correlation_id()))
        mqtt.client.messages = _stream(  # type: ignore[union-attr]
            _message("mesh2mqtt/bridge/config/groups", b""),
            _message("mesh2mqtt/bridge/config/devices", b""),
        )

        await mqtt.receive_messages()
        await _drain(mqtt)

        assert len(ids) == 2
        assert None not in ids
        assert ids[0] != ids[1]

    @pytest.mark.asyncio
    async def test_slow_handler_does_not_block_next_message(self, mqtt: MQTTClient, event_bus: EventBus):
        release = asyncio.Event()
        order: list[str] = []

        async def listener(event: MQTTMessageEvent) -> None:
            if event.topic.endswith("/devices"):
                await release.wait()
            order.append(event.topic.rsplit("/", 1)[-1])
            if event.topic.endswith("/groups"):
                release.set()

        event_bus.on(BridgeEvent.MQTT_MESSAGE, listener)
        mqtt.client.messages = _stream(  # type: ignore[union-attr]
            _message("mesh2mqtt/bridge/config/devices", b""),
            _message("mesh2mqtt/bridge/config/groups", b""),
        )

        await mqtt.receive_messages()
        await asyncio.wait_for(_drain(mqtt), timeout=1)

        assert order == ["groups", "devices"]


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_publishes_online(self, event_bus: EventBus, topics: TopicMatcher):
        broker = MagicMock()
        broker.__aenter__ = AsyncMock(return_value=broker)
        broker.publish = AsyncMock()
        client = MQTTClient(event_bus, topics)

        with patch("legacy_bridge.mqtt.client.aiomqtt.Client", return_value=broker) as client_cls:
            assert await client.connect() is True

        will = client_cls.call_args.kwargs["will"]
        assert (will.topic, will.payload, will.retain) == ("mesh2mqtt/bridge/state", b"offline", True)
        broker.publish.assert_awaited_once_with("mesh2mqtt/bridge/state", b"online", qos=0, retain=True)
        assert client.is_connected is True

    @pytest.mark.asyncio
    async def test_bad_credentials_stop_the_process(self, event_bus: EventBus, topics: TopicMatcher):
        broker = MagicMock()
        broker.__aenter__ = AsyncMock(side_effect=aiomqtt.MqttError("Connection refused code:135"))
        client = MQTTClient(event_bus, topics, username="bridge")

        with (
            patch("legacy_bridge.mqtt.client.aiomqtt.Client", return_value=broker),
            patch("legacy_bridge.mqtt.client.send_sigterm") as sigterm,
        ):
            assert await client.connect() is False

        sigterm.assert_called_once()
        assert client.is_connected is False

    @pytest.mark.asyncio
    async def test_initial_callbacks_run_once_across_reconnects(self, event_bus: EventBus, topics: TopicMatcher):
        client = MQTTClient(event_bus, topics)
        callback = AsyncMock()
        client.add_initial_connection_callback(callback)

        with (
            patch.object(client, "connect", AsyncMock(return_value=True)),
            patch.object(
                client,
                "_start_receiver",
                AsyncMock(side_effect=[aiomqtt.MqttError("lost"), asyncio.CancelledError()]),
            ),
            pytest.raises(asyncio.CancelledError),
        ):
            await client.start()

        callback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconnect_forgets_unechoed_publishes(self, mqtt: MQTTClient, event_bus: EventBus):
        seen: list[MQTTMessageEvent] = []
        event_bus.on(BridgeEvent.MQTT_MESSAGE, seen.append)
        _ = await mqtt.publish("mesh2mqtt/bridge/config/devices", "[]")
        broker = MagicMock()
        broker.__aenter__ = AsyncMock(return_value=broker)
        broker.publish = AsyncMock()

        with patch("legacy_bridge.mqtt.client.aiomqtt.Client", return_value=broker):
            assert await mqtt.connect() is True
        broker.messages = _stream(_message("mesh2mqtt/bridge/config/devices", b"[]"))

        await mqtt.receive_messages()
        await _drain(mqtt)

        assert [(e.topic, e.payload) for e in seen] == [("mesh2mqtt/bridge/config/devices", "[]")]
