"""
MQTT client wrapper using aiomqtt.

Features:
- Automatic reconnection with exponential backoff
- Last Will and Testament (LWT) for availability
- Non-blocking enqueue for callers on the event loop
"""

import asyncio
import uuid

import aiomqtt

from ..config.schema import MQTTConfig
from ..logging import get_logger

logger = get_logger("mqtt.client")

QUEUE_SIZE = 1000


class MQTTClient:
    """
    Async MQTT client with an outgoing message queue.

    Readings are queued with enqueue() and published by a background task,
    which also owns the connection and reconnects after errors.
    """

    def __init__(
        self,
        config: MQTTConfig,
        availability_topic: str | None = None,
    ):
        """
        Initialize MQTT client.

        Args:
            config: MQTT configuration
            availability_topic: Topic for availability messages (LWT)
        """
        self.config = config
        self.availability_topic = availability_topic or f"{config.topic_prefix}/status"

        self._client: aiomqtt.Client | None = None
        self._connected = False
        self._reconnect_interval = 5.0
        self._max_reconnect_interval = 60.0

        self._client_id = config.client_id or f"vitals_monitor_{uuid.uuid4().hex[:8]}"

        self._queue: asyncio.Queue[tuple[str, str, int, bool]] = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._publisher_task: asyncio.Task | None = None
        self._running = False
        self.dropped = 0

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def topic_prefix(self) -> str:
        return self.config.topic_prefix

    @property
    def pending(self) -> int:
        """Messages waiting to be published."""
        return self._queue.qsize()

    def _create_client(self) -> aiomqtt.Client:
        will = aiomqtt.Will(
            topic=self.availability_topic,
            payload="offline",
            qos=1,
            retain=self.config.should_retain_status(),
        )
        return aiomqtt.Client(
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username,
            password=self.config.password,
            identifier=self._client_id,
            keepalive=self.config.keepalive,
            will=will,
        )

    async def connect(self) -> None:
        """
        Connect to the broker and announce availability.

        Raises:
            aiomqtt.MqttError: If connection fails
        """
        logger.debug(f"Connecting to MQTT broker {self.config.host}:{self.config.port} as {self._client_id}")

        self._client = self._create_client()
        await self._client.__aenter__()
        self._connected = True

        await self._publish_raw(
            self.availability_topic,
            "online",
            qos=1,
            retain=self.config.should_retain_status(),
        )
        logger.info(f"Connected to MQTT broker at {self.config.host}:{self.config.port}")

    async def disconnect(self) -> None:
        """Publish offline status and close the connection."""
        if not (self._client and self._connected):
            return

        try:
            await self._publish_raw(
                self.availability_topic,
                "offline",
                qos=1,
                retain=self.config.should_retain_status(),
            )
        except aiomqtt.MqttError as e:
            logger.debug(f"Could not publish offline status: {e}")

        try:
            await self._client.__aexit__(None, None, None)
        except aiomqtt.MqttError as e:
            logger.debug(f"Error while disconnecting: {e}")

        self._connected = False
        self._client = None
        logger.info("Disconnected from MQTT broker")

    async def _publish_raw(self, topic: str, payload: str, qos: int = 1, retain: bool = False) -> None:
        if self._client and self._connected:
            logger.debug(f"Publishing to {topic}: {payload}")
            await self._client.publish(topic, payload, qos=qos, retain=retain)

    def enqueue(self, topic: str, payload: object) -> bool:
        """
        Queue a message for publishing without waiting.

        Args:
            topic: MQTT topic
            payload: Value converted with str(); booleans become "true"/"false"

        Returns:
            False if the queue was full and the message was dropped
        """
        if isinstance(payload, bool):
            text = "true" if payload else "false"
        else:
            text = str(payload)

        try:
            self._queue.put_nowait((topic, text, self.config.qos, self.config.should_retain()))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Message queue full, dropping message for {topic}")
            return False
        return True

    async def _publisher_loop(self) -> None:
        """Background task: keep the connection up and drain the queue."""
        reconnect_interval = self._reconnect_interval

        while self._running:
            if not self._connected:
                try:
                    await self.connect()
                    reconnect_interval = self._reconnect_interval
                except aiomqtt.MqttError as e:
                    logger.error(f"Failed to connect to MQTT: {e}")
                    self._client = None
                    await asyncio.sleep(reconnect_interval)
                    reconnect_interval = min(reconnect_interval * 2, self._max_reconnect_interval)
                    continue

            try:
                message = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue

            try:
                await self._publish_raw(*message)
            except aiomqtt.MqttError as e:
                logger.error(f"MQTT error: {e}")
                self._connected = False
                self._client = None
                try:
                    self._queue.put_nowait(message)
                except asyncio.QueueFull:
                    self.dropped += 1

    async def start(self) -> None:
        """Start the background publisher."""
        if self._running:
            return
        self._running = True
        self._publisher_task = asyncio.create_task(self._publisher_loop(), name="mqtt-publisher")
        logger.info("MQTT client started")

    async def stop(self) -> None:
        """Stop the publisher and disconnect."""
        self._running = False

        if self._publisher_task:
            self._publisher_task.cancel()
            try:
                await self._publisher_task
            except asyncio.CancelledError:
                pass
            self._publisher_task = None

        await self.disconnect()
        logger.info("MQTT client stopped")

