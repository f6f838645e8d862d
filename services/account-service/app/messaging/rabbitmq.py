"""RabbitMQ transport for account events."""

from __future__ import annotations

import logging
import time
from threading import Lock
from typing import Protocol

import pika
from pika.adapters.blocking_connection import BlockingChannel
from pika.exceptions import AMQPError, NackError, UnroutableError

logger = logging.getLogger(__name__)


class MessageBus(Protocol):
    """Narrow interface the publisher needs from a broker client."""

    def ensure_durable_topic(self, name: str) -> None: ...

    def publish(self, routing_key: str, body: str, persistent: bool = True) -> bool: ...

    def health_probe(self) -> bool: ...


class RabbitMQTransport:
    """Single process-wide connection to a durable topic exchange.

    pika's ``BlockingConnection`` is not thread-safe, so every operation on the
    channel holds ``_lock``. While disconnected, publishes are dropped (not
    queued). Publishes and health probes attempt a reconnect at most once per
    ``reconnect_interval`` seconds; a successful reconnect re-declares the
    exchange and the triggering publish goes out on the new channel.
    """

    def __init__(
        self,
        url: str,
        *,
        exchange: str,
        reconnect_interval: float = 5.0,
    ) -> None:
        self._parameters = pika.URLParameters(url)
        self._exchange = exchange
        self._reconnect_interval = reconnect_interval
        self._connection: pika.BlockingConnection | None = None
        self._channel: BlockingChannel | None = None
        self._last_attempt = 0.0
        self._lock = Lock()

    @property
    def exchange(self) -> str:
        return self._exchange

    def connect(self) -> bool:
        """Open the connection and declare the exchange; ``False`` when the broker is unreachable."""
        with self._lock:
            return self._connect()

    def _connect(self) -> bool:
        self._last_attempt = time.monotonic()
        try:
            connection = pika.BlockingConnection(self._parameters)
            channel = connection.channel()
            channel.confirm_delivery()
            self._declare(channel, self._exchange)
        except AMQPError as exc:
            logger.error("failed to connect to rabbitmq: %s", exc)
            self._reset()
            return False
        self._connection = connection
        self._channel = channel
        logger.info("connected to rabbitmq, exchange %s declared", self._exchange)
        return True

    @staticmethod
    def _declare(channel: BlockingChannel, name: str) -> None:
        channel.exchange_declare(
            exchange=name,
            exchange_type="topic",
            durable=True,
            auto_delete=False,
        )

    def _open_channel(self) -> BlockingChannel | None:
        """Return the live channel, or ``None`` when the connection is down."""
        if self._connection is None or not self._connection.is_open:
            return None
        if self._channel is None or not self._channel.is_open:
            return None
        return self._channel

    def _reset(self) -> None:
        self._connection = None
        self._channel = None

    def _ensure_channel(self) -> BlockingChannel | None:
        """Return the live channel, reconnecting first when one is due."""
        channel = self._open_channel()
        if channel is not None:
            return channel
        self._reset()
        if time.monotonic() - self._last_attempt < self._reconnect_interval:
            return None
        logger.info("attempting rabbitmq reconnect")
        self._connect()
        return self._open_channel()

    def ensure_durable_topic(self, name: str) -> None:
        with self._lock:
            channel = self._open_channel()
            if channel is None:
                raise ConnectionError("rabbitmq not connected")
            self._declare(channel, name)

    def publish(self, routing_key: str, body: str, persistent: bool = True) -> bool:
        """Publish ``body`` to the exchange; return whether the broker confirmed it."""
        with self._lock:
            channel = self._ensure_channel()
            if channel is None:
                logger.warning("rabbitmq not connected, dropping event %s", routing_key)
                return False
            properties = pika.BasicProperties(
                content_type="application/json",
                delivery_mode=pika.DeliveryMode.Persistent if persistent else pika.DeliveryMode.Transient,
            )
            try:
                channel.basic_publish(
                    exchange=self._exchange,
                    routing_key=routing_key,
                    body=body.encode("utf-8"),
                    properties=properties,
                )
            except (NackError, UnroutableError) as exc:
                logger.warning("broker rejected event %s: %s", routing_key, exc)
                return False
            except AMQPError as exc:
                logger.warning("rabbitmq publish failed for %s, marking disconnected: %s", routing_key, exc)
                self._reset()
                return False
            return True

    def health_probe(self) -> bool:
        with self._lock:
            connection = self._connection if self._ensure_channel() is not None else None
            if connection is None:
                return False
            try:
                # services heartbeats on an otherwise idle connection
                connection.process_data_events(time_limit=0)
            except AMQPError as exc:
                logger.warning("rabbitmq health probe failed: %s", exc)
                self._reset()
                return False
            return True

    def close(self) -> None:
        """Close the channel and connection once in-flight publishes have finished."""
        with self._lock:
            try:
                if self._channel is not None and self._channel.is_open:
                    self._channel.close()
                if self._connection is not None and self._connection.is_open:
                    self._connection.close()
                logger.info("disconnected from rabbitmq")
            except AMQPError as exc:
                logger.error("error disconnecting from rabbitmq: %s", exc)
            finally:
                self._reset()
