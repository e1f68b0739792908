# notify_relay/events/rabbit.py
from __future__ import annotations

import asyncio
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aio_pika
import orjson
from aio_pika.abc import AbstractIncomingMessage

from notify_relay.errors import UpstreamError
from notify_relay.logger import get_logger
from notify_relay.schemas import UpstreamMessage
from notify_relay.settings import Settings

log = get_logger("notify_relay.rabbit")

MessageHandler = Callable[[UpstreamMessage], Awaitable[None]]


def _exchange_type(name: Optional[str]) -> aio_pika.ExchangeType:
    et = (name or "topic").lower()
    if et == "direct":
        return aio_pika.ExchangeType.DIRECT
    if et == "fanout":
        return aio_pika.ExchangeType.FANOUT
    if et == "headers":
        return aio_pika.ExchangeType.HEADERS
    return aio_pika.ExchangeType.TOPIC


class RabbitTransport:
    """
    Durable topic (exchange) + durable subscription (queue) on RabbitMQ.

    Pulled messages go to the handler and are acked afterwards no matter how
    the handler fared, so a bad payload is dropped rather than redelivered.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._connection: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel: Optional[aio_pika.abc.AbstractChannel] = None
        self._exchange: Optional[aio_pika.abc.AbstractExchange] = None
        self._queue: Optional[aio_pika.abc.AbstractQueue] = None
        self._consumer_tag: Optional[str] = None
        self._handler: Optional[MessageHandler] = None
        self._stop_event = asyncio.Event()

    @property
    def enabled(self) -> bool:
        return self._exchange is not None

    async def start(self, handler: MessageHandler) -> bool:
        """Connect, declare and start consuming. False means local mode."""
        if self._settings.DEMO_MODE:
            log.info("Demo mode: skipping RabbitMQ initialisation")
            return False
        if not self._settings.RABBITMQ_URL:
            log.info("RABBITMQ_URL not set; running in local mode (direct broadcast)")
            return False

        self._stop_event.clear()
        self._handler = handler
        if not await self._ensure_connected():
            log.warning("RabbitMQ unavailable; running in local mode (direct broadcast)")
            return False

        assert self._queue is not None
        self._consumer_tag = await self._queue.consume(self._on_message, no_ack=False)
        log.info("Consuming from queue '%s'", self._queue.name)
        return True

    async def _ensure_connected(self) -> bool:
        """
        Connect to RabbitMQ, get-or-create exchange/queue, bind routing keys.
        Retries with jittered backoff up to RABBITMQ_CONNECT_ATTEMPTS.
        """
        s = self._settings
        attempt = 0
        while not self._stop_event.is_set() and attempt < s.RABBITMQ_CONNECT_ATTEMPTS:
            try:
                log.info("Connecting to RabbitMQ ...")
                self._connection = await aio_pika.connect_robust(
                    s.RABBITMQ_URL,
                    timeout=15,
                    client_properties={"connection_name": s.SERVICE_NAME},
                )
                self._channel = await self._connection.channel()
                await self._channel.set_qos(prefetch_count=s.RABBITMQ_PREFETCH)

                exchange = await self._channel.declare_exchange(
                    s.RABBITMQ_EXCHANGE,
                    _exchange_type(s.RABBITMQ_EXCHANGE_TYPE),
                    durable=True,
                )
                self._queue = await self._channel.declare_queue(s.RABBITMQ_QUEUE, durable=True)

                bindings: List[str] = s.RABBITMQ_BINDINGS or ["#"]
                for rk in bindings:
                    await self._queue.bind(exchange, routing_key=rk)
                    log.info("Bound queue '%s' to '%s' with '%s'", self._queue.name, s.RABBITMQ_EXCHANGE, rk)

                self._exchange = exchange
                log.info("RabbitMQ connection ready")
                return True
            except Exception as e:
                attempt += 1
                await self._close_quietly()
                if attempt >= s.RABBITMQ_CONNECT_ATTEMPTS:
                    log.error("RabbitMQ connect failed (attempt %d/%d): %s", attempt, s.RABBITMQ_CONNECT_ATTEMPTS, e)
                    break
                wait = min(30, 1 + attempt * 1.5) + random.uniform(0, 0.75)
                log.warning("RabbitMQ connect failed (attempt %d): %s. Retrying in %.1fs ...", attempt, e, wait)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=wait)
                except asyncio.TimeoutError:
                    continue
        return False

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        try:
            upstream = UpstreamMessage(
                message_id=message.message_id or uuid.uuid4().hex,
                data=message.body,
                publish_time=message.timestamp or datetime.now(timezone.utc),
            )
            assert self._handler is not None
            await self._handler(upstream)
        except Exception as e:
            log.exception("Failed to handle upstream message %s: %s", message.message_id, e)
        finally:
            try:
                await message.ack()
            except Exception as e:
                log.warning("Ack failed for message %s: %s", message.message_id, e)

    async def publish(self, payload: Dict[str, Any]) -> str:
        """Durably publish `payload` as JSON and return the assigned message id."""
        if self._exchange is None:
            raise UpstreamError("Upstream transport is not connected")
        message_id = uuid.uuid4().hex
        msg = aio_pika.Message(
            orjson.dumps(payload),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=message_id,
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await self._exchange.publish(msg, routing_key=self._settings.RABBITMQ_ROUTING_KEY)
        except Exception as e:
            log.exception("Publish to '%s' failed: %s", self._settings.RABBITMQ_EXCHANGE, e)
            raise UpstreamError("Failed to publish notification upstream") from e
        log.info("Published %s to '%s'", message_id, self._settings.RABBITMQ_EXCHANGE)
        return message_id

    async def stop(self) -> None:
        self._stop_event.set()
        if self._queue is not None and self._consumer_tag:
            try:
                await self._queue.cancel(self._consumer_tag)
            except Exception as e:
                log.warning("Error cancelling consumer: %s", e)
        self._consumer_tag = None
        await self._close_quietly()
        log.info("RabbitMQ transport stopped")

    async def _close_quietly(self) -> None:
        try:
            if self._channel and not self._channel.is_closed:
                await self._channel.close()
        except Exception as e:
            log.warning("Error closing channel: %s", e)

        try:
            if self._connection and not self._connection.is_closed:
                await self._connection.close()
        except Exception as e:
            log.warning("Error closing connection: %s", e)

        self._channel = None
        self._connection = None
        self._exchange = None
        self._queue = None


__all__ = ["RabbitTransport", "MessageHandler"]
