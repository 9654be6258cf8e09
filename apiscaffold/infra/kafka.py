"""
apiscaffold/infra/kafka.py
Kafka client lifecycle component (aiokafka).

Responsibilities:
- Start one shared producer on startup
- Create consumers per (topic, group) on demand
- Run consumer loops as tasks owned by the component
- Stop consumers and the producer on shutdown
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from ..api.lifespan.base import BaseLifecycleComponent, ComponentState
from ..core.config import Settings

MessageHandler = Callable[[object], Awaitable[None]]


class KafkaComponent(BaseLifecycleComponent):
    """
    Producer plus on-demand consumers.

    SASL PLAIN is used when both KAFKA_USERNAME and KAFKA_PASSWORD are set.
    """

    name = "kafka"
    startup_timeout = 30
    shutdown_timeout = 15

    def __init__(self, settings: Settings):
        super().__init__()
        self.settings = settings
        self.producer = None
        self.consumers: Dict[str, object] = {}
        self._consumer_tasks: Dict[str, asyncio.Task] = {}

    def _connection_options(self) -> dict:
        s = self.settings
        options = {
            "bootstrap_servers": s.KAFKA_BROKERS,
            "request_timeout_ms": s.KAFKA_TIMEOUT_SECONDS * 1000,
        }
        if s.KAFKA_USERNAME and s.KAFKA_PASSWORD:
            options.update({
                "security_protocol": "SASL_PLAINTEXT",
                "sasl_mechanism": "PLAIN",
                "sasl_plain_username": s.KAFKA_USERNAME,
                "sasl_plain_password": s.KAFKA_PASSWORD,
            })
        return options

    async def startup(self) -> None:
        from aiokafka import AIOKafkaProducer

        if not self.settings.KAFKA_BROKERS:
            raise ValueError("no Kafka brokers configured")

        self.safe_log("connecting_to_kafka", brokers=self.settings.KAFKA_BROKERS)
        self.producer = AIOKafkaProducer(
            linger_ms=self.settings.KAFKA_LINGER_MS,
            max_batch_size=self.settings.KAFKA_BATCH_SIZE,
            **self._connection_options(),
        )
        await self.producer.start()
        self.metadata["brokers"] = list(self.settings.KAFKA_BROKERS)
        self.safe_log("kafka_client_initialized")

    # ------------------------------------------------------------------ #
    # Producing
    # ------------------------------------------------------------------ #

    async def write_message(self, topic: str, key: Optional[bytes], value: bytes) -> None:
        try:
            await self.producer.send_and_wait(topic, value=value, key=key)
        except Exception as e:
            self.log_error("kafka_write_failed", e, topic=topic)
            raise

    # ------------------------------------------------------------------ #
    # Consuming
    # ------------------------------------------------------------------ #

    def create_consumer(self, topic: str, group_id: str):
        """Return the cached consumer for (topic, group_id), creating it if needed."""
        from aiokafka import AIOKafkaConsumer

        key = f"{topic}-{group_id}"
        if key in self.consumers:
            return self.consumers[key]

        consumer = AIOKafkaConsumer(
            topic,
            group_id=group_id,
            fetch_min_bytes=self.settings.KAFKA_MIN_BYTES,
            fetch_max_bytes=self.settings.KAFKA_MAX_BYTES,
            auto_commit_interval_ms=self.settings.KAFKA_COMMIT_INTERVAL_MS,
            auto_offset_reset="earliest",
            **self._connection_options(),
        )
        self.consumers[key] = consumer
        self.safe_log("kafka_consumer_created", topic=topic, group_id=group_id)
        return consumer

    async def consume(self, topic: str, group_id: str, handler: MessageHandler) -> asyncio.Task:
        """
        Start consuming in the background. Handler errors are logged and
        the loop moves on to the next message.
        """
        key = f"{topic}-{group_id}"
        if key in self._consumer_tasks:
            return self._consumer_tasks[key]

        consumer = self.create_consumer(topic, group_id)
        await consumer.start()
        task = asyncio.create_task(
            self._consume_loop(consumer, topic, group_id, handler), name=f"kafka-{key}"
        )
        self._consumer_tasks[key] = task
        return task

    async def _consume_loop(self, consumer, topic: str, group_id: str, handler: MessageHandler) -> None:
        self.safe_log("kafka_consumer_started", topic=topic, group_id=group_id)
        try:
            async for message in consumer:
                try:
                    await handler(message)
                except Exception as e:
                    self.log_error("kafka_message_handler_failed", e, topic=topic)
        finally:
            self.safe_log("kafka_consumer_stopped", topic=topic, group_id=group_id)

    # ------------------------------------------------------------------ #
    # Shutdown
    # ------------------------------------------------------------------ #

    async def shutdown(self) -> None:
        """Stop everything; raises the last error after trying all of it."""
        self.safe_log("shutting_down_kafka_client")
        last_error: Optional[BaseException] = None

        for key, task in self._consumer_tasks.items():
            task.cancel()
        for key, task in self._consumer_tasks.items():
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.log_error("kafka_consumer_task_failed", e, consumer=key)
                last_error = e
        self._consumer_tasks.clear()

        for key, consumer in self.consumers.items():
            try:
                await consumer.stop()
            except Exception as e:
                self.log_error("kafka_consumer_close_failed", e, consumer=key)
                last_error = e
        self.consumers.clear()

        if self.producer is not None:
            try:
                await self.producer.stop()
            except Exception as e:
                self.log_error("kafka_producer_close_failed", e)
                last_error = e
            self.producer = None

        self.safe_log("kafka_connections_closed")
        if last_error is not None:
            raise last_error

    async def health_check(self) -> bool:
        return self.producer is not None and self.state == ComponentState.RUNNING
