"""Asyncio Kafka client with per-message and per-batch consumer handlers."""

import logging
from collections.abc import Sequence
from typing import Any

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer, TopicPartition
from aiokafka.structs import RecordMetadata

from kafkatrace.config import ConsumerConfig, KafkaConfig, ProducerConfig
from kafkatrace.marshaling import to_kafka_headers, to_kafka_message
from kafkatrace.types import (
    Batch,
    ConsumerRunConfig,
    EachBatchPayload,
    EachMessagePayload,
    Message,
    ProducerBatch,
    ProducerRecord,
)

logger = logging.getLogger(__name__)


class Kafka:
    """Entry point creating producers and consumers for one cluster.

    Example:
        kafka = Kafka(KafkaConfig(bootstrap_servers="broker:9092"))
        async with kafka.producer() as producer:
            await producer.send(ProducerRecord("orders", [Message(value=b"1")]))
    """

    def __init__(self, config: KafkaConfig | None = None) -> None:
        self._config = config or KafkaConfig()

    def producer(self, **options: Any) -> "Producer":
        """Create a producer. Options override ProducerConfig fields."""
        return Producer(
            ProducerConfig(
                bootstrap_servers=self._config.bootstrap_servers,
                client_id=self._config.client_id,
                **options,
            )
        )

    def consumer(self, group_id: str, **options: Any) -> "Consumer":
        """Create a consumer in `group_id`. Options override ConsumerConfig fields."""
        return Consumer(
            ConsumerConfig(
                bootstrap_servers=self._config.bootstrap_servers,
                client_id=self._config.client_id,
                group_id=group_id,
                **options,
            )
        )


class Producer:
    """Producer that sends records to Kafka topics."""

    def __init__(self, config: ProducerConfig | None = None) -> None:
        self._config = config or ProducerConfig()
        self._producer: AIOKafkaProducer | None = None
        self._closed = False

    async def connect(self) -> None:
        await self._get_producer()

    async def _get_producer(self) -> AIOKafkaProducer:
        """Get or create the Kafka producer."""
        if self._closed:
            msg = "Producer is disconnected"
            raise RuntimeError(msg)
        if self._producer is None:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self._config.bootstrap_servers,
                client_id=self._config.client_id,
                acks=self._config.acks,
                retry_backoff_ms=self._config.retry_backoff_ms,
            )
            await self._producer.start()
        return self._producer

    async def send(self, record: ProducerRecord) -> list[RecordMetadata]:
        """Send every message of the record to its topic, in order."""
        producer = await self._get_producer()
        return [
            await self._send_one(producer, record.topic, message)
            for message in record.messages
        ]

    async def send_batch(self, batch: ProducerBatch) -> list[RecordMetadata]:
        """Send messages for several topics: topic order, then message order."""
        producer = await self._get_producer()
        results: list[RecordMetadata] = []
        for topic_messages in batch.topic_messages:
            for message in topic_messages.messages:
                results.append(
                    await self._send_one(producer, topic_messages.topic, message)
                )
        return results

    @staticmethod
    async def _send_one(
        producer: AIOKafkaProducer,
        topic: str,
        message: Message,
    ) -> RecordMetadata:
        return await producer.send_and_wait(
            topic,
            value=message.value,
            key=message.key,
            partition=message.partition,
            timestamp_ms=message.timestamp_ms,
            headers=to_kafka_headers(message.headers),
        )

    async def disconnect(self) -> None:
        """Stop the producer. Subsequent sends raise RuntimeError."""
        self._closed = True
        if self._producer is not None:
            await self._producer.stop()
            self._producer = None

    async def __aenter__(self) -> "Producer":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.disconnect()


class Consumer:
    """Consumer that dispatches fetched records to user handlers."""

    def __init__(self, config: ConsumerConfig | None = None) -> None:
        self._config = config or ConsumerConfig()
        self._topics: list[str] = []
        self._closed = False

    def subscribe(self, *topics: str) -> None:
        self._topics.extend(topics)

    async def run(self, config: ConsumerRunConfig) -> None:
        """Consume until stop() is called.

        Calls each_batch once per fetched partition batch if set, otherwise
        each_message once per message. The offset is committed after the
        handler returns; handler exceptions propagate without a commit.
        """
        if config.each_batch is None and config.each_message is None:
            msg = "Consumer.run needs each_message or each_batch"
            raise ValueError(msg)
        if not self._topics:
            msg = "Consumer is not subscribed to any topic"
            raise RuntimeError(msg)

        consumer = AIOKafkaConsumer(
            *self._topics,
            bootstrap_servers=self._config.bootstrap_servers,
            client_id=self._config.client_id,
            group_id=self._config.group_id,
            auto_offset_reset=self._config.auto_offset_reset,
            enable_auto_commit=self._config.enable_auto_commit,
            max_poll_records=self._config.max_poll_records,
        )

        try:
            await consumer.start()

            while not self._closed:
                records = await consumer.getmany(
                    timeout_ms=self._config.poll_timeout_ms,
                    max_records=self._config.max_poll_records,
                )
                for tp, partition_records in records.items():
                    await self._dispatch(consumer, tp, partition_records, config)

        finally:
            await consumer.stop()

    async def _dispatch(
        self,
        consumer: AIOKafkaConsumer,
        tp: TopicPartition,
        records: Sequence[Any],
        config: ConsumerRunConfig,
    ) -> None:
        if not records:
            return
        messages = [to_kafka_message(record) for record in records]

        if config.each_batch is not None:
            batch = Batch(topic=tp.topic, partition=tp.partition, messages=messages)
            await config.each_batch(EachBatchPayload(batch=batch))
            await consumer.commit({tp: messages[-1].offset + 1})
            return

        each_message = config.each_message
        for message in messages:
            await each_message(
                EachMessagePayload(
                    topic=tp.topic,
                    partition=tp.partition,
                    message=message,
                )
            )
            await consumer.commit({tp: message.offset + 1})

    async def stop(self) -> None:
        """Stop consuming.

        A running loop exits after its current poll completes
        (up to poll_timeout_ms).
        """
        self._closed = True
        logger.debug("Consumer %s stopping", self._config.group_id)

    async def __aenter__(self) -> "Consumer":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.stop()
