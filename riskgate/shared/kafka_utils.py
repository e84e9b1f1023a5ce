"""Kafka producer helpers for the fraud analytics stream."""

import json

import structlog
from aiokafka import AIOKafkaProducer

logger = structlog.get_logger()


async def create_producer(bootstrap_servers: str) -> AIOKafkaProducer:
    """Create and start a Kafka producer."""
    producer = AIOKafkaProducer(
        bootstrap_servers=bootstrap_servers,
        value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
    )
    await producer.start()
    logger.info("kafka_producer_started", bootstrap_servers=bootstrap_servers)
    return producer


async def publish_fraud_event(producer: AIOKafkaProducer, topic: str, event: dict) -> None:
    """Send a serialized fraud event, keyed by identity so per-user order holds."""
    identity = event.get("assessment", {}).get("identity_id", "")
    await producer.send_and_wait(topic, event, key=identity.encode("utf-8"))
    logger.debug("fraud_event_published", topic=topic, event_id=event.get("event_id"))
