# ==============================================================================
# Kafka Infrastructure
# ==============================================================================
"""
confluent-kafka client configuration and event publishing.

Supports PLAINTEXT (local Docker) and SSL (mTLS) security protocols.
Note: confluent-kafka uses dot-notation keys (e.g. 'bootstrap.servers').
"""

import json
import logging
from typing import TYPE_CHECKING

from sessionlog.core.models import EventRecord
from sessionlog.utils.config import get_settings
from sessionlog.utils.paths import resolve_project_path

if TYPE_CHECKING:
    from sessionlog.utils.config import ConsumerSettings, KafkaSettings

logger = logging.getLogger(__name__)


def _add_security_config(config: dict, settings: "KafkaSettings") -> dict:
    if settings.security_protocol != "SSL":
        config["security.protocol"] = "PLAINTEXT"
        return config

    config["security.protocol"] = "SSL"
    for setting, key in (
        (settings.ssl_ca_file, "ssl.ca.location"),
        (settings.ssl_cert_file, "ssl.certificate.location"),
        (settings.ssl_key_file, "ssl.key.location"),
    ):
        if not setting:
            continue
        path = resolve_project_path(setting)
        if path.exists():
            config[key] = str(path)
        else:
            logger.warning("SSL file not found: %s", path)
    return config


def build_consumer_config(
    kafka_settings: "KafkaSettings | None" = None,
    consumer_settings: "ConsumerSettings | None" = None,
) -> dict:
    """
    Build confluent-kafka consumer configuration.

    Offsets are committed manually, after a batch is fully processed.
    """
    settings = get_settings()
    kafka_settings = kafka_settings or settings.kafka
    consumer_settings = consumer_settings or settings.consumer

    config = {
        "bootstrap.servers": kafka_settings.bootstrap_servers,
        "group.id": consumer_settings.group_id,
        "auto.offset.reset": consumer_settings.auto_offset_reset,
        "enable.auto.commit": False,
        "session.timeout.ms": 45000,
        "heartbeat.interval.ms": 15000,
        "max.poll.interval.ms": 300000,  # 5 minutes max processing time
    }
    return _add_security_config(config, kafka_settings)


def build_producer_config(kafka_settings: "KafkaSettings | None" = None) -> dict:
    """Build confluent-kafka producer configuration."""
    kafka_settings = kafka_settings or get_settings().kafka
    config = {
        "bootstrap.servers": kafka_settings.bootstrap_servers,
        "acks": "all",
        "retries": 10,
        "retry.backoff.ms": 100,
        "linger.ms": 5,
    }
    return _add_security_config(config, kafka_settings)


def publish_event(
    record: EventRecord,
    kafka_settings: "KafkaSettings | None" = None,
    producer=None,
    timeout: float = 10.0,
) -> None:
    """
    Publish one event record to the events topic.

    Messages are keyed by sessionId so one session's events stay on one
    partition and are consumed in order.

    Raises:
        RuntimeError: If delivery fails or times out
    """
    kafka_settings = kafka_settings or get_settings().kafka

    if producer is None:
        from confluent_kafka import Producer

        producer = Producer(build_producer_config(kafka_settings))

    errors = []

    def delivery_callback(err, msg):
        if err is not None:
            errors.append(err)
            logger.error("Delivery failed: %s", err)
        else:
            logger.debug("Delivered to %s-%d@%d", msg.topic(), msg.partition(), msg.offset())

    producer.produce(
        kafka_settings.events_topic,
        key=record.session_id.encode("utf-8"),
        value=json.dumps(record.to_message()).encode("utf-8"),
        on_delivery=delivery_callback,
    )
    remaining = producer.flush(timeout)
    if errors:
        raise RuntimeError(f"Failed to publish event: {errors[0]}")
    if remaining:
        raise RuntimeError(f"Timed out publishing event after {timeout}s")
    logger.info(
        "Published event for session %s to %s", record.session_id, kafka_settings.events_topic
    )


def check_kafka_connection(kafka_settings: "KafkaSettings | None" = None, timeout: float = 5.0) -> bool:
    """
    Check if Kafka is reachable.

    Returns:
        True if cluster metadata could be fetched, False otherwise
    """
    from confluent_kafka import KafkaException
    from confluent_kafka.admin import AdminClient

    kafka_settings = kafka_settings or get_settings().kafka
    config = _add_security_config(
        {"bootstrap.servers": kafka_settings.bootstrap_servers}, kafka_settings
    )
    try:
        AdminClient(config).list_topics(timeout=timeout)
        return True
    except KafkaException:
        return False
