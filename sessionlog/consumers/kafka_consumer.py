# ==============================================================================
# Kafka Session Event Consumer
# ==============================================================================
"""
Queue channel consumer using confluent-kafka (librdkafka C wrapper).

Each poll is turned into one queue batch for the ingress dispatcher:

    {"Records": [{"eventSource": "kafka",
                  "messageId": "{topic}-{partition}-{offset}",
                  "body": <message value>}, ...]}

Offsets are committed only when the batch reports no retryable failures.
Otherwise every partition in the batch is rewound to its first offset and
the batch is re-polled after CONSUMER_RETRY_BACKOFF_SECONDS. Redelivered
records carry the same messageId, so records that already succeeded are
not appended twice. A record still failing after CONSUMER_MAX_REDELIVERIES
re-polls is logged and committed past.
"""

import logging
import signal
import time

from sessionlog.ingress.dispatcher import IngressDispatcher
from sessionlog.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

EVENT_SOURCE = "kafka"

# Global flag for shutdown
_shutdown_requested = False


def _signal_handler(signum, frame):
    """Handle shutdown signals by setting flag."""
    global _shutdown_requested
    logger.info("Received signal %d, shutting down gracefully...", signum)
    _shutdown_requested = True


def message_id(msg) -> str:
    """Stable record id for a Kafka message."""
    return f"{msg.topic()}-{msg.partition()}-{msg.offset()}"


def messages_to_unit(messages: list) -> dict:
    """Convert polled Kafka messages into a queue batch unit."""
    records = []
    for msg in messages:
        value = msg.value()
        if isinstance(value, bytes):
            try:
                value = value.decode("utf-8")
            except UnicodeDecodeError as e:
                logger.warning("Failed to decode message %s: %s", message_id(msg), e)
        records.append(
            {"eventSource": EVENT_SOURCE, "messageId": message_id(msg), "body": value}
        )
    return {"Records": records}


def rewind(consumer, messages: list) -> None:
    """Seek every partition in the batch back to its lowest polled offset."""
    from confluent_kafka import TopicPartition

    first_offsets: dict[tuple[str, int], int] = {}
    for msg in messages:
        key = (msg.topic(), msg.partition())
        first_offsets[key] = min(first_offsets.get(key, msg.offset()), msg.offset())

    for (topic, partition), offset in first_offsets.items():
        consumer.seek(TopicPartition(topic, partition, offset))
        logger.info("Rewound %s-%d to offset %d", topic, partition, offset)


def process_messages(
    consumer,
    dispatcher: IngressDispatcher,
    messages: list,
    settings: Settings,
    attempts: dict[str, int] | None = None,
) -> dict:
    """
    Dispatch one polled batch, then commit or rewind.

    Args:
        attempts: Failure count per messageId, carried across polls. Once every
            failing record has been redelivered CONSUMER_MAX_REDELIVERIES times,
            the batch is committed and those records are skipped.

    Returns:
        The dispatcher's batch response
    """
    if attempts is None:
        attempts = {}
    batch_ids = [message_id(msg) for msg in messages]

    response = dispatcher.handle(messages_to_unit(messages))
    failed_ids = [f["itemIdentifier"] for f in response.get("batchItemFailures", [])]

    if not failed_ids:
        _commit(consumer, batch_ids, attempts)
        return response

    for record_id in failed_ids:
        attempts[record_id] = attempts.get(record_id, 0) + 1

    max_redeliveries = settings.consumer.max_redeliveries
    if all(attempts[record_id] > max_redeliveries for record_id in failed_ids):
        logger.error(
            "Skipping %d records after %d redeliveries: %s",
            len(failed_ids),
            max_redeliveries,
            ", ".join(failed_ids),
        )
        _commit(consumer, batch_ids, attempts)
        return response

    logger.warning(
        "%d of %d records failed with retryable errors, retrying batch in %.1fs",
        len(failed_ids),
        len(messages),
        settings.consumer.retry_backoff_seconds,
    )
    rewind(consumer, messages)
    time.sleep(settings.consumer.retry_backoff_seconds)
    return response


def _commit(consumer, batch_ids: list, attempts: dict) -> None:
    consumer.commit(asynchronous=False)
    for record_id in batch_ids:
        attempts.pop(record_id, None)


def _filter_errors(messages: list) -> list:
    from confluent_kafka import KafkaError

    valid = []
    for msg in messages:
        error = msg.error()
        if error is None:
            valid.append(msg)
        elif error.code() != KafkaError._PARTITION_EOF:
            logger.error("Consumer error: %s", error)
    return valid


def run(
    dispatcher: IngressDispatcher | None = None,
    consumer=None,
    settings: Settings | None = None,
) -> None:
    """
    Run the Kafka consumer until SIGINT/SIGTERM.

    Args:
        dispatcher: Dispatcher to feed. If None, the process-wide one is built.
        consumer: confluent-kafka Consumer. If None, one is created and subscribed.
        settings: Application settings. If None, uses get_settings().
    """
    global _shutdown_requested
    _shutdown_requested = False

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    from sessionlog.infrastructure.kafka import build_consumer_config
    from sessionlog.ingress.handler import get_dispatcher, reset_handler

    settings = settings or get_settings()
    owns_dispatcher = dispatcher is None
    if owns_dispatcher:
        dispatcher = get_dispatcher()

    topic = settings.kafka.events_topic
    if consumer is None:
        from confluent_kafka import Consumer

        consumer = Consumer(build_consumer_config(settings.kafka, settings.consumer))
        consumer.subscribe([topic])

    logger.info("Starting session event consumer (confluent-kafka)...")
    logger.info("Consumer group: %s", settings.consumer.group_id)
    logger.info("Topic: %s", topic)

    attempts: dict[str, int] = {}

    try:
        while not _shutdown_requested:
            messages = consumer.consume(
                num_messages=settings.consumer.batch_size,
                timeout=settings.consumer.poll_timeout_ms / 1000.0,
            )
            messages = _filter_errors(messages or [])
            if not messages:
                continue
            process_messages(consumer, dispatcher, messages, settings, attempts)

    except Exception as e:
        logger.exception("Consumer error: %s", e)
        raise

    finally:
        consumer.close()
        if owns_dispatcher:
            reset_handler()
        logger.info("Session event consumer shutdown complete.")


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    run()
