# ==============================================================================
# Consumer Commands
# ==============================================================================
"""
Commands for running the Kafka queue consumer.
"""

from sessionlog.cli.shared import C, I, fail
from sessionlog.utils.config import get_settings


def consumer_run() -> None:
    """Run the Kafka consumer in the foreground (Ctrl+C to stop)."""
    from sessionlog.consumers.kafka_consumer import run
    from sessionlog.infrastructure.kafka import check_kafka_connection

    settings = get_settings()
    if not check_kafka_connection(settings.kafka):
        fail(f"Cannot connect to Kafka at {settings.kafka.bootstrap_servers}")

    print(
        f"{C.CYAN}{I.ARROW} Consuming '{settings.kafka.events_topic}' "
        f"into {settings.store.backend} store{C.RESET}"
    )
    run(settings=settings)
