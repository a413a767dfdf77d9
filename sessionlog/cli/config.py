# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration display command.
"""

import json
from typing import Annotated

import typer

from sessionlog.cli.shared import C
from sessionlog.utils.config import get_settings
from sessionlog.utils.db import table_name


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (secrets omitted)."""
    settings = get_settings()

    if json_output:
        config = {
            "store": {
                "backend": settings.store.backend,
                "collection_name": settings.store.collection_name,
            },
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
            },
            "postgresql": {
                "host": settings.postgres.host,
                "port": settings.postgres.port,
                "database": settings.postgres.database,
                "schema": settings.postgres.schema_name,
                "table": table_name(settings.store.collection_name),
                "user": settings.postgres.user,
                "sslmode": settings.postgres.sslmode,
            },
            "kafka": {
                "bootstrap_servers": [
                    s.strip() for s in settings.kafka.bootstrap_servers.split(",")
                ],
                "security_protocol": settings.kafka.security_protocol,
                "events_topic": settings.kafka.events_topic,
            },
            "consumer": {
                "group_id": settings.consumer.group_id,
                "auto_offset_reset": settings.consumer.auto_offset_reset,
                "batch_size": settings.consumer.batch_size,
                "retry_backoff_seconds": settings.consumer.retry_backoff_seconds,
            },
            "ingress": {
                "queue_event_sources": settings.ingress.queue_event_sources,
                "cors_allow_origin": settings.ingress.cors_allow_origin,
            },
            "log_level": settings.log_level,
        }
        print(json.dumps(config, indent=2))
        return

    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    print(f"{C.CYAN}Store{C.RESET}")
    print(f"  Backend:     {C.WHITE}{settings.store.backend}{C.RESET}")
    print(f"  Collection:  {C.WHITE}{settings.store.collection_name}{C.RESET}")
    print()

    print(f"{C.CYAN}Valkey{C.RESET}")
    print(f"  Host:        {C.WHITE}{settings.valkey.host}:{settings.valkey.port}{C.RESET}")
    print(f"  SSL:         {C.WHITE}{'enabled' if settings.valkey.ssl else 'disabled'}{C.RESET}")
    print()

    print(f"{C.CYAN}PostgreSQL{C.RESET}")
    print(f"  Host:        {C.WHITE}{settings.postgres.host}:{settings.postgres.port}{C.RESET}")
    print(f"  Database:    {C.WHITE}{settings.postgres.database}{C.RESET}")
    print(f"  Schema:      {C.WHITE}{settings.postgres.schema_name}{C.RESET}")
    print()

    print(f"{C.CYAN}Kafka{C.RESET}")
    servers = settings.kafka.bootstrap_servers.split(",")
    for i, server in enumerate(servers):
        label = "  Bootstrap:   " if i == 0 else "               "
        print(f"{label}{C.WHITE}{server.strip()}{C.RESET}")
    print(f"  Topic:       {C.WHITE}{settings.kafka.events_topic}{C.RESET}")
    print(f"  Group:       {C.WHITE}{settings.consumer.group_id}{C.RESET}")
    print()
