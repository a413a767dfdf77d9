# ==============================================================================
# Event Commands
# ==============================================================================
"""
Commands that submit one event record.

`event send` runs the record through the request channel in-process;
`event publish` puts it on the Kafka events topic for the consumer.
"""

import json
from typing import Annotated, Optional

import typer

from sessionlog.cli.shared import C, I, build_payload, fail
from sessionlog.core.errors import RecordValidationError, StoreError
from sessionlog.core.validator import validate_record
from sessionlog.utils.config import get_settings

SessionOption = Annotated[str, typer.Option("--session-id", "-s", help="Session identifier")]
AgentOption = Annotated[str, typer.Option("--agent-name", "-a", help="Producing agent name")]
EventOption = Annotated[str, typer.Option("--event", "-e", help="Event label")]
CreatedAtOption = Annotated[
    Optional[str],
    typer.Option("--created-at", help="ISO-8601 timestamp (default: now)"),
]


def event_send(
    session_id: SessionOption,
    agent_name: AgentOption,
    event: EventOption,
    created_at: CreatedAtOption = None,
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output the raw response as JSON")
    ] = False,
) -> None:
    """Process one event through the request channel.

    Examples:
        sessionlog event send -s s1 -a planner -e start
        sessionlog event send -s s1 -a analysis-agent -e Flush
    """
    from sessionlog.ingress.handler import build_dispatcher, reset_handler

    payload = build_payload(session_id, agent_name, event, created_at)
    try:
        dispatcher = build_dispatcher()
    except StoreError as e:
        fail(f"Cannot connect to {get_settings().store.backend} store: {e}")
    try:
        response = dispatcher.handle({"httpMethod": "POST", "body": json.dumps(payload)})
    finally:
        reset_handler()

    body = response["body"]
    if json_output:
        print(json.dumps(response, indent=2))
    elif response["statusCode"] == 200:
        result = body["result"]
        print(f"{C.BRIGHT_GREEN}{I.CHECK} {result['message']}{C.RESET}")
        if "documentId" in result:
            action = "created" if result["created"] else "appended to"
            print(f"  Document {C.WHITE}{result['documentId']}{C.RESET} {action}")
    else:
        print(f"{C.BRIGHT_RED}{I.CROSS} {body['error']}: {body.get('message', '')}{C.RESET}")

    if response["statusCode"] != 200:
        raise typer.Exit(1)


def event_publish(
    session_id: SessionOption,
    agent_name: AgentOption,
    event: EventOption,
    created_at: CreatedAtOption = None,
) -> None:
    """Publish one event to the Kafka events topic.

    Examples:
        sessionlog event publish -s s1 -a planner -e start
    """
    from sessionlog.infrastructure.kafka import publish_event

    try:
        record = validate_record(build_payload(session_id, agent_name, event, created_at))
    except RecordValidationError as e:
        fail(str(e))

    topic = get_settings().kafka.events_topic
    try:
        publish_event(record)
    except RuntimeError as e:
        fail(str(e))
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Published event to '{C.WHITE}{topic}{C.BRIGHT_GREEN}'{C.RESET}")
