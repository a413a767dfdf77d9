# ==============================================================================
# Session Commands
# ==============================================================================
"""
Commands for inspecting and flushing stored sessions.
"""

import json
from typing import Annotated

import typer

from sessionlog.cli.shared import C, I, build_payload, connected_store, fail
from sessionlog.core.errors import StoreError
from sessionlog.core.models import FLUSH_AGENT_NAME, FLUSH_EVENT
from sessionlog.utils.config import get_settings


def session_show(
    session_id: Annotated[str, typer.Argument(help="Session identifier")],
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output documents as JSON")
    ] = False,
) -> None:
    """Show the stored documents for a session."""
    with connected_store() as store:
        try:
            documents = store.find_by_session_id(session_id)
        except StoreError as e:
            fail(str(e))

    if json_output:
        print(json.dumps([d.to_dict() for d in documents], indent=2))
        return

    if not documents:
        print(f"{C.BRIGHT_YELLOW}{I.WARN} No documents for session '{session_id}'{C.RESET}")
        return

    if len(documents) > 1:
        print(
            f"{C.BRIGHT_YELLOW}{I.WARN} {len(documents)} documents found; "
            f"new events go to the first{C.RESET}"
        )
    for document in documents:
        print()
        print(f"{C.CYAN}Document {document.id}{C.RESET}  ({len(document.events)} events)")
        for stored in document.events:
            print(
                f"  {I.BULLET} {C.DIM}{stored.created_at.isoformat()}{C.RESET}  "
                f"{C.WHITE}{stored.source}{C.RESET} {I.ARROW} {stored.event}"
            )
    print()


def session_flush(
    session_id: Annotated[str, typer.Argument(help="Session identifier")],
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete every stored document for a session.

    Sends the reserved flush record (analysis-agent / Flush) through the
    request channel, exactly as an agent would.
    """
    from sessionlog.ingress.handler import build_dispatcher, reset_handler

    if not confirm:
        typer.confirm(f"This will DELETE all documents for session '{session_id}'. Continue?", abort=True)

    payload = build_payload(session_id, FLUSH_AGENT_NAME, FLUSH_EVENT, None)
    try:
        dispatcher = build_dispatcher()
    except StoreError as e:
        fail(f"Cannot connect to {get_settings().store.backend} store: {e}")
    try:
        response = dispatcher.handle({"httpMethod": "POST", "body": payload})
    finally:
        reset_handler()

    body = response["body"]
    if response["statusCode"] != 200:
        fail(f"{body['error']}: {body.get('message', '')}")
    print(f"{C.BRIGHT_GREEN}{I.CHECK} {body['result']['message']}{C.RESET}")
