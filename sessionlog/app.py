# ==============================================================================
# Session Event Log CLI
# ==============================================================================
"""
Command-line interface for the session event log.

Usage:
    sessionlog --help
    sessionlog event send -s s1 -a planner -e start
    sessionlog event publish -s s1 -a planner -e start
    sessionlog session show s1
    sessionlog session flush s1 -y
    sessionlog consumer run
    sessionlog db init
    sessionlog config show
"""

import logging
import os

import typer

from sessionlog.utils.config import get_settings

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="sessionlog",
    help="Session event log CLI",
    no_args_is_help=True,
)


@app.callback()
def configure_logging() -> None:
    """Session event log CLI."""
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


event_app = typer.Typer(
    help="Submit event records",
    no_args_is_help=True,
)
app.add_typer(event_app, name="event")

# Register event commands from cli.event module
from sessionlog.cli.event import event_publish, event_send

event_app.command("send")(event_send)
event_app.command("publish")(event_publish)

session_app = typer.Typer(
    help="Inspect and flush stored sessions",
    no_args_is_help=True,
)
app.add_typer(session_app, name="session")

from sessionlog.cli.session import session_flush, session_show

session_app.command("show")(session_show)
session_app.command("flush")(session_flush)

consumer_app = typer.Typer(
    help="Kafka queue consumer",
    no_args_is_help=True,
)
app.add_typer(consumer_app, name="consumer")

from sessionlog.cli.consumer import consumer_run

consumer_app.command("run")(consumer_run)

db_app = typer.Typer(
    help="PostgreSQL schema management",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")

from sessionlog.cli.db import db_init

db_app.command("init")(db_init)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

from sessionlog.cli.config import config_show

config_app.command("show")(config_show)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
