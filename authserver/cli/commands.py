"""
CLI management commands for the authorization server.

Usage:
    python -m authserver.cli.commands init-db
    python -m authserver.cli.commands events <user_id> <client_id>
"""
from __future__ import annotations

import argparse
import logging
import sys

from authserver.api.services.authorization_event_service import (
    AuthorizationEventService,
    InvalidAuthorizationHistoryError,
)
from authserver.db.engine import SessionLocal, engine
from authserver.models import Base
from authserver.utils.logging_setup import configure_basic_logging

configure_basic_logging(level=logging.INFO)
logger = logging.getLogger(__name__)


def cmd_init_db() -> None:
    """Create all tables, including the authorization history indexes."""
    logger.info(f"Creating tables on {engine.url.render_as_string(hide_password=True)}...")
    try:
        Base.metadata.create_all(engine)
    except Exception as e:
        logger.error(f"Table creation failed: {e}")
        sys.exit(1)
    logger.info("Tables created successfully!")


def cmd_events(user_id: str, client_id: str) -> None:
    """Print the authorization timeline of a user for a client, most recent first."""
    db = SessionLocal()

    try:
        events = AuthorizationEventService(db).get_authorization_events(user_id, client_id)
    except InvalidAuthorizationHistoryError as e:
        logger.error(f"Invalid authorization history: {e}")
        sys.exit(1)
    finally:
        db.close()

    if not events:
        logger.info(f"No authorization history for user {user_id} and client {client_id}")
        return

    for event in events:
        scopes = " ".join(event.scopes) or "-"
        print(f"{event.timestamp.isoformat()}\t{event.event_type.value}\t{scopes}")


def main() -> None:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="Authorization server management commands",
        prog="python -m authserver.cli.commands"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    subparsers.add_parser(
        "init-db",
        help="Create database tables"
    )

    # events command
    events_parser = subparsers.add_parser(
        "events",
        help="Show the authorization timeline of a user for a client"
    )
    events_parser.add_argument("user_id", help="User id")
    events_parser.add_argument("client_id", help="Internal id of the OAuth2 client")

    args = parser.parse_args()

    if args.command == "init-db":
        cmd_init_db()
    elif args.command == "events":
        cmd_events(args.user_id, args.client_id)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
