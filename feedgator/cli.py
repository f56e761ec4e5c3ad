"""Command-line entry point."""

from __future__ import annotations

import logging
import sqlite3
import sys

from feedgator.commands import (
    Command,
    CommandError,
    CommandRegistry,
    State,
    middleware_logged_in,
)
from feedgator.config import read_config
from feedgator.database import NotFoundError, connect
from feedgator import handlers

log = logging.getLogger(__name__)


def build_registry() -> CommandRegistry:
    """Return a registry holding every command."""
    registry = CommandRegistry()
    registry.register("register", handlers.handler_register)
    registry.register("login", handlers.handler_login)
    registry.register("reset", handlers.handler_reset)
    registry.register("users", handlers.handler_users)
    registry.register("agg", handlers.handler_agg)
    registry.register("addfeed", middleware_logged_in(handlers.handler_add_feed))
    registry.register("feeds", handlers.handler_list_feeds)
    registry.register("follow", middleware_logged_in(handlers.handler_follow))
    registry.register("following", middleware_logged_in(handlers.handler_list_feed_follows))
    registry.register("unfollow", middleware_logged_in(handlers.handler_unfollow))
    registry.register("browse", middleware_logged_in(handlers.handler_browse))
    return registry


def main(argv: list[str] | None = None) -> int:
    """Run one command; return the process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        config = read_config()
    except (OSError, ValueError) as exc:
        log.error("error reading config: %s", exc)
        return 1
    try:
        db = connect(config.db_url)
    except (sqlite3.Error, ValueError) as exc:
        log.error("error connecting database: %s", exc)
        return 1
    with db:
        if not args:
            log.error("Usage: cli <command> [args...]")
            return 1
        state = State(db=db, config=config)
        try:
            build_registry().run(state, Command(args[0], args[1:]))
        except (CommandError, NotFoundError, sqlite3.Error, OSError) as exc:
            log.error("%s", exc)
            return 1
        except KeyboardInterrupt:
            return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())