"""Command dispatch and shared state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from feedgator.config import Config
from feedgator.database import Queries
from feedgator.models import User

Handler = Callable[["State", "Command"], Any]


class CommandError(Exception):
    """Raised when a command fails or is used wrongly."""


@dataclass
class Command:
    """A command name and its arguments."""

    name: str
    args: list[str] = field(default_factory=list)


@dataclass
class State:
    """What every handler works with: the database and the configuration."""

    db: Queries
    config: Config


class CommandRegistry:
    """Maps command names to handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def register(self, name: str, handler: Handler) -> None:
        """Register ``handler`` under ``name``, replacing any earlier one."""
        self._handlers[name] = handler

    def run(self, state: State, cmd: Command) -> Any:
        """Run the handler registered for ``cmd.name``."""
        try:
            handler = self._handlers[cmd.name]
        except KeyError:
            raise CommandError("command not found") from None
        return handler(state, cmd)


def middleware_logged_in(handler: Callable[[State, Command, User], Any]) -> Handler:
    """Wrap ``handler`` so it receives the current user as a third argument."""

    def wrapped(state: State, cmd: Command) -> Any:
        user = state.db.get_user(state.config.current_user_name)
        return handler(state, cmd, user)

    return wrapped