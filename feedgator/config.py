"""Reading and writing the user's configuration file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_FILE_NAME = ".gatorconfig.json"


@dataclass
class Config:
    """Database location and the name of the logged-in user."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the configuration."""
        self.current_user_name = user_name
        write_config(self, self.path)


def config_file_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _field(data: dict, key: str) -> str:
    value = data.get(key, "")
    if not isinstance(value, str):
        raise ValueError(f"config field {key!r} must be a string")
    return value


def read_config(path: str | os.PathLike[str] | None = None) -> Config:
    """Load the configuration from ``path`` or from the default location."""
    target = Path(path) if path is not None else config_file_path()
    with target.open(encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError("config file must hold a JSON object")
    return Config(
        db_url=_field(data, "db_url"),
        current_user_name=_field(data, "current_user_name"),
        path=target,
    )


def write_config(config: Config, path: str | os.PathLike[str] | None = None) -> None:
    """Save ``config`` as JSON to ``path`` or to the default location."""
    target = Path(path) if path is not None else config_file_path()
    payload = {"db_url": config.db_url, "current_user_name": config.current_user_name}
    with target.open("w", encoding="utf-8") as handle:
        handle.write(json.dumps(payload, separators=(",", ":")) + "\n")