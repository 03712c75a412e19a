"""
Interface to client configuration as persisted in .yaml file or provided
through the environment.
"""

from __future__ import annotations

import os
from logging import Logger
from pathlib import Path
from typing import Any, Self

import dotenv
import yaml
from pydantic import BaseModel, field_serializer, field_validator

from .core import Session
from .core.channel import (
    KEEPALIVE_INTERVAL,
    MAX_RECONNECT_ATTEMPTS,
    RECONNECT_DELAY,
)
from .core.session import (
    DEFAULT_BASE_URL,
    DEFAULT_CREDENTIALS_FILE,
    DEFAULT_WEBSOCKET_URL,
)
from .core.transport import REQUEST_TIMEOUT

__all__ = [
    "ClientConfig",
]

ENV_EMAIL = "ANYLIST_EMAIL"
ENV_PASSWORD = "ANYLIST_PASSWORD"
ENV_CREDENTIALS_FILE = "ANYLIST_CREDENTIALS_FILE"


class ClientConfig(BaseModel):
    """
    Encapsulates info needed to connect to AnyList.
    """

    email: str
    password: str

    credentials_file: Path | None = Path(DEFAULT_CREDENTIALS_FILE)
    """
    Where to store tokens between sessions, or `None` to not store them.
    """

    base_url: str = DEFAULT_BASE_URL
    websocket_url: str = DEFAULT_WEBSOCKET_URL
    keepalive_interval: float = KEEPALIVE_INTERVAL
    max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS
    reconnect_delay: float = RECONNECT_DELAY
    request_timeout: float = REQUEST_TIMEOUT

    @field_validator("credentials_file", mode="before")
    def validate_credentials_file(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Path(value).expanduser()
        return value

    @field_validator("max_reconnect_attempts")
    def validate_max_reconnect_attempts(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_reconnect_attempts must not be negative")
        return value

    @field_serializer("credentials_file")
    def serialize_credentials_file(self, value: Path | None) -> str | None:
        return str(value) if isinstance(value, Path) else value

    @classmethod
    def load_yaml(cls, file: Path) -> Self:
        """
        Load config from .yaml file.
        """
        if not file.is_file():
            raise FileNotFoundError(f"Config file does not exist: {file}")

        with file.open() as fh:
            model = yaml.safe_load(fh)

        if not isinstance(model, dict):
            raise ValueError(f"Invalid yaml contents: {model}")

        return cls(**model)

    def dump_yaml(self, file: Path):
        """
        Dump config to .yaml file.
        """
        model = self.model_dump(by_alias=True)
        model_yaml = yaml.safe_dump(
            model, default_flow_style=False, sort_keys=False
        )
        file.write_text(model_yaml)

    @classmethod
    def from_env(cls, env_file: Path | None = None, **overrides: Any) -> Self:
        """
        Get config from environment, after loading a `.env` file if one
        exists. Explicitly provided values take precedence.

        :param env_file: Path of `.env` file, or `None` to use `.env` in current folder
        :param overrides: Values taking precedence over the environment
        """
        dotenv.load_dotenv((env_file or Path(".env")).resolve())

        values: dict[str, Any] = {}

        for field, var in [
            ("email", ENV_EMAIL),
            ("password", ENV_PASSWORD),
            ("credentials_file", ENV_CREDENTIALS_FILE),
        ]:
            if var in os.environ:
                values[field] = os.environ[var]

        missing = [
            var
            for field, var in [("email", ENV_EMAIL), ("password", ENV_PASSWORD)]
            if field not in values and field not in overrides
        ]
        if missing:
            raise ValueError(
                f"Missing environment variables: {', '.join(missing)}"
            )

        return cls(**(values | overrides))

    def create_session(self, *, logger: Logger | None = None) -> Session:
        """
        Get session from this config's fields.
        """
        return Session(
            self.email,
            self.password,
            credentials_file=self.credentials_file,
            base_url=self.base_url,
            websocket_url=self.websocket_url,
            keepalive_interval=self.keepalive_interval,
            max_reconnect_attempts=self.max_reconnect_attempts,
            reconnect_delay=self.reconnect_delay,
            request_timeout=self.request_timeout,
            logger=logger,
        )
