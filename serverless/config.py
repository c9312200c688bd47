"""
Settings for the server and client programs.

Values come from CLI flags first, then environment variables:
- AZURE_SIGNALR_CONNECTION_STRING
- SERVERLESS_HUB_NAME (default: ServerlessSample)
- SERVERLESS_LOG_LEVEL (default: WARNING)
- SERVERLESS_JSON_LOGS (default: false)
- SERVERLESS_TOKEN_LIFETIME (seconds, default: 3600)
"""

import os
from datetime import timedelta
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .service_utils import ConfigurationError

CONNECTION_STRING_ENV = "AZURE_SIGNALR_CONNECTION_STRING"
HUB_NAME_ENV = "SERVERLESS_HUB_NAME"
LOG_LEVEL_ENV = "SERVERLESS_LOG_LEVEL"
JSON_LOGS_ENV = "SERVERLESS_JSON_LOGS"
TOKEN_LIFETIME_ENV = "SERVERLESS_TOKEN_LIFETIME"

DEFAULT_HUB_NAME = "ServerlessSample"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value, default: bool = False) -> bool:
    """Converte valor para booleano de forma segura."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return default


class ServerlessSettings(BaseModel):
    """Configuração de um processo (server ou client)."""

    connection_string: str
    hub_name: str = DEFAULT_HUB_NAME
    log_level: str = "WARNING"
    json_logs: bool = False
    token_lifetime_seconds: int = Field(default=3600, gt=0)

    @field_validator('connection_string', 'hub_name')
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {v}")
        return level

    model_config = {"extra": "ignore"}

    @property
    def token_lifetime(self) -> timedelta:
        return timedelta(seconds=self.token_lifetime_seconds)

    @classmethod
    def load(
        cls,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ServerlessSettings":
        """
        Build settings from the environment plus explicit overrides.

        Overrides whose value is None are ignored, so argparse namespaces can be
        passed through untouched.

        Raises:
            ConfigurationError: missing connection string or invalid values
        """
        env = os.environ if environ is None else environ

        values: dict = {
            "connection_string": env.get(CONNECTION_STRING_ENV),
            "hub_name": env.get(HUB_NAME_ENV) or DEFAULT_HUB_NAME,
            "log_level": env.get(LOG_LEVEL_ENV) or "WARNING",
            "json_logs": _parse_bool(env.get(JSON_LOGS_ENV)),
        }
        if env.get(TOKEN_LIFETIME_ENV):
            values["token_lifetime_seconds"] = env[TOKEN_LIFETIME_ENV]

        for key, value in (overrides or {}).items():
            if value is not None:
                values[key] = value

        if not values.get("connection_string"):
            raise ConfigurationError(
                f"No connection string given (use --connection-string or set {CONNECTION_STRING_ENV})"
            )

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings: {e}") from e
