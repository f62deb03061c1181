"""Configuration for the Linear channel.

Values come from explicit overrides first, then environment variables,
then the defaults declared on the model.
"""

import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .bridge_logging import get_logger

logger = get_logger()


class ConfigError(ValueError):
    """Raised when required configuration is missing or invalid."""


# Environment variable -> config field
ENV_MAPPING: dict[str, str] = {
    "LINEAR_API_KEY": "api_key",
    "LINEAR_USER_ID": "user_id",
    "LINEAR_POLL_INTERVAL": "poll_interval_ms",
    "LINEAR_ALLOWED_USERS": "allowed_users",
    "ASSISTANT_NAME": "assistant_name",
    "LINEAR_STATE_DB": "state_db_path",
    "LOG_LEVEL": "log_level",
}


class ChannelConfig(BaseModel):
    """Settings for one watched Linear account."""

    api_key: str = Field(min_length=1, description="Linear API key")
    user_id: str = Field(min_length=1, description="Watched Linear user id")
    poll_interval_ms: int = Field(
        default=60000, ge=1000, description="Milliseconds between polls"
    )
    allowed_users: frozenset[str] = Field(
        default_factory=frozenset,
        description="User ids allowed to trigger delivery (empty = everyone)",
    )
    assistant_name: str = Field(default="Andy", description="Assistant to mention")
    state_db_path: str = Field(
        default="store/linear_state.db", description="SQLite state database"
    )
    log_level: str = Field(default="INFO", description="Log level name")

    @field_validator("allowed_users", mode="before")
    @classmethod
    def _split_allowed_users(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset(part.strip() for part in value.split(",") if part.strip())
        return value


def load_config(environ: dict[str, str] | None = None, **overrides: Any) -> ChannelConfig:
    """Load channel configuration.

    Args:
        environ: Environment mapping (defaults to os.environ)
        **overrides: Explicit values, taking precedence over the environment

    Returns:
        Validated ChannelConfig

    Raises:
        ConfigError: If a required value is missing or a value is invalid
    """
    environ = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    for env_key, field_name in ENV_MAPPING.items():
        raw = environ.get(env_key)
        if raw is not None and raw.strip() != "":
            values[field_name] = raw.strip()

    values.update({k: v for k, v in overrides.items() if v is not None})

    missing = [
        env_key
        for env_key, field_name in ENV_MAPPING.items()
        if field_name in ("api_key", "user_id") and not values.get(field_name)
    ]
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    try:
        config = ChannelConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid Linear channel configuration: {e}") from None

    logger.debug(
        f"Loaded config for user {config.user_id} "
        f"(interval={config.poll_interval_ms}ms, "
        f"allow-list={len(config.allowed_users)} users)"
    )
    return config
