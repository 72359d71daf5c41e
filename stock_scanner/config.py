"""Settings read from the environment."""

import os

from pydantic import BaseModel, ValidationError, model_validator

from stock_scanner.errors import ConfigError

REQUIRED = ("NOTION_TOKEN", "NOTION_DATABASE_ID")


class Settings(BaseModel):
    notion_token: str
    notion_database_id: str
    notion_version: str = "2022-06-28"
    notion_api_url: str = "https://api.notion.com/v1"
    notion_timeout_seconds: float = 10.0

    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 100

    scan_ttl_seconds: int = 86400
    lock_ttl_seconds: float = 30.0
    lock_wait_seconds: float = 10.0

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _store_calls_fit_in_lock(self) -> "Settings":
        # Lookup and update both run under the product lock
        if 2 * self.notion_timeout_seconds >= self.lock_ttl_seconds:
            raise ValueError("NOTION_TIMEOUT_SECONDS must be less than half of LOCK_TTL_SECONDS")
        return self

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Builds settings from environment variables.

        Raises:
            ConfigError: if a required variable is unset or a value
                cannot be parsed.
        """
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED if not env.get(name)]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        values = {
            field: env[field.upper()]
            for field in cls.model_fields
            if env.get(field.upper())
        }
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc
