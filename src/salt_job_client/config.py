"""Configuration and logging setup for the Salt REST API client."""

import json
import logging
import os
import pathlib
from datetime import datetime, timezone

import pydantic
import structlog

from .saltapi import (
    DEFAULT_EAUTH,
    DEFAULT_TIMEOUT,
    DEFAULT_WAIT_SECONDS,
    DEFAULT_WAIT_TRIES,
    SaltApiClient,
)

CONFIG_ENV_VAR = "SALT_CLIENT_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "/etc/salt-job-client/config.json"
logger = structlog.get_logger(__name__)


class ClientConfig(pydantic.BaseModel):
    """Configuration for a SaltApiClient."""

    url: str = pydantic.Field(description="Base URL of the Salt REST API", min_length=1)
    eauth: str = pydantic.Field(DEFAULT_EAUTH, description="External auth backend")
    token: str | None = pydantic.Field(None, description="Token of a resumed session")
    token_expire: float | None = pydantic.Field(
        None,
        description="Expiry of the resumed token, seconds since epoch",
    )
    auto_renew: bool = pydantic.Field(
        False,
        description="Re-authenticate automatically when the token expires",
    )
    wait_tries: int = pydantic.Field(
        DEFAULT_WAIT_TRIES,
        description="Maximum polls per wait",
        gt=0,
    )
    wait_seconds: float = pydantic.Field(
        DEFAULT_WAIT_SECONDS,
        description="Seconds between polls while waiting",
        gt=0,
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="HTTP request timeout in seconds",
        gt=0,
    )
    debug: bool = pydantic.Field(False, description="Emit verbose diagnostic events")
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.model_validator(mode="after")
    def _token_and_expiry_together(self) -> "ClientConfig":
        if (self.token is None) != (self.token_expire is None):
            msg = "token and token_expire must be given together"
            raise ValueError(msg)
        return self


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str | pathlib.Path) -> ClientConfig:
    """Load configuration from a JSON file."""
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    return ClientConfig(**data)


def load_config_from_env() -> ClientConfig:
    """Load configuration from the path in the environment, or the default path."""
    return load_config(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


def create_client(config: ClientConfig) -> SaltApiClient:
    """Construct a SaltApiClient from validated config."""
    token_expire = (
        datetime.fromtimestamp(config.token_expire, tz=timezone.utc)
        if config.token_expire is not None
        else None
    )
    client = SaltApiClient(
        url=config.url,
        token=config.token,
        token_expire=token_expire,
        auto_renew=config.auto_renew,
        wait_tries=config.wait_tries,
        wait_seconds=config.wait_seconds,
        debug=config.debug,
        eauth=config.eauth,
        timeout=config.timeout,
    )
    logger.info("Created Salt API client", url=client.url, auto_renew=config.auto_renew)
    return client


def create_client_from_env(config_path: str | pathlib.Path | None = None) -> SaltApiClient:
    """Load config from a path or the environment default, set up logging, build a client."""
    config = load_config(config_path) if config_path else load_config_from_env()
    configure_logging(config.log_level)
    return create_client(config)
