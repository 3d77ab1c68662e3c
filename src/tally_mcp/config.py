"""Server settings loaded from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass

from tally_mcp.errors import ConfigError

DEFAULT_API_URL = "https://api.tally.xyz/query"
LOG_LEVELS = ("debug", "info", "warning", "error")
TRANSPORT_MODES = ("stdio", "sse", "streamable-http")

# env var -> Settings field
ENV_MAPPINGS = {
    "TALLY_API_KEY": "api_key",
    "TALLY_API_URL": "api_url",
    "LOG_LEVEL": "log_level",
    "TRANSPORT_MODE": "transport_mode",
    "PORT": "port",
    "MAX_RETRIES": "max_retries",
    "REQUEST_TIMEOUT": "request_timeout",
}


@dataclass(frozen=True)
class Settings:
    """Everything the server and the GraphQL client need to run."""

    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    log_level: str = "info"
    transport_mode: str = "stdio"
    port: int = 3000
    max_retries: int = 3
    retry_delay: float = 1.0
    request_timeout: float = 30.0
    max_requests_per_minute: int = 30

    def __post_init__(self) -> None:
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got '{self.log_level}'"
            )
        if self.transport_mode not in TRANSPORT_MODES:
            raise ConfigError(
                f"transport_mode must be one of {', '.join(TRANSPORT_MODES)}, got '{self.transport_mode}'"
            )
        if not 1 <= self.port <= 65535:
            raise ConfigError(f"port must be between 1 and 65535, got {self.port}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.request_timeout <= 0:
            raise ConfigError(f"request_timeout must be positive, got {self.request_timeout}")
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigError(f"api_url must be an http(s) URL, got '{self.api_url}'")

    def to_dict(self, redact: bool = True) -> dict:
        d = asdict(self)
        if redact and d["api_key"]:
            d["api_key"] = "***"
        return d

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        values: dict = {}
        for env_key, field_name in ENV_MAPPINGS.items():
            raw = env.get(env_key)
            if raw is None or raw == "":
                continue
            values[field_name] = raw

        try:
            if "port" in values:
                values["port"] = int(values["port"])
            if "max_retries" in values:
                values["max_retries"] = int(values["max_retries"])
            if "request_timeout" in values:
                values["request_timeout"] = float(values["request_timeout"])
        except ValueError as e:
            raise ConfigError(str(e)) from e

        if "log_level" in values:
            values["log_level"] = values["log_level"].lower()
        return cls(**values)
