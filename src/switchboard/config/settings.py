"""Runtime settings for the switchboard hosts, read from ``SWITCHBOARD_*`` variables."""

from __future__ import annotations

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from switchboard import __version__
from switchboard.protocol.errors import ConfigError
from switchboard.protocol.models import ServerInfo

ENV_PREFIX = "SWITCHBOARD_"


class Settings(BaseSettings):
    """Host configuration.

    Each field can be set with the upper-cased, prefixed environment
    variable, e.g. ``SWITCHBOARD_PORT=8080``.  Empty variables are ignored.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
    )

    name: str = "switchboard"
    version: str = __version__
    host: str = "127.0.0.1"
    port: int = 3000
    mcp_config: str | None = None
    session_max_age: float = 3600.0
    session_sweep_interval: float = 300.0
    ping_interval: float = 30.0
    config_watch_interval: float = 1.0
    request_timeout: float = 30.0

    @property
    def server_info(self) -> ServerInfo:
        return ServerInfo(name=self.name, version=self.version)

    @classmethod
    def from_env(cls, **overrides: object) -> Settings:
        """Build settings from the environment; non-``None`` *overrides* win.

        Raises:
            ConfigError: A variable holds a value of the wrong type.
        """
        values = {key: value for key, value in overrides.items() if value is not None}
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc
