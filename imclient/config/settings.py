"""Client configuration loading and validation."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, Literal

import yaml
from pydantic import AnyUrl, Field, PositiveFloat, PositiveInt
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models.im import DeviceFlag

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("/etc/wkim/client.yaml"),
    Path("/etc/wkim/client.yml"),
    Path("./config/client.yaml"),
    Path("./config/client.yml"),
)


class ClientSettings(BaseSettings):
    """Validated settings for the IM session client."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="WKIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection + identity
    server_url: AnyUrl = Field(
        default="ws://localhost:5100",
        description="JSON-RPC WebSocket endpoint of the IM server.",
    )
    uid: str | None = Field(
        default=None,
        description="User id presented during the connect handshake.",
    )
    token: str | None = Field(
        default=None,
        description="Opaque auth token presented during the connect handshake.",
        repr=False,
    )
    device_id: str | None = Field(
        default=None,
        description="Stable device id; derived from the session id when absent.",
    )
    device_flag: DeviceFlag = Field(
        default=DeviceFlag.WEB,
        description="Device class announced to the server.",
    )
    transport: Literal["dummy", "websocket"] = Field(
        default="websocket",
        description="Transport implementation to use.",
    )
    singleton: bool = Field(
        default=False,
        description="Register the session as the process-wide default.",
    )

    # Timeouts
    connect_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Seconds allowed for the transport opening handshake.",
    )
    request_timeout_seconds: PositiveFloat = Field(
        default=15.0,
        description="Default timeout for correlated requests.",
    )
    handshake_timeout_seconds: PositiveFloat = Field(
        default=5.0,
        description="Timeout for the connect (authentication) request.",
    )

    # Keepalive & reconnection
    ping_interval_seconds: PositiveFloat = Field(
        default=25.0,
        description="Interval between keepalive pings while connected.",
    )
    pong_timeout_seconds: PositiveFloat = Field(
        default=10.0,
        description="Timeout for a keepalive ping reply.",
    )
    reconnect_base_delay_seconds: PositiveFloat = Field(
        default=1.0,
        description="Base delay for reconnection backoff (doubled per attempt).",
    )
    reconnect_max_delay_seconds: PositiveFloat | None = Field(
        default=None,
        description="Optional cap applied to the reconnection backoff delay.",
    )
    reconnect_max_attempts: PositiveInt = Field(
        default=5,
        description="Reconnection attempts before giving up.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level for the client process.",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode="after")
    def _check_keepalive(self) -> "ClientSettings":
        if self.pong_timeout_seconds >= self.ping_interval_seconds:
            raise ValueError("pong_timeout_seconds must be shorter than ping_interval_seconds")
        return self

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[ClientSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            cls._yaml_settings_source,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @staticmethod
    def _yaml_settings_source(settings_cls: type[ClientSettings] | None = None) -> Dict[str, Any]:
        for path in ClientSettings._resolve_candidate_paths():
            data = ClientSettings._load_file(path)
            if data is not None:
                data.setdefault("config_path", path)
                return data
        return {}

    @staticmethod
    def _resolve_candidate_paths() -> Iterable[Path]:
        explicit = os.getenv("WKIM_CONFIG_FILE")
        if explicit:
            yield Path(explicit).expanduser()
        yield from DEFAULT_CONFIG_LOCATIONS

    @staticmethod
    def _load_file(path: Path) -> Dict[str, Any] | None:
        if not path.is_file():
            return None
        suffix = path.suffix.lower()
        try:
            with path.open("r", encoding="utf-8") as handle:
                if suffix in {".yaml", ".yml"}:
                    raw = yaml.safe_load(handle)
                elif suffix == ".json":
                    raw = json.load(handle)
                else:
                    return None
        except OSError as exc:
            raise RuntimeError(f"Failed to read client config file {path}") from exc
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ValueError(f"Invalid client config file {path}") from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise ValueError(f"Client config file {path} must contain a mapping at top level.")
        return raw


@lru_cache()
def get_settings() -> ClientSettings:
    """Return memoized client settings."""

    return ClientSettings()
