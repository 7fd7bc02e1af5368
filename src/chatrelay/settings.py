from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

from .correlator import ACK_TIMEOUT_S
from .errors import ConfigError
from .store import JsonFileStore, MemoryStore, Store

HOME_STATE_PATH = Path.home() / ".chatrelay" / "store.json"


class StoreSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: Literal["memory", "json"] = "memory"
    path: Path = HOME_STATE_PATH

    @field_validator("path", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = value.strip()
            if not cleaned:
                raise ValueError("store path must be a non-empty string")
            return Path(cleaned).expanduser()
        return value


class PluginsSettings(BaseModel):
    enabled: list[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("enabled", mode="before")
    @classmethod
    def _split_enabled(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


class RelaySettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="CHATRELAY__",
        env_nested_delimiter="__",
        populate_by_name=True,
    )

    token: SecretStr | None = Field(
        default=None,
        description="Credential for network platforms (unused by the console).",
        validation_alias=AliasChoices("CHATRELAY__TOKEN", "SLACK_TOKEN"),
    )
    platform: str = "console"
    ack_timeout: float = ACK_TIMEOUT_S
    debug: bool = False
    store: StoreSettings = Field(default_factory=StoreSettings)
    plugins: PluginsSettings = Field(default_factory=PluginsSettings)

    @field_validator("ack_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("ack_timeout must be positive")
        return value

    @field_validator("platform", mode="before")
    @classmethod
    def _normalize_platform(cls, value: Any) -> Any:
        if isinstance(value, str):
            cleaned = value.strip().lower()
            if not cleaned:
                raise ValueError("platform must be a non-empty string")
            return cleaned
        return value


def load_settings(**overrides: Any) -> RelaySettings:
    try:
        return RelaySettings(**overrides)
    except (ValidationError, SettingsError) as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def build_store(settings: StoreSettings) -> Store:
    if settings.backend == "json":
        return JsonFileStore(settings.path)
    return MemoryStore()
