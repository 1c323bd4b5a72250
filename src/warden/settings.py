from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    Field,
    SecretStr,
    ValidationError,
    field_serializer,
    field_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic_settings.sources import TomlConfigSettingsSource

from .config import DEFAULT_STATE_PATH, HOME_CONFIG_PATH, ConfigError, read_config
from .logging import resolve_level


class WardenSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="WARDEN__",
        env_nested_delimiter="__",
        env_file=".env",
    )

    token: SecretStr | None = None
    application_id: int | None = None
    dev_guild_id: int | None = None
    log_level: str = "info"
    owner_ids: Annotated[frozenset[int], NoDecode] = Field(default_factory=frozenset)
    default_prefix: str = "!"
    plugins_dir: Path = Path("plugins")
    state_path: Path = DEFAULT_STATE_PATH
    activity: str | None = "commands"

    @field_validator("token", mode="before")
    @classmethod
    def _validate_token(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError("token must be a string")
        cleaned = value.strip()
        return cleaned or None

    @field_validator("application_id", "dev_guild_id", mode="before")
    @classmethod
    def _validate_snowflake(cls, value: Any, info) -> Any:
        if value is None:
            return None
        if isinstance(value, bool):
            raise ValueError(f"{info.field_name} must be an integer")
        if isinstance(value, str):
            cleaned = value.strip()
            if not cleaned:
                return None
            if not cleaned.isdigit():
                raise ValueError(f"{info.field_name} must be an integer")
            return int(cleaned)
        if not isinstance(value, int):
            raise ValueError(f"{info.field_name} must be an integer")
        return value

    @field_validator("owner_ids", mode="before")
    @classmethod
    def _validate_owner_ids(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            # "123,456" from the environment
            value = [item for item in value.split(",") if item.strip()]
        if isinstance(value, int) and not isinstance(value, bool):
            value = [value]
        if not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("owner_ids must be a list of integers")
        ids: set[int] = set()
        for item in value:
            if isinstance(item, bool):
                raise ValueError("owner_ids must be a list of integers")
            if isinstance(item, str) and item.strip().isdigit():
                item = int(item.strip())
            if not isinstance(item, int):
                raise ValueError("owner_ids must be a list of integers")
            ids.add(item)
        return frozenset(ids)

    @field_validator("default_prefix", mode="before")
    @classmethod
    def _validate_prefix(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("default_prefix must be a string")
        cleaned = value.strip()
        if not cleaned or any(ch.isspace() for ch in cleaned):
            raise ValueError("default_prefix must be a non-empty string without spaces")
        return cleaned

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> Any:
        if not isinstance(value, str):
            raise ValueError("log_level must be a string")
        cleaned = value.strip().lower()
        resolve_level(cleaned)
        return cleaned

    @field_validator("plugins_dir", "state_path", mode="after")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        return value.expanduser()

    @field_serializer("token")
    def _dump_token(self, value: SecretStr | None) -> str | None:
        return value.get_secret_value() if value else None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def is_owner(self, user_id: int) -> bool:
        return user_id in self.owner_ids


def load_settings(path: str | Path | None = None) -> tuple[WardenSettings, Path]:
    cfg_path = _resolve_config_path(path)
    if cfg_path.exists() and not cfg_path.is_file():
        raise ConfigError(f"Config path {cfg_path} exists but is not a file.") from None
    if cfg_path.exists():
        # surfaces malformed TOML as a ConfigError before pydantic sees it
        read_config(cfg_path)
    return _load_settings_from_path(cfg_path), cfg_path


def load_settings_if_exists(
    path: str | Path | None = None,
) -> tuple[WardenSettings, Path] | None:
    cfg_path = _resolve_config_path(path)
    if not cfg_path.exists():
        return None
    return load_settings(cfg_path)


def validate_settings_data(
    data: dict[str, Any], *, config_path: Path
) -> WardenSettings:
    try:
        return WardenSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {config_path}: {exc}") from exc


def require_token(settings: WardenSettings, config_path: Path) -> str:
    if settings.token is None or not settings.token.get_secret_value().strip():
        raise ConfigError(
            f"Missing bot token; set `token` in {config_path} or WARDEN__TOKEN."
        )
    return settings.token.get_secret_value().strip()


def _resolve_config_path(path: str | Path | None) -> Path:
    return Path(path).expanduser() if path else HOME_CONFIG_PATH


def _load_settings_from_path(cfg_path: Path) -> WardenSettings:
    cfg = dict(WardenSettings.model_config)
    cfg["toml_file"] = cfg_path
    Bound = type(
        "WardenSettingsBound",
        (WardenSettings,),
        {"model_config": SettingsConfigDict(**cfg)},
    )
    try:
        return Bound()
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
