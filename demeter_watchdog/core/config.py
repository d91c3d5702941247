from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from demeter_watchdog.core.errors import ConfigurationInvalidError, ConfigurationMissingError
from demeter_watchdog.domain.models import PollConfig


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "conf.json"
# Refresh overrides at or below this value are treated as "not set".
MIN_REFRESH_OVERRIDE_MS = 1


class Neo4jSettings(BaseModel):
    url: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = ""
    encrypted: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        populate_by_name=True,
        extra="ignore",
    )

    app_name: str = "demeter-watchdog"
    log_level: str = "INFO"
    # File log is always written; stdout only mirrors it in verbose mode.
    log_path: str = "./logs/info.log"

    neo4j: Neo4jSettings = Field(default_factory=Neo4jSettings)

    # Delay between two polling cycles, in milliseconds.
    refresh_rate: int = Field(
        default=5000,
        gt=0,
        validation_alias=AliasChoices("refreshRate", "refresh_rate"),
    )
    # Tags containing this prefix mark an application for grouping.
    tag_prefix: str = Field(default="Dmg_", validation_alias=AliasChoices("tagPrefix", "tag_prefix"))
    # An application is suppressed once its failure count goes above this value.
    failure_threshold: int = Field(
        default=5,
        ge=0,
        validation_alias=AliasChoices("failureThreshold", "failure_threshold"),
    )
    # Per-call timeout for Neo4j queries; 0 waits forever.
    call_timeout_ms: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("callTimeoutMs", "call_timeout_ms"),
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: Any) -> str:
        level = str(value).upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The JSON document arrives as init kwargs; let the environment override it.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    def poll_config(self) -> PollConfig:
        return PollConfig(
            refresh_rate_ms=self.refresh_rate,
            tag_prefix=self.tag_prefix,
            failure_threshold=self.failure_threshold,
            call_timeout_ms=self.call_timeout_ms,
        )

    def redacted(self) -> dict[str, Any]:
        payload = self.model_dump()
        if payload["neo4j"].get("password"):
            payload["neo4j"]["password"] = "****"
        return payload


def _read_document(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationMissingError(f"failed to open configuration file {path}: {exc}") from exc
    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationInvalidError(f"configuration {path} is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ConfigurationInvalidError(f"configuration {path} must hold a JSON object")
    return document


def load_settings(path: str | Path = DEFAULT_CONFIG_PATH) -> Settings:
    config_path = Path(path)
    document = _read_document(config_path)
    try:
        return Settings(**document)
    except ValidationError as exc:
        raise ConfigurationInvalidError(f"configuration {config_path} is invalid: {exc}") from exc


@lru_cache
def get_settings(path: str = DEFAULT_CONFIG_PATH) -> Settings:
    return load_settings(path)


def apply_refresh_override(settings: Settings, override: int | None) -> Settings:
    # Only values strictly above the floor count as an explicit override.
    if override is None or override <= MIN_REFRESH_OVERRIDE_MS:
        return settings
    logger.info("refresh_rate_overridden refresh_rate_ms=%s previous_ms=%s", override, settings.refresh_rate)
    return settings.model_copy(update={"refresh_rate": override})
