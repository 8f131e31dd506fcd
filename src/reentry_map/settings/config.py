"""Configuration loader for Reentry Map services using Pydantic settings."""

from __future__ import annotations

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_VAR_NAME = "REENTRY_ENV"
DEFAULT_ENV = "local"
PROJECT_ROOT = Path(__file__).resolve().parents[3]
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.default.toml"
LOCAL_CONFIG_FILE = CONFIG_DIR / "settings.local.toml"
SETTINGS_FILE_ENV_VAR = "REENTRY_SETTINGS_FILE"


def _resolve_env(explicit_env: str | None = None) -> str:
    """Return the active environment name.

    Args:
        explicit_env: Environment value supplied directly by the caller.

    Returns:
        A stripped environment name, falling back to ``DEFAULT_ENV``.
    """

    env = explicit_env or os.getenv(ENV_VAR_NAME) or DEFAULT_ENV
    return env.strip()


def _env_file_candidates(env: str) -> list[Path]:
    """List candidate ``.env`` files used during settings resolution."""

    return [
        PROJECT_ROOT / ".env",
        PROJECT_ROOT / f".env.{env}",
        PROJECT_ROOT / ".env.local",
    ]


def _resolve_config_path(raw_path: str | None) -> Path | None:
    """Return an absolute config path from user input."""

    if not raw_path:
        return None
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = (PROJECT_ROOT / candidate).resolve()
    return candidate


def _config_file_priority(include_missing: bool = False) -> tuple[Path, ...]:
    """Return config files in descending precedence order."""

    ordered: list[Path] = []
    env_override = _resolve_config_path(os.getenv(SETTINGS_FILE_ENV_VAR))
    if env_override:
        ordered.append(env_override)
    ordered.append(LOCAL_CONFIG_FILE)
    ordered.append(DEFAULT_CONFIG_FILE)
    if include_missing:
        return tuple(ordered)
    return tuple(path for path in ordered if path.exists())


class TomlConfigSettingsSource(PydanticBaseSettingsSource):
    """Pydantic settings source that loads values from a TOML file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._data: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data
        if not self.path.exists():
            self._data = {}
            return self._data
        try:
            with self.path.open("rb") as handle:
                self._data = tomllib.load(handle)
        except tomllib.TOMLDecodeError as exc:  # pragma: no cover - invalid files surface immediately
            raise ValueError(f"Invalid TOML syntax in {self.path}") from exc
        return self._data

    def __call__(self) -> dict[str, Any]:  # pragma: no cover - trivial wrapper
        return self._load()

    def get_field_value(self, field_name: str, field):  # pragma: no cover - passthrough helper
        data = self._load()
        return data.get(field_name), field_name in data


class RuntimeSettings(BaseSettings):
    """Process-level runtime controls."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    log_level: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "RUNTIME__LOG_LEVEL"),
    )


class APISettings(BaseSettings):
    """Admin API access configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    base_url: str = Field(
        default="http://127.0.0.1:8000",
        validation_alias=AliasChoices("API_URL", "API__BASE_URL"),
    )
    admin_tokens: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("API_ADMIN_TOKENS", "API__ADMIN_TOKENS"),
    )


class StorageSettings(BaseSettings):
    """Relational storage configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    structured_backend: Literal["sqlite", "postgres"] = Field(
        default="sqlite",
        validation_alias=AliasChoices("STRUCTURED_BACKEND", "STORAGE__STRUCTURED_BACKEND"),
    )
    sqlite_path: Path = Field(
        default=PROJECT_ROOT / "data" / "reentry_map.db",
        validation_alias=AliasChoices("SQLITE_PATH", "STORAGE__SQLITE_PATH"),
    )
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "STORAGE__DATABASE_URL"),
    )


class GeocodingSettings(BaseSettings):
    """Geocoding collaborator wiring."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    provider: Literal["google", "disabled"] = Field(
        default="google",
        validation_alias=AliasChoices("GEOCODING_PROVIDER", "GEOCODING__PROVIDER"),
    )
    api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_MAPS_KEY", "GEOCODING_API_KEY", "GEOCODING__API_KEY"),
    )
    base_url: str = Field(
        default="https://maps.googleapis.com/maps/api/geocode/json",
        validation_alias=AliasChoices("GEOCODING_BASE_URL", "GEOCODING__BASE_URL"),
    )
    timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("GEOCODING_TIMEOUT_SECONDS", "GEOCODING__TIMEOUT_SECONDS"),
    )
    cost_per_request_usd: float = Field(
        default=0.005,
        validation_alias=AliasChoices("GEOCODING_COST_PER_REQUEST_USD", "GEOCODING__COST_PER_REQUEST_USD"),
    )


class LLMSettings(BaseSettings):
    """Chat model used to compare a candidate against its website."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    provider: Literal["ollama", "disabled"] = Field(
        default="disabled",
        validation_alias=AliasChoices("LLM_PROVIDER", "LLM__PROVIDER"),
    )
    chat_model: str = Field(
        default="llama3.1",
        validation_alias=AliasChoices("LLM_CHAT_MODEL", "LLM__CHAT_MODEL"),
    )
    temperature: float = Field(
        default=0.1,
        validation_alias=AliasChoices("LLM_TEMPERATURE", "LLM__TEMPERATURE"),
    )
    ollama_base_url: str = Field(
        default="http://127.0.0.1:11434",
        validation_alias=AliasChoices("OLLAMA_BASE_URL", "LLM__OLLAMA_BASE_URL"),
    )
    max_page_chars: int = Field(
        default=5000,
        validation_alias=AliasChoices("LLM_MAX_PAGE_CHARS", "LLM__MAX_PAGE_CHARS"),
    )
    input_cost_per_million_usd: float = Field(
        default=0.0,
        validation_alias=AliasChoices("LLM_INPUT_COST_PER_MILLION_USD", "LLM__INPUT_COST_PER_MILLION_USD"),
    )
    output_cost_per_million_usd: float = Field(
        default=0.0,
        validation_alias=AliasChoices("LLM_OUTPUT_COST_PER_MILLION_USD", "LLM__OUTPUT_COST_PER_MILLION_USD"),
    )


class CheckWeights(BaseSettings):
    """Relative weight of each verification check in the overall score."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    url_reachable: float = 0.15
    phone_valid: float = 0.15
    address_geocodable: float = 0.2
    website_content_matches: float = 0.2


class VerificationSettings(BaseSettings):
    """Thresholds and limits applied by the verification pipeline."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    agent_version: str = Field(
        default="verification-pipeline-1.0",
        validation_alias=AliasChoices("VERIFICATION_AGENT_VERSION", "VERIFICATION__AGENT_VERSION"),
    )
    url_timeout_seconds: float = Field(
        default=15.0,
        validation_alias=AliasChoices("VERIFICATION_URL_TIMEOUT_SECONDS", "VERIFICATION__URL_TIMEOUT_SECONDS"),
    )
    min_geocode_confidence: float = Field(
        default=0.6,
        validation_alias=AliasChoices(
            "VERIFICATION_MIN_GEOCODE_CONFIDENCE", "VERIFICATION__MIN_GEOCODE_CONFIDENCE"
        ),
    )
    approve_threshold: float = Field(
        default=0.85,
        validation_alias=AliasChoices("VERIFICATION_APPROVE_THRESHOLD", "VERIFICATION__APPROVE_THRESHOLD"),
    )
    reject_threshold: float = Field(
        default=0.5,
        validation_alias=AliasChoices("VERIFICATION_REJECT_THRESHOLD", "VERIFICATION__REJECT_THRESHOLD"),
    )
    default_batch_size: int = Field(
        default=1,
        validation_alias=AliasChoices("VERIFICATION_DEFAULT_BATCH_SIZE", "VERIFICATION__DEFAULT_BATCH_SIZE"),
    )
    max_batch_size: int = Field(
        default=50,
        validation_alias=AliasChoices("VERIFICATION_MAX_BATCH_SIZE", "VERIFICATION__MAX_BATCH_SIZE"),
    )
    max_submission_batch: int = Field(
        default=100,
        validation_alias=AliasChoices(
            "VERIFICATION_MAX_SUBMISSION_BATCH", "VERIFICATION__MAX_SUBMISSION_BATCH"
        ),
    )
    weights: CheckWeights = Field(default_factory=CheckWeights)


class DedupSettings(BaseSettings):
    """Similarity cut-offs used by duplicate detection."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    name_similarity_threshold: float = Field(
        default=0.8,
        validation_alias=AliasChoices("DEDUP_NAME_SIMILARITY_THRESHOLD", "DEDUP__NAME_SIMILARITY_THRESHOLD"),
    )
    address_similarity_threshold: float = Field(
        default=0.9,
        validation_alias=AliasChoices(
            "DEDUP_ADDRESS_SIMILARITY_THRESHOLD", "DEDUP__ADDRESS_SIMILARITY_THRESHOLD"
        ),
    )


class ObservabilitySettings(BaseSettings):
    """Logging and metrics configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    structured_logging: bool = Field(
        default=True,
        validation_alias=AliasChoices("OBS_STRUCTURED_LOGGING", "OBSERVABILITY__STRUCTURED_LOGGING"),
    )
    statsd_host: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OBS_STATSD_HOST", "OBSERVABILITY__STATSD_HOST"),
    )
    statsd_port: int = Field(
        default=8125,
        validation_alias=AliasChoices("OBS_STATSD_PORT", "OBSERVABILITY__STATSD_PORT"),
    )
    statsd_prefix: str = Field(
        default="reentry_map",
        validation_alias=AliasChoices("OBS_STATSD_PREFIX", "OBSERVABILITY__STATSD_PREFIX"),
    )
    service_name: str = Field(
        default="reentry-map-verification",
        validation_alias=AliasChoices("OBS_SERVICE_NAME", "OBSERVABILITY__SERVICE_NAME"),
    )


class Settings(BaseSettings):
    """Top-level configuration model with nested sections for each subsystem."""

    env: str = Field(
        default_factory=lambda: _resolve_env(),
        validation_alias=AliasChoices("ENV", "ENVIRONMENT", "RUNTIME__ENV"),
    )
    project_root: Path = Field(default=PROJECT_ROOT)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)
    api: APISettings = Field(default_factory=APISettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    geocoding: GeocodingSettings = Field(default_factory=GeocodingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    verification: VerificationSettings = Field(default_factory=VerificationSettings)
    dedup: DedupSettings = Field(default_factory=DedupSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    env_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)
    config_files: tuple[Path, ...] = Field(default_factory=tuple, exclude=True)

    model_config = SettingsConfigDict(
        env_prefix="REENTRY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Extend settings sources with TOML-based config files."""

        config_sources = [TomlConfigSettingsSource(settings_cls, path) for path in _config_file_priority()]
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            *config_sources,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _resolve_paths(self) -> "Settings":
        """Normalize relative paths once the model is initialised."""

        if not self.storage.sqlite_path.is_absolute():
            resolved = (self.project_root / self.storage.sqlite_path).resolve()
            object.__setattr__(self, "storage", self.storage.model_copy(update={"sqlite_path": resolved}))
        return self

    @model_validator(mode="after")
    def _apply_environment_overrides(self) -> "Settings":
        """Force environment-specific defaults after basic resolution."""

        env_name = self.env.lower()

        if env_name == "local":
            storage_update = {"structured_backend": "sqlite", "database_url": None}
            object.__setattr__(self, "storage", self.storage.model_copy(update=storage_update))

            observability_update = {"structured_logging": False}
            object.__setattr__(self, "observability", self.observability.model_copy(update=observability_update))

        if self.verification.reject_threshold > self.verification.approve_threshold:
            raise ValueError("verification.reject_threshold must not exceed verification.approve_threshold")

        return self

    @property
    def is_local(self) -> bool:
        """bool: True when the active environment is ``local``."""

        return self.env.lower() == "local"


def _load_settings(env: str | None = None) -> Settings:
    """Load settings with optional environment override.

    Args:
        env: Environment name supplied programmatically.

    Returns:
        Fully parsed :class:`Settings` instance with env files applied.
    """

    resolved_env = _resolve_env(env)
    candidate_files = [path for path in _env_file_candidates(resolved_env) if path.exists()]
    config_files = _config_file_priority()
    return Settings(
        _env_file=[str(path) for path in candidate_files],
        _env_file_encoding="utf-8",
        env=resolved_env,
        env_files=tuple(candidate_files),
        config_files=config_files,
    )


@lru_cache(maxsize=1)
def get_settings(env: str | None = None) -> Settings:
    """Return cached settings for the requested environment."""

    return _load_settings(env)


def reload_settings(env: str | None = None) -> Settings:
    """Clear the cached settings and reload from disk."""

    get_settings.cache_clear()
    return get_settings(env)


__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
    "PROJECT_ROOT",
    "ENV_VAR_NAME",
]
