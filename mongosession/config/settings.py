"""
Configuration management for mongosession.

This module provides centralized configuration loading and validation using
Pydantic settings. The MongoDB URI and the session keys are loaded from
environment variables or .env files, never from code.

Environment-specific files (.env.development, .env.staging,
.env.production) override the base .env file.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mongosession.session.models import DEFAULT_MAX_AGE, Options


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    Files are loaded in order, with later files overriding earlier ones.

    Args:
        environment: The target environment.

    Returns:
        Tuple of .env file paths to load.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")

    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    List fields (session keys, CORS origins) are given as JSON arrays, e.g.
    ``SESSION_HASH_KEYS='["new-key", "old-key"]'``.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # MongoDB Configuration
    mongo_uri: str = Field(
        ...,
        description="MongoDB connection URI"
    )
    mongo_database: str = Field(
        default="session-db",
        description="Database name used when the URI does not name one"
    )
    mongo_server_selection_timeout_ms: int = Field(
        default=30000,
        ge=1,
        description="How long an operation waits for a reachable server"
    )

    # Session Configuration
    session_collection: str = Field(
        default="sessions",
        description="Collection holding one document per session"
    )
    session_name: str = Field(
        default="session-key",
        description="Cookie name of the application session"
    )
    session_path: str = Field(default="/", description="Cookie path")
    session_domain: Optional[str] = Field(default=None, description="Cookie domain")
    session_max_age: int = Field(
        default=DEFAULT_MAX_AGE,
        ge=0,
        description="Session lifetime in seconds, also the TTL index expiry"
    )
    session_secure: bool = Field(default=False, description="Send the cookie over HTTPS only")
    session_http_only: bool = Field(default=True, description="Hide the cookie from scripts")
    session_same_site: str = Field(default="lax", description="Cookie SameSite attribute")
    session_ensure_ttl: bool = Field(
        default=True,
        description="Declare a TTL index so MongoDB expires old sessions"
    )
    session_track_access_time: bool = Field(
        default=False,
        description="Refresh the session timestamp on every read, not only on save"
    )
    session_hash_keys: List[str] = Field(
        ...,
        description="Session hash keys, newest first"
    )
    session_block_keys: List[str] = Field(
        default_factory=list,
        description="Optional block keys, paired with hash keys by position"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=["http://localhost:3000"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("mongo_uri")
    @classmethod
    def validate_mongo_uri(cls, v: str) -> str:
        """Validate that mongo_uri is not empty and uses a MongoDB scheme."""
        if not v or not v.strip():
            raise ValueError("mongo_uri cannot be empty")
        v = v.strip()
        if not (v.startswith("mongodb://") or v.startswith("mongodb+srv://")):
            raise ValueError("mongo_uri must start with mongodb:// or mongodb+srv://")
        return v

    @field_validator("session_hash_keys")
    @classmethod
    def validate_session_hash_keys(cls, v: List[str]) -> List[str]:
        """Validate that at least one non-empty hash key is configured."""
        keys = [key.strip() for key in v]
        if not keys:
            raise ValueError("session_hash_keys must contain at least one key")
        if any(not key for key in keys):
            raise ValueError("session_hash_keys cannot contain empty keys")
        return keys

    @field_validator("session_same_site")
    @classmethod
    def validate_session_same_site(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in {"lax", "strict", "none"}:
            raise ValueError("session_same_site must be 'lax', 'strict' or 'none'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: List[str]) -> List[str]:
        """
        Validate CORS origins format and reject wildcard patterns.

        Session cookies are sent with credentials, which browsers refuse
        for wildcard origins anyway.
        """
        validated_origins = []
        for origin in v:
            origin = origin.strip()
            if origin == "*" or "*" in origin:
                raise ValueError(
                    f"Wildcard patterns are not allowed in CORS origins: {origin}. "
                    "Specify exact frontend domains."
                )
            if not (origin.startswith("http://") or origin.startswith("https://")):
                raise ValueError(
                    f"Invalid CORS origin format: {origin}. "
                    "Must start with http:// or https://"
                )
            validated_origins.append(origin)
        return validated_origins

    @model_validator(mode="after")
    def validate_session_config(self) -> "Settings":
        """Validate cross-field session settings."""
        if len(self.session_block_keys) > len(self.session_hash_keys):
            raise ValueError(
                "session_block_keys cannot have more entries than session_hash_keys"
            )
        if self.session_ensure_ttl and self.session_max_age == 0:
            raise ValueError(
                "session_max_age must be positive when session_ensure_ttl is enabled"
            )
        if self.session_same_site == "none" and not self.session_secure:
            raise ValueError("session_same_site 'none' requires session_secure")
        if self.environment == Environment.PRODUCTION and not self.session_secure:
            raise ValueError("session_secure is required in production")
        return self

    def session_options(self) -> Options:
        """Build the default session options."""
        return Options(
            path=self.session_path,
            domain=self.session_domain,
            max_age=self.session_max_age,
            secure=self.session_secure,
            http_only=self.session_http_only,
            same_site=self.session_same_site,
        )

    def key_pairs(self) -> List[Optional[bytes]]:
        """
        Return the session keys as alternating hash and block keys,
        newest first, ready for MongoStore or codecs_from_pairs.
        """
        pairs: List[Optional[bytes]] = []
        for i, hash_key in enumerate(self.session_hash_keys):
            block_key = self.session_block_keys[i] if i < len(self.session_block_keys) else ""
            pairs.append(hash_key.encode("utf-8"))
            pairs.append(block_key.encode("utf-8") or None)
        return pairs


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Factory function to create Settings for a specific environment.

    Args:
        environment: Optional environment override. If not provided, detected from
                    ENVIRONMENT variable.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [env_file for env_file in env_files if Path(env_file).exists()]

    # Pydantic ignores missing files
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', []))
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If required settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


# Shortest hash key accepted outside development
MIN_KEY_LENGTH = 32


def validate_startup() -> None:
    """
    Validate all required settings at application startup.

    Raises:
        ConfigurationError: If any required settings are missing or invalid.
    """
    settings = get_settings()

    validation_errors = {}

    if settings.environment != Environment.DEVELOPMENT:
        for i, key in enumerate(settings.session_hash_keys):
            if len(key) < MIN_KEY_LENGTH:
                validation_errors[f"session_hash_keys[{i}]"] = (
                    f"Hash keys must be at least {MIN_KEY_LENGTH} characters "
                    f"in {settings.environment.value}"
                )

        localhost_only = all(
            "localhost" in origin or "127.0.0.1" in origin
            for origin in settings.cors_origins
        )
        if settings.environment == Environment.PRODUCTION and localhost_only:
            validation_errors["cors_origins"] = (
                "Production environment requires non-localhost CORS origins. "
                "Configure your production frontend domain(s)."
            )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )
