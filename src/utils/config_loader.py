"""
Configuration loader with type-safe Pydantic models.
Loads and validates environment variables for the application.
"""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"

# Load .env file if it exists
env_path = CONFIG_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)


class GoogleAuthConfig(BaseModel):
    """
    Google OAuth configuration.

    When client ID, client secret and refresh token are all set they are used
    directly; otherwise credentials are read from the token file.
    """

    model_config = ConfigDict(populate_by_name=True)

    client_id: Optional[str] = Field(default=None, alias="GOOGLE_APP_SCRIPT_API_CLIENT_ID")
    client_secret: Optional[str] = Field(default=None, alias="GOOGLE_APP_SCRIPT_API_CLIENT_SECRET")
    refresh_token: Optional[str] = Field(default=None, alias="GOOGLE_APP_SCRIPT_API_REFRESH_TOKEN")

    @field_validator("client_id", "client_secret", "refresh_token")
    @classmethod
    def blank_to_none(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip()

    def has_refresh_token_credentials(self) -> bool:
        """Check whether all three refresh-token fields are present."""
        return bool(self.client_id and self.client_secret and self.refresh_token)

    @classmethod
    def from_env(cls) -> "GoogleAuthConfig":
        """Create GoogleAuthConfig from environment variables."""
        return cls(
            GOOGLE_APP_SCRIPT_API_CLIENT_ID=os.getenv("GOOGLE_APP_SCRIPT_API_CLIENT_ID"),
            GOOGLE_APP_SCRIPT_API_CLIENT_SECRET=os.getenv("GOOGLE_APP_SCRIPT_API_CLIENT_SECRET"),
            GOOGLE_APP_SCRIPT_API_REFRESH_TOKEN=os.getenv("GOOGLE_APP_SCRIPT_API_REFRESH_TOKEN"),
        )


class PatchEngineConfig(BaseModel):
    """Tuning knobs for fuzzy matching and the syntax validator."""

    model_config = ConfigDict(populate_by_name=True)

    fuzzy_match_threshold: float = Field(default=0.5, alias="PATCH_FUZZY_MATCH_THRESHOLD")
    fuzzy_delete_threshold: float = Field(default=0.5, alias="PATCH_FUZZY_DELETE_THRESHOLD")
    fuzzy_match_distance: int = Field(default=1000, alias="PATCH_FUZZY_MATCH_DISTANCE")
    fuzzy_min_accuracy: float = Field(default=50.0, alias="PATCH_FUZZY_MIN_ACCURACY")
    max_change_percent: float = Field(default=50.0, alias="PATCH_MAX_CHANGE_PERCENT")
    max_growth_factor: float = Field(default=10.0, alias="PATCH_MAX_GROWTH_FACTOR")
    max_div_depth: int = Field(default=10, alias="PATCH_MAX_DIV_DEPTH")

    @field_validator("fuzzy_match_threshold", "fuzzy_delete_threshold")
    @classmethod
    def validate_threshold(cls, v):
        if not 0.0 <= v <= 1.0:
            raise ValueError("Fuzzy thresholds must be between 0.0 and 1.0")
        return v

    @field_validator("fuzzy_match_distance", "max_div_depth")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    @field_validator("fuzzy_min_accuracy", "max_change_percent")
    @classmethod
    def validate_percent(cls, v):
        if v < 0:
            raise ValueError("Percentages must not be negative")
        return v

    @field_validator("max_growth_factor")
    @classmethod
    def validate_factor(cls, v):
        if v <= 0:
            raise ValueError("Growth factor must be positive")
        return v

    @classmethod
    def from_env(cls) -> "PatchEngineConfig":
        """Create PatchEngineConfig from environment variables, keeping defaults for unset keys."""
        values = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(field.alias)
            if raw is not None and raw.strip():
                values[field.alias] = raw.strip()
        return cls(**values)


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(
        env_file="config/.env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        env_prefix=""
    )

    log_level: str = Field(default="INFO", alias="APP_LOG_LEVEL")
    log_dir: Path = Field(default=PROJECT_ROOT / "logs", alias="APP_LOG_DIR")
    enable_file_logging: bool = Field(default=False, alias="APP_FILE_LOGGING")

    token_path: Path = Field(default=CONFIG_DIR / "google_token.json", alias="GOOGLE_TOKEN_PATH")
    client_secrets_path: Path = Field(
        default=CONFIG_DIR / "client_secret.json",
        alias="GOOGLE_CLIENT_SECRETS_PATH"
    )

    google_auth: GoogleAuthConfig = Field(default_factory=GoogleAuthConfig.from_env)
    patch: PatchEngineConfig = Field(default_factory=PatchEngineConfig.from_env)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of {allowed}")
        return v.upper()


# Global config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global application configuration.

    Returns:
        AppConfig instance
    """
    global _config

    if _config is None:
        _config = AppConfig()

    return _config


def reload_config() -> AppConfig:
    """Reload configuration from environment."""
    global _config
    _config = None
    return get_config()
