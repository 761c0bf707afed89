"""Configuration management using pydantic-settings.

Configuration is loaded with the following precedence:
1. Environment variables (TASKBOARD_* prefix, or a local .env file)
2. Global config file (~/.config/taskboard/config.toml)
3. Built-in defaults
"""

import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "TASKBOARD_"


def get_config_path() -> Path:
    """Get the global config file path (XDG compliant).

    Returns:
        Path to config file:
        - Linux/macOS: ~/.config/taskboard/config.toml
        - Windows: %APPDATA%/taskboard/config.toml
    """
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "taskboard" / "config.toml"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Environment variables use the TASKBOARD_ prefix:
    - TASKBOARD_DATABASE_PATH
    - TASKBOARD_TOKEN_SECRET
    - TASKBOARD_ADMIN_INVITE_TOKEN
    etc.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = Field(default="127.0.0.1", description="HTTP bind address")
    port: int = Field(default=8000, description="HTTP port")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    # Database
    database_path: str = Field(default="~/.local/share/taskboard/taskboard.db", description="SQLite document store path")

    # Auth
    token_secret: SecretStr = Field(default=SecretStr("change-me"), description="Secret the bearer token key is derived from")
    token_ttl_minutes: int = Field(default=7 * 24 * 60, ge=1, description="Bearer token lifetime in minutes")
    bcrypt_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor for password hashes")
    admin_invite_token: SecretStr | None = Field(
        default=None,
        description="Registration token that grants the admin role (admin registration disabled when unset)",
    )

    # Notifications
    enforce_reader_identity: bool = Field(
        default=False,
        description="Require the caller to be the user whose read receipt is recorded",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    log_file: str | None = Field(default=None, description="Log file path (optional)")

    # Metrics
    metrics_enabled: bool = Field(default=True, description="Expose Prometheus metrics at /metrics")

    @property
    def resolved_database_path(self) -> Path:
        """Database path with ~ expanded."""
        return Path(self.database_path).expanduser()


def load_toml_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        path: Path to config file (uses default if None)

    Returns:
        Configuration dictionary (empty if file doesn't exist)
    """
    config_path = path or get_config_path()
    if config_path.exists():
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    return {}


# TOML table -> {key in table: Settings field}
TOML_SECTIONS: dict[str, dict[str, str]] = {
    "server": {"host": "host", "port": "port", "cors_origins": "cors_origins"},
    "database": {"path": "database_path"},
    "auth": {
        "token_secret": "token_secret",
        "token_ttl_minutes": "token_ttl_minutes",
        "bcrypt_rounds": "bcrypt_rounds",
        "admin_invite_token": "admin_invite_token",
    },
    "notifications": {"enforce_reader_identity": "enforce_reader_identity"},
    "logging": {"level": "log_level", "format": "log_format", "file": "log_file"},
    "metrics": {"enabled": "metrics_enabled"},
}


def flatten_toml_config(toml_config: dict[str, Any]) -> dict[str, Any]:
    """Flatten nested TOML config to flat dictionary for Settings.

    Args:
        toml_config: Nested TOML configuration

    Returns:
        Flattened configuration dictionary
    """
    overrides: dict[str, Any] = {}
    for section, keys in TOML_SECTIONS.items():
        table = toml_config.get(section)
        if not isinstance(table, dict):
            continue
        for key, field_name in keys.items():
            if key in table:
                overrides[field_name] = table[key]
    return overrides


def load_settings_with_toml(config_path: Path | None = None) -> Settings:
    """Load settings with TOML config as base, env vars as override.

    Args:
        config_path: Optional path to TOML config file

    Returns:
        Settings instance with merged configuration
    """
    overrides = flatten_toml_config(load_toml_config(config_path))
    # Init kwargs outrank env vars in pydantic-settings, so drop the ones the
    # environment already sets.
    overrides = {
        k: v for k, v in overrides.items() if f"{ENV_PREFIX}{k}".upper() not in {e.upper() for e in os.environ}
    }
    return Settings(**overrides)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance (environment and TOML file).

    Returns:
        Settings instance (cached)
    """
    return load_settings_with_toml()
