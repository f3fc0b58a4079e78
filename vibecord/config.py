"""Unified configuration management using YAML with environment overlay."""

import os
import yaml
import logging
from pathlib import Path
from functools import lru_cache
from typing import Optional, Dict, Any, Tuple
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

from vibecord.errors import ConfigError

logger = logging.getLogger(__name__)

# Configuration file paths
CONFIG_FILE = Path.home() / ".config" / "vibecord" / "config.yaml"
DEFAULT_STATE_FILE = Path.home() / ".local" / "state" / "vibecord" / "sessions.json"
DEFAULT_CODEX_SESSIONS_DIR = Path.home() / ".codex" / "sessions"


class CodexConfig(BaseModel):
    """Codex CLI invocation settings."""

    binary: str = Field("codex", description="Codex CLI executable")
    pty_helper: str = Field(
        "script", description="Pseudo-terminal helper used for interactive mode"
    )
    sessions_dir: Path = Field(
        default_factory=lambda: DEFAULT_CODEX_SESSIONS_DIR,
        description="Root of the Codex session log tree",
    )
    log_extension: str = Field(".jsonl", description="Session log file extension")
    status_timeout_seconds: int = Field(
        15, description="Timeout for interactive /status", ge=1
    )
    compact_timeout_seconds: int = Field(
        60, description="Timeout for interactive /compact and /init", ge=1
    )
    default_interactive_timeout_seconds: int = Field(
        90, description="Timeout for any other interactive prompt", ge=1
    )
    kill_grace_seconds: float = Field(
        2.0, description="Grace period between SIGTERM and SIGKILL", ge=0.0
    )
    reply_file_prefix: str = Field(
        "vibecord-codex-reply-", description="Temp file prefix for batch replies"
    )

    @field_validator("sessions_dir")
    @classmethod
    def expand_sessions_dir(cls, v: Path) -> Path:
        return Path(v).expanduser()


class SessionConfig(BaseModel):
    """Session store configuration."""

    state_file: Path = Field(
        default_factory=lambda: DEFAULT_STATE_FILE,
        description="JSON file holding sessions and focus pointers",
    )

    @field_validator("state_file")
    @classmethod
    def expand_state_file(cls, v: Path) -> Path:
        return Path(v).expanduser()


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field("INFO", description="Logging level")
    victoria_logs_url: str = Field(
        "http://localhost:9428", description="Victoria Logs URL"
    )
    victoria_logs_enabled: bool = Field(False, description="Enable Victoria Logs")
    loki_app_tag: str = Field("vibecord", description="Loki app tag")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class DiscordConfig(BaseModel):
    """Messaging platform settings consumed by the relay."""

    bot_token: Optional[str] = Field(None, description="Discord bot token")
    guild_id: Optional[str] = Field(None, description="Guild for channel mode")
    category_id: Optional[str] = Field(
        None, description="Channel category for channel mode"
    )

    @field_validator("bot_token", "guild_id", "category_id")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @model_validator(mode="after")
    def check_channel_pairing(self) -> "DiscordConfig":
        if bool(self.guild_id) != bool(self.category_id):
            raise ValueError('Set both "guild_id" and "category_id", or set neither.')
        return self

    @property
    def channel_mode_enabled(self) -> bool:
        return bool(self.guild_id and self.category_id)


class Settings(BaseSettings):
    """Unified settings for vibecord."""

    codex: CodexConfig = Field(default_factory=CodexConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)

    model_config = SettingsConfigDict(
        env_prefix="VIBECORD_",
        env_nested_delimiter="__",  # Allows VIBECORD_CODEX__BINARY env var
        extra="ignore",
        validate_default=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        """Customize settings sources to include the YAML config file."""
        from pydantic_settings.sources import PydanticBaseSettingsSource

        class YamlConfigSource(PydanticBaseSettingsSource):
            """Load settings from the YAML config file."""

            def get_field_value(
                self, field: FieldInfo, field_name: str
            ) -> Tuple[Any, str, bool]:
                data = self()
                if field_name in data:
                    return data[field_name], field_name, True
                return None, field_name, False

            def __call__(self) -> Dict[str, Any]:
                return cls._yaml_config_source()

        # Precedence (left to right - first source wins):
        # init > env > yaml > defaults
        return (
            init_settings,
            env_settings,
            YamlConfigSource(settings_cls),
            file_secret_settings,
        )

    @classmethod
    def _yaml_config_source(cls) -> Dict[str, Any]:
        """Load configuration from the YAML file."""
        import sys

        # Tests must not pick up the user's real config unless they ask for one
        if "pytest" in sys.modules and "VIBECORD_CONFIG_FILE" not in os.environ:
            return {}

        config_file = resolve_config_file_path()
        if not config_file.exists():
            return {}

        try:
            with open(config_file) as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load {config_file}: {e}")
            return {}

        if not isinstance(config_data, dict):
            logger.warning(f"Ignoring {config_file}: top level is not a mapping")
            return {}

        logger.debug(f"Loaded configuration from {config_file}")

        # Handle None values from YAML (e.g., "codex:" with no content)
        for key in list(config_data.keys()):
            if config_data[key] is None:
                config_data[key] = {}

        # A relative state file is anchored next to the config file
        session_data = config_data.get("session")
        if isinstance(session_data, dict) and session_data.get("state_file"):
            state_file = Path(str(session_data["state_file"])).expanduser()
            if not state_file.is_absolute():
                session_data["state_file"] = str(
                    (config_file.parent / state_file).resolve()
                )

        return config_data


def resolve_config_file_path(config_file: Optional[str] = None) -> Path:
    """Return the config file path, honouring VIBECORD_CONFIG_FILE."""
    raw = (config_file or "").strip() or os.getenv("VIBECORD_CONFIG_FILE", "")
    if raw.strip():
        return Path(raw.strip()).expanduser().resolve()
    return CONFIG_FILE


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
