"""
Configuration schema and loading for offload.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction and converted to a
runtime RunConfig (offload.contracts.config) before use.

Example YAML:
    timeout_seconds: 30
    retries: 5
    retry_delay_seconds: 0.5
    enable_profiling: true
    start_method: spawn
    logging:
      level: DEBUG
      json_output: true
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from offload.contracts.config import DEFAULT_RETRY_DELAY, DEFAULT_START_METHOD

ENV_PREFIX = "OFFLOAD"

# Dynaconf bookkeeping keys that leak into as_dict()
_DYNACONF_INTERNAL_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Emit JSON lines instead of console text")


class OffloadSettings(BaseModel):
    """Top-level offload configuration.

    retries=None means "not configured": the CLI then runs a single attempt
    through the timeout path instead of the retry path.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    timeout_seconds: float | None = Field(default=None, gt=0, allow_inf_nan=False, description="Deadline per attempt")
    retries: int | None = Field(default=None, ge=1, description="Total attempt budget")
    retry_delay_seconds: float = Field(default=DEFAULT_RETRY_DELAY, ge=0, allow_inf_nan=False, description="Initial backoff delay")
    enable_profiling: bool = Field(default=False, description="Emit start/elapsed profiling events")
    start_method: Literal["spawn", "fork", "forkserver"] = Field(
        default=DEFAULT_START_METHOD,
        description="multiprocessing start method for worker processes",
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _lowercase_keys(value: Any) -> Any:
    """Recursively lowercase mapping keys (Dynaconf uppercases env-derived keys)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path | None = None) -> OffloadSettings:
    """Load settings from YAML file with environment variable overrides.

    Without a config_path only the environment and the schema defaults apply.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (OFFLOAD_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: OFFLOAD_LOGGING__LEVEL for nested keys.

    Args:
        config_path: Path to YAML configuration file, or None for none

    Returns:
        Validated OffloadSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix=ENV_PREFIX,
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in _DYNACONF_INTERNAL_KEYS}
    return OffloadSettings(**_lowercase_keys(raw_config))
