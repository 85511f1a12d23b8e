"""Runtime settings for the VisuBlocks server, read from the environment."""

from __future__ import annotations

import logging
import os

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

PRO_MODEL = "gemini-3.1-pro-preview"
FLASH_MODEL = "gemini-3-flash-preview"

VALID_THINKING_LEVELS = {"minimal", "low", "medium", "high"}

MODEL_PRESETS: dict[str, dict[str, str]] = {
    "best": {
        "default_model": PRO_MODEL,
        "flash_model": FLASH_MODEL,
        "label": "Max quality — 3.1 Pro for projects, 3 Flash for block params",
    },
    "budget": {
        "default_model": FLASH_MODEL,
        "flash_model": FLASH_MODEL,
        "label": "Cost-optimized — 3 Flash for everything",
    },
}

_TRUTHY = ("1", "true", "yes", "on")


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default)


def _env_flag(name: str) -> bool:
    """Interpret ``1``/``true``/``yes``/``on`` as True."""
    return _env(name).strip().lower() in _TRUTHY


def _tracing_wanted(flag: str, tracking_uri: str) -> bool:
    """Tracing follows ``MLFLOW_TRACKING_URI`` unless ``GEMINI_TRACING_ENABLED=false``."""
    return flag.strip().lower() != "false" and bool(tracking_uri)


class ServerConfig(BaseModel):
    """Settings shared by every tool; rebuilt by :func:`update_config`."""

    # Gemini backend
    gemini_api_key: str = ""
    default_model: str = Field(default=PRO_MODEL, description="Model for project generation")
    flash_model: str = Field(default=FLASH_MODEL, description="Model for param extraction and fast drafts")
    default_thinking_level: str = "high"
    default_temperature: float = 1.0
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 60.0

    # Blocks and generation
    blocks_db_path: str = Field(default="", description="SQLite file for block definitions; empty = in-memory")
    seconds_per_block: int = Field(default=3, description="Duration hint per used block, in seconds")
    default_fps: int = 30
    max_guidance_image_bytes: int = 2 * 1024 * 1024
    max_param_source_chars: int = Field(default=12000, description="Project source sent for param extraction")
    dev_fallback: bool = Field(default=False, description="Return the fallback project when generation fails")

    # Tracing
    tracing_enabled: bool = False
    mlflow_tracking_uri: str = ""
    mlflow_experiment_name: str = "visublocks-mcp"

    @field_validator("default_thinking_level")
    @classmethod
    def _known_thinking_level(cls, value: str) -> str:
        level = value.strip().lower()
        if level not in VALID_THINKING_LEVELS:
            raise ValueError(
                f"Invalid thinking level '{value}'. Allowed: {', '.join(sorted(VALID_THINKING_LEVELS))}"
            )
        return level

    @field_validator("seconds_per_block")
    @classmethod
    def _seconds_in_range(cls, value: int) -> int:
        if not 1 <= value <= 30:
            raise ValueError("seconds_per_block must be between 1 and 30")
        return value

    @field_validator("default_fps", "max_guidance_image_bytes", "max_param_source_chars", "retry_max_attempts")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("Configuration values must be >= 1")
        return value

    @field_validator("retry_base_delay", "retry_max_delay")
    @classmethod
    def _positive_delay(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Retry delay must be > 0")
        return value

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Read every setting from its environment variable, falling back to the defaults."""
        tracking_uri = _env("MLFLOW_TRACKING_URI")
        return cls(
            gemini_api_key=_env("GEMINI_API_KEY"),
            default_model=_env("GEMINI_MODEL", PRO_MODEL),
            flash_model=_env("GEMINI_FLASH_MODEL", FLASH_MODEL),
            default_thinking_level=_env("GEMINI_THINKING_LEVEL", "high"),
            default_temperature=float(_env("GEMINI_TEMPERATURE", "1.0")),
            retry_max_attempts=int(_env("GEMINI_RETRY_MAX_ATTEMPTS", "3")),
            retry_base_delay=float(_env("GEMINI_RETRY_BASE_DELAY", "1.0")),
            retry_max_delay=float(_env("GEMINI_RETRY_MAX_DELAY", "60.0")),
            blocks_db_path=_env("VISUBLOCKS_BLOCKS_DB"),
            seconds_per_block=int(_env("VISUBLOCKS_SECONDS_PER_BLOCK", "3")),
            default_fps=int(_env("VISUBLOCKS_FPS", "30")),
            max_guidance_image_bytes=int(_env("VISUBLOCKS_MAX_IMAGE_BYTES", str(2 * 1024 * 1024))),
            max_param_source_chars=int(_env("VISUBLOCKS_MAX_PARAM_SOURCE", "12000")),
            dev_fallback=_env_flag("DEV_FALLBACK"),
            tracing_enabled=_tracing_wanted(_env("GEMINI_TRACING_ENABLED"), tracking_uri),
            mlflow_tracking_uri=tracking_uri,
            mlflow_experiment_name=_env("MLFLOW_EXPERIMENT_NAME", "visublocks-mcp"),
        )


_config: ServerConfig | None = None


def get_config() -> ServerConfig:
    """Return the shared config, building it on first use.

    ``~/.config/visublocks-mcp/.env`` is applied first; variables already set
    in the process environment are left alone.
    """
    global _config
    if _config is None:
        from .dotenv import load_dotenv

        injected = load_dotenv()
        if injected:
            logger.info("Loaded %d var(s) from .env: %s", len(injected), ", ".join(injected))
        _config = ServerConfig.from_env()
    return _config


def update_config(**overrides: object) -> ServerConfig:
    """Rebuild the shared config with *overrides* applied; ``None`` values are skipped."""
    global _config
    merged = get_config().model_dump()
    merged.update({key: value for key, value in overrides.items() if value is not None})
    _config = ServerConfig(**merged)
    return _config
