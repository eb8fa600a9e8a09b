"""
Centralized configuration with environment variable overrides.

Business contact details, extraction model settings, and store location
are configurable here. Nothing is hardcoded in engine or orchestrator logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from copilot.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class BusinessConfig:
    """Business-specific settings loaded from environment or defaults."""

    name: str = os.getenv("BUSINESS_NAME", "Aluminium Frames Factory")
    whatsapp_number: str = os.getenv("HANDOVER_WHATSAPP_NUMBER", "5511999998888")
    base_product_url: str = os.getenv(
        "BASE_PRODUCT_URL", "https://shop.example.com/products/"
    )


@dataclass(frozen=True)
class ModelConfig:
    """Structured-extraction model settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.0")
    llm_base_url: str = os.getenv("LLM_BASE_URL", "")
    extraction_timeout_sec: float = _safe_float("EXTRACTION_TIMEOUT", "20.0")


@dataclass(frozen=True)
class StoreConfig:
    """Durable chat store settings. An empty path keeps everything in memory."""

    path: str = os.getenv("CHAT_STORE_PATH", "")
    max_sessions: int = _safe_int("CHAT_STORE_MAX_SESSIONS", "0")


@dataclass(frozen=True)
class ChatConfig:
    """Conversation limits and defaults."""

    default_session_id: str = os.getenv("DEFAULT_SESSION_ID", "default-chat-session")
    max_input_length: int = _safe_int("MAX_INPUT_LENGTH", "500")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "configurator-copilot")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.extraction_timeout_sec <= 0:
        raise ValueError(
            f"EXTRACTION_TIMEOUT must be > 0, got {config.model.extraction_timeout_sec}"
        )
    if config.store.max_sessions < 0:
        raise ValueError(
            f"CHAT_STORE_MAX_SESSIONS must be >= 0, got {config.store.max_sessions}"
        )
    if config.chat.max_input_length < 1:
        raise ValueError(
            f"MAX_INPUT_LENGTH must be >= 1, got {config.chat.max_input_length}"
        )
    if not config.business.whatsapp_number.lstrip("+").isdigit():
        raise ValueError(
            "HANDOVER_WHATSAPP_NUMBER must contain only digits, "
            f"got {config.business.whatsapp_number!r}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging(getattr(logging, config.log_level.upper(), logging.INFO))
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
