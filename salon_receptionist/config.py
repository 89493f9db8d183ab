"""
Centralized configuration with environment variable overrides.

Salon details, business hours, scheduling heuristics, model settings,
integration endpoints and timeouts are all configurable here. Nothing
is hardcoded in the conversation or tool logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

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


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    """Parse a comma-separated env var into a tuple of trimmed, non-empty items."""
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class BusinessConfig:
    """Salon-specific settings loaded from environment or defaults."""

    name: str = os.getenv("SALON_NAME", "Hair Hunters")
    city: str = os.getenv("SALON_CITY", "Toronto")
    timezone: str = os.getenv("BOT_TIMEZONE", "America/Toronto")
    open_hour: int = _safe_int("BUSINESS_OPEN_HOUR", "9")
    close_hour: int = _safe_int("BUSINESS_CLOSE_HOUR", "18")
    # Python weekday numbering: Monday=0 ... Sunday=6
    closed_weekday: int = _safe_int("BUSINESS_CLOSED_WEEKDAY", "6")
    transfer_phone: str = os.getenv("SALON_PHONE", "")
    stylists: tuple[str, ...] = _csv("SALON_STYLISTS", "Cosmo,Vince,Cassidy")


@dataclass(frozen=True)
class SchedulingConfig:
    """Heuristics for time resolution and availability listing."""

    slot_step_minutes: int = _safe_int("SLOT_STEP_MINUTES", "30")
    max_suggestions: int = _safe_int("MAX_SUGGESTIONS", "3")
    # A bare hour 1..N with no am/pm is read as PM. 0 disables the heuristic.
    bare_hour_pm_max: int = _safe_int("BARE_HOUR_PM_MAX", "8")
    default_duration_minutes: int = _safe_int("DEFAULT_DURATION_MINUTES", "60")


@dataclass(frozen=True)
class ModelConfig:
    """Conversational fallback and speech synthesis settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.2")
    llm_max_tokens: int = _safe_int("LLM_MAX_TOKENS", "110")
    llm_timeout_sec: float = _safe_float("LLM_TIMEOUT_SEC", "8.0")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    tts_model: str = os.getenv("TTS_MODEL", "sonic-2")
    tts_voice_id: str = os.getenv("TTS_VOICE_ID", "79a125e8-cd45-4c13-8a67-188112f4dd22")
    tts_api_key: str = os.getenv("CARTESIA_API_KEY", "")
    tts_timeout_sec: float = _safe_float("TTS_TIMEOUT_SEC", "8.0")
    tts_attempts: int = _safe_int("TTS_ATTEMPTS", "2")


@dataclass(frozen=True)
class IntegrationConfig:
    """Booking webhook and calendar integration settings."""

    booking_webhook_url: str = os.getenv("BOOKING_WEBHOOK_URL", "")
    booking_timeout_sec: float = _safe_float("BOOKING_TIMEOUT_SEC", "5.0")
    google_service_account_json: str = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")
    calendar_id: str = os.getenv("GOOGLE_CALENDAR_ID", "primary")


@dataclass(frozen=True)
class TimeoutConfig:
    """Lifetimes of short-lived per-call state, in seconds."""

    pending_turn_ttl_sec: float = _safe_float("PENDING_TURN_TTL_SEC", "120")
    pending_booking_ttl_sec: float = _safe_float("PENDING_BOOKING_TTL_SEC", "600")
    session_ttl_sec: float = _safe_float("SESSION_TTL_SEC", "1800")
    sweep_interval_sec: float = _safe_float("SWEEP_INTERVAL_SEC", "30")
    poll_interval_sec: float = _safe_float("POLL_INTERVAL_SEC", "1.0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    integrations: IntegrationConfig = field(default_factory=IntegrationConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "Alex")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    biz = config.business
    if not 0 <= biz.open_hour < biz.close_hour <= 24:
        raise ValueError(
            "BUSINESS_OPEN_HOUR must be before BUSINESS_CLOSE_HOUR within 0-24, "
            f"got {biz.open_hour}-{biz.close_hour}"
        )
    if not 0 <= biz.closed_weekday <= 6:
        raise ValueError(
            f"BUSINESS_CLOSED_WEEKDAY must be between 0 and 6, got {biz.closed_weekday}"
        )
    if not biz.stylists:
        raise ValueError("SALON_STYLISTS must name at least one stylist")

    sched = config.scheduling
    if sched.slot_step_minutes < 5:
        raise ValueError(
            f"SLOT_STEP_MINUTES must be >= 5, got {sched.slot_step_minutes}"
        )
    if sched.max_suggestions < 1:
        raise ValueError(
            f"MAX_SUGGESTIONS must be >= 1, got {sched.max_suggestions}"
        )
    if not 0 <= sched.bare_hour_pm_max <= 11:
        raise ValueError(
            f"BARE_HOUR_PM_MAX must be between 0 and 11, got {sched.bare_hour_pm_max}"
        )
    if sched.default_duration_minutes < 1:
        raise ValueError(
            "DEFAULT_DURATION_MINUTES must be >= 1, "
            f"got {sched.default_duration_minutes}"
        )

    if not 0.0 <= config.model.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.model.llm_temperature}"
        )
    if config.model.tts_attempts < 1:
        raise ValueError(
            f"TTS_ATTEMPTS must be >= 1, got {config.model.tts_attempts}"
        )

    for name, value in [
        ("LLM_TIMEOUT_SEC", config.model.llm_timeout_sec),
        ("TTS_TIMEOUT_SEC", config.model.tts_timeout_sec),
        ("BOOKING_TIMEOUT_SEC", config.integrations.booking_timeout_sec),
        ("PENDING_TURN_TTL_SEC", config.timeouts.pending_turn_ttl_sec),
        ("PENDING_BOOKING_TTL_SEC", config.timeouts.pending_booking_ttl_sec),
        ("SESSION_TTL_SEC", config.timeouts.session_ttl_sec),
        ("SWEEP_INTERVAL_SEC", config.timeouts.sweep_interval_sec),
        ("POLL_INTERVAL_SEC", config.timeouts.poll_interval_sec),
    ]:
        if value <= 0:
            raise ValueError(f"{name} must be > 0, got {value}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
