"""Runtime configuration for the errand agent system.

This module provides the ErrandConfig model, which gathers every tunable
knob of the orchestration core (memory compaction, scan windows, logging)
and helpers for building it with defaults or from environment variables.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class ErrandConfig(BaseModel):
    """Configuration for the agent orchestration core.

    Attributes:
        log_level: Logging level for structlog/stdlib logging
        json_logs: Emit JSON log lines instead of console output
        embedding_dimensions: Size of the hashed text embedding vectors
        compaction_max_memories: Default cap for context compaction
        state_snapshot_size: Memories attached to agent state for auditing
        recency_half_life_hours: Half-life of the recency decay in compaction scoring
        summary_preview_chars: Preview length per record in memory digests
        summary_max_per_type: Records previewed per type in memory digests
        stats_top_n: Entries in the most-accessed/oldest lists of memory stats
        tool_latency_seconds: Simulated latency of the bundled tools
        payment_dry_run: Run the payment tool without moving money
        bill_due_window_days: Unpaid bills due within this window trigger notices
        document_expiry_window_days: Documents expiring within this window are flagged
        subscription_renewal_window_days: Auto-renewals within this window are flagged
        appointment_window_days: Appointments within this window get reminders
        reminder_window_days: Aggregated deadlines within this window get reminders
        conflict_threshold: A calendar day with more items than this is a conflict

    Example:
        >>> config = ErrandConfig(compaction_max_memories=5)
        >>> config.compaction_max_memories
        5
    """

    model_config = ConfigDict(frozen=True)

    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")
    embedding_dimensions: int = Field(default=128, ge=8, le=4096)
    compaction_max_memories: int = Field(default=10, ge=1)
    state_snapshot_size: int = Field(default=5, ge=0)
    recency_half_life_hours: float = Field(default=24.0, gt=0)
    summary_preview_chars: int = Field(default=100, ge=10)
    summary_max_per_type: int = Field(default=5, ge=1)
    stats_top_n: int = Field(default=5, ge=1)
    tool_latency_seconds: float = Field(default=0.0, ge=0.0, le=60.0)
    payment_dry_run: bool = Field(default=True)
    bill_due_window_days: int = Field(default=5, ge=0)
    document_expiry_window_days: int = Field(default=60, ge=0)
    subscription_renewal_window_days: int = Field(default=15, ge=0)
    appointment_window_days: int = Field(default=7, ge=0)
    reminder_window_days: int = Field(default=3, ge=0)
    conflict_threshold: int = Field(default=2, ge=1)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize and validate the log level name.

        Args:
            value: Level name in any case

        Returns:
            Upper-cased level name

        Raises:
            ValueError: If the level is not a standard logging level
        """
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got '{value}'")
        return level


def get_default_config() -> ErrandConfig:
    """Get the default configuration.

    Returns:
        ErrandConfig with default values
    """
    return ErrandConfig()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("true", "1", "yes")


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else None


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else None


def load_config_from_env() -> ErrandConfig:
    """Load configuration from environment variables.

    Automatically loads variables from a .env file if present.

    Recognised variables (all optional):
    - ERRANDFORGE_LOG_LEVEL, ERRANDFORGE_JSON_LOGS
    - ERRANDFORGE_EMBEDDING_DIMENSIONS
    - ERRANDFORGE_COMPACTION_MAX_MEMORIES, ERRANDFORGE_STATE_SNAPSHOT_SIZE
    - ERRANDFORGE_RECENCY_HALF_LIFE_HOURS
    - ERRANDFORGE_TOOL_LATENCY_SECONDS, ERRANDFORGE_PAYMENT_DRY_RUN
    - ERRANDFORGE_BILL_DUE_WINDOW_DAYS, ERRANDFORGE_DOCUMENT_EXPIRY_WINDOW_DAYS,
      ERRANDFORGE_SUBSCRIPTION_RENEWAL_WINDOW_DAYS, ERRANDFORGE_APPOINTMENT_WINDOW_DAYS,
      ERRANDFORGE_REMINDER_WINDOW_DAYS
    - ERRANDFORGE_CONFLICT_THRESHOLD

    Returns:
        ErrandConfig built from the environment, defaults elsewhere

    Raises:
        ValueError: If a variable cannot be parsed or fails validation

    Example:
        >>> import os
        >>> os.environ["ERRANDFORGE_LOG_LEVEL"] = "debug"
        >>> load_config_from_env().log_level
        'DEBUG'
    """
    load_dotenv()

    values: dict[str, object] = {
        "log_level": os.getenv("ERRANDFORGE_LOG_LEVEL", "INFO"),
        "json_logs": _env_bool("ERRANDFORGE_JSON_LOGS", False),
        "payment_dry_run": _env_bool("ERRANDFORGE_PAYMENT_DRY_RUN", True),
    }

    int_fields = (
        "embedding_dimensions",
        "compaction_max_memories",
        "state_snapshot_size",
        "bill_due_window_days",
        "document_expiry_window_days",
        "subscription_renewal_window_days",
        "appointment_window_days",
        "reminder_window_days",
        "conflict_threshold",
    )
    for field_name in int_fields:
        parsed = _env_int(f"ERRANDFORGE_{field_name.upper()}")
        if parsed is not None:
            values[field_name] = parsed

    for field_name in ("recency_half_life_hours", "tool_latency_seconds"):
        parsed_float = _env_float(f"ERRANDFORGE_{field_name.upper()}")
        if parsed_float is not None:
            values[field_name] = parsed_float

    return ErrandConfig(**values)  # type: ignore[arg-type]
