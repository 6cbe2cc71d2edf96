"""
Configuration settings for the rhythm drill engine.

Uses Pydantic Settings for environment variable management with .env file support.
Every variable is prefixed with RHYTHM_DRILL_ (e.g. RHYTHM_DRILL_BASE_XP=12).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DrillSettings(BaseSettings):
    """Drill engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RHYTHM_DRILL_",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Module identity & persistence
    # ========================================
    module_tag: str = Field(
        default="rhythm",
        description="Tag sent to every collaborator and used as the store namespace",
    )
    store_path: Path = Field(
        default=Path.home() / ".rhythm_drill" / "state.db",
        description="SQLite file backing mastery and confusion records",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum level for the terminal log sink",
    )

    # ========================================
    # Tempo
    # ========================================
    initial_tempo: int = Field(default=80, description="Session starting tempo (BPM)")
    min_tempo: int = Field(default=40, description="Lowest tempo the adapter may reach")
    max_tempo: int = Field(default=160, description="Highest tempo the adapter may reach")
    tempo_step: int = Field(default=5, description="BPM change per adaptation step")
    tempo_check_interval: int = Field(
        default=5,
        description="Adapt tempo every N answered questions",
    )
    tempo_raise_accuracy: float = Field(
        default=0.8,
        description="Trailing accuracy at or above which tempo increases",
    )
    tempo_lower_accuracy: float = Field(
        default=0.4,
        description="Trailing accuracy at or below which tempo decreases",
    )
    fast_tempo_threshold: int = Field(
        default=100,
        description="Tempo above which the fast-tempo pool weight and XP bonus apply",
    )

    # ─── Question flow ──────────────────────────────────────────────────────
    correct_advance_delay_ms: int = Field(default=1500, description="Feedback delay after a correct answer")
    incorrect_advance_delay_ms: int = Field(default=2500, description="Feedback delay after an incorrect answer")
    auto_advance: bool = Field(default=True, description="Advance automatically after feedback")
    auto_play: bool = Field(default=True, description="Play each pattern shortly after it is shown")
    auto_play_delay_ms: int = Field(default=300, description="Delay before the auto-play starts")

    # ─── Rewards ────────────────────────────────────────────────────────────
    base_xp: int = Field(default=10, description="Base XP for a correct answer")

    # ─── Confusion & mastery ────────────────────────────────────────────────
    mixup_threshold: int = Field(default=3, description="Misses on one item that raise the mixups signal")
    mastery_window: int = Field(default=10, description="Recent records considered for mastery")
    mastery_min_correct: int = Field(default=9, description="Correct answers required inside the window")
    mastery_max_avg_response_ms: float = Field(
        default=4500.0,
        description="Mean response time must be below this to master an item",
    )
    mastery_min_tempo: int = Field(default=90, description="Current tempo required to master an item")

    # ─── Collaborator cadence ───────────────────────────────────────────────
    due_items_limit: int = Field(default=50, description="Limit passed to getDueItems")
    difficulty_adjust_interval: int = Field(default=5, description="adjustDifficulty every N answers")
    performance_record_interval: int = Field(default=10, description="recordPerformance every N answers")
    performance_log_size: int = Field(default=500, description="Rolling performance log capacity")

    # ─── Playback ───────────────────────────────────────────────────────────
    min_playback_tempo: int = Field(default=30, description="Floor applied before computing beat length")
    accent_volume: float = Field(default=0.8, description="Volume of accented ticks")
    tick_volume: float = Field(default=0.4, description="Volume of unaccented ticks")

    @model_validator(mode="after")
    def _check_tempo_bounds(self) -> DrillSettings:
        if self.min_tempo > self.max_tempo:
            raise ValueError("min_tempo must not exceed max_tempo")
        if not self.min_tempo <= self.initial_tempo <= self.max_tempo:
            raise ValueError("initial_tempo must lie within [min_tempo, max_tempo]")
        return self


@lru_cache(maxsize=1)
def get_settings() -> DrillSettings:
    """Get cached settings instance."""
    return DrillSettings()
