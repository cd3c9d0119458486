"""
Configuration settings for the fact-fluency trainer.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Persistence
    # ========================================
    database_url: str = Field(
        default="sqlite:///fluency.db",
        description="SQLAlchemy connection string for the progress database",
    )
    progress_backend: Literal["sql", "json"] = Field(
        default="sql",
        description="Student progress backend (relational or single JSON file)",
    )
    json_store_path: str = Field(
        default="data.json",
        description="Path of the JSON progress document when progress_backend=json",
    )

    # ========================================
    # Calendar & Daily Goals
    # ========================================
    timezone: str = Field(
        default="America/Chicago",
        description="Timezone that defines calendar days for limits and streaks",
    )
    daily_session_limit: int = Field(
        default=5,
        description="Maximum sessions a student may start per calendar day",
    )
    daily_session_goal: int = Field(
        default=5,
        description="Sessions per day required to credit the daily streak",
    )

    # ========================================
    # Session Timing (seconds)
    # ========================================
    session_duration_seconds: int = Field(
        default=60,
        description="Length of a fixed-duration drill",
    )
    assessment_question_cap: int = Field(
        default=60,
        description="Assessment ends once this many questions are answered",
    )
    timer_enabled: bool = Field(
        default=True,
        description="Enable response-window timeouts and the session countdown",
    )
    mc_response_window_seconds: float = Field(
        default=3.0,
        description="Response window for multiple-choice questions",
    )
    typed_response_window_seconds: float = Field(
        default=5.0,
        description="Response window for typed answers",
    )
    correct_advance_delay_seconds: float = Field(
        default=0.5,
        description="Pause on a correct answer before the next question (practice only)",
    )
    wrong_flash_seconds: float = Field(
        default=0.5,
        description="Duration of the error flash after a wrong answer",
    )
    mc_wrong_advance_delay_seconds: float = Field(
        default=2.0,
        description="Pause after a wrong multiple-choice pick before advancing",
    )
    reveal_advance_delay_seconds: float = Field(
        default=2.0,
        description="How long a revealed answer stays up after a timeout",
    )

    # ========================================
    # Mastery & Question Generation
    # ========================================
    mastery_reward: float = Field(
        default=0.1,
        description="Mastery gained on a correct answer",
    )
    mastery_penalty: float = Field(
        default=0.2,
        description="Mastery lost on a miss or timeout",
    )
    mastery_weight_floor: float = Field(
        default=0.1,
        description="Minimum selection weight so mastered facts still come back",
    )
    cluster_mastery_threshold: float = Field(
        default=0.6,
        description="Facts drawn below this mastery stage related facts behind them",
    )
    enable_fact_clusters: bool = Field(
        default=False,
        description="Queue related facts after drawing a weak fact",
    )
    option_count: int = Field(
        default=4,
        description="Number of multiple-choice options (including the answer)",
    )
    distractor_window: int = Field(
        default=10,
        description="Maximum distance of a distractor from the answer",
    )

    # ========================================
    # Gamification
    # ========================================
    xp_per_correct: int = Field(
        default=10,
        description="XP earned per correct answer",
    )
    xp_per_level: int = Field(
        default=500,
        description="XP needed per level",
    )

    # ========================================
    # Loading
    # ========================================
    load_timeout_seconds: float = Field(
        default=10.0,
        description="Give up loading a student record after this long and use defaults",
    )
    skip_prompt_after_seconds: float = Field(
        default=3.0,
        description="Offer to force past a slow load after this long",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default="logs/fluency.log",
        description="Log file path (None for stderr only)",
    )

    def response_window(self, multiple_choice: bool) -> float:
        """Seconds a question may stay unanswered before it is revealed."""
        if multiple_choice:
            return self.mc_response_window_seconds
        return self.typed_response_window_seconds


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
