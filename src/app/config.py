"""Application configuration and settings management."""

from datetime import time
from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEOPT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Visit Route Optimizer API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for persisted run outputs.")
    local_timezone: str = Field(
        default="America/Detroit",
        description="IANA timezone used for working hours and time-of-day traffic buckets.",
    )
    default_cost_per_mile: float = Field(default=0.67, ge=0.0)
    visit_lookback_days: int = Field(default=7, ge=1)
    default_shift_start: time = Field(default=time(8, 0))
    default_shift_end: time = Field(default=time(17, 0))

    geocoder_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        description="Base URL for the reverse geocoding service.",
    )
    geocoder_user_agent: str = Field(default="visit-route-optimizer/1.0")
    geocoder_timeout_seconds: float = Field(default=2.0, gt=0.0)
    geocoder_max_concurrency: int = Field(default=1, ge=1)
    geocoder_min_interval_seconds: float = Field(
        default=1.1,
        ge=0.0,
        description="Minimum gap between geocoder requests. Public Nominatim allows one per second.",
    )

    two_opt_max_passes: int = Field(default=100, ge=1)
    annealing_initial_temperature: float = Field(default=1000.0, gt=0.0)
    annealing_cooling_rate: float = Field(default=0.995, gt=0.0, lt=1.0)
    annealing_min_temperature: float = Field(default=1.0, gt=0.0)

    prep_buffer_minutes: int = Field(default=5, ge=0)
    conflict_buffer_minutes: int = Field(default=5, ge=0)
    max_conflict_attempts: int = Field(default=100, ge=1)
    max_rollover_days: int = Field(default=7, ge=1)
    gap_threshold_minutes: int = Field(default=30, ge=0)
    tight_threshold_minutes: int = Field(default=10, ge=0)
    same_location_miles: float = Field(
        default=0.03,
        ge=0.0,
        description="Stops closer than this (~50 m) are treated as the same building.",
    )

    applied_order_start: time = Field(default=time(8, 0))
    applied_order_spacing_minutes: int = Field(default=30, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )


    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
