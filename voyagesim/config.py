"""
VOYAGESIM Configuration Module.

Centralized configuration management using environment variables.
Supports .env files for local development.

Usage:
    from voyagesim.config import settings

    print(settings.leg_zoom_threshold)
    print(settings.resolution_timeout_s)
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import logging

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    try:
        return float(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


def get_int(key: str, default: int) -> int:
    """Get int from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default


@dataclass
class Settings:
    """Engine settings loaded from environment."""

    # Mapbox collaborators
    mapbox_access_token: Optional[str] = field(default_factory=lambda: os.getenv("MAPBOX_ACCESS_TOKEN"))
    geocoding_url: str = field(
        default_factory=lambda: os.getenv(
            "MAPBOX_GEOCODING_URL", "https://api.mapbox.com/geocoding/v5/mapbox.places"
        )
    )
    directions_url: str = field(
        default_factory=lambda: os.getenv(
            "MAPBOX_DIRECTIONS_URL", "https://api.mapbox.com/directions/v5/mapbox/driving"
        )
    )

    # Resolution behaviour
    resolution_timeout_s: float = field(default_factory=lambda: get_float("RESOLUTION_TIMEOUT_S", 10.0))
    resolution_max_attempts: int = field(default_factory=lambda: get_int("RESOLUTION_MAX_ATTEMPTS", 3))
    offline_mode: bool = field(default_factory=lambda: get_bool("VOYAGESIM_OFFLINE", False))

    # Navigation
    leg_zoom_threshold: float = field(default_factory=lambda: get_float("LEG_ZOOM_THRESHOLD", 8.0))
    leg_proximity_km: float = field(default_factory=lambda: get_float("LEG_PROXIMITY_KM", 50.0))
    leg_animation_s: float = field(default_factory=lambda: get_float("LEG_ANIMATION_S", 15.0))

    # Simulation
    playback_duration_s: float = field(default_factory=lambda: get_float("PLAYBACK_DURATION_S", 60.0))
    # Arbitrary mid-journey value kept from the dashboard; no documented rationale.
    progress_fallback_pct: float = field(default_factory=lambda: get_float("PROGRESS_FALLBACK_PCT", 50.0))
    corridor_margin_deg: float = field(default_factory=lambda: get_float("CORRIDOR_MARGIN_DEG", 3.0))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = field(
        default_factory=lambda: os.getenv(
            "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    )

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.resolution_timeout_s <= 0:
            logging.warning(
                f"Resolution timeout {self.resolution_timeout_s}s is not positive, using 10.0s"
            )
            self.resolution_timeout_s = 10.0

        if self.resolution_max_attempts < 1:
            logging.warning(
                f"Resolution attempts {self.resolution_max_attempts} below 1, using 1"
            )
            self.resolution_max_attempts = 1

        if not 0.0 <= self.progress_fallback_pct <= 100.0:
            logging.warning(
                f"Progress fallback {self.progress_fallback_pct} outside [0, 100], using 50.0"
            )
            self.progress_fallback_pct = 50.0

        if self.leg_animation_s <= 0 or self.playback_duration_s <= 0:
            logging.warning("Animation durations must be positive, restoring defaults")
            self.leg_animation_s = 15.0 if self.leg_animation_s <= 0 else self.leg_animation_s
            self.playback_duration_s = 60.0 if self.playback_duration_s <= 0 else self.playback_duration_s

        # Without a token the Mapbox clients cannot authenticate
        if not self.offline_mode and not self.mapbox_access_token:
            logging.warning(
                "MAPBOX_ACCESS_TOKEN not set, falling back to offline mode. "
                "Geocoding and directions will use corridor fallbacks."
            )
            self.offline_mode = True

    def configure_logging(self):
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        logging.basicConfig(level=level, format=self.log_format)


# Singleton instance
settings = Settings()


# Convenience function for testing
def get_settings() -> Settings:
    """Get the settings instance (useful for dependency injection)."""
    return settings
