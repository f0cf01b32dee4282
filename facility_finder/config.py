"""Application configuration helpers."""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

from .classifier import DEFAULT_MIN_RATING_COUNT, ClassifierConfig

logger = logging.getLogger(__name__)

API_KEY_PLACEHOLDER = "your_api_key_here"


@dataclass(frozen=True)
class Settings:
    google_maps_api_key: Optional[str] = None
    category: str = "hospital"
    search_radius_meters: int = 5000
    max_results: int = 20
    min_rating_count: int = DEFAULT_MIN_RATING_COUNT
    keywords: Tuple[str, ...] = ()
    travel_mode: str = "driving"
    default_lat: float = 37.7749
    default_lng: float = -122.4194
    port: int = 5001

    @property
    def maps_configured(self) -> bool:
        return bool(self.google_maps_api_key)

    def classifier_config(self) -> ClassifierConfig:
        config = ClassifierConfig(min_rating_count=self.min_rating_count)
        if self.keywords:
            config = config.with_keywords(self.category, self.keywords)
        return config


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not a valid number; using {default}")
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings from environment variables with sensible defaults."""
    load_dotenv()

    api_key = os.getenv("GOOGLE_MAPS_API_KEY") or None
    if not api_key or api_key == API_KEY_PLACEHOLDER:
        logger.warning("GOOGLE_MAPS_API_KEY not found or not configured in environment variables")
        api_key = None

    keywords_raw = os.getenv("FACILITY_KEYWORDS", "")
    keywords = tuple(k.strip() for k in keywords_raw.split(",") if k.strip())

    return Settings(
        google_maps_api_key=api_key,
        category=os.getenv("FACILITY_CATEGORY", "hospital").strip().lower() or "hospital",
        search_radius_meters=_env_number("SEARCH_RADIUS_METERS", 5000, int),
        max_results=_env_number("SEARCH_MAX_RESULTS", 20, int),
        min_rating_count=_env_number("MIN_RATING_COUNT", DEFAULT_MIN_RATING_COUNT, int),
        keywords=keywords,
        travel_mode=os.getenv("TRAVEL_MODE", "driving").strip().lower() or "driving",
        default_lat=_env_number("DEFAULT_LAT", 37.7749, float),
        default_lng=_env_number("DEFAULT_LNG", -122.4194, float),
        port=_env_number("PORT", 5001, int),
    )
