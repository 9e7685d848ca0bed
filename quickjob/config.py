"""Configuration for the quickjob job board.

Settings are plain dataclass fields with sensible defaults. Deployments
override them through ``QUICKJOB_*`` environment variables via
:meth:`BoardConfig.from_env`; explicit keyword arguments win over the
environment.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_NOMINATIM_URL = "https://nominatim.openstreetmap.org/reverse"


@dataclass
class BoardConfig:
    """Job board settings.

    Attributes:
        search_radius_km: Radius for the nearby-jobs list
        page_size: Items per discovery page
        geocode_timeout_ms: Deadline for a single reverse-geocoding call
        require_approval: Seekers must be approved by the poster before taking a job
        max_conflict_retries: Re-reads allowed when a write loses a version race
        message_max_length: Longest chat message accepted
        featured_rating_threshold: Minimum rating for a featured testimonial
        featured_testimonial_limit: Featured testimonials shown on the dashboard
        contact_key: Base64 AES key for contact protection (None = plaintext)
        nominatim_url: Reverse geocoding endpoint
        geocoder_user_agent: User-Agent sent to the geocoding endpoint
    """

    search_radius_km: float = 10.0
    page_size: int = 5
    geocode_timeout_ms: int = 3000
    require_approval: bool = True
    max_conflict_retries: int = 3
    message_max_length: int = 500
    featured_rating_threshold: int = 4
    featured_testimonial_limit: int = 3
    contact_key: Optional[str] = None
    nominatim_url: str = DEFAULT_NOMINATIM_URL
    geocoder_user_agent: str = "quickjob/0.1"

    def __post_init__(self):
        if self.search_radius_km <= 0:
            raise ValueError("search_radius_km must be positive")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")
        if self.geocode_timeout_ms <= 0:
            raise ValueError("geocode_timeout_ms must be positive")
        if self.max_conflict_retries < 0:
            raise ValueError("max_conflict_retries cannot be negative")
        if self.message_max_length < 1:
            raise ValueError("message_max_length must be at least 1")
        if not 1 <= self.featured_rating_threshold <= 5:
            raise ValueError("featured_rating_threshold must be between 1 and 5")
        if self.featured_testimonial_limit < 0:
            raise ValueError("featured_testimonial_limit cannot be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> "BoardConfig":
        """Build a config from ``QUICKJOB_<FIELD>`` environment variables.

        Args:
            **overrides: Field values that take precedence over the environment

        Raises:
            ValueError: If an environment value cannot be parsed
        """
        values: Dict[str, Any] = {}
        for f in fields(cls):
            env_name = f"QUICKJOB_{f.name.upper()}"
            raw = os.environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _coerce(env_name, raw.strip(), f.default)
        values.update(overrides)
        config = cls(**values)
        logger.debug(f"Loaded board config from environment ({len(values)} overrides)")
        return config


def _coerce(env_name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    if isinstance(default, bool):
        lowered = raw.lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{env_name} must be a boolean, got {raw!r}")
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"{env_name} must be an integer, got {raw!r}") from e
    if isinstance(default, float):
        try:
            return float(raw)
        except ValueError as e:
            raise ValueError(f"{env_name} must be a number, got {raw!r}") from e
    return raw
