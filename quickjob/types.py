"""
Shared types for quickjob.

These are the small value types every subsystem speaks: coordinates,
actor identities and the timestamp helpers. Jobs, chat and discovery
all import from here rather than from each other.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Opaque identity of an authenticated actor (poster or seeker)
ActorId = str


# === Shared Utility Functions ===


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO datetime string (or pass a datetime through).

    Naive datetimes are assumed to be UTC. A trailing ``Z`` is accepted.

    Raises:
        ValueError: If the value is not a valid ISO datetime.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid ISO datetime string: {value!r}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO string, passing None through."""
    return value.isoformat() if value else None


# === Value Types ===


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 point in decimal degrees."""

    lat: float
    lng: float

    def __post_init__(self):
        for name, value, limit in (("lat", self.lat, 90.0), ("lng", self.lng, 180.0)):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"{name} must be a number, got {type(value).__name__}")
            if math.isnan(value) or math.isinf(value):
                raise ValueError(f"{name} must be finite")
            if abs(value) > limit:
                raise ValueError(f"{name} out of range: {value}")

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinate":
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))

    def display(self) -> str:
        """Short "lat, lng" form used when no address is known."""
        return f"{self.lat:.4f}, {self.lng:.4f}"
