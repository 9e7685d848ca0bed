"""
Reverse geocoding.

Turns a coordinate into a place (name, street, city, region). The region
drives coarse discovery filtering and the rest builds the address shown on
job cards. Geocoding is slow on some networks, so every lookup runs against
a deadline.
"""

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import httpx

from quickjob.config import BoardConfig
from quickjob.errors import ExternalServiceError, GeocodingTimeoutError
from quickjob.types import Coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Place:
    """Result of a reverse geocode. Any part may be missing."""

    name: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None


class ReverseGeocoder(Protocol):
    def reverse_geocode(self, coord: Coordinate, timeout_ms: int) -> Optional[Place]:
        """Return the place at ``coord``, or None if nothing is known there.

        Raises:
            GeocodingTimeoutError: Lookup took longer than ``timeout_ms``
            ExternalServiceError: Lookup failed
        """
        ...


class NominatimGeocoder:
    """Reverse geocoder backed by the OpenStreetMap Nominatim API."""

    _CITY_KEYS = ("city", "town", "village", "hamlet", "municipality")

    def __init__(self, config: Optional[BoardConfig] = None, client: Optional[httpx.Client] = None):
        self.config = config or BoardConfig()
        self._client = client or httpx.Client(
            headers={"User-Agent": self.config.geocoder_user_agent}
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def reverse_geocode(self, coord: Coordinate, timeout_ms: int) -> Optional[Place]:
        params = {
            "format": "jsonv2",
            "lat": coord.lat,
            "lon": coord.lng,
            "addressdetails": 1,
        }
        try:
            response = self._client.get(
                self.config.nominatim_url,
                params=params,
                timeout=timeout_ms / 1000.0,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise GeocodingTimeoutError(timeout_ms) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Reverse geocoding failed: {e}", service="nominatim") from e
        except ValueError as e:
            raise ExternalServiceError(
                f"Reverse geocoding returned invalid JSON: {e}", service="nominatim"
            ) from e

        if not isinstance(data, dict) or "error" in data:
            return None
        return self._to_place(data)

    def _to_place(self, data: Dict[str, Any]) -> Place:
        address = data.get("address") or {}
        city = next((address[k] for k in self._CITY_KEYS if address.get(k)), None)
        return Place(
            name=data.get("name") or None,
            street=address.get("road") or None,
            city=city,
            region=address.get("state") or None,
        )


def reverse_geocode_with_timeout(
    geocoder: ReverseGeocoder, coord: Coordinate, timeout_ms: int = 3000
) -> Optional[Place]:
    """Run any geocoder against a deadline.

    The geocoder also receives ``timeout_ms``, but nothing guarantees it
    honours it; this returns or raises within the deadline regardless.

    Raises:
        GeocodingTimeoutError: The deadline passed first
    """
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be positive")

    executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(geocoder.reverse_geocode, coord, timeout_ms)
        try:
            return future.result(timeout=timeout_ms / 1000.0)
        except concurrent.futures.TimeoutError as e:
            future.cancel()
            if isinstance(e, GeocodingTimeoutError):
                raise
            logger.warning(f"Reverse geocode of {coord.display()} timed out after {timeout_ms}ms")
            raise GeocodingTimeoutError(timeout_ms) from e
    finally:
        # A stuck lookup keeps its worker thread; don't wait for it
        executor.shutdown(wait=False)


def format_address(place: Optional[Place], coord: Coordinate) -> str:
    """Display address for a job card.

    A real place name wins (house numbers alone don't count), then the
    street; either is followed by the city or region when known. Without
    those, the city or region alone, then "Unknown". Without any place,
    the coordinate itself.
    """
    if place is None:
        return coord.display()

    locality = place.city or place.region
    if place.name and not place.name.isdigit():
        head = place.name
    elif place.street:
        head = place.street
    else:
        return locality or "Unknown"
    return f"{head}, {locality}" if locality else head
