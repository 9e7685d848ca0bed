"""Job discovery: distance, reverse geocoding, filtering and pagination."""

from quickjob.discovery.geo import EARTH_RADIUS_KM, haversine_km
from quickjob.discovery.geocoding import (
    NominatimGeocoder,
    Place,
    ReverseGeocoder,
    format_address,
    reverse_geocode_with_timeout,
)
from quickjob.discovery.matching import (
    DiscoveryEngine,
    JobListing,
    Page,
    nearby_jobs,
    paginate,
    search_history,
    sort_jobs,
)

__all__ = [
    "EARTH_RADIUS_KM",
    "haversine_km",
    "NominatimGeocoder",
    "Place",
    "ReverseGeocoder",
    "format_address",
    "reverse_geocode_with_timeout",
    "DiscoveryEngine",
    "JobListing",
    "Page",
    "nearby_jobs",
    "paginate",
    "search_history",
    "sort_jobs",
]
