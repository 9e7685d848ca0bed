"""
Matching and filtering for the discovery screens.

The job list shows available jobs near the viewer (and, when the viewer's
region is known, only jobs in that region). The search screen shows the
completed-job history. Both are ordered newest first and paginated.
"""

import concurrent.futures
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from quickjob.config import BoardConfig
from quickjob.discovery.geo import haversine_km
from quickjob.discovery.geocoding import (
    Place,
    ReverseGeocoder,
    format_address,
    reverse_geocode_with_timeout,
)
from quickjob.errors import QuickJobError
from quickjob.jobs.models import Job, JobStatus
from quickjob.jobs.storage import JobStorage, sort_newest_first
from quickjob.types import Coordinate

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 10.0
DEFAULT_PAGE_SIZE = 5

sort_jobs = sort_newest_first


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def nearby_jobs(
    jobs: Iterable[Job],
    viewer: Coordinate,
    search: Optional[str] = None,
    viewer_region: Optional[str] = None,
    job_regions: Optional[Mapping[str, Optional[str]]] = None,
    radius_km: float = DEFAULT_RADIUS_KM,
) -> List[Job]:
    """Available jobs within ``radius_km`` of ``viewer``.

    Args:
        jobs: Candidate jobs
        viewer: Viewer's position
        search: Case-insensitive substring of the job type
        viewer_region: Viewer's region; None when unknown (no region filter)
        job_regions: Job id -> region. Jobs without one never match a
            known viewer region.
        radius_km: Inclusive distance cutoff
    """
    needle = search.strip().lower() if search and search.strip() else None
    regions = job_regions or {}

    result = []
    for job in jobs:
        if job.status != JobStatus.AVAILABLE.value:
            continue
        if needle is not None and not _contains(job.job_type, needle):
            continue
        if viewer_region is not None and regions.get(job.id) != viewer_region:
            continue
        if haversine_km(viewer, job.location) > radius_km:
            continue
        result.append(job)
    return sort_jobs(result)


def search_history(jobs: Iterable[Job], term: Optional[str] = None) -> List[Job]:
    """Completed jobs whose title, description or type contains ``term``."""
    needle = term.strip().lower() if term and term.strip() else None
    result = [
        job
        for job in jobs
        if job.status == JobStatus.COMPLETED.value
        and (
            needle is None
            or _contains(job.title, needle)
            or _contains(job.description, needle)
            or _contains(job.job_type, needle)
        )
    ]
    return sort_jobs(result)


@dataclass
class Page:
    """One page of a result list. Pages are 1-based."""

    items: List[Any]
    page: int
    total_pages: int
    total_items: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1


def paginate(items: List[Any], page: int, page_size: int = DEFAULT_PAGE_SIZE) -> Page:
    """Slice ``items`` into a page.

    Out-of-range page numbers are clamped; an empty list has one empty page.
    """
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")
    items = list(items)
    total_pages = max(1, math.ceil(len(items) / page_size))
    page = min(max(1, int(page)), total_pages)
    start = (page - 1) * page_size
    return Page(
        items=items[start : start + page_size],
        page=page,
        total_pages=total_pages,
        total_items=len(items),
    )


@dataclass(frozen=True)
class JobListing:
    """A job as shown on a discovery card."""

    job: Job
    address: str
    region: Optional[str] = None
    distance_km: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.job.to_dict()
        data["address"] = self.address
        data["region"] = self.region
        if self.distance_km is not None:
            data["distance_km"] = round(self.distance_km, 3)
        return data


@dataclass
class DiscoveryEngine:
    """
    Discovery screens over a job store.

    Places are looked up once per coordinate and cached for the life of
    the engine. A failed or slow lookup leaves the job without a region and
    shows its raw coordinate as the address. Lookups for a screen run
    concurrently, each against its own deadline, and only for jobs that
    already passed the distance and text filters.
    """

    storage: JobStorage
    geocoder: Optional[ReverseGeocoder] = None
    config: BoardConfig = field(default_factory=BoardConfig)
    scan_limit: int = 1000
    geocode_workers: int = 8
    _places: Dict[Coordinate, Optional[Place]] = field(default_factory=dict, init=False, repr=False)

    def locate(self, coord: Coordinate) -> Optional[Place]:
        """Place at ``coord``, or None if unknown or the lookup failed."""
        if self.geocoder is None:
            return None
        if coord in self._places:
            return self._places[coord]
        try:
            place = reverse_geocode_with_timeout(
                self.geocoder, coord, self.config.geocode_timeout_ms
            )
        except (QuickJobError, TimeoutError) as e:
            logger.warning(f"Reverse geocode failed for {coord.display()}: {e}")
            # Not cached: a later lookup may succeed
            return None
        self._places[coord] = place
        return place

    def locate_many(self, coords: Iterable[Coordinate]) -> Dict[Coordinate, Optional[Place]]:
        """Places for several coordinates, uncached ones looked up in parallel."""
        wanted = list(dict.fromkeys(coords))
        if self.geocoder is None:
            return {coord: None for coord in wanted}

        pending = [coord for coord in wanted if coord not in self._places]
        if pending:
            workers = max(1, min(self.geocode_workers, len(pending)))
            with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as pool:
                list(pool.map(self.locate, pending))
        # Failed lookups are not cached and come back as None
        return {coord: self._places.get(coord) for coord in wanted}

    def region_of(self, coord: Coordinate) -> Optional[str]:
        place = self.locate(coord)
        return place.region if place else None

    def listing(self, job: Job, viewer: Optional[Coordinate] = None) -> JobListing:
        return self._listing(job, self.locate(job.location), viewer)

    def _listing(
        self, job: Job, place: Optional[Place], viewer: Optional[Coordinate]
    ) -> JobListing:
        return JobListing(
            job=job,
            address=format_address(place, job.location),
            region=place.region if place else None,
            distance_km=haversine_km(viewer, job.location) if viewer else None,
        )

    def _listings(self, jobs: List[Job], viewer: Optional[Coordinate] = None) -> List[JobListing]:
        places = self.locate_many(job.location for job in jobs)
        return [self._listing(job, places[job.location], viewer) for job in jobs]

    def browse(
        self,
        viewer: Coordinate,
        search: Optional[str] = None,
        page: int = 1,
    ) -> Page:
        """Job list screen: nearby available jobs as listings."""
        candidates = self.storage.list_jobs(status=JobStatus.AVAILABLE, limit=self.scan_limit)
        radius_km = self.config.search_radius_km
        matches = nearby_jobs(candidates, viewer, search=search, radius_km=radius_km)

        viewer_region = self.region_of(viewer) if matches else None
        if viewer_region is not None:
            places = self.locate_many(job.location for job in matches)
            job_regions = {
                job.id: places[job.location].region if places[job.location] else None
                for job in matches
            }
            matches = nearby_jobs(
                matches,
                viewer,
                viewer_region=viewer_region,
                job_regions=job_regions,
                radius_km=radius_km,
            )

        result = paginate(matches, page, self.config.page_size)
        result.items = self._listings(result.items, viewer)
        return result

    def history(self, term: Optional[str] = None, page: int = 1) -> Page:
        """Search screen: completed jobs as listings."""
        candidates = self.storage.list_jobs(status=JobStatus.COMPLETED, limit=self.scan_limit)
        result = paginate(search_history(candidates, term), page, self.config.page_size)
        result.items = self._listings(result.items)
        return result
