"""
Pytest fixtures and test configuration for quickjob tests.
"""

from datetime import datetime, timezone

import pytest

from quickjob.config import BoardConfig
from quickjob.crypto import generate_contact_key
from quickjob.jobs.models import Job, JobStatus
from quickjob.jobs.service import JobService
from quickjob.jobs.storage import InMemoryJobStorage
from quickjob.notifications import NotificationOutbox
from quickjob.types import Coordinate

POSTER = "poster-1"
SEEKER = "seeker-1"
OTHER_SEEKER = "seeker-2"

# Lower Manhattan
HOME = Coordinate(lat=40.7128, lng=-74.0060)


def _make_job(
    job_id: str = "job-1",
    posted_by: str = POSTER,
    status: str = JobStatus.AVAILABLE.value,
    assigned_user=None,
    location: Coordinate = HOME,
    created_at: datetime = None,
    **kwargs,
) -> Job:
    """Build a valid job without going through a store."""
    fields = dict(
        id=job_id,
        posted_by=posted_by,
        title="Garden cleanup",
        description="Rake leaves and bag them",
        job_type="Gardener",
        pay=80.0,
        contact="+1 555 123 4567",
        location=location,
        status=status,
        assigned_user=assigned_user,
        created_at=created_at or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    fields.update(kwargs)
    return Job(**fields)


@pytest.fixture
def make_job():
    """Factory for valid jobs that bypass the store."""
    return _make_job


@pytest.fixture
def home():
    return HOME


@pytest.fixture
def north_of():
    """Factory for a point roughly ``km`` kilometres north of a coordinate."""

    def _north_of(coord: Coordinate, km: float) -> Coordinate:
        return Coordinate(lat=coord.lat + km / 111.195, lng=coord.lng)

    return _north_of


@pytest.fixture
def storage():
    """In-memory job storage."""
    return InMemoryJobStorage()


@pytest.fixture
def outbox():
    """Notification outbox that records every dispatch."""
    return NotificationOutbox()


@pytest.fixture
def config():
    """Board configuration with approval required."""
    return BoardConfig()


@pytest.fixture
def service(storage, outbox, config):
    """Job service over in-memory storage."""
    return JobService(storage=storage, notifier=outbox, config=config)


@pytest.fixture
def contact_key():
    return generate_contact_key()


@pytest.fixture
def posted_job(service):
    """An available job posted by POSTER."""
    return service.create_job(
        posted_by=POSTER,
        title="Garden cleanup",
        description="Rake leaves and bag them",
        job_type="Gardener",
        pay=80,
        contact="+1 555 123 4567",
        location=HOME,
    )


@pytest.fixture
def taken_job(service, posted_job):
    """A job SEEKER applied to, was approved for and took."""
    service.apply(posted_job.id, SEEKER)
    service.approve(posted_job.id, POSTER, SEEKER)
    return service.take_job(posted_job.id, SEEKER).job


@pytest.fixture
def completed_job(service, taken_job):
    """A job SEEKER completed."""
    return service.mark_completed(taken_job.id, SEEKER).job
