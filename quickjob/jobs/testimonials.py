"""Testimonial views across jobs (dashboard, testimonial wall, profile)."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from quickjob.jobs.models import Job, Testimonial

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class TestimonialEntry:
    """A testimonial together with the job it was left on."""

    __test__ = False  # not a pytest test class

    job_id: str
    job_title: str
    testimonial: Testimonial

    @property
    def rating(self) -> int:
        return self.testimonial.rating

    @property
    def created_at(self) -> Optional[datetime]:
        return self.testimonial.created_at


def flatten(jobs: Iterable[Job]) -> List[TestimonialEntry]:
    """Every testimonial on the given jobs, in job then append order."""
    return [
        TestimonialEntry(job_id=job.id, job_title=job.title, testimonial=t)
        for job in jobs
        for t in job.testimonials
    ]


def featured_testimonials(
    jobs: Iterable[Job], min_rating: int = 4, limit: int = 3
) -> List[TestimonialEntry]:
    """Positive testimonials for the dashboard, first ``limit`` found."""
    return [e for e in flatten(jobs) if e.rating >= min_rating][:limit]


def all_testimonials(jobs: Iterable[Job]) -> List[TestimonialEntry]:
    """All testimonials, most recent first."""
    return sorted(flatten(jobs), key=lambda e: e.created_at or _EPOCH, reverse=True)


def testimonials_by_user(jobs: Iterable[Job], user_id: str) -> List[TestimonialEntry]:
    """Testimonials written by one user."""
    return [e for e in flatten(jobs) if e.testimonial.user_id == user_id]


def average_rating(entries: Iterable[TestimonialEntry]) -> Optional[float]:
    ratings = [e.rating for e in entries]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)
