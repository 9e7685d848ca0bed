"""
Job data models.

A job moves through a short lifecycle:

    available --take--> taken --complete--> completed

``completed`` is terminal. Applications and approvals are sets carried on
the job itself rather than separate records.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from quickjob.types import Coordinate, format_datetime, parse_datetime

MAX_TITLE_LENGTH = 200
MIN_RATING = 1
MAX_RATING = 5


class JobStatus(str, Enum):
    """Job lifecycle status."""

    AVAILABLE = "available"
    TAKEN = "taken"
    COMPLETED = "completed"


class PayFrequency(str, Enum):
    """How often the quoted pay is paid out."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


VALID_JOB_TRANSITIONS: Dict[JobStatus, set] = {
    JobStatus.AVAILABLE: {JobStatus.TAKEN},
    JobStatus.TAKEN: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
}

# Statuses in which the job has an assigned user
ASSIGNED_STATUSES = frozenset({JobStatus.TAKEN.value, JobStatus.COMPLETED.value})


def unique(items: Iterable[str]) -> List[str]:
    """Deduplicate while keeping first-seen order."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


@dataclass
class Testimonial:
    """Feedback left on a completed job."""

    __test__ = False  # not a pytest test class

    user_id: str
    rating: int
    comment: str
    created_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.rating, bool) or not isinstance(self.rating, int):
            raise ValueError(f"Rating must be an integer, got {type(self.rating).__name__}")
        if not MIN_RATING <= self.rating <= MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        if not self.comment or not self.comment.strip():
            raise ValueError("Testimonial comment cannot be empty")
        if not self.user_id:
            raise ValueError("Testimonial user_id is required")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Testimonial":
        return cls(
            user_id=data["user_id"],
            rating=int(data["rating"]),
            comment=data["comment"],
            created_at=parse_datetime(data.get("created_at")),
        )


@dataclass
class Job:
    """A job posted to the board.

    Attributes:
        id: Store-assigned identifier
        posted_by: Actor who created the job (immutable)
        title: Short title
        description: Free-text description
        job_type: Category searched on, e.g. "Cleaner"
        pay: Positive pay amount
        pay_frequency: daily, weekly or monthly
        contact: Poster's contact, stored protected
        location: Where the job is (immutable)
        status: available, taken or completed
        applicants: Actors who expressed interest
        approved_seekers: Actors the poster allowed to take the job
        assigned_user: Actor who took the job
        testimonials: Feedback, append-only
        created_at: Creation time (immutable)
        updated_at: Last accepted write
        version: Incremented by the store on every write
    """

    id: str
    posted_by: str
    title: str
    description: str
    job_type: str
    pay: float
    contact: str
    location: Coordinate
    pay_frequency: str = PayFrequency.DAILY.value
    status: str = JobStatus.AVAILABLE.value
    applicants: List[str] = field(default_factory=list)
    approved_seekers: List[str] = field(default_factory=list)
    assigned_user: Optional[str] = None
    testimonials: List[Testimonial] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self):
        if isinstance(self.status, JobStatus):
            self.status = self.status.value
        if isinstance(self.pay_frequency, PayFrequency):
            self.pay_frequency = self.pay_frequency.value

        if self.status not in {s.value for s in JobStatus}:
            raise ValueError(f"Invalid status: {self.status}")
        if self.pay_frequency not in {f.value for f in PayFrequency}:
            raise ValueError(f"Invalid pay frequency: {self.pay_frequency}")
        if (
            isinstance(self.pay, bool)
            or not isinstance(self.pay, (int, float))
            or not math.isfinite(self.pay)
            or self.pay <= 0
        ):
            raise ValueError("Pay must be a finite positive number")
        if not self.title or not self.title.strip():
            raise ValueError("Title cannot be empty")
        if len(self.title) > MAX_TITLE_LENGTH:
            raise ValueError(f"Title too long (max {MAX_TITLE_LENGTH} characters)")
        if not self.posted_by:
            raise ValueError("posted_by is required")
        if not isinstance(self.location, Coordinate):
            raise ValueError("location must be a Coordinate")

        if (self.assigned_user is not None) != (self.status in ASSIGNED_STATUSES):
            raise ValueError(
                f"assigned_user must be set exactly when status is taken or completed "
                f"(status={self.status}, assigned_user={self.assigned_user})"
            )
        if self.assigned_user is not None and self.assigned_user == self.posted_by:
            raise ValueError("Poster cannot be the assigned user")

        self.applicants = unique(self.applicants)
        self.approved_seekers = unique(self.approved_seekers)

    @property
    def is_available(self) -> bool:
        return self.status == JobStatus.AVAILABLE.value

    @property
    def is_taken(self) -> bool:
        return self.status == JobStatus.TAKEN.value

    @property
    def is_completed(self) -> bool:
        return self.status == JobStatus.COMPLETED.value

    @property
    def is_terminal(self) -> bool:
        return not VALID_JOB_TRANSITIONS[JobStatus(self.status)]

    def can_transition_to(self, new_status: JobStatus) -> bool:
        """Check if transition to new status is valid."""
        return JobStatus(new_status) in VALID_JOB_TRANSITIONS[JobStatus(self.status)]

    def copy(self, **changes: Any) -> "Job":
        """Copy with field changes; list fields are never shared."""
        base = {
            "applicants": list(self.applicants),
            "approved_seekers": list(self.approved_seekers),
            "testimonials": list(self.testimonials),
        }
        base.update(changes)
        return replace(self, **base)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "posted_by": self.posted_by,
            "title": self.title,
            "description": self.description,
            "job_type": self.job_type,
            "pay": self.pay,
            "pay_frequency": self.pay_frequency,
            "contact": self.contact,
            "location": self.location.to_dict(),
            "status": self.status,
            "applicants": list(self.applicants),
            "approved_seekers": list(self.approved_seekers),
            "assigned_user": self.assigned_user,
            "testimonials": [t.to_dict() for t in self.testimonials],
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            posted_by=data["posted_by"],
            title=data["title"],
            description=data.get("description", ""),
            job_type=data.get("job_type", ""),
            pay=float(data["pay"]),
            pay_frequency=data.get("pay_frequency", PayFrequency.DAILY.value),
            contact=data.get("contact", ""),
            location=Coordinate.from_dict(data["location"]),
            status=data.get("status", JobStatus.AVAILABLE.value),
            applicants=list(data.get("applicants") or []),
            approved_seekers=list(data.get("approved_seekers") or []),
            assigned_user=data.get("assigned_user"),
            testimonials=[Testimonial.from_dict(t) for t in data.get("testimonials") or []],
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            version=int(data.get("version", 1)),
        )
