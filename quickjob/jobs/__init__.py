"""Jobs subsystem for quickjob.

Models:
- Job: A job posted to the board
- Testimonial: Feedback left on a completed job
- JobStatus: Job lifecycle status
- PayFrequency: Pay period

Engine:
- decide: Pure lifecycle decisions (apply, withdraw, approve, take, complete)

Storage:
- InMemoryJobStorage / SQLiteJobStorage: Job record stores

Service:
- JobService: Job operations wired to a store and a notification dispatcher
"""

from quickjob.jobs.lifecycle import JobAction, LifecycleOutcome, decide
from quickjob.jobs.models import (
    VALID_JOB_TRANSITIONS,
    Job,
    JobStatus,
    PayFrequency,
    Testimonial,
)
from quickjob.jobs.service import JobService
from quickjob.jobs.storage import InMemoryJobStorage, JobStorage, SQLiteJobStorage
from quickjob.jobs.testimonials import (
    TestimonialEntry,
    all_testimonials,
    featured_testimonials,
    testimonials_by_user,
)

__all__ = [
    # Models
    "Job",
    "JobStatus",
    "PayFrequency",
    "Testimonial",
    "VALID_JOB_TRANSITIONS",
    # Engine
    "JobAction",
    "LifecycleOutcome",
    "decide",
    # Storage
    "JobStorage",
    "InMemoryJobStorage",
    "SQLiteJobStorage",
    # Service
    "JobService",
    # Testimonials
    "TestimonialEntry",
    "all_testimonials",
    "featured_testimonials",
    "testimonials_by_user",
]
