"""
Job service.

Runs every lifecycle action the same way:

1. read the latest job from the store
2. let the lifecycle engine decide (pure)
3. write the decided fields, conditioned on the version that was read
4. dispatch the notification, best-effort

If step 3 loses a race the service starts again from step 1, so the
action is re-validated against whatever the winner wrote. A seeker who
tries to take a job another seeker just took gets ``InvalidStateError``.
"""

import logging
from typing import Callable, List, Optional

from quickjob.config import BoardConfig
from quickjob.crypto import ContactProtector, protector_for_key
from quickjob.errors import (
    ConcurrentUpdateError,
    InvalidStateError,
    JobNotFoundError,
    JobValidationError,
    PermissionDeniedError,
    VersionConflictError,
)
from quickjob.jobs.lifecycle import JobAction, LifecycleOutcome, decide
from quickjob.jobs.models import Job, JobStatus, PayFrequency, Testimonial
from quickjob.jobs.storage import JobStorage
from quickjob.jobs import testimonials as testimonial_views
from quickjob.jobs.testimonials import TestimonialEntry
from quickjob.notifications import NotificationDispatcher, dispatch_best_effort
from quickjob.subscriptions import Subscription
from quickjob.types import Coordinate, utc_now
from quickjob.validation import clean_text, sanitize_string, validate_job_post

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 100


class JobService:
    """Job operations: post, apply, approve, take, complete, review."""

    def __init__(
        self,
        storage: JobStorage,
        notifier: Optional[NotificationDispatcher] = None,
        config: Optional[BoardConfig] = None,
        contact_protector: Optional[ContactProtector] = None,
    ):
        """Initialize the job service.

        Args:
            storage: Job record store
            notifier: Notification dispatcher (None = notifications dropped)
            config: Board configuration
            contact_protector: Contact protection (default: from config.contact_key)
        """
        self.storage = storage
        self.notifier = notifier
        self.config = config or BoardConfig()
        self.contact_protector = contact_protector or protector_for_key(self.config.contact_key)

    # === Posting and reading ===

    def create_job(
        self,
        posted_by: str,
        title: str,
        description: str,
        job_type: str,
        pay: float,
        contact: str,
        location: Coordinate,
        pay_frequency: str = PayFrequency.DAILY.value,
    ) -> Job:
        """Post a new available job.

        Text fields are cleaned before they are validated, so input that is
        only control characters is reported as missing.

        Raises:
            JobValidationError: If any field is invalid
        """
        title, description, job_type, contact = (
            clean_text(value) for value in (title, description, job_type, contact)
        )
        errors = validate_job_post(title, description, job_type, pay, contact)
        if not posted_by:
            errors["posted_by"] = "Poster is required"
        if location is None:
            errors["location"] = "Location is required"
        try:
            pay_frequency = PayFrequency(pay_frequency).value
        except ValueError:
            errors["pay_frequency"] = "Pay frequency must be daily, weekly or monthly"
        if errors:
            raise JobValidationError(errors)

        job = Job(
            id="",
            posted_by=posted_by,
            title=title,
            description=description,
            job_type=job_type,
            pay=float(pay),
            pay_frequency=pay_frequency,
            contact=self.contact_protector.protect(contact, posted_by),
            location=location,
            status=JobStatus.AVAILABLE,
            created_at=utc_now(),
        )
        created = self.storage.create_job(job)
        logger.info(f"Job {created.id} posted by {posted_by}: {created.title}")
        return created

    def get_job(self, job_id: str) -> Job:
        """Get a job by ID.

        Raises:
            JobNotFoundError: If the job doesn't exist
        """
        job = self.storage.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_jobs(self, status: Optional[JobStatus] = None, limit: int = 100) -> List[Job]:
        return self.storage.list_jobs(status=status, limit=limit)

    def jobs_posted_by(self, user_id: str) -> List[Job]:
        return self._list_all(posted_by=user_id)

    def jobs_assigned_to(self, user_id: str) -> List[Job]:
        return self._list_all(assigned_user=user_id)

    def _list_all(self, **filters) -> List[Job]:
        """Every job matching ``filters``, read from the store page by page."""
        jobs: List[Job] = []
        offset = 0
        while True:
            page = self.storage.list_jobs(limit=LIST_PAGE_SIZE, offset=offset, **filters)
            jobs.extend(page)
            if len(page) < LIST_PAGE_SIZE:
                return jobs
            offset += LIST_PAGE_SIZE

    def subscribe_job(self, job_id: str, listener: Callable[[Job], None]) -> Subscription:
        """Watch a job for changes. Release the returned handle when done.

        Raises:
            JobNotFoundError: If the job doesn't exist
        """
        self.get_job(job_id)
        return self.storage.subscribe_job(job_id, listener)

    def reveal_contact(self, job_id: str, viewer_id: str) -> Optional[str]:
        """Return the poster's contact, or None once the job is completed."""
        job = self.get_job(job_id)
        if job.is_completed:
            logger.debug(f"Contact for completed job {job_id} hidden from {viewer_id}")
            return None
        return self.contact_protector.reveal(job.contact, job.posted_by)

    # === Lifecycle ===

    def apply(self, job_id: str, actor_id: str) -> LifecycleOutcome:
        """Express interest in a job. Reapplying is a no-op."""
        return self._perform(job_id, JobAction.APPLY, actor_id)

    def withdraw(self, job_id: str, actor_id: str) -> LifecycleOutcome:
        """Withdraw an application. No-op if the actor never applied."""
        return self._perform(job_id, JobAction.WITHDRAW, actor_id)

    def approve(self, job_id: str, actor_id: str, applicant_id: str) -> LifecycleOutcome:
        """Poster approves a seeker to take the job."""
        return self._perform(job_id, JobAction.APPROVE, actor_id, target_id=applicant_id)

    def take_job(self, job_id: str, actor_id: str) -> LifecycleOutcome:
        """Seeker accepts the job."""
        return self._perform(job_id, JobAction.TAKE, actor_id)

    def mark_completed(self, job_id: str, actor_id: str) -> LifecycleOutcome:
        """Assigned user marks the job completed.

        Callers usually follow up with :meth:`submit_testimonial`.
        """
        return self._perform(job_id, JobAction.COMPLETE, actor_id)

    def _perform(
        self,
        job_id: str,
        action: JobAction,
        actor_id: str,
        target_id: Optional[str] = None,
    ) -> LifecycleOutcome:
        attempts = self.config.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            job = self.get_job(job_id)
            outcome = decide(
                job,
                action,
                actor_id,
                target_id=target_id,
                require_approval=self.config.require_approval,
            )
            if outcome.noop:
                logger.debug(f"{action.value} on job {job_id} by {actor_id}: {outcome.reason}")
                return outcome

            try:
                stored = self.storage.update_job_fields(
                    job_id,
                    outcome.updates,
                    expected_version=job.version,
                    expected_status=outcome.expected_status,
                )
            except VersionConflictError as e:
                logger.info(
                    f"{action.value} on job {job_id} lost a write race "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                continue

            outcome.job = stored
            logger.info(f"Job {job_id}: {action.value} by {actor_id} -> {stored.status}")
            dispatch_best_effort(self.notifier, outcome.notification)
            return outcome

        raise ConcurrentUpdateError(
            f"Job {job_id} changed concurrently {attempts} times; try again"
        )

    # === Testimonials ===

    def submit_testimonial(
        self,
        job_id: str,
        actor_id: str,
        rating: int,
        comment: str,
    ) -> Job:
        """Append a testimonial to a completed job.

        Only the poster and the assigned user may leave one.

        Raises:
            InvalidStateError: Job is not completed
            PermissionDeniedError: Actor did not take part in the job
            ValueError: Rating outside 1..5 or empty comment
        """
        comment = sanitize_string(comment, "comment", max_length=2000).strip()
        attempts = self.config.max_conflict_retries + 1
        for attempt in range(1, attempts + 1):
            job = self.get_job(job_id)
            if not job.is_completed:
                raise InvalidStateError("Testimonials can only be left on completed jobs")
            if actor_id not in (job.posted_by, job.assigned_user):
                raise PermissionDeniedError("Only the poster or the assigned user can leave a testimonial")

            testimonial = Testimonial(
                user_id=actor_id, rating=rating, comment=comment, created_at=utc_now()
            )
            try:
                stored = self.storage.update_job_fields(
                    job_id,
                    {"testimonials": job.testimonials + [testimonial]},
                    expected_version=job.version,
                )
            except VersionConflictError as e:
                logger.info(f"Testimonial on job {job_id} lost a write race (attempt {attempt}): {e}")
                continue
            logger.info(f"Testimonial ({rating}/5) added to job {job_id} by {actor_id}")
            return stored

        raise ConcurrentUpdateError(
            f"Job {job_id} changed concurrently {attempts} times; try again"
        )

    def featured_testimonials(self) -> List[TestimonialEntry]:
        """Positive testimonials for the dashboard."""
        return testimonial_views.featured_testimonials(
            self._list_all(status=JobStatus.COMPLETED),
            min_rating=self.config.featured_rating_threshold,
            limit=self.config.featured_testimonial_limit,
        )

    def testimonials_written_by(self, user_id: str) -> List[TestimonialEntry]:
        return testimonial_views.testimonials_by_user(
            self._list_all(status=JobStatus.COMPLETED), user_id
        )
