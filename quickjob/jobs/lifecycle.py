"""
Job lifecycle engine.

Pure decision logic: given the current job, an action and the acting
identity, decide whether the action is allowed and what it changes.
Nothing here touches a store or a dispatcher. The result says which
fields to write (one partial update, conditioned on the status the
decision was made against) and which notification, if any, to send.

Rules:
- apply:    seekers only, while available; idempotent
- withdraw: while available; no-op if not an applicant
- approve:  poster only, until completed; idempotent
- take:     while available; never the poster; approved seekers only
            when approval is required
- complete: assigned user only, while taken
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from quickjob.errors import InvalidStateError, PermissionDeniedError
from quickjob.jobs.models import Job, JobStatus
from quickjob.notifications import NotificationIntent, NotificationType


class JobAction(str, Enum):
    """Actions an actor can perform on a job."""

    APPLY = "apply"
    WITHDRAW = "withdraw"
    APPROVE = "approve"
    TAKE = "take"
    COMPLETE = "complete"


@dataclass
class LifecycleOutcome:
    """What an action does to a job.

    Attributes:
        action: The action decided
        job: New job state (a copy; the input job is untouched)
        updates: Partial field update to write; empty for a no-op
        expected_status: Status the write must be conditioned on
        notification: Notification to send after a successful write
        noop: True when the action changes nothing
        reason: Human-readable note for no-ops
    """

    action: JobAction
    job: Job
    updates: Dict[str, Any] = field(default_factory=dict)
    expected_status: Optional[str] = None
    notification: Optional[NotificationIntent] = None
    noop: bool = False
    reason: Optional[str] = None


def decide(
    job: Job,
    action: JobAction,
    actor_id: str,
    *,
    target_id: Optional[str] = None,
    require_approval: bool = True,
) -> LifecycleOutcome:
    """Decide the outcome of ``action`` by ``actor_id`` on ``job``.

    Args:
        job: Current job state
        action: Action to perform
        actor_id: Identity performing the action
        target_id: Applicant to approve (approve only)
        require_approval: Whether take requires prior approval

    Returns:
        LifecycleOutcome describing the write and notification

    Raises:
        PermissionDeniedError: Actor may not perform the action
        InvalidStateError: Job is not in a state that allows the action
        ValueError: Missing actor or approve target
    """
    if not actor_id:
        raise ValueError("actor_id is required")

    action = JobAction(action)
    if action == JobAction.APPLY:
        return _apply(job, actor_id)
    if action == JobAction.WITHDRAW:
        return _withdraw(job, actor_id)
    if action == JobAction.APPROVE:
        if not target_id:
            raise ValueError("target_id is required to approve an applicant")
        return _approve(job, actor_id, target_id)
    if action == JobAction.TAKE:
        return _take(job, actor_id, require_approval)
    return _complete(job, actor_id)


def _noop(action: JobAction, job: Job, reason: str) -> LifecycleOutcome:
    return LifecycleOutcome(action=action, job=job.copy(), noop=True, reason=reason)


def _notify(
    recipient_id: str, event_type: NotificationType, job: Job, sender_id: str
) -> NotificationIntent:
    return NotificationIntent(
        recipient_id=recipient_id,
        event_type=event_type,
        job_id=job.id,
        job_title=job.title,
        sender_id=sender_id,
    )


def _require_available(job: Job, what: str) -> None:
    if not job.is_available:
        raise InvalidStateError(f"Cannot {what}: job is {job.status}, not available")


def _apply(job: Job, actor_id: str) -> LifecycleOutcome:
    _require_available(job, "apply")
    if actor_id == job.posted_by:
        raise PermissionDeniedError("Cannot apply to your own job")
    if actor_id in job.applicants:
        return _noop(JobAction.APPLY, job, "Already applied")

    applicants = job.applicants + [actor_id]
    return LifecycleOutcome(
        action=JobAction.APPLY,
        job=job.copy(applicants=applicants),
        updates={"applicants": list(applicants)},
        expected_status=job.status,
        notification=_notify(job.posted_by, NotificationType.NEW_APPLICATION, job, actor_id),
    )


def _withdraw(job: Job, actor_id: str) -> LifecycleOutcome:
    _require_available(job, "withdraw")
    if actor_id not in job.applicants:
        return _noop(JobAction.WITHDRAW, job, "Not an applicant")

    applicants = [a for a in job.applicants if a != actor_id]
    return LifecycleOutcome(
        action=JobAction.WITHDRAW,
        job=job.copy(applicants=applicants),
        updates={"applicants": list(applicants)},
        expected_status=job.status,
    )


def _approve(job: Job, actor_id: str, applicant_id: str) -> LifecycleOutcome:
    if actor_id != job.posted_by:
        raise PermissionDeniedError("Only the poster can approve seekers")
    if job.is_completed:
        raise InvalidStateError("Cannot approve seekers on a completed job")
    if applicant_id == job.posted_by:
        raise PermissionDeniedError("Poster cannot approve themselves")
    if applicant_id in job.approved_seekers:
        return _noop(JobAction.APPROVE, job, "Seeker is already approved")

    approved = job.approved_seekers + [applicant_id]
    return LifecycleOutcome(
        action=JobAction.APPROVE,
        job=job.copy(approved_seekers=approved),
        updates={"approved_seekers": list(approved)},
        expected_status=job.status,
        notification=_notify(applicant_id, NotificationType.APPLICATION_APPROVED, job, actor_id),
    )


def _take(job: Job, actor_id: str, require_approval: bool) -> LifecycleOutcome:
    _require_available(job, "take job")
    if actor_id == job.posted_by:
        raise PermissionDeniedError("Cannot take your own job")
    if require_approval and actor_id not in job.approved_seekers:
        raise PermissionDeniedError("Seeker has not been approved by the poster")

    updates = {"status": JobStatus.TAKEN.value, "assigned_user": actor_id}
    return LifecycleOutcome(
        action=JobAction.TAKE,
        job=job.copy(**updates),
        updates=updates,
        expected_status=job.status,
        notification=_notify(job.posted_by, NotificationType.JOB_TAKEN, job, actor_id),
    )


def _complete(job: Job, actor_id: str) -> LifecycleOutcome:
    if job.assigned_user is None or actor_id != job.assigned_user:
        raise PermissionDeniedError("Only the assigned user can mark the job completed")
    if not job.is_taken:
        raise InvalidStateError(f"Cannot complete job: job is {job.status}, not taken")

    updates = {"status": JobStatus.COMPLETED.value}
    return LifecycleOutcome(
        action=JobAction.COMPLETE,
        job=job.copy(**updates),
        updates=updates,
        expected_status=job.status,
        notification=_notify(job.posted_by, NotificationType.JOB_COMPLETED, job, actor_id),
    )
