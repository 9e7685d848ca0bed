"""
Chat channel resolution.

A channel is not created anywhere; both participants derive the same key
from data they already share. Sorting the two identities makes the key
independent of who opens the chat first.
"""

from dataclasses import dataclass
from typing import Optional

from quickjob.jobs.models import Job

SEPARATOR = "_"


def channel_key(job_id: str, actor_a: str, actor_b: str) -> str:
    """Deterministic key for the conversation about ``job_id`` between two actors."""
    if not job_id or not actor_a or not actor_b:
        raise ValueError("job_id and both participants are required")
    if actor_a == actor_b:
        raise ValueError("A channel needs two different participants")
    first, second = sorted((actor_a, actor_b))
    return SEPARATOR.join((job_id, first, second))


def resolve_counterparty(
    job: Job, viewer_id: str, candidate_id: Optional[str] = None
) -> Optional[str]:
    """Who ``viewer_id`` is talking to about ``job``.

    - poster, job taken or completed: the assigned user
    - poster, job still available: ``candidate_id`` (None if not given)
    - anyone else: the poster
    """
    if viewer_id != job.posted_by:
        return job.posted_by
    if job.assigned_user is not None:
        return job.assigned_user
    if candidate_id is not None and candidate_id != viewer_id:
        return candidate_id
    return None


@dataclass(frozen=True)
class ChatChannel:
    """A viewer's side of a job conversation."""

    job_id: str
    job_title: str
    viewer_id: str
    counterparty_id: Optional[str]

    @property
    def key(self) -> Optional[str]:
        if self.counterparty_id is None:
            return None
        return channel_key(self.job_id, self.viewer_id, self.counterparty_id)

    @property
    def ready(self) -> bool:
        """False while the poster has nobody to talk to yet."""
        return self.counterparty_id is not None

    def participants(self) -> frozenset:
        return frozenset(p for p in (self.viewer_id, self.counterparty_id) if p)


def resolve_channel(
    job: Job, viewer_id: str, candidate_id: Optional[str] = None
) -> ChatChannel:
    return ChatChannel(
        job_id=job.id,
        job_title=job.title,
        viewer_id=viewer_id,
        counterparty_id=resolve_counterparty(job, viewer_id, candidate_id),
    )
