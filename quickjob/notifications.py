"""
Job notifications.

The lifecycle engine only decides *that* somebody should be told about an
event; it emits a :class:`NotificationIntent`. Delivery belongs to a
:class:`NotificationDispatcher`. Dispatch is fire-and-forget: a failing
dispatcher is logged and never rolls back the job change that caused it.

The bundled :class:`NotificationOutbox` keeps rendered notifications in
memory per recipient, which is what the in-app notification list reads.
Push delivery is someone else's job.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol

from quickjob.types import utc_now

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    """Events a recipient can be notified about."""

    NEW_APPLICATION = "new_application"
    APPLICATION_APPROVED = "application_approved"
    JOB_TAKEN = "job_taken"
    JOB_COMPLETED = "job_completed"
    NEW_MESSAGE = "new_message"


# Title and body templates; {job_title} is filled from the payload
_TEMPLATES: Dict[NotificationType, tuple] = {
    NotificationType.NEW_APPLICATION: (
        "New Job Application",
        "Someone applied for your job: {job_title}",
    ),
    NotificationType.APPLICATION_APPROVED: (
        "Application Approved",
        'Your application for "{job_title}" has been approved!',
    ),
    NotificationType.JOB_TAKEN: (
        "Job Taken",
        'Your job "{job_title}" has been accepted!',
    ),
    NotificationType.JOB_COMPLETED: (
        "Job Completed",
        'The job "{job_title}" has been marked as completed.',
    ),
    NotificationType.NEW_MESSAGE: (
        "New Message",
        'You have a new message about "{job_title}"',
    ),
}


def render(event_type: NotificationType, job_title: str) -> tuple:
    """Return ``(title, body)`` for an event."""
    title, body = _TEMPLATES[NotificationType(event_type)]
    return title, body.format(job_title=job_title)


@dataclass(frozen=True)
class NotificationIntent:
    """A notification the engine wants sent. Pure data, no delivery."""

    recipient_id: str
    event_type: NotificationType
    job_id: str
    job_title: str
    sender_id: Optional[str] = None

    @property
    def payload(self) -> Dict[str, Any]:
        return {"job_id": self.job_id, "job_title": self.job_title}


@dataclass
class Notification:
    """A rendered notification stored for a recipient."""

    id: str
    recipient_id: str
    type: NotificationType
    title: str
    body: str
    job_id: str
    job_title: str
    sender_id: Optional[str] = None
    read: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "type": self.type.value,
            "title": self.title,
            "body": self.body,
            "job_id": self.job_id,
            "job_title": self.job_title,
            "sender_id": self.sender_id,
            "read": self.read,
            "created_at": self.created_at.isoformat(),
        }


class NotificationDispatcher(Protocol):
    """Anything that can deliver a notification."""

    def notify(
        self,
        recipient_id: str,
        event_type: NotificationType,
        payload: Dict[str, Any],
    ) -> None:
        ...


class NotificationOutbox:
    """In-memory dispatcher holding rendered notifications per recipient."""

    def __init__(self):
        self._notifications: Dict[str, List[Notification]] = {}
        self._lock = threading.Lock()

    def notify(
        self,
        recipient_id: str,
        event_type: NotificationType,
        payload: Dict[str, Any],
    ) -> None:
        event_type = NotificationType(event_type)
        job_title = payload.get("job_title") or ""
        title, body = render(event_type, job_title)
        notification = Notification(
            id=str(uuid.uuid4()),
            recipient_id=recipient_id,
            type=event_type,
            title=title,
            body=body,
            job_id=payload.get("job_id", ""),
            job_title=job_title,
            sender_id=payload.get("sender_id"),
        )
        with self._lock:
            self._notifications.setdefault(recipient_id, []).append(notification)
        logger.debug(f"Queued {event_type.value} notification for {recipient_id}")

    def list_for(self, recipient_id: str, unread_only: bool = False) -> List[Notification]:
        """Notifications for a recipient, newest first."""
        with self._lock:
            items = list(self._notifications.get(recipient_id, []))
        if unread_only:
            items = [n for n in items if not n.read]
        return list(reversed(items))

    def mark_read(self, recipient_id: str, notification_id: str) -> bool:
        with self._lock:
            for n in self._notifications.get(recipient_id, []):
                if n.id == notification_id:
                    n.read = True
                    return True
        return False

    def unread_count(self, recipient_id: str) -> int:
        return len(self.list_for(recipient_id, unread_only=True))

    def all(self) -> List[Notification]:
        """Every stored notification in dispatch order."""
        with self._lock:
            items = [n for bucket in self._notifications.values() for n in bucket]
        return sorted(items, key=lambda n: n.created_at)


def dispatch_best_effort(
    dispatcher: Optional[NotificationDispatcher],
    intent: Optional[NotificationIntent],
) -> bool:
    """Send an intent, logging instead of raising on failure.

    Returns:
        True if the dispatcher accepted the notification
    """
    if dispatcher is None or intent is None:
        return False
    payload = dict(intent.payload)
    if intent.sender_id is not None:
        payload["sender_id"] = intent.sender_id
    try:
        dispatcher.notify(intent.recipient_id, intent.event_type, payload)
        return True
    except Exception as e:
        logger.warning(
            f"Failed to send {intent.event_type.value} notification "
            f"to {intent.recipient_id} for job {intent.job_id}: {e}"
        )
        return False
