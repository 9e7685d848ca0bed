"""
Job chat messaging.

Messages are appended to a channel and read back in timestamp order.
Views that show a conversation subscribe to its channel and must release
the subscription when they go away.
"""

import contextlib
import logging
import sqlite3
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol, Union

from quickjob.chat.channels import ChatChannel
from quickjob.config import BoardConfig
from quickjob.errors import ExternalServiceError, InvalidStateError, PermissionDeniedError
from quickjob.notifications import (
    NotificationDispatcher,
    NotificationIntent,
    NotificationType,
    dispatch_best_effort,
)
from quickjob.subscriptions import ListenerRegistry, Subscription
from quickjob.types import utc_now
from quickjob.validation import is_valid_email, sanitize_string

if TYPE_CHECKING:
    from quickjob.jobs.service import JobService

logger = logging.getLogger(__name__)


@dataclass
class ChatMessage:
    """A message in a job conversation."""

    text: str
    sender_id: str
    sender_email: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    channel_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "channel_key": self.channel_key,
            "text": self.text,
            "sender_id": self.sender_id,
            "sender_email": self.sender_email,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        return cls(
            id=data["id"],
            channel_key=data.get("channel_key"),
            text=data["text"],
            sender_id=data["sender_id"],
            sender_email=data.get("sender_email"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


MessageListener = Callable[[List[ChatMessage]], None]


class MessageStore(Protocol):
    """Protocol for chat message persistence."""

    def append_message(self, channel_key: str, message: ChatMessage) -> ChatMessage:
        ...

    def list_messages(self, channel_key: str) -> List[ChatMessage]:
        ...

    def subscribe(self, channel_key: str, listener: MessageListener) -> Subscription:
        """Call ``listener`` with the full message list after every append."""
        ...


class InMemoryMessageStore:
    """In-memory message store for testing and local development."""

    def __init__(self):
        self._messages: Dict[str, List[ChatMessage]] = {}
        self._lock = threading.Lock()
        self._listeners = ListenerRegistry()

    def append_message(self, channel_key: str, message: ChatMessage) -> ChatMessage:
        message.channel_key = channel_key
        with self._lock:
            self._messages.setdefault(channel_key, []).append(message)
        self._listeners.emit(channel_key, self.list_messages(channel_key))
        return message

    def list_messages(self, channel_key: str) -> List[ChatMessage]:
        with self._lock:
            messages = list(self._messages.get(channel_key, []))
        return sorted(messages, key=lambda m: m.timestamp)

    def subscribe(self, channel_key: str, listener: MessageListener) -> Subscription:
        return self._listeners.add(channel_key, listener)


class SQLiteMessageStore:
    """SQLite-backed message store."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        self._table = "chat_messages"
        self._listeners = ListenerRegistry()
        self._ensure_schema()

    @contextlib.contextmanager
    def _connect(self):
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise ExternalServiceError(f"Message store unavailable: {e}", service="sqlite") from e
        conn.execute("PRAGMA busy_timeout=5000")
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise ExternalServiceError(f"Message store error: {e}", service="sqlite") from e
        finally:
            conn.close()

    def _ensure_schema(self):
        """Ensure message table exists."""
        with self._connect() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    id TEXT PRIMARY KEY,
                    channel_key TEXT NOT NULL,
                    text TEXT NOT NULL,
                    sender_id TEXT NOT NULL,
                    sender_email TEXT,
                    timestamp TEXT NOT NULL
                )
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self._table}_channel
                ON {self._table}(channel_key, timestamp)
            """)

    def append_message(self, channel_key: str, message: ChatMessage) -> ChatMessage:
        message.channel_key = channel_key
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO {self._table}
                (id, channel_key, text, sender_id, sender_email, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    channel_key,
                    message.text,
                    message.sender_id,
                    message.sender_email,
                    message.timestamp.isoformat(),
                ),
            )
        self._listeners.emit(channel_key, self.list_messages(channel_key))
        return message

    def list_messages(self, channel_key: str) -> List[ChatMessage]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT id, channel_key, text, sender_id, sender_email, timestamp
                FROM {self._table}
                WHERE channel_key = ?
                ORDER BY timestamp ASC, rowid ASC
                """,
                (channel_key,),
            ).fetchall()
        return [
            ChatMessage(
                id=row[0],
                channel_key=row[1],
                text=row[2],
                sender_id=row[3],
                sender_email=row[4],
                timestamp=datetime.fromisoformat(row[5]),
            )
            for row in rows
        ]

    def subscribe(self, channel_key: str, listener: MessageListener) -> Subscription:
        """Listen for appends made through this store instance."""
        return self._listeners.add(channel_key, listener)


class ChatService:
    """
    Send and read job conversations.

    The poster's "approve seeker" button lives in the chat view; it is
    forwarded to the job service so the usual lifecycle rules apply.
    """

    def __init__(
        self,
        store: MessageStore,
        notifier: Optional[NotificationDispatcher] = None,
        config: Optional[BoardConfig] = None,
        job_service: Optional["JobService"] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.config = config or BoardConfig()
        self.job_service = job_service

    def _require_key(self, channel: ChatChannel) -> str:
        if not channel.ready:
            raise InvalidStateError(
                f"No counterparty yet for job {channel.job_id}; pick an applicant first"
            )
        return channel.key

    def _check_channel(self, channel: ChatChannel) -> None:
        """Every conversation about a job includes its poster."""
        if self.job_service is None:
            return
        job = self.job_service.get_job(channel.job_id)
        if job.posted_by not in channel.participants():
            raise PermissionDeniedError(
                f"Channel {channel.key} does not include the poster of job {channel.job_id}"
            )

    def send(
        self,
        channel: ChatChannel,
        sender_id: str,
        text: str,
        sender_email: Optional[str] = None,
    ) -> ChatMessage:
        """Append a message and notify the other participant.

        Raises:
            InvalidStateError: Channel has no counterparty yet
            PermissionDeniedError: Sender is not a participant, or the
                channel leaves out the job's poster
            JobNotFoundError: The channel's job does not exist
            ValueError: Empty or too-long text, malformed e-mail
        """
        key = self._require_key(channel)
        if sender_id not in channel.participants():
            raise PermissionDeniedError("Only channel participants can send messages")
        self._check_channel(channel)
        if isinstance(text, str):
            text = text.strip()
        text = sanitize_string(text, "text", max_length=self.config.message_max_length).strip()
        if not text:
            raise ValueError("text cannot be empty")
        if sender_email is not None and not is_valid_email(sender_email):
            raise ValueError(f"Invalid sender e-mail: {sender_email!r}")

        message = self.store.append_message(
            key,
            ChatMessage(text=text, sender_id=sender_id, sender_email=sender_email),
        )
        recipient = channel.counterparty_id if sender_id == channel.viewer_id else channel.viewer_id
        dispatch_best_effort(
            self.notifier,
            NotificationIntent(
                recipient_id=recipient,
                event_type=NotificationType.NEW_MESSAGE,
                job_id=channel.job_id,
                job_title=channel.job_title,
                sender_id=sender_id,
            ),
        )
        logger.debug(f"Message {message.id} sent on {key}")
        return message

    def history(self, channel: ChatChannel) -> List[ChatMessage]:
        """Messages in the channel, oldest first. Empty if no counterparty yet."""
        if not channel.ready:
            return []
        return self.store.list_messages(channel.key)

    def subscribe(self, channel: ChatChannel, listener: MessageListener) -> Subscription:
        """Watch a channel. Release the returned handle when the view closes."""
        return self.store.subscribe(self._require_key(channel), listener)

    def approve_from_chat(self, channel: ChatChannel):
        """Poster approves the seeker they are chatting with.

        Returns:
            The job service's LifecycleOutcome (``noop`` if already approved)
        """
        if self.job_service is None:
            raise InvalidStateError("Chat service has no job service to approve through")
        self._require_key(channel)
        return self.job_service.approve(
            channel.job_id, channel.viewer_id, channel.counterparty_id
        )
