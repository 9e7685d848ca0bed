"""
quickjob chat - conversations scoped to one job and two participants.

- Channel keys derived from the job and both identities
- Counterparty resolution for poster and seeker views
- Message stores and the chat service
"""

from quickjob.chat.channels import (
    ChatChannel,
    channel_key,
    resolve_channel,
    resolve_counterparty,
)
from quickjob.chat.messaging import (
    ChatMessage,
    ChatService,
    InMemoryMessageStore,
    MessageStore,
    SQLiteMessageStore,
)

__all__ = [
    # Channels
    "ChatChannel",
    "channel_key",
    "resolve_channel",
    "resolve_counterparty",
    # Messaging
    "ChatMessage",
    "ChatService",
    "InMemoryMessageStore",
    "MessageStore",
    "SQLiteMessageStore",
]
