"""Tests for chat messaging."""

from datetime import datetime, timedelta, timezone

import pytest

from quickjob.chat.channels import ChatChannel, resolve_channel
from quickjob.chat.messaging import (
    ChatMessage,
    ChatService,
    InMemoryMessageStore,
    SQLiteMessageStore,
)
from quickjob.errors import InvalidStateError, JobNotFoundError, PermissionDeniedError
from quickjob.notifications import NotificationType

POSTER = "poster-1"
SEEKER = "seeker-1"


@pytest.fixture(params=["memory", "sqlite"])
def message_store(request, tmp_path):
    if request.param == "memory":
        return InMemoryMessageStore()
    return SQLiteMessageStore(tmp_path / "chat.db")


@pytest.fixture
def chat(message_store, outbox, service):
    return ChatService(message_store, notifier=outbox, job_service=service)


class TestChatMessage:
    """Tests for ChatMessage dataclass."""

    def test_defaults(self):
        msg = ChatMessage(text="hi", sender_id=SEEKER)

        assert msg.id
        assert msg.timestamp.tzinfo is not None
        assert msg.channel_key is None

    def test_to_dict_from_dict(self):
        msg = ChatMessage(
            text="hi",
            sender_id=SEEKER,
            sender_email="seeker@example.com",
            channel_key="job-1_poster-1_seeker-1",
        )

        assert ChatMessage.from_dict(msg.to_dict()) == msg


class TestMessageStores:
    """Tests for both message store backends."""

    def test_append_and_list_in_timestamp_order(self, message_store):
        t0 = datetime(2024, 5, 1, tzinfo=timezone.utc)
        message_store.append_message("k", ChatMessage(text="second", sender_id="a", timestamp=t0 + timedelta(seconds=5)))
        message_store.append_message("k", ChatMessage(text="first", sender_id="b", timestamp=t0))
        message_store.append_message("other", ChatMessage(text="elsewhere", sender_id="a", timestamp=t0))

        messages = message_store.list_messages("k")

        assert [m.text for m in messages] == ["first", "second"]
        assert all(m.channel_key == "k" for m in messages)

    def test_empty_channel(self, message_store):
        assert message_store.list_messages("nothing") == []

    def test_subscription_receives_full_history(self, message_store):
        seen = []

        with message_store.subscribe("k", lambda msgs: seen.append([m.text for m in msgs])):
            message_store.append_message("k", ChatMessage(text="one", sender_id="a"))
            message_store.append_message("k", ChatMessage(text="two", sender_id="b"))
        message_store.append_message("k", ChatMessage(text="three", sender_id="a"))

        assert seen == [["one"], ["one", "two"]]


class TestChatService:
    """Tests for sending and reading job conversations."""

    def test_send_and_history(self, chat, outbox, taken_job):
        seeker_side = resolve_channel(taken_job, SEEKER)
        poster_side = resolve_channel(taken_job, POSTER)

        chat.send(seeker_side, SEEKER, "  On my way  ")
        chat.send(poster_side, POSTER, "Great, gate code is 1234")

        history = chat.history(poster_side)
        assert [(m.sender_id, m.text) for m in history] == [
            (SEEKER, "On my way"),
            (POSTER, "Great, gate code is 1234"),
        ]

        poster_messages = [n for n in outbox.list_for(POSTER) if n.type == NotificationType.NEW_MESSAGE]
        assert len(poster_messages) == 1
        assert poster_messages[0].sender_id == SEEKER
        seeker_messages = [n for n in outbox.list_for(SEEKER) if n.type == NotificationType.NEW_MESSAGE]
        assert len(seeker_messages) == 1

    def test_empty_message(self, chat, taken_job):
        with pytest.raises(ValueError, match="empty"):
            chat.send(resolve_channel(taken_job, SEEKER), SEEKER, "   ")

    def test_message_too_long(self, chat, taken_job):
        with pytest.raises(ValueError, match="too long"):
            chat.send(resolve_channel(taken_job, SEEKER), SEEKER, "x" * 501)

    def test_bad_sender_email(self, chat, taken_job):
        with pytest.raises(ValueError, match="e-mail"):
            chat.send(resolve_channel(taken_job, SEEKER), SEEKER, "hi", sender_email="nope")

    def test_outsider_cannot_send(self, chat, taken_job):
        with pytest.raises(PermissionDeniedError):
            chat.send(resolve_channel(taken_job, SEEKER), "stranger", "hello")

    def test_channel_without_poster_is_rejected(self, chat, message_store, taken_job):
        channel = ChatChannel(
            job_id=taken_job.id,
            job_title=taken_job.title,
            viewer_id=SEEKER,
            counterparty_id="seeker-2",
        )

        with pytest.raises(PermissionDeniedError, match="poster"):
            chat.send(channel, SEEKER, "psst")
        assert message_store.list_messages(channel.key) == []

    def test_channel_for_unknown_job(self, chat):
        channel = ChatChannel(
            job_id="missing", job_title="Ghost", viewer_id=SEEKER, counterparty_id=POSTER
        )

        with pytest.raises(JobNotFoundError):
            chat.send(channel, SEEKER, "hello?")

    def test_poster_without_counterparty(self, chat, posted_job):
        channel = resolve_channel(posted_job, POSTER)

        with pytest.raises(InvalidStateError, match="No counterparty"):
            chat.send(channel, POSTER, "anyone there?")
        assert chat.history(channel) == []

    def test_subscribe_and_release(self, chat, message_store, taken_job):
        channel = resolve_channel(taken_job, POSTER)
        seen = []

        sub = chat.subscribe(channel, lambda msgs: seen.append(len(msgs)))
        chat.send(channel, POSTER, "hello")
        sub.close()
        sub.close()
        chat.send(channel, POSTER, "still there?")

        assert seen == [1]
        assert not sub.active

    def test_failing_notifier_does_not_block_send(self, message_store, taken_job):
        class Broken:
            def notify(self, recipient_id, event_type, payload):
                raise RuntimeError("down")

        chat = ChatService(message_store, notifier=Broken())
        channel = resolve_channel(taken_job, SEEKER)

        chat.send(channel, SEEKER, "hi")

        assert len(chat.history(channel)) == 1


class TestApproveFromChat:
    """The poster can approve the seeker they are chatting with."""

    def test_approve_from_chat(self, chat, service, posted_job):
        service.apply(posted_job.id, SEEKER)
        channel = resolve_channel(service.get_job(posted_job.id), POSTER, candidate_id=SEEKER)

        outcome = chat.approve_from_chat(channel)

        assert outcome.job.approved_seekers == [SEEKER]
        assert chat.approve_from_chat(channel).noop

    def test_seeker_cannot_approve(self, chat, posted_job):
        channel = resolve_channel(posted_job, SEEKER)

        with pytest.raises(PermissionDeniedError):
            chat.approve_from_chat(channel)

    def test_requires_job_service(self, message_store, taken_job):
        chat = ChatService(message_store)

        with pytest.raises(InvalidStateError):
            chat.approve_from_chat(resolve_channel(taken_job, POSTER))
