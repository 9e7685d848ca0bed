"""Tests for notifications."""

import logging

import pytest

from quickjob.notifications import (
    NotificationIntent,
    NotificationOutbox,
    NotificationType,
    dispatch_best_effort,
    render,
)


def intent(event_type=NotificationType.NEW_APPLICATION, recipient="poster-1", sender="seeker-1"):
    return NotificationIntent(
        recipient_id=recipient,
        event_type=event_type,
        job_id="job-1",
        job_title="Walk dog",
        sender_id=sender,
    )


class TestRender:
    @pytest.mark.parametrize(
        "event_type,title,body",
        [
            (NotificationType.NEW_APPLICATION, "New Job Application", "Someone applied for your job: Walk dog"),
            (NotificationType.JOB_TAKEN, "Job Taken", 'Your job "Walk dog" has been accepted!'),
            (NotificationType.JOB_COMPLETED, "Job Completed", 'The job "Walk dog" has been marked as completed.'),
            (NotificationType.NEW_MESSAGE, "New Message", 'You have a new message about "Walk dog"'),
        ],
    )
    def test_templates(self, event_type, title, body):
        assert render(event_type, "Walk dog") == (title, body)

    def test_accepts_string_event(self):
        assert render("application_approved", "Walk dog")[0] == "Application Approved"


class TestNotificationOutbox:
    """Tests for the in-memory outbox."""

    def test_notify_renders_and_stores(self):
        outbox = NotificationOutbox()

        outbox.notify("poster-1", NotificationType.NEW_APPLICATION, {"job_id": "job-1", "job_title": "Walk dog"})

        [n] = outbox.list_for("poster-1")
        assert n.title == "New Job Application"
        assert n.job_id == "job-1"
        assert not n.read
        assert n.to_dict()["type"] == "new_application"

    def test_newest_first_and_per_recipient(self):
        outbox = NotificationOutbox()
        outbox.notify("poster-1", "new_application", {"job_title": "A"})
        outbox.notify("poster-1", "job_taken", {"job_title": "B"})
        outbox.notify("seeker-1", "application_approved", {"job_title": "A"})

        assert [n.job_title for n in outbox.list_for("poster-1")] == ["B", "A"]
        assert len(outbox.list_for("seeker-1")) == 1
        assert outbox.list_for("nobody") == []
        assert len(outbox.all()) == 3

    def test_mark_read(self):
        outbox = NotificationOutbox()
        outbox.notify("poster-1", "new_application", {"job_title": "A"})
        outbox.notify("poster-1", "job_taken", {"job_title": "B"})
        newest = outbox.list_for("poster-1")[0]

        assert outbox.mark_read("poster-1", newest.id)
        assert not outbox.mark_read("poster-1", "missing")
        assert outbox.unread_count("poster-1") == 1
        assert [n.job_title for n in outbox.list_for("poster-1", unread_only=True)] == ["A"]


class TestDispatchBestEffort:
    """Tests for fire-and-forget dispatch."""

    def test_payload_includes_sender(self):
        outbox = NotificationOutbox()

        assert dispatch_best_effort(outbox, intent())

        [n] = outbox.list_for("poster-1")
        assert n.sender_id == "seeker-1"
        assert n.job_title == "Walk dog"

    def test_nothing_to_send(self):
        assert not dispatch_best_effort(None, intent())
        assert not dispatch_best_effort(NotificationOutbox(), None)

    def test_failure_is_logged_not_raised(self, caplog):
        class Broken:
            def notify(self, recipient_id, event_type, payload):
                raise RuntimeError("gateway down")

        with caplog.at_level(logging.WARNING, logger="quickjob.notifications"):
            assert not dispatch_best_effort(Broken(), intent())

        assert "gateway down" in caplog.text

    def test_intent_payload(self):
        assert intent().payload == {"job_id": "job-1", "job_title": "Walk dog"}
