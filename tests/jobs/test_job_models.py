"""Tests for job models."""

from datetime import datetime, timezone

import pytest

from quickjob.jobs.models import (
    VALID_JOB_TRANSITIONS,
    Job,
    JobStatus,
    PayFrequency,
    Testimonial,
)
from quickjob.types import Coordinate


class TestJobStatus:
    """Tests for JobStatus enum."""

    def test_status_values(self):
        assert JobStatus.AVAILABLE.value == "available"
        assert JobStatus.TAKEN.value == "taken"
        assert JobStatus.COMPLETED.value == "completed"

    def test_valid_transitions(self):
        """Only available -> taken -> completed is allowed."""
        assert VALID_JOB_TRANSITIONS[JobStatus.AVAILABLE] == {JobStatus.TAKEN}
        assert VALID_JOB_TRANSITIONS[JobStatus.TAKEN] == {JobStatus.COMPLETED}
        assert VALID_JOB_TRANSITIONS[JobStatus.COMPLETED] == set()


class TestJob:
    """Tests for Job dataclass."""

    def test_create_job(self, make_job):
        job = make_job()

        assert job.status == "available"
        assert job.pay_frequency == "daily"
        assert job.applicants == []
        assert job.approved_seekers == []
        assert job.assigned_user is None
        assert job.version == 1
        assert job.is_available
        assert not job.is_terminal

    def test_enum_values_are_stored_as_strings(self, make_job):
        job = make_job(status=JobStatus.TAKEN, assigned_user="seeker-1", pay_frequency=PayFrequency.WEEKLY)

        assert job.status == "taken"
        assert job.pay_frequency == "weekly"

    def test_invalid_status(self, make_job):
        with pytest.raises(ValueError, match="Invalid status"):
            make_job(status="archived")

    def test_invalid_pay_frequency(self, make_job):
        with pytest.raises(ValueError, match="Invalid pay frequency"):
            make_job(pay_frequency="hourly")

    @pytest.mark.parametrize("pay", [0, -5, True, float("nan"), float("inf")])
    def test_pay_must_be_finite_and_positive(self, make_job, pay):
        with pytest.raises(ValueError, match="Pay must be a finite positive number"):
            make_job(pay=pay)

    def test_empty_title(self, make_job):
        with pytest.raises(ValueError, match="Title cannot be empty"):
            make_job(title="   ")

    def test_title_too_long(self, make_job):
        with pytest.raises(ValueError, match="Title too long"):
            make_job(title="x" * 201)

    def test_location_must_be_coordinate(self, make_job):
        with pytest.raises(ValueError, match="Coordinate"):
            make_job(location={"lat": 1.0, "lng": 2.0})

    def test_taken_requires_assigned_user(self, make_job):
        with pytest.raises(ValueError, match="assigned_user"):
            make_job(status="taken")

    def test_available_cannot_have_assigned_user(self, make_job):
        with pytest.raises(ValueError, match="assigned_user"):
            make_job(assigned_user="seeker-1")

    def test_poster_cannot_be_assigned(self, make_job):
        with pytest.raises(ValueError, match="Poster cannot be the assigned user"):
            make_job(status="taken", assigned_user="poster-1")

    def test_lists_are_deduplicated(self, make_job):
        job = make_job(
            applicants=["a", "b", "a"],
            approved_seekers=["b", "b"],
        )

        assert job.applicants == ["a", "b"]
        assert job.approved_seekers == ["b"]

    def test_can_transition_to(self, make_job):
        job = make_job()

        assert job.can_transition_to(JobStatus.TAKEN)
        assert not job.can_transition_to(JobStatus.COMPLETED)

    def test_completed_is_terminal(self, make_job):
        job = make_job(status="completed", assigned_user="seeker-1")

        assert job.is_completed
        assert job.is_terminal

    def test_copy_does_not_share_lists(self, make_job):
        job = make_job(applicants=["a"])
        clone = job.copy()
        clone.applicants.append("b")

        assert job.applicants == ["a"]

    def test_copy_revalidates(self, make_job):
        job = make_job()

        with pytest.raises(ValueError):
            job.copy(status="taken")

    def test_to_dict_from_dict(self, make_job):
        job = make_job(
            applicants=["seeker-1"],
            testimonials=[],
            updated_at=datetime(2024, 5, 2, tzinfo=timezone.utc),
            version=4,
        )

        data = job.to_dict()
        assert data["location"] == {"lat": 40.7128, "lng": -74.0060}
        assert data["created_at"] == "2024-05-01T12:00:00+00:00"

        restored = Job.from_dict(data)
        assert restored == job

    def test_from_dict_rejects_nan_pay(self, make_job):
        data = make_job().to_dict()
        data["pay"] = "NaN"

        with pytest.raises(ValueError, match="finite positive"):
            Job.from_dict(data)


class TestTestimonial:
    """Tests for Testimonial dataclass."""

    def test_create_testimonial(self):
        t = Testimonial(user_id="poster-1", rating=5, comment="Great work")

        assert t.rating == 5
        assert t.created_at is None

    @pytest.mark.parametrize("rating", [0, 6, 3.5, True])
    def test_invalid_rating(self, rating):
        with pytest.raises(ValueError, match="Rating"):
            Testimonial(user_id="poster-1", rating=rating, comment="ok")

    def test_empty_comment(self):
        with pytest.raises(ValueError, match="comment cannot be empty"):
            Testimonial(user_id="poster-1", rating=4, comment="  ")

    def test_round_trip_keeps_timestamp(self):
        t = Testimonial(
            user_id="seeker-1",
            rating=4,
            comment="Friendly poster",
            created_at=datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc),
        )

        assert Testimonial.from_dict(t.to_dict()) == t


class TestCoordinate:
    """Tests for Coordinate value type."""

    def test_display(self):
        assert Coordinate(lat=40.71284, lng=-74.00601).display() == "40.7128, -74.0060"

    @pytest.mark.parametrize(
        "lat,lng",
        [(91.0, 0.0), (0.0, -180.5), (float("nan"), 0.0), (0.0, float("inf"))],
    )
    def test_out_of_range(self, lat, lng):
        with pytest.raises(ValueError):
            Coordinate(lat=lat, lng=lng)

    def test_rejects_non_numbers(self):
        with pytest.raises(ValueError, match="must be a number"):
            Coordinate(lat="40.7", lng=-74.0)
