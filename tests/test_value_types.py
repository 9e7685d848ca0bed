"""Tests for shared value types and timestamp helpers."""

from datetime import datetime, timezone

import pytest

from quickjob.errors import (
    ConcurrentUpdateError,
    GeocodingTimeoutError,
    InvalidStateError,
    JobNotFoundError,
    JobValidationError,
    LifecycleError,
    NotFoundError,
    PermissionDeniedError,
    QuickJobError,
)
from quickjob.types import Coordinate, format_datetime, parse_datetime


class TestDatetimeHelpers:
    def test_parse_zulu(self):
        assert parse_datetime("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_naive_is_utc(self):
        assert parse_datetime(datetime(2024, 5, 1)).tzinfo == timezone.utc

    def test_empty(self):
        assert parse_datetime(None) is None
        assert parse_datetime("") is None
        assert format_datetime(None) is None

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid ISO datetime"):
            parse_datetime("yesterday")


class TestCoordinateSerialization:
    def test_from_dict_coerces_numbers(self):
        assert Coordinate.from_dict({"lat": "1.5", "lng": 2}) == Coordinate(lat=1.5, lng=2.0)

    def test_hashable(self):
        assert len({Coordinate(1.0, 2.0), Coordinate(1.0, 2.0)}) == 1


class TestErrorHierarchy:
    def test_lifecycle_errors(self):
        for cls in (PermissionDeniedError, InvalidStateError, NotFoundError):
            assert issubclass(cls, LifecycleError)
        assert issubclass(ConcurrentUpdateError, InvalidStateError)
        assert issubclass(JobNotFoundError, NotFoundError)

    def test_everything_is_a_quickjob_error(self):
        for cls in (LifecycleError, JobValidationError, GeocodingTimeoutError):
            assert issubclass(cls, QuickJobError)

    def test_messages(self):
        assert str(JobNotFoundError("job-9")) == "Job job-9 not found"
        assert str(GeocodingTimeoutError(3000)) == "Geocoding timeout after 3000ms"
        assert JobValidationError({"pay": "bad"}).errors == {"pay": "bad"}
