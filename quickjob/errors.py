"""
Error taxonomy for quickjob.

Lifecycle errors (permission, state, not-found) are terminal and meant to
be shown to the user as-is. Timeouts may be retried by the caller.
External service errors wrap failures of the store or other
collaborators.
"""

from typing import Dict, Optional


class QuickJobError(Exception):
    """Base exception for quickjob errors."""

    pass


# === Lifecycle ===


class LifecycleError(QuickJobError):
    """Base exception for job lifecycle failures."""

    pass


class PermissionDeniedError(LifecycleError):
    """Actor is not allowed to perform the requested action."""

    pass


class InvalidStateError(LifecycleError):
    """Action attempted while the job is in the wrong state."""

    pass


class ConcurrentUpdateError(InvalidStateError):
    """Job kept changing underneath us; gave up re-validating."""

    pass


class NotFoundError(LifecycleError):
    """Referenced record does not exist."""

    pass


class JobNotFoundError(NotFoundError):
    """Job not found."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found")


# === Input ===


class JobValidationError(QuickJobError):
    """Job posting failed validation.

    Attributes:
        errors: Mapping of field name to a user-facing message
    """

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        fields = ", ".join(sorted(self.errors))
        super().__init__(f"Invalid job posting: {fields}")


# === Collaborators ===


class GeocodingTimeoutError(QuickJobError, TimeoutError):
    """Reverse geocoding did not finish before its deadline."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"Geocoding timeout after {timeout_ms}ms")


class ExternalServiceError(QuickJobError):
    """A store, geocoder or other collaborator call failed."""

    def __init__(self, message: str, service: Optional[str] = None):
        self.service = service
        super().__init__(message)


class VersionConflictError(QuickJobError):
    """Raised when a record's version doesn't match the expected version.

    This indicates a concurrent modification - another writer updated the
    record between when we read it and when we tried to write our changes.
    """

    def __init__(
        self,
        table: str,
        record_id: str,
        expected: object,
        actual: object,
        field: str = "version",
    ):
        self.table = table
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        self.field = field
        super().__init__(
            f"Conflict on {table}/{record_id}: expected {field} {expected!r}, found {actual!r}"
        )


class ContactProtectionError(QuickJobError):
    """Contact information could not be protected or revealed."""

    pass
