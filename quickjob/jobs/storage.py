"""
Job record storage.

The store is the single source of truth for jobs. After creation a job is
only ever changed through :meth:`JobStorage.update_job_fields`, a partial
update that can be conditioned on the version (and status) the caller
read. A write that loses the race raises :class:`VersionConflictError`
instead of silently overwriting the winner.

Two backends:
- InMemoryJobStorage: tests and local development
- SQLiteJobStorage: single-file persistence
"""

import contextlib
import json
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

from quickjob.errors import (
    ExternalServiceError,
    InvalidStateError,
    JobNotFoundError,
    VersionConflictError,
)
from quickjob.jobs.models import Job, JobStatus
from quickjob.subscriptions import ListenerRegistry, Subscription
from quickjob.types import utc_now

logger = logging.getLogger(__name__)

# Fields that may change after creation
MUTABLE_FIELDS = frozenset(
    {"status", "applicants", "approved_seekers", "assigned_user", "testimonials"}
)

# Fields that may still change once a job is completed
COMPLETED_MUTABLE_FIELDS = frozenset({"testimonials"})

JobListener = Callable[[Job], None]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class JobStorage(Protocol):
    """Protocol for job persistence backends."""

    def create_job(self, job: Job) -> Job:
        """Persist a new job. The store assigns id, version and timestamps."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        ...

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        posted_by: Optional[str] = None,
        assigned_user: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        """List jobs, newest first."""
        ...

    def update_job_fields(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
        expected_status: Optional[str] = None,
    ) -> Job:
        """Apply a partial update. Returns the stored job after the write."""
        ...

    def subscribe_job(self, job_id: str, listener: JobListener) -> Subscription:
        """Call ``listener`` with the new job after every accepted write."""
        ...


def check_update(current: Job, fields: Dict[str, Any]) -> None:
    """Reject updates to immutable fields or to frozen completed jobs.

    Raises:
        ValueError: Unknown or immutable field
        InvalidStateError: Non-testimonial change to a completed job
    """
    if not fields:
        raise ValueError("No fields to update")
    illegal = set(fields) - MUTABLE_FIELDS
    if illegal:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(illegal))}")
    if current.is_completed and set(fields) - COMPLETED_MUTABLE_FIELDS:
        raise InvalidStateError(f"Job {current.id} is completed; only testimonials may change")


def check_conditions(
    table: str,
    current: Job,
    expected_version: Optional[int],
    expected_status: Optional[str],
) -> None:
    if expected_version is not None and current.version != expected_version:
        raise VersionConflictError(table, current.id, expected_version, current.version)
    if expected_status is not None:
        expected_status = JobStatus(expected_status).value
        if current.status != expected_status:
            raise VersionConflictError(
                table, current.id, expected_status, current.status, field="status"
            )


def _normalize_status(status: Optional[Union[JobStatus, str]]) -> Optional[str]:
    if status is None:
        return None
    return JobStatus(status).value


def sort_newest_first(jobs: Iterable[Job]) -> List[Job]:
    # created_at desc, ties broken by id so ordering is stable across backends
    jobs = sorted(jobs, key=lambda j: j.id)
    return sorted(jobs, key=lambda j: j.created_at or _EPOCH, reverse=True)


class InMemoryJobStorage:
    """In-memory job storage for testing and local development."""

    table = "jobs"

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._listeners = ListenerRegistry()

    def create_job(self, job: Job) -> Job:
        now = utc_now()
        stored = job.copy(
            id=job.id or str(uuid.uuid4()),
            created_at=job.created_at or now,
            updated_at=now,
            version=1,
        )
        with self._lock:
            if stored.id in self._jobs:
                raise ValueError(f"Job {stored.id} already exists")
            self._jobs[stored.id] = stored
        logger.debug(f"Created job {stored.id}")
        return stored.copy()

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
        return job.copy() if job else None

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        posted_by: Optional[str] = None,
        assigned_user: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        status_val = _normalize_status(status)
        with self._lock:
            jobs = [j.copy() for j in self._jobs.values()]

        if status_val is not None:
            jobs = [j for j in jobs if j.status == status_val]
        if posted_by is not None:
            jobs = [j for j in jobs if j.posted_by == posted_by]
        if assigned_user is not None:
            jobs = [j for j in jobs if j.assigned_user == assigned_user]

        return sort_newest_first(jobs)[offset : offset + limit]

    def update_job_fields(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
        expected_status: Optional[str] = None,
    ) -> Job:
        with self._lock:
            current = self._jobs.get(job_id)
            if current is None:
                raise JobNotFoundError(job_id)
            check_update(current, fields)
            check_conditions(self.table, current, expected_version, expected_status)
            updated = current.copy(
                **_copy_fields(fields),
                version=current.version + 1,
                updated_at=utc_now(),
            )
            self._jobs[job_id] = updated
        logger.debug(f"Updated job {job_id} fields {sorted(fields)} -> v{updated.version}")
        self._listeners.emit(job_id, updated.copy())
        return updated.copy()

    def subscribe_job(self, job_id: str, listener: JobListener) -> Subscription:
        return self._listeners.add(job_id, listener)


def _copy_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Detach list values so callers can't mutate stored state."""
    return {k: list(v) if isinstance(v, list) else v for k, v in fields.items()}


class SQLiteJobStorage:
    """SQLite-backed job storage.

    The job document lives in a JSON column; the columns used for filtering
    and for the conditional update are kept alongside it.
    """

    table = "jobs"

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = str(db_path)
        self._listeners = ListenerRegistry()
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Commit on success, roll back on error, always close.

        sqlite errors surface as ExternalServiceError.
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise ExternalServiceError(f"Job store unavailable: {e}", service="sqlite") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise ExternalServiceError(f"Job store error: {e}", service="sqlite") from e
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.table} (
                    id TEXT PRIMARY KEY,
                    posted_by TEXT NOT NULL,
                    status TEXT NOT NULL,
                    assigned_user TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1,
                    data TEXT NOT NULL
                )
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table}_status
                ON {self.table}(status, created_at)
            """)
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_{self.table}_posted_by
                ON {self.table}(posted_by)
            """)

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        return Job.from_dict(json.loads(row["data"]))

    def create_job(self, job: Job) -> Job:
        now = utc_now()
        stored = job.copy(
            id=job.id or str(uuid.uuid4()),
            created_at=job.created_at or now,
            updated_at=now,
            version=1,
        )
        try:
            with self._connect() as conn:
                conn.execute(
                    f"""
                    INSERT INTO {self.table}
                    (id, posted_by, status, assigned_user, created_at, updated_at, version, data)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        stored.id,
                        stored.posted_by,
                        stored.status,
                        stored.assigned_user,
                        stored.created_at.isoformat(),
                        stored.updated_at.isoformat(),
                        stored.version,
                        json.dumps(stored.to_dict()),
                    ),
                )
        except ExternalServiceError as e:
            if isinstance(e.__cause__, sqlite3.IntegrityError):
                raise ValueError(f"Job {stored.id} already exists") from e
            raise
        logger.debug(f"Created job {stored.id}")
        return stored

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT data FROM {self.table} WHERE id = ?", (job_id,)
            ).fetchone()
        return self._row_to_job(row) if row else None

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        posted_by: Optional[str] = None,
        assigned_user: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        query = f"SELECT data FROM {self.table} WHERE 1=1"
        params: list = []
        status_val = _normalize_status(status)
        if status_val is not None:
            query += " AND status = ?"
            params.append(status_val)
        if posted_by is not None:
            query += " AND posted_by = ?"
            params.append(posted_by)
        if assigned_user is not None:
            query += " AND assigned_user = ?"
            params.append(assigned_user)
        query += " ORDER BY created_at DESC, id ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [self._row_to_job(row) for row in rows]

    def update_job_fields(
        self,
        job_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
        expected_status: Optional[str] = None,
    ) -> Job:
        with self._connect() as conn:
            # Take the write lock before reading so the check and the write are atomic
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                f"SELECT data FROM {self.table} WHERE id = ?", (job_id,)
            ).fetchone()
            if not row:
                raise JobNotFoundError(job_id)
            current = self._row_to_job(row)
            check_update(current, fields)
            check_conditions(self.table, current, expected_version, expected_status)

            updated = current.copy(
                **_copy_fields(fields),
                version=current.version + 1,
                updated_at=utc_now(),
            )
            cursor = conn.execute(
                f"""
                UPDATE {self.table} SET
                    status = ?,
                    assigned_user = ?,
                    updated_at = ?,
                    version = ?,
                    data = ?
                WHERE id = ? AND version = ?
                """,
                (
                    updated.status,
                    updated.assigned_user,
                    updated.updated_at.isoformat(),
                    updated.version,
                    json.dumps(updated.to_dict()),
                    job_id,
                    current.version,
                ),
            )
            if cursor.rowcount == 0:
                raise VersionConflictError(self.table, job_id, current.version, "changed")
        logger.debug(f"Updated job {job_id} fields {sorted(fields)} -> v{updated.version}")
        self._listeners.emit(job_id, updated.copy())
        return updated

    def subscribe_job(self, job_id: str, listener: JobListener) -> Subscription:
        """Listen for writes made through this storage instance."""
        return self._listeners.add(job_id, listener)
