"""
Quickjob - local job board engine.

Job lifecycle, per-job chat and nearby-job discovery.
"""

from .config import BoardConfig
from .jobs import Job, JobService, JobStatus
from .types import Coordinate

try:
    from importlib.metadata import version

    __version__ = version("quickjob")
except Exception:
    __version__ = "0.0.0"

__all__ = ["BoardConfig", "Coordinate", "Job", "JobService", "JobStatus"]
