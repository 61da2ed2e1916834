"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration, job
requests and results, and session statistics.
"""

from .config import FinTubeConfig
from .job import JobRequest, JobResult, JobState, Segment, TagFields
from .stats import JobStats

__all__ = [
    "FinTubeConfig",
    "JobRequest",
    "JobResult",
    "JobState",
    "JobStats",
    "Segment",
    "TagFields",
]
