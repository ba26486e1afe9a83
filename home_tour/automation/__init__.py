"""
Automation System

Background tour generation jobs and their status tracking.
"""

from .tour_jobs import TourJobRunner
from .job_store import JobStatusStore
from .automation_models import JobState, JobStatus

__all__ = [
    'TourJobRunner',
    'JobStatusStore',
    'JobState',
    'JobStatus'
]
