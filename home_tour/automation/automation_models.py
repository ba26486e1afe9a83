"""
Automation Data Models

Pydantic models for queued tour generation jobs.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class JobState(str, Enum):
    """Lifecycle of a queued generation"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(BaseModel):
    """Externally visible state of one generation job"""
    id: str
    status: JobState = JobState.PENDING
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    phase: str = "queued"
    message: Optional[str] = None

    # TourResult.model_dump() once completed
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)
    estimated_time_remaining: Optional[int] = None  # seconds

    @property
    def finished(self) -> bool:
        return self.status in (JobState.COMPLETED, JobState.FAILED)
