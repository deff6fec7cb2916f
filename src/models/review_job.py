"""ReviewJob model"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ReviewJobStatus(Enum):
    """ReviewJobStatus enum"""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (ReviewJobStatus.COMPLETED, ReviewJobStatus.FAILED)
ALLOWED_TRANSITIONS = {
    ReviewJobStatus.QUEUED: (ReviewJobStatus.RUNNING,),
    ReviewJobStatus.RUNNING: TERMINAL_STATUSES,
    ReviewJobStatus.COMPLETED: (),
    ReviewJobStatus.FAILED: (),
}


class InvalidTransitionError(Exception):
    """Raised when a job would move to a status not reachable from the current one"""

    def __init__(self, job_id: str, current: ReviewJobStatus, new: ReviewJobStatus):
        super().__init__(f"Job {job_id} cannot go from {current.value} to {new.value}")
        self.job_id = job_id
        self.current = current
        self.new = new


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ReviewJob(BaseModel):
    """
    One admitted review.
    Created as queued by the ReviewQueue and moved to running and then to completed or failed
    by its worker. Nothing else changes it.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    key: str
    status: ReviewJobStatus = ReviewJobStatus.QUEUED
    enqueued_at: datetime = Field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        """Return if the job reached completed or failed"""
        return self.status in TERMINAL_STATUSES

    @property
    def duration_seconds(self) -> Optional[float]:
        """Seconds between start and completion, None while not finished"""
        if self.started_at is None or self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def _move_to(self, status: ReviewJobStatus) -> None:
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status, status)
        self.status = status

    def mark_running(self) -> None:
        """Move the job to running, recording the start time"""
        self._move_to(ReviewJobStatus.RUNNING)
        self.started_at = _now()

    def mark_completed(self) -> None:
        """Move the job to completed"""
        self._move_to(ReviewJobStatus.COMPLETED)
        self.completed_at = _now()

    def mark_failed(self, error: str) -> None:
        """Move the job to failed keeping the error"""
        self._move_to(ReviewJobStatus.FAILED)
        self.completed_at = _now()
        self.error = error

    def to_dict(self) -> dict:
        """Returns a dict ready to be sent as JSON"""
        return self.model_dump(mode="json")
