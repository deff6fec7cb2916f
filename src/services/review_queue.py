"""
Bounded review job queue

The ReviewQueue admits review jobs up to max_queue_size, counting the waiting and the running
jobs together, and runs at most max_workers of them at the same time, each one in its own
thread. Jobs start in the order they were admitted and can finish in any order.
Every admitted job is kept so its status can be polled after it finishes.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import NamedTuple, Optional

from pydantic import BaseModel

from src.helpers.exception_helper import extract_error_message
from src.helpers.text_helper import truncate
from src.models import CollectedComments, ReviewJob
from src.services.comment_collector import CommentCollector, CommentSession

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 200


class QueueFullError(Exception):
    """Raised when a job is submitted with the queue at capacity"""

    def __init__(self, retry_after_seconds: int, capacity: int):
        super().__init__(f"Review queue is full ({capacity} jobs), retry after {retry_after_seconds}s")
        self.retry_after_seconds = retry_after_seconds
        self.capacity = capacity


class QueueClosedError(RuntimeError):
    """Raised when a job is submitted after the queue was shut down"""


class QueueStats(BaseModel):
    """Snapshot of the queue counters"""

    waiting: int
    running: int
    capacity: int
    max_concurrency: int


class JobContext:
    """What a WorkUnit receives when its job starts"""

    def __init__(self, job_id: str, key: str, comments: CommentSession, collector: CommentCollector):
        self.job_id = job_id
        self.key = key
        self.comments = comments
        self._collector = collector

    def end_comments(self) -> CollectedComments:
        """Detach the job comment session returning the collected comments"""
        return self._collector.end(self.job_id)


class WorkUnit(ABC):
    """The review work executed for one job"""

    @abstractmethod
    def execute(self, context: JobContext) -> None:
        """Do the work. Raising marks the job as failed."""

    def on_finished(self, job: ReviewJob) -> None:
        """Called with the job already completed or failed"""


class _QueuedJob(NamedTuple):
    job_id: str
    work_unit: WorkUnit


class ReviewQueue:
    """Admission queue, worker pool and status registry of the review jobs"""

    def __init__(
        self,
        max_queue_size: int,
        max_workers: int,
        retry_after_seconds: int = 60,
        comment_collector: Optional[CommentCollector] = None,
    ):
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.capacity = max_queue_size
        self.max_concurrency = max_workers
        self.retry_after_seconds = retry_after_seconds
        self.comment_collector = comment_collector or CommentCollector()

        self._condition = threading.Condition()
        self._waiting: deque[_QueuedJob] = deque()
        self._running = 0
        self._reporting = 0
        self._jobs: dict[str, ReviewJob] = {}
        self._closed = False

    def check_capacity(self, key: str) -> None:
        """
        Reject now a job that submit would reject. submit checks again under the same lock.
        :raises QueueFullError: when waiting plus running jobs already reach the capacity.
        """
        with self._condition:
            self._check_admission(key)

    def submit(self, key: str, work_unit: WorkUnit) -> str:
        """
        Admit a job, returning its id without waiting for it to run.
        :raises QueueFullError: when waiting plus running jobs already reach the capacity.
        """
        with self._condition:
            self._check_admission(key)
            job = ReviewJob(key=str(key))
            self._jobs[job.id] = job
            self._waiting.append(_QueuedJob(job.id, work_unit))
            logger.info("Job %s enqueued for %s", job.id, job.key)
            to_start = self._dispatch()
        self._start(to_start)
        return job.id

    def _check_admission(self, key: str) -> None:
        """Must hold the lock"""
        if self._closed:
            raise QueueClosedError("Review queue is shut down")
        if len(self._waiting) + self._running >= self.capacity:
            logger.warning(
                "Review queue full (%d waiting, %d running), rejecting %s",
                len(self._waiting),
                self._running,
                key,
            )
            raise QueueFullError(self.retry_after_seconds, self.capacity)

    def get_status(self, job_id: str) -> Optional[ReviewJob]:
        """Return a copy of the job or None if there is no such job"""
        with self._condition:
            if job := self._jobs.get(job_id):
                return job.model_copy()
        return None

    def get_stats(self) -> QueueStats:
        """Return the current counters"""
        with self._condition:
            return QueueStats(
                waiting=len(self._waiting),
                running=self._running,
                capacity=self.capacity,
                max_concurrency=self.max_concurrency,
            )

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until there is no waiting or running job and every finished job was reported.
        Return False on timeout.
        """
        with self._condition:
            return self._condition.wait_for(
                lambda: not self._waiting and not self._running and not self._reporting,
                timeout,
            )

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """Stop admitting jobs, optionally waiting for the admitted ones"""
        with self._condition:
            self._closed = True
        if wait:
            return self.join(timeout)
        return True

    def _dispatch(self) -> list[tuple[ReviewJob, WorkUnit]]:
        """Move the head jobs to running while there is a free worker. Must hold the lock."""
        to_start = []
        while self._waiting and self._running < self.max_concurrency:
            queued_job = self._waiting.popleft()
            job = self._jobs[queued_job.job_id]
            job.mark_running()
            self._running += 1
            to_start.append((job, queued_job.work_unit))
        return to_start

    def _start(self, to_start: list[tuple[ReviewJob, WorkUnit]]) -> None:
        for job, work_unit in to_start:
            thread = threading.Thread(
                target=self._run,
                args=(job.id, job.key, work_unit),
                name=f"review-{job.id[:8]}",
                daemon=True,
            )
            thread.start()

    def _run(self, job_id: str, key: str, work_unit: WorkUnit) -> None:
        logger.info("Job %s started", job_id)
        error = None
        session = self.comment_collector.begin(job_id)
        try:
            work_unit.execute(JobContext(job_id, key, session, self.comment_collector))
        except BaseException as err:  # SystemExit included, the worker slot must be released
            logger.exception("Job %s failed", job_id)
            error = truncate(extract_error_message(err), MAX_ERROR_LENGTH)
        finally:
            self.comment_collector.discard(job_id)

        finished_job, to_start = self._finish(job_id, error)
        self._start(to_start)
        try:
            work_unit.on_finished(finished_job)
        except Exception:
            logger.exception("Error reporting the end of job %s", job_id)
        finally:
            with self._condition:
                self._reporting -= 1
                self._condition.notify_all()

    def _finish(self, job_id: str, error: Optional[str]) -> tuple[ReviewJob, list[tuple[ReviewJob, WorkUnit]]]:
        with self._condition:
            job = self._jobs[job_id]
            if error is None:
                job.mark_completed()
                logger.info("Job %s completed in %.1fs", job_id, job.duration_seconds)
            else:
                job.mark_failed(error)
            self._running -= 1
            self._reporting += 1
            to_start = self._dispatch()
            return job.model_copy(), to_start
