"""
Comment collection for the running reviews

Each running job owns one CommentSession where the reviewer drops the inline and general comments.
When the job ends the session is detached and turned into a single Pull Request review.
"""

import logging
import threading
from typing import Optional

from src.models.review_comment import (
    CollectedComments,
    GeneralComment,
    InlineComment,
    build_summary,
)

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """Raised when there is no active comment session for a job"""

    def __init__(self, job_id: str):
        super().__init__(f"No active review session for job {job_id}")
        self.job_id = job_id


def format_inline_body(message: str, suggested_fix: Optional[str] = None) -> str:
    """Return the comment body with the suggested fix as a GitHub suggestion block"""
    if suggested_fix:
        return f"{message}\n\n```suggestion\n{suggested_fix}\n```"
    return message


class CommentSession:
    """The comments of one job. Unusable after being ended."""

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._lock = threading.Lock()
        self._inline_comments: list[InlineComment] = []
        self._general_comments: list[GeneralComment] = []
        self._ended = False

    def _check_active(self) -> None:
        if self._ended:
            raise SessionNotFoundError(self.job_id)

    def add_inline(self, path: str, line: int, body: str) -> None:
        """Add a comment to a line of a file"""
        with self._lock:
            self._check_active()
            self._inline_comments.append(InlineComment(path=path, line=line, body=body))

    def add_general(self, body: str) -> None:
        """Add a comment to the Pull Request"""
        with self._lock:
            self._check_active()
            self._general_comments.append(GeneralComment(body=body))

    def has_comments(self) -> bool:
        """Return if any comment was added"""
        with self._lock:
            self._check_active()
            return bool(self._inline_comments or self._general_comments)

    def summary(self) -> str:
        """The general comments joined by a blank line or the default summary"""
        with self._lock:
            self._check_active()
            return build_summary(self._general_comments)

    def _end(self) -> CollectedComments:
        with self._lock:
            self._check_active()
            self._ended = True
            return CollectedComments(
                inline_comments=self._inline_comments,
                general_comments=self._general_comments,
            )


class CommentCollector:
    """
    Keeps one CommentSession per running job, keyed by the job id.
    The lock here only covers the sessions map, it is not shared with the ReviewQueue.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[str, CommentSession] = {}

    def begin(self, job_id: str) -> CommentSession:
        """Start the session of a job"""
        with self._lock:
            if job_id in self._sessions:
                raise ValueError(f"Review session for job {job_id} already started")
            session = self._sessions[job_id] = CommentSession(job_id)
        logger.debug("Review session for job %s started", job_id)
        return session

    def get(self, job_id: str) -> CommentSession:
        """Return the active session of a job"""
        with self._lock:
            if session := self._sessions.get(job_id):
                return session
        raise SessionNotFoundError(job_id)

    def add_inline(self, job_id: str, path: str, line: int, body: str) -> None:
        """Add an inline comment to the job session"""
        self.get(job_id).add_inline(path, line, body)

    def add_general(self, job_id: str, body: str) -> None:
        """Add a general comment to the job session"""
        self.get(job_id).add_general(body)

    def has_comments(self, job_id: str) -> bool:
        """Return if the job session has any comment"""
        return self.get(job_id).has_comments()

    def summary(self, job_id: str) -> str:
        """Return the summary of the job session"""
        return self.get(job_id).summary()

    def end(self, job_id: str) -> CollectedComments:
        """Detach the job session returning what was collected"""
        with self._lock:
            session = self._sessions.pop(job_id, None)
        if session is None:
            raise SessionNotFoundError(job_id)
        collected = session._end()
        logger.debug(
            "Review session for job %s ended with %d inline and %d general comments",
            job_id,
            len(collected.inline_comments),
            len(collected.general_comments),
        )
        return collected

    def discard(self, job_id: str) -> bool:
        """Drop the job session if it is still active. Return if there was one."""
        with self._lock:
            session = self._sessions.pop(job_id, None)
        if session is None:
            return False
        session._end()
        return True

    @property
    def active_sessions(self) -> int:
        """Number of sessions not yet ended"""
        with self._lock:
            return len(self._sessions)
