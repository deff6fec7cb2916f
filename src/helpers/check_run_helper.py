"""
The Code Review check run

The check run only moves forward: queued, in progress and then completed with success or failure.
A report that would move it backwards, or out of completed, is ignored.
"""

import logging
import threading
from typing import Optional

from github.CheckRun import CheckRun
from github.Repository import Repository
from githubapp.event_check_run import CheckRunConclusion, CheckRunStatus

from src.helpers.text_helper import failure_summary

logger = logging.getLogger(__name__)

RERUN_ACTION_IDENTIFIER = "re-run-review"
RERUN_ACTION = {
    "label": "Re-run review",
    "description": "Request a new code review for this PR",
    "identifier": RERUN_ACTION_IDENTIFIER,
}


_ORDER = {
    CheckRunStatus.QUEUED: 0,
    CheckRunStatus.IN_PROGRESS: 1,
    CheckRunStatus.COMPLETED: 2,
}


class ReviewCheckRun:
    """The check run of one review, created in the first report and edited in the next ones"""

    def __init__(
        self,
        repository: Repository,
        head_sha: str,
        name: str,
        details_url: Optional[str] = None,
    ):
        self.repository = repository
        self.head_sha = head_sha
        self.name = name
        self.details_url = details_url
        self.check_run: Optional[CheckRun] = None
        self.status: Optional[CheckRunStatus] = None
        self.conclusion: Optional[CheckRunConclusion] = None
        self._lock = threading.Lock()

    def queued(self) -> bool:
        """Report the review as waiting in the queue"""
        return self._report(
            CheckRunStatus.QUEUED,
            output={"title": "Code Review", "summary": "Waiting for a free reviewer..."},
        )

    def in_progress(self, summary: str = "Analyzing changes...") -> bool:
        """Report the review as running"""
        return self._report(
            CheckRunStatus.IN_PROGRESS,
            output={"title": "Code Review", "summary": summary},
        )

    def succeed(self, summary: str, title: str = "Code Review Completed", rerun: bool = False) -> bool:
        """Complete the check run with success"""
        params = {}
        if rerun:
            params["actions"] = [RERUN_ACTION]
        return self._report(
            CheckRunStatus.COMPLETED,
            CheckRunConclusion.SUCCESS,
            output={"title": title, "summary": summary},
            **params,
        )

    def fail(self, error_message: str) -> bool:
        """Complete the check run with failure, showing only the start of the error"""
        return self._report(
            CheckRunStatus.COMPLETED,
            CheckRunConclusion.FAILURE,
            output={"title": "Code Review Failed", "summary": failure_summary(error_message)},
        )

    def _report(
        self,
        status: CheckRunStatus,
        conclusion: Optional[CheckRunConclusion] = None,
        **params,
    ) -> bool:
        with self._lock:
            if self.status is not None and _ORDER[status] <= _ORDER[self.status]:
                logger.debug(
                    "Ignoring check run %s report %s, already %s",
                    self.name,
                    status.value,
                    self.status.value,
                )
                return False
            if self.details_url:
                params["details_url"] = self.details_url
            if conclusion:
                params["conclusion"] = conclusion.value
            if self.check_run is None:
                self.check_run = self.repository.create_check_run(
                    self.name,
                    self.head_sha,
                    status=status.value,
                    **params,
                )
            else:
                self.check_run.edit(status=status.value, **params)
            self.status = status
            self.conclusion = conclusion
            return True
