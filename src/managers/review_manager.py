"""This module contains the logic to review a Pull Request inside a review job."""

import logging
from typing import Any, Callable, Optional

import requests
from github import GithubException
from github.PullRequest import PullRequest
from github.Repository import Repository

from config import AppConfig
from src.helpers import diff_helper
from src.helpers.check_run_helper import ReviewCheckRun
from src.helpers.exception_helper import extract_error_message
from src.helpers.text_helper import truncate
from src.models import CollectedComments, ReviewJob, ReviewJobStatus
from src.services import CommentSession, JobContext, ReviewQueue, WorkUnit

logger = logging.getLogger(__name__)

Reviewer = Callable[..., Any]
MAX_SUMMARY_LENGTH = 60000

NO_CHANGES_SUMMARY = "No reviewable changes found based on configured file patterns."
NO_COMMENTS_SUMMARY = "Code review completed with no comments."

PR_DETAILS_TEMPLATE = """Repository: {repository}
PR Number: {number}
Commit SHA: {sha}
PR URL: {url}"""


def pull_request_key(repository: Repository, pull_request_number: int, installation_id: Optional[int]) -> str:
    """The job key, used to identify the reviewed Pull Request in the logs and status"""
    key = f"{repository.full_name}#{pull_request_number}"
    if installation_id is not None:
        key += f"@{installation_id}"
    return key


class ReviewWorkUnit(WorkUnit):
    """
    Review one Pull Request.
    The check run is set in progress when the job starts and completed only in on_finished,
    when the job is already completed or failed.
    """

    def __init__(
        self,
        repository: Repository,
        pull_request: PullRequest,
        reviewer: Reviewer,
        config: AppConfig,
        installation_id: Optional[int] = None,
    ):
        self.repository = repository
        self.pull_request = pull_request
        self.reviewer = reviewer
        self.config = config
        self.installation_id = installation_id
        self.head_sha = pull_request.head.sha
        self.check_run: Optional[ReviewCheckRun] = None
        if config.github.manage_checks:
            self.check_run = ReviewCheckRun(
                repository,
                self.head_sha,
                config.github.check_name,
                details_url=pull_request.html_url,
            )
        self.comments: Optional[CollectedComments] = None
        self.has_diff = False

    def report_queued(self) -> None:
        """Show the review as queued, if the check run is managed here"""
        if self.check_run is None:
            return
        try:
            self.check_run.queued()
        except (GithubException, requests.RequestException) as err:
            logger.warning(
                "Could not create the check run for %s#%d: %s",
                self.repository.full_name,
                self.pull_request.number,
                extract_error_message(err),
            )

    def pr_details(self) -> str:
        """Where the reviewer can find the Pull Request"""
        return PR_DETAILS_TEMPLATE.format(
            repository=self.repository.full_name,
            number=self.pull_request.number,
            sha=self.head_sha,
            url=self.pull_request.html_url,
        )

    def reviewer_env(self) -> dict[str, str]:
        """Environment for the agent tools to reach the Pull Request"""
        env = {
            "GITHUB_OWNER": self.repository.owner.login,
            "GITHUB_REPO": self.repository.name,
            "GITHUB_PR_NUMBER": str(self.pull_request.number),
        }
        if self.installation_id is not None:
            env["GITHUB_INSTALLATION_ID"] = str(self.installation_id)
        return env

    def execute(self, context: JobContext) -> None:
        """Fetch the diff, run the reviewer and post the collected comments as one review"""
        if self.check_run:
            self.check_run.in_progress()

        diff = diff_helper.get_filtered_diff(self.pull_request, self.config.reviewer.ignore)
        if not diff:
            logger.info("No diff content for job %s, nothing to review", context.job_id)
            return
        self.has_diff = True
        logger.info("Reviewing %d chars of diff for job %s", len(diff), context.job_id)

        self.run_reviewer(diff, context.comments)
        self.comments = context.end_comments()
        if self.comments.has_comments():
            self.post_review(self.comments)
        else:
            logger.info("Reviewer left no comments for job %s", context.job_id)

    def run_reviewer(self, diff: str, session: CommentSession) -> None:
        """Call the reviewer, it adds the comments to the session"""
        self.reviewer(diff, self.pr_details(), session, env=self.reviewer_env())

    def post_review(self, comments: CollectedComments) -> None:
        """Post all the comments in a single Pull Request review"""
        logger.info(
            "Posting review with %d inline comments in %s#%d",
            len(comments.inline_comments),
            self.repository.full_name,
            self.pull_request.number,
        )
        self.pull_request.create_review(
            body=comments.summary(),
            event="COMMENT",
            comments=[comment.model_dump() for comment in comments.inline_comments],
        )

    def on_finished(self, job: ReviewJob) -> None:
        """Complete the check run according to how the job ended"""
        if self.check_run is None:
            return
        if job.status == ReviewJobStatus.FAILED:
            self.check_run.fail(job.error)
        elif not self.has_diff:
            self.check_run.succeed(NO_CHANGES_SUMMARY)
        elif self.comments and self.comments.has_comments():
            self.check_run.succeed(truncate(self.comments.summary(), MAX_SUMMARY_LENGTH), rerun=True)
        else:
            self.check_run.succeed(NO_COMMENTS_SUMMARY, rerun=True)


def manage(
    review_queue: ReviewQueue,
    repository: Repository,
    pull_request: PullRequest,
    reviewer: Reviewer,
    config: AppConfig,
    installation_id: Optional[int] = None,
) -> str:
    """
    Submit the review of the Pull Request to the queue and report it as queued.
    :raises QueueFullError: when the queue is at capacity.
    """
    work_unit = ReviewWorkUnit(repository, pull_request, reviewer, config, installation_id)
    job_id = review_queue.submit(
        pull_request_key(repository, pull_request.number, installation_id),
        work_unit,
    )
    work_unit.report_queued()
    return job_id
