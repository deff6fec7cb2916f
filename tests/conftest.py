from unittest.mock import Mock

import pytest
from github.PullRequest import PullRequest
from github.Repository import Repository

from config import AppConfig, GithubConfig, QueueConfig, ReviewerConfig
from src.services import CommentCollector, ReviewQueue


@pytest.fixture
def comment_collector():
    return CommentCollector()


@pytest.fixture
def review_queue(comment_collector):
    review_queue = ReviewQueue(
        max_queue_size=5,
        max_workers=2,
        retry_after_seconds=30,
        comment_collector=comment_collector,
    )
    yield review_queue
    review_queue.shutdown(wait=True, timeout=10)


@pytest.fixture
def app_config():
    return AppConfig(
        github=GithubConfig(check_name="Code Review", token="token"),
        queue=QueueConfig(max_workers=2, max_queue_size=5, retry_after_seconds=30),
        reviewer=ReviewerConfig(command="review-agent", ignore=["*.lock"]),
    )


@pytest.fixture
def check_run():
    return Mock()


@pytest.fixture
def repository_mock(check_run):
    repository = Mock(
        spec=Repository,
        default_branch="master",
        full_name="octo-org/octo-repo",
        url="repository.url",
        owner=Mock(login="octo-org"),
    )
    repository.name = "octo-repo"
    repository.create_check_run.return_value = check_run
    return repository


@pytest.fixture
def pull_request():
    return Mock(
        spec=PullRequest,
        number=123,
        html_url="https://github.com/octo-org/octo-repo/pull/123",
        head=Mock(sha="head_sha"),
    )
