from unittest.mock import Mock, patch

import pytest
import requests
from github import GithubException

from app import create_app
from src.models import ReviewJobStatus
from src.services import QueueFullError, ReviewQueue
from tests.work_units import WAIT_TIMEOUT, BlockingWorkUnit


@pytest.fixture
def gh(repository_mock, pull_request):
    gh = Mock()
    gh.get_repo.return_value = repository_mock
    repository_mock.get_pull.return_value = pull_request
    return gh


@pytest.fixture
def github_factory(gh):
    return Mock(return_value=gh)


@pytest.fixture
def reviewer():
    return Mock()


@pytest.fixture(autouse=True)
def get_filtered_diff():
    with patch("src.managers.review_manager.diff_helper.get_filtered_diff", return_value="") as mock:
        yield mock


@pytest.fixture
def flask_app(app_config, review_queue, github_factory, reviewer):
    return create_app(app_config, review_queue, github_factory=github_factory, reviewer=reviewer)


@pytest.fixture
def client(flask_app):
    return flask_app.test_client()


def pull_request_payload(action="opened"):
    return {
        "action": action,
        "pull_request": {"number": 123},
        "repository": {"full_name": "octo-org/octo-repo"},
        "installation": {"id": 10},
    }


def check_run_payload(identifier="re-run-review", pull_requests=({"number": 123},)):
    return {
        "action": "requested_action",
        "requested_action": {"identifier": identifier},
        "check_run": {"pull_requests": list(pull_requests)},
        "repository": {"full_name": "octo-org/octo-repo"},
        "installation": {"id": 10},
    }


def post_event(client, event, payload):
    return client.post("/github/webhook", json=payload, headers={"X-GitHub-Event": event})


@pytest.mark.parametrize("action", ["opened", "reopened", "synchronize"])
def test_pull_request_is_enqueued(client, review_queue, github_factory, gh, repository_mock, app_config, action):
    response = post_event(client, "pull_request", pull_request_payload(action))

    assert response.status_code == 202
    assert response.json["status"] == "queued"
    assert response.json["message"] == "Review job enqueued successfully"
    github_factory.assert_called_once_with(app_config.github, 10)
    gh.get_repo.assert_called_once_with("octo-org/octo-repo")
    repository_mock.get_pull.assert_called_once_with(123)

    assert review_queue.join(WAIT_TIMEOUT)
    job = review_queue.get_status(response.json["job_id"])
    assert job.key == "octo-org/octo-repo#123@10"
    assert job.status == ReviewJobStatus.COMPLETED


@pytest.mark.parametrize("action", ["closed", "edited", "labeled"])
def test_pull_request_action_ignored(client, github_factory, action):
    response = post_event(client, "pull_request", pull_request_payload(action))

    assert response.status_code == 200
    assert response.json == {"message": "Action ignored"}
    github_factory.assert_not_called()


def test_event_guessed_from_payload(client, review_queue):
    response = client.post("/github/webhook", json=pull_request_payload())
    assert response.status_code == 202
    assert review_queue.join(WAIT_TIMEOUT)


def test_event_ignored(client, github_factory):
    response = post_event(client, "push", {"ref": "refs/heads/master"})

    assert response.status_code == 200
    assert response.json == {"message": "Event ignored"}
    github_factory.assert_not_called()


def test_webhook_without_json(client):
    response = client.post("/github/webhook", data="not json", content_type="text/plain")
    assert response.status_code == 400
    assert response.json == {"error": "No JSON payload"}


def test_webhook_with_missing_payload_field(client):
    payload = pull_request_payload()
    del payload["repository"]
    response = post_event(client, "pull_request", payload)
    assert response.status_code == 400
    assert "repository" in response.json["error"]


def test_webhook_github_error(client, gh):
    gh.get_repo.side_effect = GithubException(404, {"message": "Not Found"})
    response = post_event(client, "pull_request", pull_request_payload())
    assert response.status_code == 500
    assert response.json == {"error": "404 Not Found"}


def test_queue_full(app_config, github_factory, reviewer):
    review_queue = Mock()
    review_queue.submit.side_effect = QueueFullError(retry_after_seconds=30, capacity=5)
    client = create_app(app_config, review_queue, github_factory=github_factory, reviewer=reviewer).test_client()

    response = post_event(client, "pull_request", pull_request_payload())

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "30"
    assert response.json == {
        "error": "Review queue is full",
        "message": "The system is currently overloaded. Please try again later.",
        "retry_after": 30,
    }


def test_rerun_requested(client, review_queue, repository_mock):
    response = post_event(client, "check_run", check_run_payload())

    assert response.status_code == 202
    repository_mock.get_pull.assert_called_once_with(123)
    assert review_queue.join(WAIT_TIMEOUT)


@pytest.mark.parametrize(
    "payload, expected_message",
    [
        (check_run_payload(identifier="other"), "Action ignored"),
        ({**check_run_payload(), "action": "completed"}, "Action ignored"),
        (check_run_payload(pull_requests=()), "No Pull Request for the check run"),
    ],
    ids=["Other action identifier", "Not a requested action", "Without Pull Request"],
)
def test_check_run_ignored(client, github_factory, payload, expected_message):
    response = post_event(client, "check_run", payload)

    assert response.status_code == 200
    assert response.json == {"message": expected_message}
    github_factory.assert_not_called()


def test_queue_status(client, review_queue):
    response = client.get("/queue/status")
    assert response.status_code == 200
    assert response.json == {"waiting": 0, "running": 0, "capacity": 5, "max_concurrency": 2}


def test_job_status(client, review_queue):
    job_id = post_event(client, "pull_request", pull_request_payload()).json["job_id"]
    assert review_queue.join(WAIT_TIMEOUT)

    response = client.get(f"/jobs/{job_id}")

    assert response.status_code == 200
    assert response.json["id"] == job_id
    assert response.json["status"] == "completed"
    assert response.json["error"] is None


def test_job_status_not_found(client):
    response = client.get("/jobs/unknown")
    assert response.status_code == 404
    assert response.json == {"error": "Job not found"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json["status"] == "healthy"
    assert "timestamp" in response.json


def test_index(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json["endpoints"]["webhook"] == "/github/webhook"


def test_create_app_builds_its_own_queue(app_config):
    flask_app = create_app(app_config, github_factory=Mock(), reviewer=Mock())
    review_queue = flask_app.extensions["review_queue"]
    assert review_queue.capacity == 5
    assert review_queue.max_concurrency == 2
    assert review_queue.retry_after_seconds == 30


def test_queue_full_answers_before_calling_github(app_config, github_factory, reviewer):
    review_queue = ReviewQueue(max_queue_size=1, max_workers=1, retry_after_seconds=30)
    work_unit = BlockingWorkUnit()
    review_queue.submit("running", work_unit)
    client = create_app(app_config, review_queue, github_factory=github_factory, reviewer=reviewer).test_client()

    response = post_event(client, "pull_request", pull_request_payload())

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "30"
    github_factory.assert_not_called()
    work_unit.release.set()
    assert review_queue.join(WAIT_TIMEOUT)


def test_webhook_connection_error(client, gh, review_queue):
    gh.get_repo.side_effect = requests.ConnectionError("reset")
    response = post_event(client, "pull_request", pull_request_payload())
    assert response.status_code == 500
    assert response.json == {"error": "reset"}
    assert review_queue.get_stats().waiting == 0
