"""This module contains the main application logic."""

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Callable, NoReturn, Optional

import github
import requests
import sentry_sdk
from flask import Flask, Response, current_app, jsonify, request
from flask.cli import load_dotenv

from config import AppConfig, default_configs
from src.helpers import github_helper
from src.helpers.check_run_helper import RERUN_ACTION_IDENTIFIER
from src.helpers.exception_helper import extract_error_message
from src.managers import review_manager
from src.managers.agent_reviewer import CommandReviewer
from src.services import QueueFullError, ReviewQueue

logging.basicConfig(
    stream=sys.stdout,
    format="%(levelname)s:%(module)s:%(funcName)s:%(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

REVIEWED_PULL_REQUEST_ACTIONS = ("opened", "reopened", "synchronize")


def sentry_init() -> NoReturn:  # pragma: no cover
    """Initialize sentry only if SENTRY_DSN is present"""
    if sentry_dsn := os.getenv("SENTRY_DSN"):
        # Initialize Sentry SDK for error logging
        sentry_sdk.init(
            dsn=sentry_dsn,
            traces_sample_rate=1.0,
            profiles_sample_rate=1.0,
        )
        logger.info("Sentry initialized")


def _review_queue() -> ReviewQueue:
    return current_app.extensions["review_queue"]


def _app_config() -> AppConfig:
    return current_app.extensions["app_config"]


def queue_full_response(error: QueueFullError) -> tuple[Response, int]:
    """The 503 answer when the review queue is full"""
    response = jsonify(
        {
            "error": "Review queue is full",
            "message": "The system is currently overloaded. Please try again later.",
            "retry_after": error.retry_after_seconds,
        }
    )
    response.headers["Retry-After"] = str(error.retry_after_seconds)
    return response, 503


def enqueue_review(payload: dict, pull_request_number: int) -> tuple[Response, int]:
    """Submit the review of the Pull Request in the payload"""
    installation_id = (payload.get("installation") or {}).get("id")
    full_name = payload["repository"]["full_name"]
    # Full queue answers before any GitHub call
    _review_queue().check_capacity(f"{full_name}#{pull_request_number}")
    gh = current_app.extensions["github_factory"](_app_config().github, installation_id)
    repository = gh.get_repo(full_name)
    pull_request = repository.get_pull(pull_request_number)
    job_id = review_manager.manage(
        _review_queue(),
        repository,
        pull_request,
        current_app.extensions["reviewer"],
        _app_config(),
        installation_id=installation_id,
    )
    return (
        jsonify(
            {
                "job_id": job_id,
                "status": "queued",
                "message": "Review job enqueued successfully",
            }
        ),
        202,
    )


def handle_pull_request(payload: dict) -> tuple[Response, int]:
    """Review the Pull Request when it is opened, reopened or has new commits"""
    action = payload.get("action")
    if action not in REVIEWED_PULL_REQUEST_ACTIONS:
        return jsonify({"message": "Action ignored"}), 200
    pull_request_number = payload["pull_request"]["number"]
    logger.info("Processing PR %s action: %s", pull_request_number, action)
    return enqueue_review(payload, pull_request_number)


def handle_check_run(payload: dict) -> tuple[Response, int]:
    """Review again when the "Re-run review" button of the check run is clicked"""
    requested_action = payload.get("requested_action") or {}
    if payload.get("action") != "requested_action" or requested_action.get("identifier") != RERUN_ACTION_IDENTIFIER:
        return jsonify({"message": "Action ignored"}), 200
    pull_requests = payload["check_run"].get("pull_requests") or []
    if not pull_requests:
        return jsonify({"message": "No Pull Request for the check run"}), 200
    pull_request_number = pull_requests[0]["number"]
    logger.info("Re-run review requested for PR %s", pull_request_number)
    return enqueue_review(payload, pull_request_number)


EVENT_HANDLERS = {
    "pull_request": handle_pull_request,
    "check_run": handle_check_run,
}


def webhook() -> tuple[Response, int]:
    """GitHub webhook endpoint"""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return jsonify({"error": "No JSON payload"}), 400
    # Without the header, guess by the payload
    event = request.headers.get("X-GitHub-Event") or next(
        (name for name in EVENT_HANDLERS if name in payload), None
    )
    if not (handler := EVENT_HANDLERS.get(event)):
        return jsonify({"message": "Event ignored"}), 200
    try:
        return handler(payload)
    except QueueFullError as err:
        logger.warning("Queue full: %s", err)
        return queue_full_response(err)
    except KeyError as err:
        return jsonify({"error": f"Missing {err} in payload"}), 400
    except (github.GithubException, requests.RequestException) as err:
        logger.exception("Webhook error")
        return jsonify({"error": extract_error_message(err)}), 500


def queue_status() -> Response:
    """The review queue counters"""
    return jsonify(_review_queue().get_stats().model_dump())


def job_status(job_id: str) -> tuple[Response, int]:
    """The review job status"""
    if job := _review_queue().get_status(job_id):
        return jsonify(job.to_dict()), 200
    return jsonify({"error": "Job not found"}), 404


def health() -> Response:
    """Health check"""
    return jsonify(
        {
            "status": "healthy",
            "service": "code-review-queue",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


def index() -> Response:
    """Return the endpoints"""
    return jsonify(
        {
            "service": "Code Review Queue",
            "endpoints": {
                "webhook": "/github/webhook",
                "health": "/health",
                "queue_status": "/queue/status",
                "job_status": "/jobs/<job_id>",
            },
        }
    )


def create_app(
    app_config: Optional[AppConfig] = None,
    review_queue: Optional[ReviewQueue] = None,
    github_factory: Optional[Callable[..., github.Github]] = None,
    reviewer: Optional[Callable] = None,
) -> Flask:
    """Create the Flask app with its own review queue"""
    app_config = app_config or default_configs()
    flask_app = Flask(__name__)
    flask_app.extensions["app_config"] = app_config
    flask_app.extensions["review_queue"] = review_queue or ReviewQueue(
        app_config.queue.max_queue_size,
        app_config.queue.max_workers,
        app_config.queue.retry_after_seconds,
    )
    flask_app.extensions["github_factory"] = github_factory or github_helper.get_github
    flask_app.extensions["reviewer"] = reviewer or CommandReviewer(app_config.reviewer)

    flask_app.add_url_rule("/", view_func=index, methods=["GET"])
    flask_app.add_url_rule("/health", view_func=health, methods=["GET"])
    flask_app.add_url_rule("/github/webhook", view_func=webhook, methods=["POST"])
    flask_app.add_url_rule("/queue/status", view_func=queue_status, methods=["GET"])
    flask_app.add_url_rule("/jobs/<job_id>", view_func=job_status, methods=["GET"])
    return flask_app


load_dotenv()
sentry_init()
app = create_app()
