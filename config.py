"""Module to create the application Configs"""

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_PROMPT_TEMPLATE = """You are reviewing a Pull Request.

__PR_DETAILS_CONTENT__

Review the diff below. Leave inline comments on the changed lines and general comments
about the Pull Request using the comment tools.

__DIFF_CONTENT__
"""


class QueueConfig(BaseModel):
    """Limits of the review queue"""

    max_workers: int = Field(default=3, ge=1)
    max_queue_size: int = Field(default=50, ge=1)
    retry_after_seconds: int = Field(default=60, ge=0)


class GithubConfig(BaseModel):
    """How to reach GitHub and how the check run is named"""

    check_name: str = "Code Review"
    token: Optional[str] = None
    app_id: Optional[str] = None
    private_key: Optional[str] = None
    manage_checks: bool = True


class ReviewerConfig(BaseModel):
    """The external review agent"""

    command: str = "amp --execute"
    timeout: int = Field(default=900, ge=1)
    ignore: list[str] = Field(default_factory=list)
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE


class AppConfig(BaseModel):
    """All the configs"""

    github: GithubConfig = Field(default_factory=GithubConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    reviewer: ReviewerConfig = Field(default_factory=ReviewerConfig)


def _read_private_key() -> Optional[str]:
    """Private key from GITHUB_APP_PRIVATE_KEY or from the file in GITHUB_APP_PRIVATE_KEY_PATH"""
    if private_key := os.getenv("GITHUB_APP_PRIVATE_KEY"):
        return private_key.replace("\\n", "\n")
    if private_key_path := os.getenv("GITHUB_APP_PRIVATE_KEY_PATH"):
        with open(private_key_path) as f:
            return f.read()
    return None


def _split(value: Optional[str]) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _set_if_present(values: dict, key: str, env_var: str) -> None:
    if (value := os.getenv(env_var)) is not None:
        values[key] = value


def default_configs() -> AppConfig:
    """Create the configs from the environment variables"""
    queue = {}
    _set_if_present(queue, "max_workers", "MAX_WORKERS")
    _set_if_present(queue, "max_queue_size", "MAX_QUEUE_SIZE")
    _set_if_present(queue, "retry_after_seconds", "RETRY_AFTER_SECONDS")

    github = {
        "token": os.getenv("GITHUB_TOKEN"),
        "app_id": os.getenv("GITHUB_APP_ID"),
        "private_key": _read_private_key(),
        # GitHub Actions workflows report their own check run
        "manage_checks": os.getenv("GITHUB_ACTIONS") != "true",
    }
    _set_if_present(github, "check_name", "GITHUB_CHECK_NAME")

    reviewer = {"ignore": _split(os.getenv("REVIEWER_IGNORE"))}
    _set_if_present(reviewer, "command", "REVIEWER_COMMAND")
    _set_if_present(reviewer, "timeout", "REVIEWER_TIMEOUT")
    _set_if_present(reviewer, "prompt_template", "REVIEWER_PROMPT_TEMPLATE")

    return AppConfig(
        github=GithubConfig(**github),
        queue=QueueConfig(**queue),
        reviewer=ReviewerConfig(**reviewer),
    )
