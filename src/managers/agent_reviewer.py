"""Runs the external review agent"""

import json
import logging
import os
import shlex
import subprocess
import tempfile
from collections.abc import Iterable
from typing import Optional

from config import ReviewerConfig
from src.helpers.text_helper import render_template
from src.services.comment_collector import CommentSession, format_inline_body

logger = logging.getLogger(__name__)


class ReviewerError(Exception):
    """Raised when the review agent fails"""


def load_comments(lines: Iterable[str], session: CommentSession) -> int:
    """
    Add the comments written by the agent tools to the session.
    Each line is a JSON object with type "inline" (path, line, message and optionally suggested_fix)
    or "general" (message).
    Return the number of comments added.
    """
    count = 0
    for line_number, line in enumerate(lines, start=1):
        if not (line := line.strip()):
            continue
        try:
            comment = json.loads(line)
            comment_type = comment["type"]
            if comment_type == "inline":
                session.add_inline(
                    comment["path"],
                    int(comment["line"]),
                    format_inline_body(comment["message"], comment.get("suggested_fix")),
                )
            elif comment_type == "general":
                session.add_general(comment["message"])
            else:
                logger.warning("Ignoring comment of unknown type %r in line %d", comment_type, line_number)
                continue
        except (ValueError, KeyError, TypeError) as err:
            raise ReviewerError(f"Invalid comment in line {line_number}: {err}") from err
        count += 1
    return count


class CommandReviewer:
    """
    Run the agent command with the prompt in the stdin.
    The agent tools write the comments in the file in the COMMENTS_FILE environment variable.
    """

    def __init__(self, config: ReviewerConfig):
        self.config = config

    def build_prompt(self, diff: str, pr_details: str) -> str:
        """Fill the prompt template with the Pull Request details and diff"""
        return render_template(
            self.config.prompt_template,
            pr_details_content=pr_details,
            diff_content=diff,
        )

    def __call__(
        self,
        diff: str,
        pr_details: str,
        session: CommentSession,
        env: Optional[dict[str, str]] = None,
    ) -> int:
        """Review the diff adding the comments to the session. Return the number of comments."""
        with tempfile.TemporaryDirectory(prefix="review-") as temp_dir:
            comments_file = os.path.join(temp_dir, f"comments-{session.job_id}.jsonl")
            process_env = {**os.environ, **(env or {}), "COMMENTS_FILE": comments_file}
            logger.info("Running reviewer for job %s", session.job_id)
            try:
                result = subprocess.run(
                    shlex.split(self.config.command),
                    input=self.build_prompt(diff, pr_details),
                    capture_output=True,
                    text=True,
                    cwd=temp_dir,
                    env=process_env,
                    timeout=self.config.timeout,
                    check=False,
                )
            except subprocess.TimeoutExpired as err:
                raise ReviewerError(f"Reviewer timed out after {self.config.timeout}s") from err
            except OSError as err:
                raise ReviewerError(f"Could not start the reviewer: {err}") from err

            if result.returncode != 0:
                raise ReviewerError(f"Reviewer exited with code {result.returncode}: {result.stderr.strip()}")

            if not os.path.exists(comments_file):
                logger.info("Reviewer for job %s left no comments", session.job_id)
                return 0
            with open(comments_file) as f:
                return load_comments(f, session)
