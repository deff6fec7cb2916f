from src.services.comment_collector import CommentCollector, CommentSession, SessionNotFoundError
from src.services.review_queue import (
    JobContext,
    QueueClosedError,
    QueueFullError,
    QueueStats,
    ReviewQueue,
    WorkUnit,
)

__all__ = [
    "CommentCollector",
    "CommentSession",
    "JobContext",
    "QueueClosedError",
    "QueueFullError",
    "QueueStats",
    "ReviewQueue",
    "SessionNotFoundError",
    "WorkUnit",
]
