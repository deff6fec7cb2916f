from src.models.review_comment import CollectedComments, GeneralComment, InlineComment
from src.models.review_job import InvalidTransitionError, ReviewJob, ReviewJobStatus

__all__ = [
    "CollectedComments",
    "GeneralComment",
    "InlineComment",
    "InvalidTransitionError",
    "ReviewJob",
    "ReviewJobStatus",
]
