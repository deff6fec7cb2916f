"""Models for the comments collected during a review"""

from pydantic import BaseModel, Field

DEFAULT_SUMMARY = "Code review completed."


class InlineComment(BaseModel):
    """A comment attached to a line of a file in the Pull Request"""

    path: str
    line: int
    body: str


class GeneralComment(BaseModel):
    """A comment about the Pull Request as a whole"""

    body: str


def build_summary(general_comments: list[GeneralComment]) -> str:
    """Join the general comments bodies, or the default summary if there is none"""
    if general_comments:
        return "\n\n".join(comment.body for comment in general_comments)
    return DEFAULT_SUMMARY


class CollectedComments(BaseModel):
    """Comments detached from a finished review session"""

    inline_comments: list[InlineComment] = Field(default_factory=list)
    general_comments: list[GeneralComment] = Field(default_factory=list)

    def has_comments(self) -> bool:
        """Return if any comment was collected"""
        return bool(self.inline_comments or self.general_comments)

    def summary(self) -> str:
        """The review body built from the general comments"""
        return build_summary(self.general_comments)
