"""Module to help with exceptions raised while reviewing"""

from typing import Union

from github import GithubException


def extract_message_from_error(error: Union[dict[str, str], str]) -> str:
    """Extract the message from error"""
    if isinstance(error, str):
        return error

    if message := error.get("message"):
        return message

    if (field := error.get("field")) and (code := error.get("code")):
        return f"{field} {code}"

    return str(error)


def extract_github_error(exception: GithubException) -> str:
    """Extract the message from GithubException"""
    data = exception.data
    if isinstance(data, dict):
        if errors := data.get("errors"):
            return extract_message_from_error(errors[0])
        if message := data.get("message"):
            return f"{exception.status} {message}"
    return f"{exception.status} {data}"


def extract_error_message(exception: BaseException) -> str:
    """Return a non-empty message for any exception"""
    if isinstance(exception, GithubException):
        return extract_github_error(exception)
    return str(exception) or exception.__class__.__name__
