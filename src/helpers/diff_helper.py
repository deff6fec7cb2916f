"""Build the diff the reviewer will see"""

from fnmatch import fnmatch

from github.File import File
from github.PullRequest import PullRequest


def is_ignored(filename: str, ignore: list[str]) -> bool:
    """Return if the file matches any of the ignore patterns"""
    return any(fnmatch(filename, pattern) for pattern in ignore)


def file_diff(file: File) -> str:
    """The git diff of one file of the Pull Request"""
    previous_filename = file.previous_filename or file.filename
    source = "/dev/null" if file.status == "added" else f"a/{previous_filename}"
    target = "/dev/null" if file.status == "removed" else f"b/{file.filename}"
    return (
        f"diff --git a/{previous_filename} b/{file.filename}\n"
        f"--- {source}\n"
        f"+++ {target}\n"
        f"{file.patch}"
    )


def get_filtered_diff(pull_request: PullRequest, ignore: list[str]) -> str:
    """
    Return the unified diff of the Pull Request without the ignored files.
    Files without patch (binaries, too big) are left out.
    """
    return "\n".join(
        file_diff(file)
        for file in pull_request.get_files()
        if file.patch and not is_ignored(file.filename, ignore)
    )
