"""Exception types raised by the repository client.

The file operations on ``RepositoryClient`` catch these (and transport
errors), log them, and return None. They are raised directly only by
``does_file_exist`` for failures other than "not found".
"""

from __future__ import annotations

import httpx


class GitContentsError(Exception):
    """Base class for repository client errors."""


class RepositoryConfigError(GitContentsError):
    """The repository base URL could not be resolved."""


class ContentsAPIError(GitContentsError):
    """A contents request failed for a reason other than "not found"."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FileConflictError(GitContentsError):
    """A file already exists at the target path and overwrite was not allowed."""


class RepositoryFileNotFoundError(GitContentsError):
    """The file an operation needs is absent from the repository."""


def describe_error(error: BaseException) -> str:
    """Return a human-readable description of *error*.

    HTTP status errors are described by the ``message`` field of the
    platform's JSON error body when there is one.
    """
    if isinstance(error, httpx.HTTPStatusError):
        try:
            body = error.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"HTTP {error.response.status_code}"
    return str(error) or type(error).__name__
