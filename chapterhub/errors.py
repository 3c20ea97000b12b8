"""
chapterhub.errors — Domain Error Taxonomy
==========================================

Services raise these *before* any write so a rejected mutation never leaves
partial state behind.  The API layer maps each class to an HTTP status in
:mod:`chapterhub.api.main`.
"""

from __future__ import annotations


class ChapterHubError(Exception):
    """Base class for every error raised by the service layer."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthorizationError(ChapterHubError):
    """The actor's role does not allow the requested mutation."""

    status_code = 403


class NotFoundError(ChapterHubError):
    """A referenced member, objective, assignment or activity is missing."""

    status_code = 404


class ValidationError(ChapterHubError):
    """Malformed input, rejected before anything is written."""

    status_code = 422


class ConsistencyError(ChapterHubError):
    """Cached member total disagrees with the ledger sum."""

    status_code = 409
