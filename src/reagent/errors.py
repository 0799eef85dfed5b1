"""Exception taxonomy for review sessions.

Every error carries an ``http_status`` so the HTTP layer can map it without a
lookup table. ``ReviewCancelled`` and ``ReviewTimedOut`` are business outcomes
delivered to waiters rather than request failures.
"""

from __future__ import annotations


class ReagentError(Exception):
    """Base class for all reagent errors."""

    http_status: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequest(ReagentError, ValueError):
    """Malformed input: missing source fields, empty comment text, bad line range."""


class SessionNotFound(ReagentError):
    http_status = 404

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Review session not found: {session_id}")
        self.session_id = session_id


class CommentNotFound(ReagentError):
    http_status = 404

    def __init__(self, comment_id: str) -> None:
        super().__init__(f"Comment not found: {comment_id}")
        self.comment_id = comment_id


class NoFilesToReview(ReagentError):
    def __init__(self, message: str = "No files to review. Check your source and file filters.") -> None:
        super().__init__(message)


class AlreadyFinalized(ReagentError):
    """Mutation attempted on a session that already left ``pending``."""

    http_status = 409

    def __init__(self, status: str | None = None) -> None:
        detail = f" (status: {status})" if status else ""
        super().__init__(f"Review has already been completed or cancelled{detail}")
        self.status = status


class SessionTimerUnavailable(ReagentError):
    """A session timeout was requested outside a running event loop."""

    http_status = 500

    def __init__(self) -> None:
        super().__init__("A running event loop is required to arm the review session timeout")


class ReviewCancelled(ReagentError):
    """Waiter outcome when a session is cancelled instead of completed."""

    http_status = 410

    def __init__(self, reason: str = "Review cancelled") -> None:
        super().__init__(reason)
        self.reason = reason


class ReviewTimedOut(ReviewCancelled):
    def __init__(self, reason: str = "Review timed out") -> None:
        super().__init__(reason)


class ExternalCollaboratorFailure(ReagentError):
    http_status = 502


class GitError(ExternalCollaboratorFailure):
    # Surfaced as a client error: the request named a bad repo or ref.
    http_status = 400


class BrowserOpenError(ExternalCollaboratorFailure):
    pass
