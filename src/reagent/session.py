"""Review session entity: snapshot of files, mutable comments, and the completion signal."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Sequence
from datetime import datetime

from reagent.completion import CompletionSignal
from reagent.errors import (
    CommentNotFound,
    InvalidRequest,
    ReviewCancelled,
    ReviewTimedOut,
    SessionTimerUnavailable,
)
from reagent.models import (
    COMPLETION_STATUSES,
    CommentSide,
    ReviewComment,
    ReviewFile,
    ReviewResult,
    ReviewStatus,
    SessionSummary,
    utcnow,
)
from reagent.state_machine import validate_transition

logger = logging.getLogger("reagent")

DEFAULT_CANCEL_REASON = "Review cancelled"
TIMEOUT_REASON = "Review timed out"


class ReviewSession:
    """One review request from creation to its single terminal transition.

    Status write and signal firing happen together inside ``complete`` and
    ``cancel``. Both run synchronously on the event loop, so no other task can
    observe one without the other.
    """

    def __init__(
        self,
        files: Sequence[ReviewFile],
        title: str | None = None,
        description: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.title = title
        self.description = description
        self.files: tuple[ReviewFile, ...] = tuple(files)
        self.comments: list[ReviewComment] = []
        self.general_feedback = ""
        self.status = ReviewStatus.PENDING
        self.created_at: datetime = utcnow()
        self.signal = CompletionSignal()
        self._timer: asyncio.TimerHandle | None = None
        if timeout_seconds is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                raise SessionTimerUnavailable() from None
            self._timer = loop.call_later(timeout_seconds, self._expire)

    @property
    def is_pending(self) -> bool:
        return self.status == ReviewStatus.PENDING

    @property
    def timer_armed(self) -> bool:
        return self._timer is not None

    @property
    def result(self) -> ReviewResult | None:
        """Terminal result for completed sessions, None otherwise."""
        if self.status not in COMPLETION_STATUSES:
            return None
        return self.signal.outcome()

    def add_comment(
        self,
        file_path: str,
        start_line: int,
        end_line: int,
        side: CommentSide | str,
        text: str,
    ) -> ReviewComment:
        """Append a comment. Status is checked by the caller, not here."""
        try:
            comment = ReviewComment(
                file_path=file_path,
                start_line=start_line,
                end_line=end_line,
                side=CommentSide(side),
                text=text,
            )
        except ValueError as exc:
            raise InvalidRequest(str(exc)) from exc
        self.comments.append(comment)
        return comment

    def find_comment(self, comment_id: str) -> ReviewComment | None:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None

    def remove_comment(self, comment_id: str) -> ReviewComment:
        comment = self.find_comment(comment_id)
        if comment is None:
            raise CommentNotFound(comment_id)
        self.comments.remove(comment)
        return comment

    def complete(self, status: ReviewStatus | str, general_feedback: str = "") -> ReviewResult:
        """Finalize with approved/changes_requested and wake every waiter.

        Raises AlreadyFinalized if the session already left ``pending``.
        """
        target = ReviewStatus(status)
        if target not in COMPLETION_STATUSES:
            raise InvalidRequest("status must be 'approved' or 'changes_requested'")
        validate_transition(self.status, target)

        self.status = target
        self.general_feedback = general_feedback
        self._disarm()
        result = ReviewResult(
            status=target,
            general_feedback=general_feedback,
            comments=list(self.comments),
        )
        self.signal.resolve(result)
        return result

    def cancel(self, reason: str = DEFAULT_CANCEL_REASON) -> bool:
        """Cancel a pending session. No-op returning False once terminal."""
        return self._cancel_with(ReviewCancelled(reason))

    def _expire(self) -> None:
        self._timer = None
        if self._cancel_with(ReviewTimedOut(TIMEOUT_REASON)):
            logger.info("session %s timed out", self.id[:8])

    def _cancel_with(self, error: ReviewCancelled) -> bool:
        if not self.is_pending:
            return False
        self.status = ReviewStatus.CANCELLED
        self._disarm()
        self.signal.reject(error)
        return True

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait(self, timeout: float | None = None) -> ReviewResult:
        return await self.signal.wait(timeout=timeout)

    def summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.id,
            status=self.status,
            files_count=len(self.files),
            title=self.title,
            description=self.description,
            created_at=self.created_at,
        )

    def to_dict(self) -> dict:
        """Full camelCase snapshot for transport."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "files": [f.to_wire() for f in self.files],
            "comments": [c.to_wire() for c in self.comments],
            "generalFeedback": self.general_feedback,
            "status": str(self.status),
            "createdAt": self.summary().to_wire()["createdAt"],
        }
