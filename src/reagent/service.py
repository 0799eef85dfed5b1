"""Review orchestration: create, look up, await, and mutate review sessions.

This is the boundary used by both the MCP tools and the HTTP API. The status
guards for comments, completion and cancellation live here rather than in
ReviewSession, which stays a data holder plus its completion signal.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime

from reagent.config import Settings
from reagent.errors import AlreadyFinalized, NoFilesToReview, ReviewCancelled, SessionNotFound
from reagent.models import (
    AddCommentRequest,
    CreateReviewResult,
    ReviewComment,
    ReviewFile,
    ReviewInput,
    ReviewResult,
    ReviewStatus,
    SessionSummary,
)
from reagent.registry import SessionRegistry
from reagent.session import ReviewSession
from reagent.sources import default_title, extract_review_files

logger = logging.getLogger("reagent")

USER_CANCEL_REASON = "Review cancelled by user"


def short_id(session_id: str | None) -> str:
    """Render compact session IDs in logs."""
    if not session_id:
        return "unknown"
    return session_id[:8]


def build_review_url(session_id: str, host: str) -> str:
    return f"http://{host}/review/{session_id}"


def result_payload(result: ReviewResult) -> dict:
    return result.to_wire()


class ReviewService:
    """Facade over the session registry for the tool and HTTP layers."""

    def __init__(self, registry: SessionRegistry, settings: Settings | None = None) -> None:
        self.registry = registry
        self.settings = settings or Settings()

    # ---- creation ----

    def create_session(
        self,
        files: Sequence[ReviewFile],
        title: str | None = None,
        description: str | None = None,
    ) -> ReviewSession:
        """Register a new pending session.

        Must run on the event loop when a session timeout is configured.
        """
        if not files:
            raise NoFilesToReview()
        session = ReviewSession(
            files,
            title=title,
            description=description,
            timeout_seconds=self.settings.session_timeout_seconds,
        )
        self.registry.set(session)
        logger.info(
            'create_session -> %s (%s file(s)) "%s"',
            short_id(session.id),
            len(session.files),
            title or "",
        )
        return session

    async def create_review(
        self,
        review_input: ReviewInput,
        host: str | None = None,
    ) -> tuple[ReviewSession, CreateReviewResult]:
        """Extract files for ``review_input`` and register a new session."""
        files = await extract_review_files(review_input)
        title = review_input.title or default_title(review_input)
        session = self.create_session(files, title=title, description=review_input.description)
        result = CreateReviewResult(
            session_id=session.id,
            review_url=build_review_url(session.id, host or self.settings.review_host),
            files_count=len(session.files),
            title=title,
        )
        return session, result

    # ---- lookup ----

    def get_session(self, session_id: str) -> ReviewSession | None:
        return self.registry.get(session_id)

    def require_session(self, session_id: str) -> ReviewSession:
        session = self.registry.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def list_sessions(self) -> list[SessionSummary]:
        return [session.summary() for session in self.registry.all_sessions()]

    def release(self, session_id: str) -> bool:
        """Drop a session whose outcome has been consumed."""
        return self.registry.delete(session_id)

    def cleanup(self, now: datetime | None = None) -> int:
        return self.registry.cleanup_old_sessions(self.settings.session_max_age_seconds, now=now)

    # ---- waiting ----

    async def await_review(
        self,
        session_id: str,
        wait: bool = True,
        timeout: float | None = None,
    ) -> dict:
        """Report a session's outcome, suspending until it is terminal when ``wait``.

        Polling mode (``wait=False``) never blocks. Blocking mode returns the
        terminal result, raises ReviewCancelled/ReviewTimedOut when the session
        was cancelled, and with ``timeout`` set returns the still-pending status
        once the bound elapses.
        """
        session = self.require_session(session_id)
        if wait and session.is_pending:
            try:
                result = await session.wait(timeout=timeout)
            except TimeoutError:
                logger.info("await_review -> %s still pending after %ss", short_id(session_id), timeout)
                return {"status": str(ReviewStatus.PENDING)}
            return result_payload(result)

        if session.status == ReviewStatus.CANCELLED:
            if wait:
                # Re-raise the stored cancellation reason.
                session.signal.outcome()
            return {"status": str(session.status)}
        if session.is_pending:
            return {"status": str(session.status)}
        return result_payload(session.signal.outcome())

    # ---- comments ----

    def _require_pending(self, session_id: str) -> ReviewSession:
        session = self.require_session(session_id)
        if not session.is_pending:
            raise AlreadyFinalized(str(session.status))
        return session

    def add_comment(self, session_id: str, request: AddCommentRequest) -> ReviewComment:
        session = self._require_pending(session_id)
        assert request.start_line is not None and request.end_line is not None
        comment = session.add_comment(
            request.file_path,
            request.start_line,
            request.end_line,
            request.side,
            request.text,
        )
        logger.info(
            "add_comment -> %s %s:%s-%s",
            short_id(session_id),
            comment.file_path,
            comment.start_line,
            comment.end_line,
        )
        return comment

    def delete_comment(self, session_id: str, comment_id: str) -> ReviewComment:
        session = self._require_pending(session_id)
        comment = session.remove_comment(comment_id)
        logger.info("delete_comment -> %s %s", short_id(session_id), short_id(comment_id))
        return comment

    # ---- terminal transitions ----

    def complete_review(
        self,
        session_id: str,
        status: ReviewStatus | str,
        general_feedback: str = "",
    ) -> ReviewResult:
        session = self.require_session(session_id)
        result = session.complete(status, general_feedback)
        logger.info(
            "complete_review -> %s %s (%s comment(s))",
            short_id(session_id),
            result.status,
            len(result.comments),
        )
        return result

    def cancel_review(self, session_id: str, reason: str = USER_CANCEL_REASON) -> None:
        """Cancel a pending session; raises AlreadyFinalized if it is terminal."""
        session = self._require_pending(session_id)
        session.cancel(reason)
        logger.info("cancel_review -> %s (%s)", short_id(session_id), reason)

    async def wait_for_result(self, session: ReviewSession) -> ReviewResult:
        """Block on a session's signal, logging how it resolved."""
        logger.info("waiting for review %s", short_id(session.id))
        try:
            result = await session.wait()
        except ReviewCancelled as exc:
            logger.info("review %s ended: %s", short_id(session.id), exc.reason)
            raise
        except asyncio.CancelledError:
            logger.info("waiter for %s cancelled", short_id(session.id))
            raise
        logger.info(
            "review %s completed: %s, %s comment(s)",
            short_id(session.id),
            result.status,
            len(result.comments),
        )
        return result
