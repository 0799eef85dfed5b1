"""MCP tool definitions for reagent."""

from __future__ import annotations

import logging

from fastmcp import Context
from pydantic import ValidationError

from reagent.browser import open_review_url
from reagent.errors import ReagentError, ReviewCancelled, SessionNotFound
from reagent.models import ReviewInput, validation_message
from reagent.runtime import AppContext, current_app_context
from reagent.server import caller_tag, mcp
from reagent.service import short_id

logger = logging.getLogger("reagent")

ABANDONED_REASON = "Review request abandoned by caller"


def mcp_tool(fn):
    """Register ``fn`` as an MCP tool that stays callable through ``.fn``."""
    registered = mcp.tool(fn)
    if not hasattr(registered, "fn"):
        registered.fn = fn
    return registered


def _app_ctx(ctx: Context) -> AppContext:
    """The lifespan AppContext FastMCP stores on the server behind ``ctx``."""
    result = getattr(getattr(ctx, "fastmcp", None), "_lifespan_result", None)
    return result if isinstance(result, AppContext) else current_app_context()


def _review_input(**fields) -> ReviewInput | dict:
    try:
        return ReviewInput.model_validate({k: v for k, v in fields.items() if v is not None})
    except ValidationError as exc:
        return {"error": validation_message(exc)}


@mcp_tool
async def ask_for_review(
    files: list[str] | None = None,
    source: str | None = None,
    commit_hash: str | None = None,
    base: str | None = None,
    head: str | None = None,
    title: str | None = None,
    description: str | None = None,
    working_directory: str | None = None,
    ctx: Context = None,
) -> dict:
    """Open a browser-based code review and BLOCK until the human finishes it.

    With no arguments, every uncommitted change in the current git repository
    is reviewed. Sources:
    - uncommitted: working tree changes (default)
    - commit: a specific commit (commit_hash required)
    - branch: base...head comparison (base and head required)
    - local: explicit files read from disk (files required)

    Returns status ('approved' or 'changes_requested'), generalFeedback and the
    line comments. If the review is cancelled or times out, returns an error
    with status 'cancelled'.
    """
    caller_tag.set("agent")
    app: AppContext = _app_ctx(ctx)
    review_input = _review_input(
        files=files,
        source=source,
        commit_hash=commit_hash,
        base=base,
        head=head,
        title=title,
        description=description,
        working_directory=working_directory,
    )
    if isinstance(review_input, dict):
        logger.info("ask_for_review -> invalid input (%s)", review_input["error"])
        return review_input

    try:
        session, created = await app.service.create_review(review_input)
    except ReagentError as exc:
        logger.info("ask_for_review -> failed (%s)", exc.message)
        return {"error": exc.message}

    logger.info("ask_for_review -> %s review at %s", short_id(session.id), created.review_url)
    if app.settings.open_browser:
        await open_review_url(created.review_url)

    try:
        result = await app.service.wait_for_result(session)
    except ReviewCancelled as exc:
        return {"error": exc.reason, "status": "cancelled", "sessionId": session.id}
    finally:
        if session.is_pending:
            session.cancel(ABANDONED_REASON)
        app.service.release(session.id)
    return {"sessionId": session.id, **result.to_wire()}


@mcp_tool
async def create_review(
    files: list[str] | None = None,
    source: str | None = None,
    commit_hash: str | None = None,
    base: str | None = None,
    head: str | None = None,
    title: str | None = None,
    description: str | None = None,
    working_directory: str | None = None,
    open_browser: bool = True,
    ctx: Context = None,
) -> dict:
    """Create a review session without waiting for it.

    Returns sessionId, reviewUrl, filesCount and title. Use get_review with the
    sessionId to poll or wait for the outcome.
    """
    caller_tag.set("agent")
    app: AppContext = _app_ctx(ctx)
    review_input = _review_input(
        files=files,
        source=source,
        commit_hash=commit_hash,
        base=base,
        head=head,
        title=title,
        description=description,
        working_directory=working_directory,
    )
    if isinstance(review_input, dict):
        logger.info("create_review -> invalid input (%s)", review_input["error"])
        return review_input

    try:
        session, created = await app.service.create_review(review_input)
    except ReagentError as exc:
        logger.info("create_review -> failed (%s)", exc.message)
        return {"error": exc.message}

    if open_browser and app.settings.open_browser:
        await open_review_url(created.review_url)
    else:
        logger.info("create_review -> %s browser disabled, review at %s", short_id(session.id), created.review_url)
    return created.to_wire()


@mcp_tool
async def get_review(
    session_id: str,
    wait: bool = True,
    timeout_seconds: float | None = None,
    ctx: Context = None,
) -> dict:
    """Get a review's status and, once finished, its feedback and comments.

    wait=True blocks until the review is approved, sent back with changes
    requested, or cancelled. Pass timeout_seconds to bound the wait; when it
    elapses the response reports status 'pending'. wait=False returns at once.
    """
    caller_tag.set("agent")
    app: AppContext = _app_ctx(ctx)
    try:
        result = await app.service.await_review(session_id, wait=wait, timeout=timeout_seconds)
    except SessionNotFound as exc:
        logger.info("get_review -> %s not found", short_id(session_id))
        return {
            "error": (
                f"{exc.message}. Session may have been completed and cleaned up, "
                "or the ID is invalid."
            )
        }
    except ReviewCancelled as exc:
        logger.info("get_review -> %s cancelled (%s)", short_id(session_id), exc.reason)
        return {"error": exc.reason, "status": "cancelled"}
    logger.info("get_review -> %s %s (wait=%s)", short_id(session_id), result["status"], wait)
    return result


@mcp_tool
async def list_reviews(ctx: Context = None) -> dict:
    """List review sessions held by the server with their status and file counts."""
    app: AppContext = _app_ctx(ctx)
    reviews = [summary.to_wire() for summary in app.service.list_sessions()]
    logger.info("list_reviews -> %s sessions", len(reviews))
    return {"reviews": reviews}


@mcp_tool
async def cancel_review(session_id: str, ctx: Context = None) -> dict:
    """Cancel a pending review. Anyone waiting on it receives a cancellation error."""
    caller_tag.set("agent")
    app: AppContext = _app_ctx(ctx)
    try:
        app.service.cancel_review(session_id, reason="Review cancelled by agent")
    except ReagentError as exc:
        logger.info("cancel_review -> %s rejected (%s)", short_id(session_id), exc.message)
        return {"error": exc.message}
    return {"sessionId": session_id, "status": "cancelled"}
