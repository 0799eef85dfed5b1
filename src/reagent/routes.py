"""HTTP routes for the browser review UI: JSON API under /api plus the built frontend."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from reagent import __version__
from reagent.browser import open_review_url
from reagent.errors import InvalidRequest, ReagentError, ReviewCancelled
from reagent.models import (
    AddCommentRequest,
    CompleteReviewRequest,
    ReviewInput,
    validation_message,
)
from reagent.runtime import current_app_context
from reagent.service import short_id

logger = logging.getLogger("reagent")

CONTENT_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".svg": "image/svg+xml",
    ".json": "application/json",
    ".ico": "image/x-icon",
    ".png": "image/png",
    ".woff2": "font/woff2",
}

# Upper bound on a single long-poll request, whatever the client asks for.
MAX_LONG_POLL_SECONDS = 120.0


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _reagent_error(exc: ReagentError) -> JSONResponse:
    return error_response(exc.message, exc.http_status)


def _validation_error(exc: ValidationError) -> JSONResponse:
    return error_response(validation_message(exc), 400)


async def _json_body(request: Request) -> dict:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidRequest(f"Invalid JSON body: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return payload


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_timeout(raw: str | None, default: float) -> float:
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidRequest(f"Invalid timeout: {raw}") from None
    if value < 0:
        raise InvalidRequest("timeout must be >= 0")
    return min(value, MAX_LONG_POLL_SECONDS)


def _index_response(dist_dir: Path) -> Response:
    index_path = dist_dir / "index.html"
    if not index_path.is_file():
        return PlainTextResponse(
            "Review UI not built. Run 'npm run build' in ui/",
            status_code=503,
        )
    return HTMLResponse(content=index_path.read_bytes())


def register_api_routes(mcp: object) -> None:
    """Register the review API and UI routes on a FastMCP server."""

    @mcp.custom_route("/api/health", methods=["GET"])  # type: ignore[union-attr]
    async def health(request: Request) -> Response:
        app = current_app_context()
        return JSONResponse({
            "status": "ok",
            "version": __version__,
            "activeSessions": app.registry.pending_count(),
        })

    @mcp.custom_route("/api/sessions", methods=["GET"])  # type: ignore[union-attr]
    async def list_sessions(request: Request) -> Response:
        app = current_app_context()
        return JSONResponse([summary.to_wire() for summary in app.service.list_sessions()])

    @mcp.custom_route("/api/reviews", methods=["POST"])  # type: ignore[union-attr]
    async def create_review(request: Request) -> Response:
        app = current_app_context()
        try:
            payload = await _json_body(request)
            open_browser = bool(payload.pop("openBrowser", payload.pop("open_browser", False)))
            review_input = ReviewInput.model_validate(payload)
            host = request.headers.get("host") or app.settings.review_host
            session, created = await app.service.create_review(review_input, host=host)
        except ValidationError as exc:
            return _validation_error(exc)
        except ReagentError as exc:
            logger.info("POST /api/reviews -> failed (%s)", exc.message)
            return _reagent_error(exc)
        if open_browser:
            await open_review_url(created.review_url)
        logger.info("POST /api/reviews -> %s created", short_id(session.id))
        return JSONResponse(created.to_wire(), status_code=201)

    @mcp.custom_route("/api/sessions/{session_id}", methods=["GET"])  # type: ignore[union-attr]
    async def get_session(request: Request) -> Response:
        app = current_app_context()
        session = app.service.get_session(request.path_params["session_id"])
        if session is None:
            return error_response("Review session not found", 404)
        return JSONResponse(session.to_dict())

    @mcp.custom_route("/api/sessions/{session_id}/result", methods=["GET"])  # type: ignore[union-attr]
    async def get_result(request: Request) -> Response:
        """Poll or long-poll a session's outcome.

        ?wait=true suspends up to ?timeout= seconds (default: configured wait
        timeout) and reports status 'pending' if nothing happened by then.
        """
        app = current_app_context()
        session_id = request.path_params["session_id"]
        try:
            wait = _parse_bool(request.query_params.get("wait"), False)
            timeout = _parse_timeout(
                request.query_params.get("timeout"), app.settings.wait_timeout_seconds
            )
            result = await app.service.await_review(session_id, wait=wait, timeout=timeout)
        except ReviewCancelled as exc:
            return JSONResponse({"status": "cancelled", "reason": exc.reason})
        except ReagentError as exc:
            return _reagent_error(exc)
        return JSONResponse(result)

    @mcp.custom_route("/api/sessions/{session_id}/comments", methods=["POST"])  # type: ignore[union-attr]
    async def add_comment(request: Request) -> Response:
        app = current_app_context()
        session_id = request.path_params["session_id"]
        try:
            app.service.require_session(session_id)
            payload = await _json_body(request)
            comment_request = AddCommentRequest.model_validate(payload)
            comment = app.service.add_comment(session_id, comment_request)
        except ValidationError as exc:
            return _validation_error(exc)
        except ReagentError as exc:
            return _reagent_error(exc)
        return JSONResponse(comment.to_wire(), status_code=201)

    @mcp.custom_route(  # type: ignore[union-attr]
        "/api/sessions/{session_id}/comments/{comment_id}", methods=["DELETE"]
    )
    async def delete_comment(request: Request) -> Response:
        app = current_app_context()
        try:
            app.service.delete_comment(
                request.path_params["session_id"],
                request.path_params["comment_id"],
            )
        except ReagentError as exc:
            return _reagent_error(exc)
        return Response(status_code=204)

    @mcp.custom_route("/api/sessions/{session_id}/complete", methods=["POST"])  # type: ignore[union-attr]
    async def complete_review(request: Request) -> Response:
        app = current_app_context()
        session_id = request.path_params["session_id"]
        try:
            app.service.require_session(session_id)
            payload = await _json_body(request)
            completion = CompleteReviewRequest.model_validate(payload)
            result = app.service.complete_review(
                session_id, completion.status, completion.general_feedback
            )
        except ValidationError as exc:
            return _validation_error(exc)
        except ReagentError as exc:
            return _reagent_error(exc)
        return JSONResponse({"message": "Review completed successfully", "result": result.to_wire()})

    @mcp.custom_route("/api/sessions/{session_id}/cancel", methods=["POST"])  # type: ignore[union-attr]
    async def cancel_review(request: Request) -> Response:
        app = current_app_context()
        try:
            app.service.cancel_review(request.path_params["session_id"])
        except ReagentError as exc:
            return _reagent_error(exc)
        return JSONResponse({"message": "Review cancelled"})

    @mcp.custom_route("/", methods=["GET"])  # type: ignore[union-attr]
    async def ui_index(request: Request) -> Response:
        return _index_response(current_app_context().settings.ui_dist)

    @mcp.custom_route("/review/{session_id}", methods=["GET"])  # type: ignore[union-attr]
    async def ui_review(request: Request) -> Response:
        # Client-side routing: every review page is the same index.html.
        return _index_response(current_app_context().settings.ui_dist)

    @mcp.custom_route("/assets/{path:path}", methods=["GET"])  # type: ignore[union-attr]
    async def ui_static(request: Request) -> Response:
        """Serve static assets from the built UI directory."""
        dist_dir = current_app_context().settings.ui_dist
        asset_path = (dist_dir / "assets" / request.path_params["path"]).resolve()

        # Strict containment check against the dist directory.
        try:
            asset_path.relative_to(dist_dir.resolve())
        except ValueError:
            return PlainTextResponse("Not found", status_code=404)

        if not asset_path.is_file():
            return PlainTextResponse("Not found", status_code=404)

        suffix = asset_path.suffix.lower()
        content_type = CONTENT_TYPES.get(suffix, "application/octet-stream")
        return Response(content=asset_path.read_bytes(), media_type=content_type)
