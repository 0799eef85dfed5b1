"""Tests for the review UI HTTP API and static file serving."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from conftest import make_files
from starlette.testclient import TestClient

from reagent import __version__
from reagent.errors import NoFilesToReview
from reagent.runtime import AppContext
from reagent.server import mcp


@pytest.fixture()
def client(app_ctx: AppContext):
    """Starlette TestClient over the MCP server's HTTP app.

    The lifespan is not entered; app_ctx is installed as the route context.
    """
    app = mcp.http_app(transport="streamable-http", stateless_http=True)
    return TestClient(app, raise_server_exceptions=False)


def _session(app_ctx: AppContext, *paths: str, title: str = "Review me"):
    return app_ctx.service.create_session(make_files(*paths), title=title)


# ---- Health and listing ----


def test_health_reports_active_sessions(client, app_ctx):
    _session(app_ctx)
    done = _session(app_ctx)
    done.complete("approved")

    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": __version__, "activeSessions": 1}


def test_list_sessions(client, app_ctx):
    session = _session(app_ctx, "a.py", "b.py")
    resp = client.get("/api/sessions")
    assert resp.status_code == 200
    (entry,) = resp.json()
    assert entry["id"] == session.id
    assert entry["filesCount"] == 2
    assert entry["title"] == "Review me"


# ---- Create ----


def test_create_review(client, app_ctx):
    with patch(
        "reagent.service.extract_review_files", AsyncMock(return_value=make_files("x.py"))
    ):
        resp = client.post("/api/reviews", json={"files": ["x.py"], "source": "local"})
    assert resp.status_code == 201
    body = resp.json()
    assert body["filesCount"] == 1
    assert body["title"] == "Local files"
    assert body["reviewUrl"].endswith(f"/review/{body['sessionId']}")
    assert app_ctx.registry.has(body["sessionId"])


def test_create_review_validation_error(client):
    resp = client.post("/api/reviews", json={"source": "branch", "base": "main"})
    assert resp.status_code == 400
    assert "base and head are required" in resp.json()["error"]


def test_create_review_no_files(client):
    with patch(
        "reagent.service.extract_review_files",
        AsyncMock(side_effect=NoFilesToReview("No changes found for the specified files")),
    ):
        resp = client.post("/api/reviews", json={})
    assert resp.status_code == 400
    assert resp.json() == {"error": "No changes found for the specified files"}


def test_create_review_rejects_non_object_body(client):
    resp = client.post("/api/reviews", json=["a.py"])
    assert resp.status_code == 400
    assert "JSON object" in resp.json()["error"]


# ---- Session and result ----


def test_get_session(client, app_ctx):
    session = _session(app_ctx, "a.py")
    resp = client.get(f"/api/sessions/{session.id}")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"] == session.id
    assert body["status"] == "pending"
    assert body["files"][0]["path"] == "a.py"


def test_get_session_not_found(client):
    resp = client.get("/api/sessions/missing")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Review session not found"}


def test_result_poll_pending(client, app_ctx):
    session = _session(app_ctx)
    resp = client.get(f"/api/sessions/{session.id}/result")
    assert resp.json() == {"status": "pending"}


def test_result_long_poll_times_out_as_pending(client, app_ctx):
    session = _session(app_ctx)
    resp = client.get(f"/api/sessions/{session.id}/result", params={"wait": "true", "timeout": "0.05"})
    assert resp.status_code == 200
    assert resp.json() == {"status": "pending"}


def test_result_after_completion(client, app_ctx):
    session = _session(app_ctx)
    app_ctx.service.complete_review(session.id, "approved", "ok")
    resp = client.get(f"/api/sessions/{session.id}/result", params={"wait": "true"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["generalFeedback"] == "ok"


def test_result_cancelled_reports_reason(client, app_ctx):
    session = _session(app_ctx)
    session.cancel("Review cancelled by user")
    resp = client.get(f"/api/sessions/{session.id}/result", params={"wait": "1"})
    assert resp.json() == {"status": "cancelled", "reason": "Review cancelled by user"}


def test_result_invalid_timeout(client, app_ctx):
    session = _session(app_ctx)
    resp = client.get(f"/api/sessions/{session.id}/result", params={"timeout": "soon"})
    assert resp.status_code == 400


# ---- Comments ----


def test_add_and_delete_comment(client, app_ctx):
    session = _session(app_ctx, "a.py")
    resp = client.post(
        f"/api/sessions/{session.id}/comments",
        json={"filePath": "a.py", "lineNumber": 3, "text": "why?"},
    )
    assert resp.status_code == 201
    comment = resp.json()
    assert comment["startLine"] == comment["endLine"] == 3
    assert comment["side"] == "new"

    resp = client.delete(f"/api/sessions/{session.id}/comments/{comment['id']}")
    assert resp.status_code == 204
    assert session.comments == []

    resp = client.delete(f"/api/sessions/{session.id}/comments/{comment['id']}")
    assert resp.status_code == 404


def test_add_comment_bad_range(client, app_ctx):
    session = _session(app_ctx)
    resp = client.post(
        f"/api/sessions/{session.id}/comments",
        json={"filePath": "a.py", "startLine": 5, "endLine": 2, "text": "x"},
    )
    assert resp.status_code == 400
    assert "endLine" in resp.json()["error"]


def test_add_comment_unknown_session(client):
    resp = client.post(
        "/api/sessions/missing/comments",
        json={"filePath": "a.py", "lineNumber": 1, "text": "x"},
    )
    assert resp.status_code == 404


def test_add_comment_after_completion_conflicts(client, app_ctx):
    session = _session(app_ctx)
    session.complete("approved")
    resp = client.post(
        f"/api/sessions/{session.id}/comments",
        json={"filePath": "a.py", "lineNumber": 1, "text": "late"},
    )
    assert resp.status_code == 409


# ---- Complete and cancel ----


def test_complete_review(client, app_ctx):
    session = _session(app_ctx)
    resp = client.post(
        f"/api/sessions/{session.id}/complete",
        json={"status": "changes_requested", "generalFeedback": "More tests"},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Review completed successfully"
    assert body["result"]["status"] == "changes_requested"
    assert body["result"]["generalFeedback"] == "More tests"
    assert session.status == "changes_requested"

    again = client.post(f"/api/sessions/{session.id}/complete", json={"status": "approved"})
    assert again.status_code == 409
    assert session.status == "changes_requested"


def test_complete_rejects_cancelled_status(client, app_ctx):
    session = _session(app_ctx)
    resp = client.post(f"/api/sessions/{session.id}/complete", json={"status": "cancelled"})
    assert resp.status_code == 400
    assert session.is_pending


def test_cancel_review(client, app_ctx):
    session = _session(app_ctx)
    resp = client.post(f"/api/sessions/{session.id}/cancel")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Review cancelled"}
    assert session.status == "cancelled"

    again = client.post(f"/api/sessions/{session.id}/cancel")
    assert again.status_code == 409


# ---- UI ----


def test_index_not_built(client):
    resp = client.get("/")
    assert resp.status_code == 503
    assert "not built" in resp.text.lower()


def test_index_and_review_page_serve_built_ui(client, app_ctx):
    dist = app_ctx.settings.ui_dist
    dist.mkdir(parents=True)
    (dist / "index.html").write_text("<html>reagent</html>", encoding="utf-8")

    assert client.get("/").text == "<html>reagent</html>"
    resp = client.get("/review/some-session")
    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]


def test_static_asset(client, app_ctx):
    assets = app_ctx.settings.ui_dist / "assets"
    assets.mkdir(parents=True)
    (assets / "app.css").write_text("body{}", encoding="utf-8")

    resp = client.get("/assets/app.css")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/css")
    assert client.get("/assets/missing.js").status_code == 404


def test_static_asset_path_traversal_blocked(client, app_ctx, tmp_path):
    (app_ctx.settings.ui_dist / "assets").mkdir(parents=True)
    (tmp_path / "secret.txt").write_text("secret", encoding="utf-8")

    resp = client.get("/assets/..%2F..%2Fsecret.txt")
    assert resp.status_code == 404
    assert "secret" not in resp.text
