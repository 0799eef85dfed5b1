"""Shared test fixtures for reagent."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest

from reagent.config import Settings
from reagent.models import ReviewFile
from reagent.runtime import AppContext, build_app_context, set_app_context


@dataclass
class _MockFastMCP:
    """Stands in for the FastMCP instance so ctx.fastmcp._lifespan_result works."""

    _lifespan_result: AppContext


@dataclass
class MockContext:
    """Minimal mock for fastmcp.Context that provides fastmcp._lifespan_result."""

    fastmcp: _MockFastMCP

    @property
    def lifespan_context(self) -> AppContext:
        return self.fastmcp._lifespan_result


def make_files(*paths: str) -> list[ReviewFile]:
    """Build a small snapshot of ReviewFiles for session tests."""
    paths = paths or ("src/app.py",)
    return [
        ReviewFile(path=path, content=f"# {path}\n", old_content=None, language="python")
        for path in paths
    ]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with the browser and session timeout disabled."""
    return Settings(
        open_browser=False,
        session_timeout_seconds=None,
        public_host="localhost:3636",
        ui_dist=tmp_path / "ui-dist",
    )


@pytest.fixture
def app_ctx(settings: Settings) -> Iterator[AppContext]:
    """Fresh AppContext, also installed as the module-level context for HTTP routes."""
    app = build_app_context(settings)
    set_app_context(app)
    yield app
    app.registry.clear()
    set_app_context(None)


@pytest.fixture
def ctx(app_ctx: AppContext) -> MockContext:
    """Create a MockContext wrapping the app_ctx fixture."""
    return MockContext(fastmcp=_MockFastMCP(_lifespan_result=app_ctx))
