"""FastMCP server entry point for reagent."""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastmcp import FastMCP

from reagent.config import load_settings
from reagent.runtime import reagent_lifespan

USER_CONFIG_DIRNAME = "reagent"
LOG_DIR_ENV_VAR = "REAGENT_LOG_DIR"
LOG_MAX_BYTES_ENV_VAR = "REAGENT_LOG_MAX_BYTES"
LOG_BACKUPS_ENV_VAR = "REAGENT_LOG_BACKUPS"
DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_BACKUPS = 5

mcp = FastMCP(
    "reagent",
    instructions=(
        "Local code review for coding agents. "
        "Opens a browser diff view and waits for a human to approve or request changes."
    ),
    lifespan=reagent_lifespan,
)

# ContextVar holding the caller identity for log lines.
# Default "reagent" is used for internal/system actions.
caller_tag: contextvars.ContextVar[str] = contextvars.ContextVar("caller_tag", default="reagent")

# Import tools and routes to register them on mcp.
# This import MUST come AFTER mcp is created to avoid circular imports.
from reagent import tools  # noqa: F401, E402
from reagent.routes import register_api_routes  # noqa: E402

register_api_routes(mcp)


class _CallerFormatter(logging.Formatter):
    """Log formatter that injects the caller_tag ContextVar into each record."""

    def format(self, record: logging.LogRecord) -> str:
        record.caller_tag = caller_tag.get("reagent")  # type: ignore[attr-defined]
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """Structured JSON formatter for the reagent logfile."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "caller_tag": getattr(record, "caller_tag", caller_tag.get("reagent")),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"))


def _default_user_config_dir() -> Path:
    """Resolve a cross-platform user config directory for reagent state."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home).expanduser() / USER_CONFIG_DIRNAME

    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata).expanduser() / USER_CONFIG_DIRNAME
        return Path.home() / "AppData" / "Roaming" / USER_CONFIG_DIRNAME

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / USER_CONFIG_DIRNAME

    return Path.home() / ".config" / USER_CONFIG_DIRNAME


def _resolve_log_dir() -> Path:
    override = os.environ.get(LOG_DIR_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return _default_user_config_dir() / "logs"


def _env_int(name: str, default: int) -> int:
    """Positive integer from the environment, else ``default``."""
    raw = os.environ.get(name, "")
    return int(raw) if raw.isdigit() and int(raw) > 0 else default


def _configure_logging() -> None:
    """Configure concise stderr logs plus a structured rotating logfile.

    stdout is left alone so stdio MCP clients are never fed log lines.
    """
    logger = logging.getLogger("reagent")
    logger.setLevel(logging.INFO)
    logger.propagate = False

    if not any(getattr(h, "_reagent_stream_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler._reagent_stream_handler = True  # type: ignore[attr-defined]
        handler.setLevel(logging.INFO)
        handler.setFormatter(
            _CallerFormatter(
                "%(asctime)s [%(caller_tag)s] %(message)s",
                "%H:%M:%S",
            )
        )
        logger.addHandler(handler)

    if not any(getattr(h, "_reagent_file_handler", False) for h in logger.handlers):
        log_dir = _resolve_log_dir()
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("File logging disabled, cannot create %s: %s", log_dir, exc)
            return
        file_handler = RotatingFileHandler(
            log_dir / "reagent.jsonl",
            maxBytes=_env_int(LOG_MAX_BYTES_ENV_VAR, DEFAULT_LOG_MAX_BYTES),
            backupCount=_env_int(LOG_BACKUPS_ENV_VAR, DEFAULT_LOG_BACKUPS),
            encoding="utf-8",
        )
        file_handler._reagent_file_handler = True  # type: ignore[attr-defined]
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(_JsonFormatter())
        logger.addHandler(file_handler)


# Ensure the reagent logger is configured even when launched without calling main().
_configure_logging()


def main() -> None:
    """Run the reagent server (MCP over streamable HTTP plus the review UI API).

    Host and port come from REAGENT_HOST / REAGENT_PORT (default 127.0.0.1:3636).
    MCP clients connect to http://<host>:<port>/mcp; the review UI and its API
    are served from the same origin.
    """
    _configure_logging()
    settings = load_settings()
    uvicorn_log_level = os.environ.get("REAGENT_UVICORN_LOG_LEVEL", "warning")
    mcp.run(
        transport="streamable-http",
        host=settings.host,
        port=settings.port,
        log_level=uvicorn_log_level,
        stateless_http=True,
    )


if __name__ == "__main__":
    main()
