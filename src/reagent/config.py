"""Runtime settings for the reagent server, loaded from REAGENT_* environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from reagent.errors import InvalidRequest

DEFAULT_PORT = 3636
# From src/reagent/ up to the project root, then into ui/dist/.
DEFAULT_UI_DIST: Path = Path(__file__).resolve().parent.parent.parent / "ui" / "dist"

ENV_PREFIX = "REAGENT_"
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


class Settings(BaseModel):
    """Validated server configuration."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    public_host: str | None = Field(
        default=None, description="host:port used in review URLs; defaults to localhost:<port>"
    )
    session_timeout_seconds: float | None = Field(default=30 * 60, gt=0)
    session_max_age_seconds: float = Field(default=24 * 60 * 60, gt=0)
    cleanup_interval_seconds: float = Field(default=5 * 60, ge=1.0)
    wait_timeout_seconds: float = Field(default=25.0, gt=0)
    open_browser: bool = True
    ui_dist: Path = DEFAULT_UI_DIST

    @property
    def review_host(self) -> str:
        return self.public_host or f"localhost:{self.port}"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise InvalidRequest(f"Invalid {name}: {raw}")


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the environment.

    Raises InvalidRequest for unparseable or out-of-range values, naming the
    offending variable.
    """
    env = os.environ if environ is None else environ
    values: dict[str, object] = {}

    raw_port = env.get(f"{ENV_PREFIX}PORT")
    if raw_port:
        try:
            values["port"] = int(raw_port, 10)
        except ValueError:
            raise InvalidRequest(f"Invalid {ENV_PREFIX}PORT: {raw_port}") from None

    for field_name in ("host", "public_host", "ui_dist"):
        raw = env.get(f"{ENV_PREFIX}{field_name.upper()}")
        if raw:
            values[field_name] = raw

    for field_name in (
        "session_timeout_seconds",
        "session_max_age_seconds",
        "cleanup_interval_seconds",
        "wait_timeout_seconds",
    ):
        env_name = f"{ENV_PREFIX}{field_name.upper()}"
        raw = env.get(env_name)
        if not raw:
            continue
        if field_name == "session_timeout_seconds" and raw.strip().lower() in {"0", "none", "off"}:
            values[field_name] = None
            continue
        try:
            values[field_name] = float(raw)
        except ValueError:
            raise InvalidRequest(f"Invalid {env_name}: {raw}") from None

    raw_open = env.get(f"{ENV_PREFIX}OPEN_BROWSER")
    if raw_open:
        values["open_browser"] = _parse_bool(f"{ENV_PREFIX}OPEN_BROWSER", raw_open)

    try:
        return Settings.model_validate(values)
    except ValidationError as exc:
        raise InvalidRequest(f"Invalid reagent settings: {exc}") from exc
