"""
Backend connection settings.

Read from the environment (the CLI loads a ``.env`` file first via
python-dotenv). Layout preferences live in ``schemas/layout.py``; this
module only covers how to reach Grafana.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from panel_reporter.config.constants import DEFAULT_REQUEST_TIMEOUT
from panel_reporter.exceptions import EnvConfigError

ENV_BASE_URL = "GRAFANA_URL"
ENV_API_TOKEN = "GRAFANA_API_TOKEN"
ENV_RENDER_TIMEOUT = "GRAFANA_RENDER_TIMEOUT"
ENV_USER_THEME = "GRAFANA_USER_THEME"


class GrafanaConnection(BaseModel):
    """Where the dashboard API and render endpoint live, and how to authenticate."""

    base_url: str = Field(..., min_length=1)
    api_token: Optional[str] = None
    timeout: tuple[float, float] = DEFAULT_REQUEST_TIMEOUT
    user_theme: Optional[str] = Field(
        default=None,
        description="Theme of the acting user; resolves the 'user' theme preference",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def load_connection(env: Optional[Mapping[str, str]] = None) -> GrafanaConnection:
    """
    Build a GrafanaConnection from environment variables.

    Args:
        env: Mapping to read from (defaults to ``os.environ``).

    Raises:
        EnvConfigError: If GRAFANA_URL is not set.
    """
    env = os.environ if env is None else env
    base_url = (env.get(ENV_BASE_URL) or "").strip()
    if not base_url:
        raise EnvConfigError(f"Missing required env var: {ENV_BASE_URL}")

    timeout = DEFAULT_REQUEST_TIMEOUT
    raw_timeout = env.get(ENV_RENDER_TIMEOUT)
    if raw_timeout:
        try:
            timeout = (DEFAULT_REQUEST_TIMEOUT[0], float(raw_timeout))
        except ValueError as exc:
            raise EnvConfigError(
                f"{ENV_RENDER_TIMEOUT} must be a number of seconds, got {raw_timeout!r}"
            ) from exc

    return GrafanaConnection(
        base_url=base_url,
        api_token=env.get(ENV_API_TOKEN) or None,
        timeout=timeout,
        user_theme=env.get(ENV_USER_THEME) or None,
    )
