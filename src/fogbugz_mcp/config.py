"""Startup configuration: tracker URL, API token, timeouts and logging.

Values come from CLI arguments first, then ``FOGBUGZ_*`` environment
variables. A ``.env`` file in the working directory is read without
overriding variables that are already set.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv

from fogbugz_mcp.errors import ConfigError

ENV_URL = "FOGBUGZ_URL"
ENV_API_KEY = "FOGBUGZ_API_KEY"
ENV_TIMEOUT = "FOGBUGZ_TIMEOUT"
ENV_CALL_TIMEOUT = "FOGBUGZ_CALL_TIMEOUT"
ENV_LOG_FILE = "FOGBUGZ_LOG_FILE"
ENV_LOG_LEVEL = "FOGBUGZ_LOG_LEVEL"

DEFAULT_TIMEOUT = 30.0
DEFAULT_CALL_TIMEOUT = 120.0
DEFAULT_LOG_LEVEL = "INFO"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class TrackerConfig:
    base_url: str
    api_key: str
    timeout: float = DEFAULT_TIMEOUT
    call_timeout: float | None = DEFAULT_CALL_TIMEOUT
    log_file: Path | None = None
    log_level: str = DEFAULT_LOG_LEVEL


def normalize_base_url(base_url: str) -> str:
    """Strip trailing slashes and reject anything that is not an http(s) URL with a host."""
    value = base_url.strip().rstrip("/")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        msg = f"Invalid FogBugz URL: {base_url!r}"
        raise ConfigError(msg)
    return value


def _parse_seconds(raw: str | float | None, name: str, default: float | None) -> float | None:
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        msg = f"{name} must be a number of seconds, got {raw!r}"
        raise ConfigError(msg) from None
    if value < 0:
        msg = f"{name} must be >= 0, got {raw!r}"
        raise ConfigError(msg)
    # 0 disables the guard.
    return value or None


def load_dotenv_file(path: Path | None = None) -> None:
    """Load ``.env`` (default: the working directory's) without overriding the environment."""
    load_dotenv(dotenv_path=path or Path.cwd() / ".env", override=False)


def load_config(
    url: str | None = None,
    api_key: str | None = None,
    *,
    timeout: float | None = None,
    call_timeout: float | None = None,
    log_file: Path | None = None,
    log_level: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> TrackerConfig:
    """Merge explicit values over the environment and validate the result.

    Raises :class:`ConfigError` when the URL or API key is missing or malformed.
    """
    env = os.environ if environ is None else environ

    url = url or env.get(ENV_URL, "")
    api_key = api_key or env.get(ENV_API_KEY, "")
    if not url or not api_key:
        msg = "FogBugz URL and API key are required"
        raise ConfigError(msg)

    level = (log_level or env.get(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper()
    if level not in _LOG_LEVELS:
        msg = f"Unknown log level: {level}"
        raise ConfigError(msg)

    env_log_file = env.get(ENV_LOG_FILE)
    return TrackerConfig(
        base_url=normalize_base_url(url),
        api_key=api_key,
        timeout=_parse_seconds(timeout if timeout is not None else env.get(ENV_TIMEOUT), ENV_TIMEOUT, DEFAULT_TIMEOUT)
        or DEFAULT_TIMEOUT,
        call_timeout=_parse_seconds(
            call_timeout if call_timeout is not None else env.get(ENV_CALL_TIMEOUT),
            ENV_CALL_TIMEOUT,
            DEFAULT_CALL_TIMEOUT,
        ),
        log_file=log_file or (Path(env_log_file) if env_log_file else None),
        log_level=level,
    )
