from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .client import AtollClient

DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class AtollSettings:
    host_url: str
    username: str
    password: str
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS


def _get_float_env(name: str, default: float) -> float:
    """Parse a float environment variable with a safe default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_env_config(*, use_dotenv: bool = True) -> AtollSettings:
    """Load Atoll host URL and credentials from environment (optional .env)."""
    if use_dotenv:
        load_dotenv()
    return AtollSettings(
        host_url=os.getenv("ATOLL_HOST_URL", "").strip(),
        username=os.getenv("ATOLL_USERNAME", "").strip(),
        password=os.getenv("ATOLL_PASSWORD", ""),
        timeout_seconds=_get_float_env(
            "ATOLL_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS
        ),
    )


def create_client_from_env(
    settings: Optional[AtollSettings] = None, **kwargs
) -> AtollClient:
    """Create an AtollClient configured from environment variables."""
    settings = settings or load_env_config()
    if not settings.host_url:
        raise ValueError("Missing ATOLL_HOST_URL in environment.")
    kwargs.setdefault("timeout_seconds", settings.timeout_seconds)
    return AtollClient(**kwargs)


__all__ = [
    "AtollSettings",
    "DEFAULT_TIMEOUT_SECONDS",
    "load_env_config",
    "create_client_from_env",
]
