"""Configuration helpers for the Claire enquiry bot."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Optional

DEFAULT_KEY_PREFIX = "claire"
DEFAULT_INTENT = "enquiry"


@dataclass(frozen=True, slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    redis_url: Optional[str] = None
    key_prefix: str = DEFAULT_KEY_PREFIX
    state_ttl: Optional[int] = None
    routing_file: Optional[Path] = None
    default_intent: str = DEFAULT_INTENT

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        redis_url = os.getenv("CLAIRE_REDIS_URL")
        if redis_url is not None and not redis_url.strip():
            redis_url = None
        key_prefix = os.getenv("CLAIRE_KEY_PREFIX", DEFAULT_KEY_PREFIX).strip()
        if not key_prefix:
            raise RuntimeError("CLAIRE_KEY_PREFIX must not be blank")
        state_ttl: Optional[int] = None
        ttl_raw = os.getenv("CLAIRE_STATE_TTL", "").strip()
        if ttl_raw:
            try:
                state_ttl = int(ttl_raw)
            except ValueError as exc:
                raise RuntimeError(
                    "CLAIRE_STATE_TTL must be an integer"
                ) from exc
            if state_ttl < 1:
                raise RuntimeError("CLAIRE_STATE_TTL must be at least 1")
        routing_raw = os.getenv("CLAIRE_ROUTING_FILE", "").strip()
        routing_file = Path(routing_raw) if routing_raw else None
        default_intent = (
            os.getenv("CLAIRE_DEFAULT_INTENT", DEFAULT_INTENT).strip()
            or DEFAULT_INTENT
        )
        return cls(
            redis_url=redis_url.strip() if redis_url else None,
            key_prefix=key_prefix,
            state_ttl=state_ttl,
            routing_file=routing_file,
            default_intent=default_intent,
        )


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
