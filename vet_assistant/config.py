"""Centralized configuration for the Vet Assistant service.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/vet-assistant/<VARIABLE_NAME>``.

Values are read once into an immutable :class:`Settings` instance which is
handed explicitly to the components that need it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

SSM_PREFIX = "/vet-assistant"


# ── Secret resolution ────────────────────────────────────────────────

def _on_aws() -> bool:
    return bool(os.getenv("AWS_EXECUTION_ENV"))


def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"{SSM_PREFIX}/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _on_aws():
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store {SSM_PREFIX}/{name} (AWS)."
    )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise OSError(f"Configuration {name} must be an integer, got {raw!r}") from exc


# ── Settings ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration, loaded once at startup."""

    # LLM
    anthropic_api_key: str
    model_name: str = "claude-haiku-4-5"

    # Storage
    storage_backend: str = "mongo"  # "mongo" | "memory"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "vet-chatbot"

    # Booking
    clinic_timezone: str = "UTC"
    booking_timeout_minutes: int = 30

    # Server
    server_host: str = "0.0.0.0"
    server_port: int = 5000
    cors_origins: tuple[str, ...] = ("http://localhost:5173", "http://localhost:3000")


def load_settings() -> Settings:
    """Build a :class:`Settings` from the environment (and SSM on AWS)."""
    backend = os.getenv("STORAGE_BACKEND", "mongo").strip().lower()
    if backend not in ("mongo", "memory"):
        raise OSError(f"STORAGE_BACKEND must be 'mongo' or 'memory', got {backend!r}")

    cors_origins = tuple(
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000",
        ).split(",")
        if origin.strip()
    )

    return Settings(
        anthropic_api_key=_require_env("ANTHROPIC_API_KEY"),
        model_name=os.getenv("MODEL_NAME", "claude-haiku-4-5"),
        storage_backend=backend,
        mongodb_uri=os.getenv("MONGODB_URI", "mongodb://localhost:27017"),
        mongodb_database=os.getenv("MONGODB_DATABASE", "vet-chatbot"),
        clinic_timezone=os.getenv("CLINIC_TIMEZONE", "UTC"),
        booking_timeout_minutes=_int_env("BOOKING_TIMEOUT_MINUTES", 30),
        server_host=os.getenv("SERVER_HOST", "0.0.0.0"),
        server_port=_int_env("SERVER_PORT", 5000),
        cors_origins=cors_origins,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    return load_settings()
