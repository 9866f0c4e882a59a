from __future__ import annotations

import os
from typing import Optional


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = (os.getenv(name) or "").strip()
    return raw or default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y"}


def log_level() -> str:
    return (os.getenv("LOG_LEVEL") or "INFO").upper()


def redis_url() -> Optional[str]:
    return _env_str("REDIS_URL")


def redis_connect_timeout_s() -> float:
    return _env_float("REDIS_CONNECT_TIMEOUT_S", 1.0)


def redis_socket_timeout_s() -> float:
    return _env_float("REDIS_SOCKET_TIMEOUT_S", 1.0)


def session_storage_key() -> str:
    return _env_str("SESSION_STORAGE_KEY", "session_state") or "session_state"


def session_max_age_ms() -> int:
    return int(_env_float("SESSION_MAX_AGE_HOURS", 24.0) * 60 * 60 * 1000)


def session_flush_interval_s() -> float:
    return _env_float("SESSION_FLUSH_INTERVAL_S", 30.0)


def response_delay_s() -> float:
    return max(0.0, _env_float("RESPONSE_DELAY_S", 0.0))


def recommendation_variety() -> bool:
    return _env_bool("RECOMMENDATION_VARIETY", True)


def cors_origins() -> list[str]:
    raw = _env_str("CORS_ORIGINS")
    if not raw:
        return ["*"]
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p]
