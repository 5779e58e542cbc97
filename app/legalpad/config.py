import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    database_replica_url: str

    page_size: int
    max_page_size: int
    query_timeout_seconds: float


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from e


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///legalpad.db"),
        database_replica_url=_getenv("DATABASE_REPLICA_URL", ""),
        page_size=_getenv_int("LEGALPAD_PAGE_SIZE", 100),
        max_page_size=_getenv_int("LEGALPAD_MAX_PAGE_SIZE", 1000),
        query_timeout_seconds=_getenv_float("LEGALPAD_QUERY_TIMEOUT_SECONDS", 10.0),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "DATABASE_REPLICA_URL": s.database_replica_url,
        "LEGALPAD_PAGE_SIZE": s.page_size,
        "LEGALPAD_MAX_PAGE_SIZE": s.max_page_size,
        "LEGALPAD_QUERY_TIMEOUT_SECONDS": s.query_timeout_seconds,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
    }
