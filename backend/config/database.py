import os
from typing import Optional


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"环境变量 {key} 需要整数值，但当前为 {raw}") from exc


def get_postgres_dsn() -> Optional[str]:
    """Return the Postgres DSN for the watchlist store, or None for the in-memory store.

    Priority:
    1) POSTGRES_DSN
    2) POSTGRES_HOST/PORT/USER/PASSWORD/DB

    `.env` loading is centralized in config entrypoints (settings.py), so we
    only read environment variables here.
    """

    dsn = (os.getenv("POSTGRES_DSN") or "").strip()
    if dsn:
        return dsn

    host = (os.getenv("POSTGRES_HOST") or "").strip()
    if not host:
        return None

    port = _get_env_int("POSTGRES_PORT", 5432)
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db = os.getenv("POSTGRES_DB", "movie_tracker")
    return f"postgresql://{user}:{password}@{host}:{port}/{db}"
