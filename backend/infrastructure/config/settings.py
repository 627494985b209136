import os
from typing import Optional

from dotenv import load_dotenv

# 统一加载环境变量，确保配置来源一致。
# 注意：项目根目录的 .env 优先级高于外部 shell 环境变量。
load_dotenv(override=True)


def _get_env_int(key: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"环境变量 {key} 需要整数值，但当前为 {raw}") from exc


def _get_env_float(key: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"环境变量 {key} 需要浮点值，但当前为 {raw}") from exc


def _get_env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


# ===== TMDB API 配置 =====

TMDB_BASE_URL = os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3").strip()
TMDB_API_TOKEN = os.getenv("TMDB_API_TOKEN", "").strip()
TMDB_API_KEY = os.getenv("TMDB_API_KEY", "").strip()
TMDB_TIMEOUT_S = _get_env_float("TMDB_TIMEOUT_S", 5.0) or 5.0
TMDB_LANGUAGE = os.getenv("TMDB_LANGUAGE", "en-US").strip() or "en-US"
# Top-billed actors kept on each movie snapshot.
TMDB_CAST_LIMIT = _get_env_int("TMDB_CAST_LIMIT", 5) or 5


# ===== OMDb 外部评分配置（按 imdb_id 查询，可选）=====

OMDB_BASE_URL = os.getenv("OMDB_BASE_URL", "https://www.omdbapi.com").strip()
OMDB_API_KEY = os.getenv("OMDB_API_KEY", "").strip()


# ===== 目录缓存配置（按条目类型设置 TTL）=====

CATALOG_CACHE_ENABLE = _get_env_bool("CATALOG_CACHE_ENABLE", True)
CATALOG_CACHE_MAX_SIZE = _get_env_int("CATALOG_CACHE_MAX_SIZE", 1000) or 1000
CATALOG_CACHE_DETAILS_TTL_S = _get_env_int("CATALOG_CACHE_DETAILS_TTL_S", 3600) or 3600  # 1小时
CATALOG_CACHE_SEARCH_TTL_S = _get_env_int("CATALOG_CACHE_SEARCH_TTL_S", 900) or 900  # 15分钟
CATALOG_CACHE_SIMILAR_TTL_S = _get_env_int("CATALOG_CACHE_SIMILAR_TTL_S", 1800) or 1800  # 30分钟
CATALOG_CACHE_GENRES_TTL_S = _get_env_int("CATALOG_CACHE_GENRES_TTL_S", 86400) or 86400  # 24小时
CATALOG_CACHE_EXTERNAL_TTL_S = _get_env_int("CATALOG_CACHE_EXTERNAL_TTL_S", 86400) or 86400  # 24小时


# ===== PostgreSQL 连接池 =====

POSTGRES_POOL_MIN_SIZE = _get_env_int("POSTGRES_POOL_MIN_SIZE", 1) or 1
POSTGRES_POOL_MAX_SIZE = _get_env_int("POSTGRES_POOL_MAX_SIZE", 5) or 5
POSTGRES_COMMAND_TIMEOUT_S = _get_env_float("POSTGRES_COMMAND_TIMEOUT_S", 10.0) or 10.0
