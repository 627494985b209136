import os

from dotenv import load_dotenv

# Service-side settings: HTTP/runtime switches and recommendation tunables.
# Infrastructure env settings (TMDB, cache TTLs, pools) live under `backend/infrastructure/config/`.
load_dotenv(override=True)


def _get_env_int(key: str, default: int) -> int:
    """读取整型环境变量，未设置时返回默认值"""
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"环境变量 {key} 需要整数值，但实际为 {raw}") from exc


def _get_env_bool(key: str, default: bool) -> bool:
    """读取布尔型环境变量，支持 true/false/1/0 等表达"""
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.lower() in {"1", "true", "y", "yes", "on"}


def _get_env_float(key: str, default: float) -> float:
    """读取浮点型环境变量，未设置时返回默认值"""
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"环境变量 {key} 需要浮点数值，但实际为 {raw}") from exc


# ===== FastAPI / Uvicorn 运行参数 =====

SERVER_HOST = os.getenv("SERVER_HOST", "0.0.0.0")  # 服务监听地址
SERVER_PORT = _get_env_int("SERVER_PORT", 8000)  # 服务端口
SERVER_RELOAD = _get_env_bool("SERVER_RELOAD", False)  # 热重载开关
SERVER_LOG_LEVEL = os.getenv("SERVER_LOG_LEVEL", "info")  # 日志等级

# In-memory store and catalog cache are per process; keep one worker unless Postgres is configured.
SERVER_WORKERS = _get_env_int("SERVER_WORKERS", 1) or 1

# 统一封装 uvicorn.run 可用参数
UVICORN_CONFIG = {
    "host": SERVER_HOST,
    "port": SERVER_PORT,
    "reload": SERVER_RELOAD,
    "log_level": SERVER_LOG_LEVEL,
    "workers": SERVER_WORKERS,
}


# ===== 推荐引擎参数 =====

RECOMMENDATION_MAX_SEEDS = _get_env_int("RECOMMENDATION_MAX_SEEDS", 5) or 5
RECOMMENDATION_FAVORITE_THRESHOLD = _get_env_float("RECOMMENDATION_FAVORITE_THRESHOLD", 3.5)
RECOMMENDATION_EXPLAIN_THRESHOLD = _get_env_float("RECOMMENDATION_EXPLAIN_THRESHOLD", 4.0)
# 0 = no cap.
RECOMMENDATION_LIMIT = _get_env_int("RECOMMENDATION_LIMIT", 0)


# ===== 活动流 =====

ACTIVITY_DEFAULT_DAYS = _get_env_int("ACTIVITY_DEFAULT_DAYS", 7)
WATCHED_FEED_LIMIT = _get_env_int("WATCHED_FEED_LIMIT", 50)
