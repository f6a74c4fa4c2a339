import os
import logging

logger = logging.getLogger("memoquiz.settings")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s: %r, using %d", name, raw, default)
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number for %s: %r, using %s", name, raw, default)
        return default


DATABASE_URL = os.getenv("MEMOQUIZ_DATABASE_URL", "sqlite:///./memoquiz.db")
LOG_LEVEL = os.getenv("MEMOQUIZ_LOG_LEVEL", "INFO").strip().upper()

# Results kept per paragraph, newest first
MAX_RESULTS_PER_PARAGRAPH = _int_env("MEMOQUIZ_MAX_RESULTS_PER_PARAGRAPH", 10)
HISTORY_LIMIT = _int_env("MEMOQUIZ_HISTORY_LIMIT", 10)
TICK_SECONDS = _float_env("MEMOQUIZ_TICK_SECONDS", 1.0)

CORS_ORIGINS = [
    o.strip() for o in os.getenv("MEMOQUIZ_CORS_ORIGINS", "*").split(",") if o.strip()
]
