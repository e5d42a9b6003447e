"""Configuration derived from sites.json and the environment."""

import os

from site_config import get_sites


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "")
    try:
        return float(value) if value else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _load():
    """Load all config values from the current site profile and environment."""
    global SITE_CONFIGS, GREENHOUSE_BOARDS, REMOTEOK_ENABLED, WWR_FEEDS
    global CRON_SECRET, DB_PATH
    global FETCH_TIMEOUT, FETCH_RETRIES, FETCH_RETRY_DELAY
    global ADAPTER_TIMEOUT, RUN_TIMEOUT, MAX_DURATION, MAX_WORKERS

    _s = get_sites()
    SITE_CONFIGS = [site for site in _s.get("sites", []) if site.get("enabled", True)]
    GREENHOUSE_BOARDS = _s.get("greenhouse_boards", {})
    REMOTEOK_ENABLED = bool(_s.get("remoteok", False))
    WWR_FEEDS = _s.get("weworkremotely_feeds", [])

    # Empty secret disables the scheduled-trigger check
    CRON_SECRET = os.environ.get("CRON_SECRET", "")
    DB_PATH = os.environ.get("JOBS_DB_PATH") or _default_db_path()

    FETCH_TIMEOUT = _env_float("FETCH_TIMEOUT", 30)
    FETCH_RETRIES = _env_int("FETCH_RETRIES", 1)
    FETCH_RETRY_DELAY = _env_float("FETCH_RETRY_DELAY", 2)

    ADAPTER_TIMEOUT = _env_float("ADAPTER_TIMEOUT", 90)
    RUN_TIMEOUT = _env_float("RUN_TIMEOUT", 240)
    MAX_DURATION = _env_float("MAX_DURATION", 300)
    MAX_WORKERS = _env_int("MAX_WORKERS", 8)


def _default_db_path() -> str:
    return os.path.join("data", "jobs.db") if os.path.isdir("data") else "jobs.db"


USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) "
    "Version/18.1 Safari/605.1.15",
]

ACCEPT_LANGUAGES = [
    "en-US,en;q=0.9",
    "en-GB,en;q=0.9",
    "en;q=0.9",
]

# Initial load
_load()


def reload():
    """Re-read sites.json and the environment, refreshing all module-level constants."""
    _load()
