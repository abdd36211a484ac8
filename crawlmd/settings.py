"""Runtime settings for crawlmd.

Every value can be overridden with a ``CRAWLMD_<NAME>`` environment variable,
read once at import time.
"""

from __future__ import annotations

import os


def _env(name: str, default: str) -> str:
    return os.getenv(f"CRAWLMD_{name}", default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(f"CRAWLMD_{name}", "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Project identity
# ---------------------------------------------------------------------------
BOT_NAME = "crawlmd"

# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------
USER_AGENT = _env(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

FETCH_TIMEOUT = _env_int("FETCH_TIMEOUT", 30)  # seconds

# Bodies larger than this are truncated before parsing
MAX_RESPONSE_BYTES = _env_int("MAX_RESPONSE_BYTES", 10 * 1024 * 1024)

# ---------------------------------------------------------------------------
# Markdown output
# ---------------------------------------------------------------------------
EM_DELIMITER = _env("EM_DELIMITER", "*")
STRONG_DELIMITER = _env("STRONG_DELIMITER", "**")
BULLET_MARKER = _env("BULLET_MARKER", "*")

# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------
API_HOST = _env("API_HOST", "127.0.0.1")
API_PORT = _env_int("API_PORT", 8787)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
