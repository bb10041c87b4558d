"""
Central configuration — reads from .env file.

All values are plain module attributes so the rest of the code can read
config.X at call time (tests monkeypatch them the same way).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# ── Telegram ──────────────────────────────────────────────────────────────────
# Only required when running the bot (main.py checks it on start-up).
TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")

# Comma-separated Telegram user IDs allowed to /clear the history, e.g. "123456789,987654321"
ADMIN_IDS: set[int] = {
    int(x.strip())
    for x in os.getenv("ADMIN_IDS", "").split(",")
    if x.strip().isdigit()
}

# ── Gemini ────────────────────────────────────────────────────────────────────
# GEMINI_API_KEY is preferred; GOOGLE_API_KEY is accepted for the same key.
GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL: str          = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")

# ── Storage ───────────────────────────────────────────────────────────────────
# Database and log file live here (mount ./data:/app/data in Docker).
DATA_DIR: Path = Path(os.getenv("DATA_DIR", "data"))

# 0 keeps every record (no eviction). A positive value drops the oldest
# records once the history grows past it.
HISTORY_MAX_RECORDS: int = int(os.getenv("HISTORY_MAX_RECORDS", "0"))

# How many past scans /history shows.
HISTORY_PAGE_SIZE: int = int(os.getenv("HISTORY_PAGE_SIZE", "5"))


def require(*names: str) -> None:
    """Raise RuntimeError listing every named setting that is empty."""
    missing = [name for name in names if not globals().get(name)]
    if missing:
        raise RuntimeError(
            "Missing required settings: " + ", ".join(missing) + "\n"
            "Set them in your environment or in the .env file."
        )
