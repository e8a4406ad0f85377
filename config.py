"""
Centralized configuration for the Squad Ladder bot.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_bool(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _parse_int_list(env_var: str, default: list[int]) -> list[int]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    try:
        return [int(x.strip()) for x in raw.split(",") if x.strip()]
    except ValueError:
        return default


def _parse_str_list(env_var: str, default: list[str]) -> list[str]:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    return [x.strip().lower() for x in raw.split(",") if x.strip()]


DB_PATH = os.getenv("DB_PATH", "squad_ladder.db")
DISCORD_BOT_TOKEN = os.getenv("DISCORD_BOT_TOKEN")
ADMIN_USER_IDS: list[int] = _parse_int_list("ADMIN_USER_IDS", [])

# Discord role names that grant dispute moderation rights
STAFF_ROLE_NAMES: list[str] = _parse_str_list(
    "STAFF_ROLE_NAMES", ["admin", "staff", "cdl_manager", "hardcore_manager"]
)

# Match lifecycle timing
READY_MATCH_EXPIRY_SECONDS = _parse_int("READY_MATCH_EXPIRY_SECONDS", 600)  # 10 minutes
SCHEDULE_MIN_LEAD_SECONDS = _parse_int("SCHEDULE_MIN_LEAD_SECONDS", 300)  # 5 minutes
SCHEDULE_OVERLAP_WINDOW_SECONDS = _parse_int("SCHEDULE_OVERLAP_WINDOW_SECONDS", 1800)  # +/- 30 min
REMATCH_COOLDOWN_SECONDS = _parse_int("REMATCH_COOLDOWN_SECONDS", 10800)  # 3 hours
CANCEL_LOCKOUT_SECONDS = _parse_int("CANCEL_LOCKOUT_SECONDS", 300)  # 5 minutes before start

# Disputes
MAX_EVIDENCE_PER_SQUAD = _parse_int("MAX_EVIDENCE_PER_SQUAD", 5)
MAX_DISPUTE_REASON_LENGTH = _parse_int("MAX_DISPUTE_REASON_LENGTH", 500)

# Match chat
MAX_CHAT_MESSAGE_LENGTH = _parse_int("MAX_CHAT_MESSAGE_LENGTH", 500)
CHAT_DISPLAY_LIMIT = _parse_int("CHAT_DISPLAY_LIMIT", 15)

# Maps
RANDOM_MAP_COUNT = _parse_int("RANDOM_MAP_COUNT", 3)

# Reward configuration cache staleness window
REWARD_CONFIG_CACHE_SECONDS = _parse_float("REWARD_CONFIG_CACHE_SECONDS", 300.0)

# Background sweep for stale pending matches
EXPIRY_SWEEP_ENABLED = _parse_bool("EXPIRY_SWEEP_ENABLED", True)
EXPIRY_SWEEP_INTERVAL_SECONDS = _parse_int("EXPIRY_SWEEP_INTERVAL_SECONDS", 60)

# Channel that receives match lifecycle announcements
MATCH_EVENTS_CHANNEL_ID: int | None = None
_events_channel_raw = os.getenv("MATCH_EVENTS_CHANNEL_ID")
if _events_channel_raw:
    try:
        MATCH_EVENTS_CHANNEL_ID = int(_events_channel_raw.strip())
    except ValueError:
        MATCH_EVENTS_CHANNEL_ID = None

# Per-user rate limit on /challenge
MATCH_CREATE_RATE_LIMIT = _parse_int("MATCH_CREATE_RATE_LIMIT", 3)
MATCH_CREATE_RATE_PER_SECONDS = _parse_int("MATCH_CREATE_RATE_PER_SECONDS", 60)

LEADERBOARD_DEFAULT_LIMIT = _parse_int("LEADERBOARD_DEFAULT_LIMIT", 10)
MATCH_HISTORY_DEFAULT_LIMIT = _parse_int("MATCH_HISTORY_DEFAULT_LIMIT", 10)
