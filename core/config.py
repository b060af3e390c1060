# ABOUTME: Shared planner configuration and tunable thresholds (core package).
# ABOUTME: Values come from the environment (.env via python-dotenv) with safe defaults.

import os

from dotenv import load_dotenv

load_dotenv()


def _parse_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        return float(raw)
    except ValueError:
        return default


PLANNER_DB_PATH = os.environ.get("PLANNER_DB_PATH", "planner.db")

# Optional JSON file overriding the default allocation policy table.
ALLOCATION_POLICY_PATH = os.environ.get("ALLOCATION_POLICY_PATH") or None

ADVISORY_MODEL = os.environ.get("ADVISORY_MODEL", "gemini-2.5-flash")
ADVISORY_TIMEOUT_SECONDS = _parse_float("ADVISORY_TIMEOUT_SECONDS", 30.0)

# Cached advice older than this is reported as stale; it is never expired.
CACHE_STALE_AFTER_MINUTES = _parse_int("CACHE_STALE_AFTER_MINUTES", 24 * 60)

# Conflict detection: goals due within CONFLICT_NEAR_TERM_YEARS that cluster
# within CONFLICT_WINDOW_YEARS of each other compete for the same surplus.
CONFLICT_WINDOW_YEARS = _parse_int("CONFLICT_WINDOW_YEARS", 2)
CONFLICT_NEAR_TERM_YEARS = _parse_int("CONFLICT_NEAR_TERM_YEARS", 5)
CONFLICT_SURPLUS_FRACTION = _parse_float("CONFLICT_SURPLUS_FRACTION", 1.0)
CONFLICT_HIGH_SEVERITY_TOTAL = _parse_float("CONFLICT_HIGH_SEVERITY_TOTAL", 5_000_000.0)

MAX_GOALS_PER_PLAN = _parse_int("MAX_GOALS_PER_PLAN", 20)

# CORS: comma-separated origins; default allows a local frontend. Set in production.
_raw_cors = os.environ.get("CORS_ORIGINS", "http://localhost:5173")
CORS_ORIGINS = [o.strip() for o in _raw_cors.split(",") if o.strip()] or [
    "http://localhost:5173"
]
