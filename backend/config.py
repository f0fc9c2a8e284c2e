"""
config.py
---------
Central configuration for the tour route optimizer.
All secrets loaded from environment variables — never hard-coded.
"""

import os
from pathlib import Path

# Load .env from the backend directory (if it exists) so env vars in that file
# are picked up by os.getenv() below.  Won't override vars already set in the shell.
from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── LLM ──────────────────────────────────────────────────────────────────────
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "google")
LLM_MODEL_NAME: str = os.getenv("LLM_MODEL_NAME", "gemini-1.5-flash")
LLM_API_KEY: str = os.getenv("LLM_API_KEY", "")

# No AI collaborator is configured while USE_STUB_LLM is true.
# Set USE_STUB_LLM=false and supply GEMINI_API_KEY / LLM_API_KEY to enable it.
USE_STUB_LLM: bool = _flag("USE_STUB_LLM", "true")

# Hard deadline for one AI suggestion call (seconds)
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))

# ── Travel model (road trip between venues) ──────────────────────────────────
TOUR_AVERAGE_SPEED_KMH: float = float(os.getenv("TOUR_AVERAGE_SPEED_KMH", "70"))
TOUR_TRAVEL_BUFFER: float     = float(os.getenv("TOUR_TRAVEL_BUFFER", "1.2"))    # rest stops, traffic
TOUR_MIN_LEG_MINUTES: int     = int(os.getenv("TOUR_MIN_LEG_MINUTES", "30"))     # load-out / load-in floor

# ── Optimizer defaults ───────────────────────────────────────────────────────
DEFAULT_STOP_PRIORITY: int          = int(os.getenv("DEFAULT_STOP_PRIORITY", "5"))
DEFAULT_MIN_DAYS_BETWEEN_SHOWS: int = int(os.getenv("DEFAULT_MIN_DAYS_BETWEEN_SHOWS", "1"))
DEFAULT_MAX_DAYS_BETWEEN_SHOWS: int = int(os.getenv("DEFAULT_MAX_DAYS_BETWEEN_SHOWS", "7"))
# Undated tours with no anchor start this many days from today
DEFAULT_START_OFFSET_DAYS: int      = int(os.getenv("DEFAULT_START_OFFSET_DAYS", "30"))
# Presentation floor for distance/time savings percentages.  0 disables it.
REPORTED_SAVINGS_FLOOR_PCT: float   = float(os.getenv("REPORTED_SAVINGS_FLOOR_PCT", "0"))

# ── Stop store ───────────────────────────────────────────────────────────────
STOP_STORE_BACKEND: str = os.getenv("STOP_STORE_BACKEND", "postgres")   # "postgres" | "memory"

# ── PostgreSQL ────────────────────────────────────────────────────────────────
# Schema defined in docs/database/schema.sql
# Apply with: python scripts/run_migrations.py
POSTGRES_HOST: str     = os.getenv("POSTGRES_HOST",     "localhost")
POSTGRES_PORT: int     = int(os.getenv("POSTGRES_PORT", "5432"))
POSTGRES_DB: str       = os.getenv("POSTGRES_DB",       "tourroute")
POSTGRES_USER: str     = os.getenv("POSTGRES_USER",     "tourroute_user")
POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "tourroute_pass")
POSTGRES_MIN_CONN: int = int(os.getenv("POSTGRES_MIN_CONN", "1"))
POSTGRES_MAX_CONN: int = int(os.getenv("POSTGRES_MAX_CONN", "10"))

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_HOST: str     = os.getenv("REDIS_HOST",     "localhost")
REDIS_PORT: int     = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB: int       = int(os.getenv("REDIS_DB",   "0"))
REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")
# Optimization responses are cached per (tour, method+options) when enabled
OPTIMIZATION_CACHE_ENABLED: bool = _flag("OPTIMIZATION_CACHE_ENABLED", "false")
OPTIMIZATION_CACHE_TTL: int      = int(os.getenv("OPTIMIZATION_CACHE_TTL", "3600"))   # 1 hour

# ── Observability ────────────────────────────────────────────────────────────
RUN_LOG_DIR: str = os.getenv("RUN_LOG_DIR", "")   # empty = <repo>/logs
