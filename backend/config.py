"""
config.py
---------
Central configuration for the itinerary synthesis core.
Every tunable is read from the environment with a default, so the core runs
with no environment at all.

Values in backend/.env (if present) are loaded first; variables already set in
the shell take precedence.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# ── Distance ─────────────────────────────────────────────────────────────────
EARTH_RADIUS_KM: float     = float(os.getenv("EARTH_RADIUS_KM",     "6371.0"))
WALKING_DISTANCE_KM: float = float(os.getenv("WALKING_DISTANCE_KM", "2.0"))   # WALKABLE upper bound
NEAR_DISTANCE_KM: float    = float(os.getenv("NEAR_DISTANCE_KM",    "5.0"))   # distance score = 1.0 at or below
FAR_DISTANCE_KM: float     = float(os.getenv("FAR_DISTANCE_KM",     "10.0"))  # distance score = 0.0 at or above

# ── Scoring ──────────────────────────────────────────────────────────────────
# reviewScore = min(1, log10(reviewCount + 1) / REVIEW_LOG_BASE)
REVIEW_LOG_BASE: float  = float(os.getenv("REVIEW_LOG_BASE",  "4.0"))
MAX_RATING: float       = float(os.getenv("MAX_RATING",       "5.0"))

# comprehensiveScore weights (must sum to 1.0)
DISTANCE_WEIGHT: float  = float(os.getenv("DISTANCE_WEIGHT",  "0.4"))
QUALITY_WEIGHT: float   = float(os.getenv("QUALITY_WEIGHT",   "0.4"))
DIVERSITY_WEIGHT: float = float(os.getenv("DIVERSITY_WEIGHT", "0.2"))

# ── Stage 1: candidate selection ─────────────────────────────────────────────
CANDIDATES_PER_CATEGORY: int    = int(os.getenv("CANDIDATES_PER_CATEGORY",    "10"))
CANDIDATE_FETCH_MULTIPLIER: int = int(os.getenv("CANDIDATE_FETCH_MULTIPLIER", "3"))

# ── Stage 2: time-block distribution ─────────────────────────────────────────
MAX_PLACES_PER_BLOCK: int    = int(os.getenv("MAX_PLACES_PER_BLOCK",    "2"))
PLACES_PER_DAY_ROTATION: int = int(os.getenv("PLACES_PER_DAY_ROTATION", "6"))   # user picks per day before advancing
AI_CANDIDATES_PER_BLOCK: int = int(os.getenv("AI_CANDIDATES_PER_BLOCK", "5"))

# ── Stage 3: clustering + routing ────────────────────────────────────────────
KMEANS_MAX_ITERATIONS: int   = int(os.getenv("KMEANS_MAX_ITERATIONS",   "100"))
KMEANS_CONVERGENCE_KM: float = float(os.getenv("KMEANS_CONVERGENCE_KM", "0.001"))
KMEANS_SEED: int             = int(os.getenv("KMEANS_SEED",             "42"))
KMEANS_INIT: str             = os.getenv("KMEANS_INIT", "spread")               # "spread" | "kmeans++"
PLACES_PER_ROUTE_CLUSTER: int = int(os.getenv("PLACES_PER_ROUTE_CLUSTER", "4"))
TWO_OPT_MAX_PASSES: int      = int(os.getenv("TWO_OPT_MAX_PASSES",      "1000"))
ROUTE_STRATEGY: str          = os.getenv("ROUTE_STRATEGY", "distance")   # "distance" | "input_order" | "time" | "balanced"

# Stay time per place when estimating a day's duration [minutes]
DEFAULT_STAY_MINUTES: int = int(os.getenv("DEFAULT_STAY_MINUTES", "90"))

# Traffic multiplier on travel time into a place's time block ("time" / "balanced" strategies)
BLOCK_CONGESTION: dict[str, float] = {
    "BREAKFAST":          1.5,   # morning rush
    "MORNING_ACTIVITY":   1.0,
    "LUNCH":              1.3,
    "AFTERNOON_ACTIVITY": 1.2,
    "DINNER":             1.8,   # evening rush
    "EVENING_ACTIVITY":   1.0,
}
CONGESTED_BLOCK_THRESHOLD: float = float(os.getenv("CONGESTED_BLOCK_THRESHOLD", "1.3"))  # above → walkable groups first
CONGESTION_REFERENCE_MODE: str   = os.getenv("CONGESTION_REFERENCE_MODE", "car")         # base speed for congested time

# "balanced" strategy: cost = w_d·km + w_t·congested minutes + w_p·preference
BALANCED_DISTANCE_WEIGHT: float   = float(os.getenv("BALANCED_DISTANCE_WEIGHT",   "0.4"))
BALANCED_TIME_WEIGHT: float       = float(os.getenv("BALANCED_TIME_WEIGHT",       "0.3"))
BALANCED_PREFERENCE_WEIGHT: float = float(os.getenv("BALANCED_PREFERENCE_WEIGHT", "0.3"))
CATEGORY_SWITCH_COST: float       = float(os.getenv("CATEGORY_SWITCH_COST",       "2.0"))

# ── Stage 3: AI pick per block ───────────────────────────────────────────────
AI_SELECTION_MODE: str = os.getenv("AI_SELECTION_MODE", "rank")   # "rank" | "beam"
BEAM_WIDTH: int        = int(os.getenv("BEAM_WIDTH", "3"))
# transition cost = w_d·km/10 + w_t·minutes/30 + w_r·(5 − rating)/5
BEAM_DISTANCE_WEIGHT: float   = float(os.getenv("BEAM_DISTANCE_WEIGHT", "0.4"))
BEAM_TIME_WEIGHT: float       = float(os.getenv("BEAM_TIME_WEIGHT",     "0.3"))
BEAM_RATING_WEIGHT: float     = float(os.getenv("BEAM_RATING_WEIGHT",   "0.3"))
BEAM_DISTANCE_NORM_KM: float  = float(os.getenv("BEAM_DISTANCE_NORM_KM",  "10.0"))
BEAM_TIME_NORM_MINUTES: float = float(os.getenv("BEAM_TIME_NORM_MINUTES", "30.0"))

# ── Transport speeds (km/h) ──────────────────────────────────────────────────
TRANSPORT_SPEEDS_KMH: dict[str, float] = {
    "car":              30.0,   # urban driving
    "public_transport": 20.0,
    "walking":           4.0,
}
DEFAULT_SPEED_KMH: float    = float(os.getenv("DEFAULT_SPEED_KMH", "25.0"))
DEFAULT_TRANSPORT_MODE: str = os.getenv("DEFAULT_TRANSPORT_MODE", "public_transport")

# ── Observability ────────────────────────────────────────────────────────────
LOG_LEVEL: str               = os.getenv("LOG_LEVEL", "INFO")
ENABLE_STRUCTURED_LOGS: bool = _env_bool("ENABLE_STRUCTURED_LOGS", "false")
STRUCTURED_LOG_DIR: str      = os.getenv(
    "STRUCTURED_LOG_DIR", str(Path(__file__).parent / "logs")
)


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for scripts; the library never calls this on import."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
