"""
modules/planning/attraction_scoring.py
----------------------------------------
Composite place scoring used to rank AI filler candidates against the places
already fixed or selected for a day.

  reviewScore        = min(1, log10(reviewCount + 1) / K)          K = REVIEW_LOG_BASE
  ratingScore        = min(1, rating / MAX_RATING)
  baseScore          = 0.5·reviewScore + 0.5·ratingScore
  distanceScore(km)  = 1 (km ≤ NEAR) … linear … 0 (km ≥ FAR)
  diversityScore     = fixed per-category weight (restaurant 0.9 … default 0.4)
  comprehensiveScore = Wd·distanceScore(minDistance) + Wq·baseScore + Wv·diversityScore

Missing rating / review count contributes 0. With no reference points the
distance term is 0. All scores are in [0, 1] and every function is pure.

Weights default: [Wd=0.40, Wq=0.40, Wv=0.20] (config.py).
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from schemas.place import Place
from modules.planning.categories import normalize_category
from modules.tool_usage.distance_tool import min_distance
import config


# Heuristic "must-include" weighting per category, not measured diversity
DIVERSITY_WEIGHTS: dict[str, float] = {
    "restaurant": 0.9,
    "attraction": 0.8,
    "cafe":       0.7,
    "activity":   0.6,
    "shopping":   0.5,
}
DEFAULT_DIVERSITY_WEIGHT = 0.4


# ── Component scores ──────────────────────────────────────────────────────────

def review_score(review_count: Optional[int]) -> float:
    if not review_count or review_count <= 0:
        return 0.0
    return min(1.0, math.log10(review_count + 1) / config.REVIEW_LOG_BASE)


def rating_score(rating: Optional[float]) -> float:
    if rating is None or rating <= 0:
        return 0.0
    return min(1.0, rating / config.MAX_RATING)


def base_score(place: Optional[Place]) -> float:
    if place is None:
        return 0.0
    return 0.5 * review_score(place.review_count) + 0.5 * rating_score(place.rating)


def distance_score(km: float) -> float:
    if km <= 0 or km <= config.NEAR_DISTANCE_KM:
        return 1.0
    if km >= config.FAR_DISTANCE_KM:
        return 0.0
    span = config.FAR_DISTANCE_KM - config.NEAR_DISTANCE_KM
    return 1.0 - (km - config.NEAR_DISTANCE_KM) / span


def diversity_score(category: Optional[str]) -> float:
    """Table weight for the category; 0.0 when the place has no category at all."""
    if not category or not category.strip():
        return 0.0
    key = normalize_category(category)
    return DIVERSITY_WEIGHTS.get(key, DEFAULT_DIVERSITY_WEIGHT) if key else DEFAULT_DIVERSITY_WEIGHT


def comprehensive_score(place: Optional[Place], references: Sequence[Place] = ()) -> float:
    if place is None:
        return 0.0
    usable = [r for r in references if r is not None and r.has_coordinates]
    dist_term = distance_score(min_distance(place, usable)) if usable and place.has_coordinates else 0.0
    return (
        config.DISTANCE_WEIGHT * dist_term
        + config.QUALITY_WEIGHT * base_score(place)
        + config.DIVERSITY_WEIGHT * diversity_score(place.category)
    )


# ── Ranking ───────────────────────────────────────────────────────────────────

@dataclass
class AttractionScore:
    """Score breakdown for a single candidate."""
    place: Place
    base: float           # review + rating quality
    distance_km: float    # to the closest reference (0.0 with none)
    distance: float       # distanceScore(distance_km), 0.0 with no references
    diversity: float
    total: float          # comprehensiveScore


class AttractionScorer:
    """
    Ranks candidates by comprehensiveScore against a fixed reference set
    (the day's confirmed anchors and user selections).
    """

    def __init__(self, references: Iterable[Place] = ()) -> None:
        self.references = [r for r in references if r is not None and r.has_coordinates]

    def score(self, place: Place) -> AttractionScore:
        km = min_distance(place, self.references)
        has_ref = bool(self.references) and place.has_coordinates
        return AttractionScore(
            place       = place,
            base        = base_score(place),
            distance_km = km,
            distance    = distance_score(km) if has_ref else 0.0,
            diversity   = diversity_score(place.category),
            total       = comprehensive_score(place, self.references),
        )

    def score_all(self, candidates: Iterable[Place]) -> list[AttractionScore]:
        """Score every candidate; sorted by total desc, stable on input order."""
        scores = [self.score(p) for p in candidates]
        return sorted(scores, key=lambda s: s.total, reverse=True)

    def top(self, candidates: Iterable[Place], limit: int) -> list[Place]:
        return [s.place for s in self.score_all(candidates)[:max(0, limit)]]
