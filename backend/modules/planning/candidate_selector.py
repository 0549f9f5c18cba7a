"""
modules/planning/candidate_selector.py
----------------------------------------
Stage 1 — per-region, per-category candidate shortlist.

For each category of the fixed taxonomy:
  1. fetch a superset (CANDIDATE_FETCH_MULTIPLIER × N) from the CandidatePool
     using the category's keyword synonyms
  2. drop pool records that break the place contract (rating outside [0, 5],
     negative review count, blank name), each logged at WARNING
  3. keep places whose category text matches the category
  4. keep places that satisfy at least one requested travel style
     (no known style → no filtering)
  5. sort by (review_count, rating) descending, missing values as 0
  6. truncate to N = CANDIDATES_PER_CATEGORY

An empty category yields an empty list; the other categories still run.
"""

from __future__ import annotations
import logging
from typing import Iterable, Sequence

from schemas.context import SynthesisContext
from schemas.itinerary import Stage1Result
from schemas.place import Place
from modules.planning.categories import (
    CATEGORIES,
    CATEGORY_KEYWORDS,
    known_styles,
    matches_category,
    matches_styles,
)
from modules.tool_usage.candidate_pool import CandidatePool
from modules.validation.ingestion_validator import filter_valid, validate_place
import config

logger = logging.getLogger(__name__)


def popularity_key(place: Place) -> tuple[int, float]:
    """Review count dominates; rating breaks ties."""
    return (place.review_count or 0, place.rating or 0.0)


class CandidateSelector:
    """Stage 1 selector over a read-only CandidatePool."""

    def __init__(
        self,
        pool: CandidatePool,
        per_category: int = config.CANDIDATES_PER_CATEGORY,
        fetch_multiplier: int = config.CANDIDATE_FETCH_MULTIPLIER,
        categories: Sequence[str] = CATEGORIES,
    ) -> None:
        self.pool             = pool
        self.per_category     = per_category
        self.fetch_multiplier = max(1, fetch_multiplier)
        self.categories       = tuple(categories)

    # ── Public ────────────────────────────────────────────────────────────────

    def select_category(self, region: str, category: str, styles: Iterable[str] = ()) -> list[Place]:
        limit = self.per_category * self.fetch_multiplier
        keywords = CATEGORY_KEYWORDS.get(category, (category,))
        fetched = filter_valid(self.pool.query(region, keywords, limit), validate_place)

        styles = list(styles)
        matched = [
            p for p in fetched
            if matches_category(p, category) and matches_styles(p, styles)
        ]
        ranked = sorted(matched, key=popularity_key, reverse=True)[: self.per_category]
        logger.debug(
            "%s/%s: fetched=%d matched=%d kept=%d",
            region, category, len(fetched), len(matched), len(ranked),
        )
        return ranked

    def select_for_region(self, region: str, styles: Iterable[str] = ()) -> dict[str, list[Place]]:
        """Top-N per category for one region; every category key is present."""
        styles = list(styles)
        ignored = [s for s in styles if s and s.lower() not in known_styles([s])]
        if ignored:
            logger.info("Ignoring unknown travel styles: %s", ignored)
        return {c: self.select_category(region, c, styles) for c in self.categories}

    def select(self, context: SynthesisContext) -> Stage1Result:
        """Run Stage 1 over every destination of the request."""
        context.validate()
        region_candidates = {
            region: self.select_for_region(region, context.styles)
            for region in context.regions
        }
        total = sum(len(v) for cats in region_candidates.values() for v in cats.values())
        logger.info(
            "Stage 1: %d regions, %d candidates (thread=%s)",
            len(region_candidates), total, context.thread_id,
        )
        return Stage1Result(
            thread_id=context.thread_id,
            destinations=context.regions,
            region_candidates=region_candidates,
            total_candidates=total,
        )
