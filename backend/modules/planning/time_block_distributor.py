"""
modules/planning/time_block_distributor.py
--------------------------------------------
Stage 2 — allocate confirmed schedules, user selections and AI fillers into a
day × time-block grid.

Three passes, in priority order:

  1. Fixed pass      every ConfirmedSchedule goes to (day_index(start), block of
                     its start hour). Never rejected, never moved.
  2. User pass       selection i goes to day i // PLACES_PER_DAY_ROTATION + 1
                     (capped at trip_days), into its category's affine block; if
                     that block already holds MAX_PLACES_PER_BLOCK fixed entries,
                     the first non-full block in TimeBlock order is used, and if
                     every block is full the affine block takes it anyway.
                     Capacity is advisory here; user selections are never dropped.
  3. AI-fill pass    every (day, block) with fewer than MAX_PLACES_PER_BLOCK fixed
                     entries receives the top AI_CANDIDATES_PER_BLOCK block-affine
                     candidates ranked by comprehensiveScore against the day's
                     anchors. The final pick in Stage 3 takes only as many as the
                     block has room for.

Day indexing is injectable: pass any callable (start_time, trip_start, trip_days)
-> int to TimeBlockDistributor(day_index=...).
"""

from __future__ import annotations
import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional, Sequence, Union

from schemas.context import SynthesisContext
from schemas.itinerary import DaySchedule, Stage1Result, Stage2Result
from schemas.place import ConfirmedSchedule, Place, PlaceSource, TimeBlock
from modules.planning.attraction_scoring import AttractionScorer
from modules.planning.categories import block_for_category, fits_block
import config

logger = logging.getLogger(__name__)

DayIndexFn = Callable[[datetime, Optional[date], int], int]


# ── Day indexing ──────────────────────────────────────────────────────────────

def resolve_trip_start_date(
    context: SynthesisContext,
    schedules: Sequence[ConfirmedSchedule] = (),
) -> Optional[date]:
    """The request's start date, else the earliest schedule date, else None."""
    if context.start_date is not None:
        return context.start_date
    if schedules:
        return min(s.start_time.date() for s in schedules)
    return None


def default_day_index(start_time: datetime, trip_start: Optional[date], trip_days: int) -> int:
    """1-based trip day of start_time, clamped to [1, trip_days]. Day 1 when trip_start is unknown."""
    if trip_days <= 0 or trip_start is None:
        return 1
    day = (start_time.date() - trip_start).days + 1
    return max(1, min(day, trip_days))


# ── Distributor ───────────────────────────────────────────────────────────────

class TimeBlockDistributor:

    def __init__(
        self,
        capacity: int = config.MAX_PLACES_PER_BLOCK,
        places_per_day: int = config.PLACES_PER_DAY_ROTATION,
        ai_per_block: int = config.AI_CANDIDATES_PER_BLOCK,
        day_index: DayIndexFn = default_day_index,
    ) -> None:
        self.capacity       = capacity
        self.places_per_day = max(1, places_per_day)
        self.ai_per_block   = ai_per_block
        self.day_index      = day_index

    # ── Public ────────────────────────────────────────────────────────────────

    def distribute(
        self,
        context: SynthesisContext,
        selections: Sequence[Place] = (),
        schedules: Sequence[ConfirmedSchedule] = (),
        candidates: Union[Stage1Result, Iterable[Place], None] = None,
    ) -> Stage2Result:
        context.validate()
        trip_days = context.trip_days
        trip_start = resolve_trip_start_date(context, schedules)

        days = {
            d: DaySchedule(
                day_number=d,
                date=trip_start + timedelta(days=d - 1) if trip_start else None,
            )
            for d in range(1, trip_days + 1)
        }

        self.place_confirmed(days, schedules, trip_start, trip_days)
        user_places = self.place_user_selections(days, selections, trip_days)

        pool = _candidate_list(candidates)
        if not context.regions or not pool:
            logger.info(
                "Stage 2: skipping AI fill (regions=%d, candidates=%d, thread=%s)",
                len(context.regions), len(pool), context.thread_id,
            )
        else:
            self.fill_ai_candidates(days, pool, user_places)

        result = Stage2Result(
            thread_id=context.thread_id,
            trip_days=trip_days,
            trip_start_date=trip_start,
            days=days,
        )
        logger.info(
            "Stage 2: %d days, %d confirmed, %d user-selected, %d AI candidates (thread=%s)",
            trip_days, result.confirmed_count, result.user_selected_count,
            sum(len(d.ai_candidates) for d in days.values()), context.thread_id,
        )
        return result

    # ── Pass 1: confirmed schedules ───────────────────────────────────────────

    def place_confirmed(
        self,
        days: dict[int, DaySchedule],
        schedules: Sequence[ConfirmedSchedule],
        trip_start: Optional[date],
        trip_days: int,
    ) -> None:
        placed: list[ConfirmedSchedule] = []
        for schedule in sorted(schedules, key=lambda s: (s.start_time, s.priority)):
            day = max(1, min(self.day_index(schedule.start_time, trip_start, trip_days), trip_days))
            block = schedule.time_block
            clashes = [other.title for other in placed if schedule.has_time_conflict(other)]
            if clashes:
                # Both stay on the grid; the traveller holds both bookings
                logger.warning("Confirmed %r overlaps %s; keeping both", schedule.title, clashes)
            days[day].block(block).confirmed.append(schedule)
            placed.append(schedule)
            logger.debug("Confirmed %r -> day %d %s", schedule.title, day, block.name)

    # ── Pass 2: user selections ───────────────────────────────────────────────

    def place_user_selections(
        self,
        days: dict[int, DaySchedule],
        selections: Sequence[Place],
        trip_days: int,
    ) -> list[Place]:
        placed: list[Place] = []
        for i, selection in enumerate(selections):
            day = min(i // self.places_per_day + 1, trip_days)
            place = selection.with_source(PlaceSource.USER_SELECTED)
            block = self.find_best_block(place.category, days[day])
            days[day].block(block).user_selected.append(place)
            placed.append(place)
            logger.debug("User selection %r -> day %d %s", place.name, day, block.name)
        return placed

    def find_best_block(self, category: Optional[str], day: DaySchedule) -> TimeBlock:
        """Affine block if it has room, else the first non-full block, else the affine block."""
        affine = block_for_category(category)
        if not day.block(affine).is_full(self.capacity):
            return affine
        for block in TimeBlock:
            if not day.block(block).is_full(self.capacity):
                return block
        return affine

    # ── Pass 3: AI fill ───────────────────────────────────────────────────────

    def fill_ai_candidates(
        self,
        days: dict[int, DaySchedule],
        pool: Sequence[Place],
        user_places: Sequence[Place],
    ) -> None:
        selected_ids = {p.place_id for p in user_places}
        all_user_refs = [p for p in user_places if p.has_coordinates]

        for day_number in sorted(days):
            day = days[day_number]
            references = _day_references(day) or all_user_refs
            scorer = AttractionScorer(references)
            suggested_today: set[str] = set()

            for block in TimeBlock:
                slot = day.block(block)
                if slot.is_full(self.capacity):
                    continue
                eligible = [
                    p for p in pool
                    if p.place_id not in selected_ids
                    and p.place_id not in suggested_today
                    and fits_block(p, block)
                ]
                top = scorer.top(eligible, self.ai_per_block)
                slot.ai_candidates.extend(p.with_source(PlaceSource.AI_RECOMMENDED) for p in top)
                suggested_today.update(p.place_id for p in top)
                logger.debug("Day %d %s: %d AI candidates", day_number, block.name, len(top))


def _day_references(day: DaySchedule) -> list[Place]:
    """The day's user selections plus confirmed anchors that have coordinates."""
    refs = [p for p in day.user_selected if p.has_coordinates]
    for schedule in day.confirmed:
        anchor = schedule.to_place()
        if anchor is not None:
            refs.append(anchor)
    return refs


def _candidate_list(candidates: Union[Stage1Result, Iterable[Place], None]) -> list[Place]:
    """Flatten Stage 1 output (or a plain iterable) and drop duplicate place ids."""
    if candidates is None:
        return []
    items = candidates.all_candidates() if isinstance(candidates, Stage1Result) else list(candidates)
    seen: set[str] = set()
    out: list[Place] = []
    for p in items:
        if p.place_id not in seen:
            seen.add(p.place_id)
            out.append(p)
    return out
