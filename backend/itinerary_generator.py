"""
itinerary_generator.py
----------------------
ItinerarySynthesizer — the library entry point of the synthesis core.

    Stage 1  stage1(ctx)                        -> Stage1Result   (candidate shortlist)
    Stage 2  stage2(ctx, selections, schedules) -> Stage2Result   (day × time-block grid)
    Stage 3  stage3(ctx, stage2_result)         -> Itinerary      (clusters, routes, stats)
    All      synthesize(ctx, selections)        -> Itinerary

Each call is a pure computation over its inputs; the only collaborators are the
read-only CandidatePool and (optionally) a ConfirmedScheduleSource. The caller
owns the SynthesisContext and any conversation state that produced it.

Wire shapes: schemas.responses.to_response(result).model_dump(by_alias=True).
"""

from __future__ import annotations

import logging
import time as _time_mod
from typing import Any, Optional, Sequence, Union

from schemas.context import SynthesisContext
from schemas.itinerary import Itinerary, Stage1Result, Stage2Result
from schemas.place import ConfirmedSchedule, Place, normalize_place_record
from modules.observability.logger import StructuredLogger
from modules.planning.candidate_selector import CandidateSelector
from modules.planning.itinerary_assembler import ItineraryAssembler
from modules.planning.route_planner import RoutePlanner
from modules.planning.time_block_distributor import TimeBlockDistributor
from modules.tool_usage.candidate_pool import CandidatePool, ConfirmedScheduleSource
from modules.validation.ingestion_validator import (
    require_valid,
    validate_confirmed_schedule,
    validate_place,
)
import config

logger = logging.getLogger(__name__)

PlaceInput = Union[Place, dict]


class ItinerarySynthesizer:

    def __init__(
        self,
        pool: CandidatePool,
        schedule_source: Optional[ConfirmedScheduleSource] = None,
        selector: Optional[CandidateSelector] = None,
        distributor: Optional[TimeBlockDistributor] = None,
        planner: Optional[RoutePlanner] = None,
        assembler: Optional[ItineraryAssembler] = None,
        event_logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.pool            = pool
        self.schedule_source = schedule_source
        self.selector        = selector    or CandidateSelector(pool)
        self.distributor     = distributor or TimeBlockDistributor()
        self.planner         = planner     or RoutePlanner()
        self.assembler       = assembler   or ItineraryAssembler()
        if event_logger is None and config.ENABLE_STRUCTURED_LOGS:
            event_logger = StructuredLogger()
        self.event_logger = event_logger

    # ── Stages ────────────────────────────────────────────────────────────────

    def stage1(self, context: SynthesisContext) -> Stage1Result:
        t0 = _time_mod.perf_counter()
        result = self.selector.select(context)
        self._emit(context, "STAGE1_COMPLETE", {
            "destinations": result.destinations,
            "total_candidates": result.total_candidates,
        })
        self._perf(context, "ItinerarySynthesizer.stage1", t0)
        return result

    def stage2(
        self,
        context: SynthesisContext,
        selections: Sequence[PlaceInput] = (),
        schedules: Optional[Sequence[ConfirmedSchedule]] = None,
        stage1_result: Optional[Stage1Result] = None,
    ) -> Stage2Result:
        context.validate()
        places = coerce_places(selections)
        if schedules is None:
            schedules = self.schedule_source.for_thread(context.thread_id) if self.schedule_source else []
        schedules = checked_schedules(schedules)
        candidates = stage1_result if stage1_result is not None else self.stage1(context)

        t0 = _time_mod.perf_counter()
        result = self.distributor.distribute(
            context,
            selections=places,
            schedules=schedules,
            candidates=candidates,
        )
        self._emit(context, "STAGE2_COMPLETE", {
            "trip_days": result.trip_days,
            "confirmed": result.confirmed_count,
            "user_selected": result.user_selected_count,
        })
        self._perf(context, "ItinerarySynthesizer.stage2", t0)
        return result

    def stage3(
        self,
        context: SynthesisContext,
        stage2_result: Optional[Stage2Result] = None,
        places: Sequence[PlaceInput] = (),
    ) -> Itinerary:
        """Route from Stage 2 output, or from a flat place list when there is none."""
        context.validate()
        t0 = _time_mod.perf_counter()
        if stage2_result is not None:
            planned = self.planner.plan_from_time_blocks(stage2_result, context)
        else:
            planned = self.planner.plan_from_places(coerce_places(places), context)
        itinerary = self.assembler.assemble_planned(planned)
        self._emit(context, "STAGE3_COMPLETE", {
            "days": len(itinerary.daily_itineraries),
            "total_places": itinerary.statistics.total_places,
            "total_distance_km": round(itinerary.total_distance_km, 3),
            "total_duration_minutes": itinerary.total_duration_minutes,
        })
        self._perf(context, "ItinerarySynthesizer.stage3", t0)
        return itinerary

    def synthesize(
        self,
        context: SynthesisContext,
        selections: Sequence[PlaceInput] = (),
        schedules: Optional[Sequence[ConfirmedSchedule]] = None,
    ) -> Itinerary:
        """All three stages for one request."""
        stage1_result = self.stage1(context)
        stage2_result = self.stage2(context, selections, schedules, stage1_result)
        return self.stage3(context, stage2_result)

    # ── Observability ─────────────────────────────────────────────────────────

    def _emit(self, context: SynthesisContext, event_type: str, payload: dict[str, Any]) -> None:
        if self.event_logger is not None:
            self.event_logger.log(context.thread_id, event_type, payload)

    def _perf(self, context: SynthesisContext, component: str, t0: float) -> None:
        duration_ms = round((_time_mod.perf_counter() - t0) * 1000, 2)
        logger.debug("%s took %.2f ms", component, duration_ms)
        self._emit(context, "PERFORMANCE", {"component": component, "duration_ms": duration_ms})


def coerce_places(items: Sequence[PlaceInput]) -> list[Place]:
    """
    Places pass through; dict records (snake_case or camelCase) are validated
    and converted. A record that breaks the input contract raises
    InputValidationError, exactly as constructing the Place directly would.
    """
    places: list[Place] = []
    for item in items:
        if isinstance(item, Place):
            places.append(item)
        elif isinstance(item, dict):
            require_valid(validate_place(normalize_place_record(item)))
            places.append(Place.from_dict(item))
        else:
            raise TypeError(f"selection must be a Place or a dict, got {type(item).__name__}")
    return places


def checked_schedules(schedules: Sequence[ConfirmedSchedule]) -> list[ConfirmedSchedule]:
    """Re-check each schedule at the stage boundary; sources may hand over mutated objects."""
    out = list(schedules)
    for schedule in out:
        if not isinstance(schedule, ConfirmedSchedule):
            raise TypeError(f"confirmed schedule expected, got {type(schedule).__name__}")
        require_valid(validate_confirmed_schedule(schedule.to_dict()))
    return out
