"""
modules/planning/route_planner.py
-----------------------------------
Stage 3 driver — turns Stage 2's day × time-block grid (or a flat place list)
into one optimised route per day.

Per day:
  1. Final selection. Confirmed anchors and user selections are always kept;
     AI candidates are taken in ranking order up to the block's remaining
     capacity (MAX_PLACES_PER_BLOCK − confirmed − selected). In "beam" mode
     (AI_SELECTION_MODE) a beam search of width BEAM_WIDTH walks the blocks in
     order and picks, per block with room, the AI candidate that keeps the
     whole day cheapest under 0.4·distance + 0.3·travel time + 0.3·rating gap;
     that pick leads the block's ranked list.
  2. Visit-once. A place id already routed on an earlier day (or earlier the
     same day) is skipped.
  3. Clustering. Flexible places (user + AI) are grouped with k-means,
     k = ceil(n / PLACES_PER_ROUTE_CLUSTER); clusters are visited in
     nearest-neighbour order over their centroids.
  4. Anchoring. Confirmed anchors with coordinates, sorted by start time,
     split the day into segments. Each flexible place goes into the segment
     where it adds the smallest detour; each segment is then 2-opt optimised
     with its anchor ends pinned.

Places without coordinates stay on the day's list but are not routed.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Sequence

from schemas.context import SynthesisContext
from schemas.itinerary import (
    ClusterAssignment,
    DaySchedule,
    OptimizedRoute,
    Stage2Result,
    TimeSlot,
)
from schemas.place import Place, TimeBlock
from modules.planning.categories import block_for_category
from modules.planning.geo_clusterer import GeoClusterer, assign_clusters_to_days
from modules.planning.route_optimizer import RouteOptimizer, nearest_neighbor
from modules.tool_usage.distance_tool import DistanceTool, haversine_km, place_distance, total_route_distance
import config

logger = logging.getLogger(__name__)


@dataclass
class PlannedDay:
    """One day's routing result, before assembly into a DailyItinerary."""
    day_number: int
    date: Optional[date] = None
    route: OptimizedRoute = field(default_factory=OptimizedRoute)
    time_slots: list[TimeSlot] = field(default_factory=list)
    unrouted: list[Place] = field(default_factory=list)   # no coordinates


class RoutePlanner:

    def __init__(
        self,
        clusterer: GeoClusterer | None = None,
        optimizer: RouteOptimizer | None = None,
        capacity: int = config.MAX_PLACES_PER_BLOCK,
        places_per_cluster: int = config.PLACES_PER_ROUTE_CLUSTER,
        ai_selection: str = config.AI_SELECTION_MODE,
        beam_width: int = config.BEAM_WIDTH,
    ):
        if ai_selection not in AI_SELECTION_MODES:
            raise ValueError(f"ERROR_UNKNOWN_AI_SELECTION: {ai_selection!r}")
        self.clusterer          = clusterer or GeoClusterer()
        self.optimizer          = optimizer or RouteOptimizer()
        self.capacity           = capacity
        self.places_per_cluster = max(1, places_per_cluster)
        self.ai_selection       = ai_selection
        self.beam_width         = max(1, beam_width)

    # ── Public entry points ───────────────────────────────────────────────────

    def plan_from_time_blocks(self, stage2: Stage2Result, context: SynthesisContext) -> list[PlannedDay]:
        used_ids: set[str] = set()   # visit-once across the trip
        planned: list[PlannedDay] = []

        for day_number in sorted(stage2.days):
            day = stage2.days[day_number]
            time_slots = self._select_final(day, used_ids, context.transport_mode)

            anchors = sorted(
                (a for a in (s.to_place() for s in day.confirmed) if a is not None),
                key=lambda p: p.fixed_time,
            )
            flexible = [p for slot in time_slots for p in slot.places]
            routable = [p for p in flexible if p.has_coordinates]
            unrouted = [p for p in flexible if not p.has_coordinates]

            route = self.route_day(anchors, routable, day_number, context.transport_mode)
            planned.append(PlannedDay(day_number, day.date, route, time_slots, unrouted))
            logger.debug(
                "Day %d: %d anchors, %d flexible, %.2f km",
                day_number, len(anchors), len(routable), route.total_distance_km,
            )
        return planned

    def plan_from_places(self, places: Sequence[Place], context: SynthesisContext) -> list[PlannedDay]:
        """k-means with k = trip days, then balanced cluster → day assignment."""
        unique = _dedupe(places)
        trip_days = max(1, context.trip_days)
        assignment = self.clusterer.cluster(unique, trip_days)
        by_day = assign_clusters_to_days(assignment, trip_days)
        for place in assignment.unclustered:
            target = min(by_day, key=lambda d: (len(by_day[d]), d))
            by_day[target].append(place)

        planned: list[PlannedDay] = []
        for day_number in sorted(by_day):
            members = by_day[day_number]
            routable = [p for p in members if p.has_coordinates]
            unrouted = [p for p in members if not p.has_coordinates]
            route = self.route_day([], routable, day_number, context.transport_mode)
            day_date = context.start_date + timedelta(days=day_number - 1) if context.start_date else None
            planned.append(PlannedDay(day_number, day_date, route, _slots_by_affinity(members), unrouted))
        return planned

    # ── Per-day routing ───────────────────────────────────────────────────────

    def route_day(
        self,
        anchors: Sequence[Place],
        flexible: Sequence[Place],
        day_number: int,
        transport_mode: Optional[str] = None,
    ) -> OptimizedRoute:
        flex_order = self.order_by_clusters(flexible, anchors[0] if anchors else None)
        original = total_route_distance(list(anchors) + list(flexible))

        if not anchors:
            ordered, _ = self.optimizer.optimize(flex_order)
            # Input order wins if clustering produced a longer seed than the raw list
            if total_route_distance(flexible) < total_route_distance(ordered):
                ordered, _ = self.optimizer.optimize(flexible)
            return self.optimizer.build_route(ordered, transport_mode, day_number, original)

        ordered = self._route_with_anchors(list(anchors), flex_order)
        return self.optimizer.build_route(ordered, transport_mode, day_number, original)

    def order_by_clusters(self, places: Sequence[Place], start: Optional[Place] = None) -> list[Place]:
        """Cluster-major visiting order; small days are returned unchanged."""
        if len(places) <= self.places_per_cluster:
            return list(places)
        k = math.ceil(len(places) / self.places_per_cluster)
        assignment = self.clusterer.cluster(places, k)
        order: list[Place] = []
        for cid in _cluster_visit_order(assignment, start):
            members = assignment.clusters[cid]
            entry = order[-1] if order else start
            if entry is not None:
                members = nearest_neighbor(members, min(members, key=lambda p: place_distance(entry, p)))
            else:
                members = nearest_neighbor(members)
            order.extend(members)
        order.extend(assignment.unclustered)
        return order

    def _route_with_anchors(self, anchors: list[Place], flexible: list[Place]) -> list[Place]:
        # Segment i runs from bounds[i] to bounds[i + 1]; None is an open end
        bounds: list[Optional[Place]] = [None] + anchors + [None]
        segments: list[list[Place]] = [[] for _ in range(len(bounds) - 1)]

        for place in flexible:
            best = (math.inf, 0, 0)   # (detour km, segment, insert position)
            for s, members in enumerate(segments):
                cost, pos = _cheapest_insertion(bounds[s], members, bounds[s + 1], place)
                if cost < best[0] - 1e-9:
                    best = (cost, s, pos)
            _, s, pos = best
            segments[s].insert(pos, place)

        ordered: list[Place] = []
        for s, members in enumerate(segments):
            start, end = bounds[s], bounds[s + 1]
            path = ([start] if start else []) + members + ([end] if end else [])
            opt, _ = self.optimizer.optimize(path, fix_start=start is not None, fix_end=end is not None)
            inner = opt[1 if start else 0: len(opt) - (1 if end else 0)]
            if start is not None:
                ordered.append(start)
            ordered.extend(inner)
        return ordered

    # ── Final selection ───────────────────────────────────────────────────────

    def _select_final(
        self,
        day: DaySchedule,
        used_ids: set[str],
        transport_mode: Optional[str] = None,
    ) -> list[TimeSlot]:
        beam = self._beam_picks(day, used_ids, transport_mode) if self.ai_selection == "beam" else {}
        slots: list[TimeSlot] = []
        for block in TimeBlock:
            candidates = day.block(block)
            chosen: list[Place] = []
            for place in candidates.user_selected:
                if place.place_id not in used_ids:
                    chosen.append(place)
                    used_ids.add(place.place_id)
            room = candidates.remaining_capacity(self.capacity)
            ranked = list(candidates.ai_candidates)
            pick = beam.get(block)
            if pick is not None:
                ranked = [pick] + [p for p in ranked if p.place_id != pick.place_id]
            for place in ranked:
                if room <= 0:
                    break
                if place.place_id in used_ids:
                    continue
                chosen.append(place)
                used_ids.add(place.place_id)
                room -= 1
            slots.append(TimeSlot(block=block, confirmed=list(candidates.confirmed), places=chosen))
        return slots

    def _beam_picks(
        self,
        day: DaySchedule,
        used_ids: set[str],
        transport_mode: Optional[str] = None,
    ) -> dict[TimeBlock, Place]:
        """One AI pick per block with room, from the cheapest of BEAM_WIDTH partial days."""
        tool     = DistanceTool(transport_mode or config.DEFAULT_TRANSPORT_MODE)
        excluded = used_ids | {p.place_id for p in day.user_selected}
        beam     = [_PathState()]

        for block in TimeBlock:
            slot  = day.block(block)
            fixed = [a for a in (s.to_place() for s in slot.confirmed) if a is not None and a.has_coordinates]
            fixed += [p for p in slot.user_selected if p.has_coordinates]
            for place in fixed:
                beam = [state.advance(place, _transition_cost(tool, state.last, place)) for state in beam]

            if slot.remaining_capacity(self.capacity) <= 0:
                continue
            options = [p for p in slot.ai_candidates if p.has_coordinates and p.place_id not in excluded]
            expanded = [
                state.advance(place, _transition_cost(tool, state.last, place), block)
                for state in beam
                for place in options
                if place.place_id not in state.picked_ids
            ]
            if expanded:
                expanded.sort(key=lambda s: (s.cost, [p.place_id for _, p in s.picks]))
                beam = expanded[: self.beam_width]

        best = min(beam, key=lambda s: s.cost)
        logger.debug(
            "Day %d beam picks: %s (cost %.3f)",
            day.day_number, {b.name: p.place_id for b, p in best.picks}, best.cost,
        )
        return dict(best.picks)


# ── Helpers ───────────────────────────────────────────────────────────────────

AI_SELECTION_MODES = ("rank", "beam")


@dataclass(frozen=True)
class _PathState:
    """A partial day in the beam: AI picks so far, accumulated cost, current position."""
    picks: tuple[tuple[TimeBlock, Place], ...] = ()
    cost:  float = 0.0
    last:  Optional[Place] = None

    @property
    def picked_ids(self) -> set[str]:
        return {p.place_id for _, p in self.picks}

    def advance(self, place: Place, step: float, block: Optional[TimeBlock] = None) -> _PathState:
        picks = self.picks + ((block, place),) if block is not None else self.picks
        return _PathState(picks, self.cost + step, place)


def _transition_cost(tool: DistanceTool, a: Optional[Place], b: Place) -> float:
    """Normalised step cost into `b`; the rating gap is measured against a 5-star place."""
    km      = tool.distance_km(a, b) if a is not None else 0.0
    minutes = tool.travel_time(a, b) if a is not None else 0
    rating  = b.rating if b.rating is not None else 0.0
    return (
        config.BEAM_DISTANCE_WEIGHT * km / config.BEAM_DISTANCE_NORM_KM
        + config.BEAM_TIME_WEIGHT * minutes / config.BEAM_TIME_NORM_MINUTES
        + config.BEAM_RATING_WEIGHT * (5.0 - rating) / 5.0
    )


def _dedupe(places: Sequence[Place]) -> list[Place]:
    seen: set[str] = set()
    out: list[Place] = []
    for p in places:
        if p.place_id not in seen:
            seen.add(p.place_id)
            out.append(p)
    return out


def _slots_by_affinity(places: Sequence[Place]) -> list[TimeSlot]:
    slots = {block: TimeSlot(block=block) for block in TimeBlock}
    for p in places:
        slots[block_for_category(p.category)].places.append(p)
    return list(slots.values())


def _cluster_visit_order(assignment: ClusterAssignment, start: Optional[Place]) -> list[int]:
    """Nearest-neighbour walk over cluster centroids, from `start` or cluster 0."""
    remaining = dict(assignment.centroids)
    if not remaining:
        return []
    if start is not None and start.has_coordinates:
        cur = (start.latitude, start.longitude)
    else:
        cur = remaining[min(remaining)]
    order: list[int] = []
    while remaining:
        cid = min(remaining, key=lambda c: (haversine_km(cur[0], cur[1], *remaining[c]), c))
        order.append(cid)
        cur = remaining.pop(cid)
    return order


def _cheapest_insertion(
    start: Optional[Place],
    members: list[Place],
    end: Optional[Place],
    place: Place,
) -> tuple[float, int]:
    """(added km, index into members) for the best insertion point of `place`."""
    path = ([start] if start else []) + members + ([end] if end else [])
    offset = 1 if start else 0
    if not path:
        return 0.0, 0
    best_cost, best_pos = math.inf, 0
    # Positions 0..len(path): before first, between neighbours, after last
    for i in range(len(path) + 1):
        if start is not None and i == 0:
            continue
        if end is not None and i == len(path):
            continue
        prev = path[i - 1] if i > 0 else None
        nxt = path[i] if i < len(path) else None
        cost = 0.0
        if prev is not None:
            cost += place_distance(prev, place)
        if nxt is not None:
            cost += place_distance(place, nxt)
        if prev is not None and nxt is not None:
            cost -= place_distance(prev, nxt)
        if cost < best_cost - 1e-9:
            best_cost, best_pos = cost, i - offset
    return best_cost, best_pos
