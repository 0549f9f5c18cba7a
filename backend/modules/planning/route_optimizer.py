"""
modules/planning/route_optimizer.py
-------------------------------------
Stage 3b — per-day visiting order over great-circle distance (open path, no
return to start).

2-opt move: reverse route[i..j]. For an open path only the two boundary edges
change, so the gain is evaluated in O(1):

    before = d(r[i-1], r[i]) + d(r[j], r[j+1])
    after  = d(r[i-1], r[j]) + d(r[i], r[j+1])     (missing edges at the ends count 0)

A move is kept only on a strict decrease. Passes repeat until one finds no
improving move (or TWO_OPT_MAX_PASSES). With fix_start / fix_end the first /
last position never moves. Routes of two places or fewer are returned as-is.

Strategies (ROUTE_STRATEGIES, selected by ROUTE_STRATEGY):
  "distance"    -- 2-opt on the input order and on a nearest-neighbour seed,
                   keep the shorter. Never longer than the input order.
  "input_order" -- 2-opt on the input order only. Never longer than the input.
  "time"        -- chronological: places grouped by time block in day order,
                   each group walked nearest-neighbour by congested travel
                   time. Blocks above CONGESTED_BLOCK_THRESHOLD are first split
                   into walkable groups.
  "balanced"    -- one key place per block (rating and category weight),
                   the rest by cheapest insertion, then 2-opt, all under
                   RouteCostModel.balanced_cost. Never costlier than the input
                   under that cost.

Every result is a local optimum, never claimed to be the best route.
"""

from __future__ import annotations
import logging
from typing import Callable, Optional, Sequence

from schemas.itinerary import OptimizedRoute, RouteSegment, RouteStatistics
from schemas.place import Place, TimeBlock
from modules.planning.categories import block_for_place, normalize_category
from modules.tool_usage.distance_tool import (
    DistanceCategory,
    DistanceTool,
    categorize_distance,
    distance_matrix,
    place_distance,
    total_route_distance,
)
import config

logger = logging.getLogger(__name__)

_EPS = 1e-9

Strategy = Callable[[Sequence[Place], bool, bool, int], list[Place]]
PairCost = Callable[[Place, Place], float]

# Key-place weight per category for the "balanced" seed route
_KEY_PLACE_CATEGORY_WEIGHT: dict[str, float] = {
    "attraction": 5.0,
    "restaurant": 4.0,
    "shopping":   3.0,
    "cafe":       2.0,
}
_DEFAULT_KEY_PLACE_WEIGHT = 2.5


# ── Core heuristics ───────────────────────────────────────────────────────────

def two_opt(
    places: Sequence[Place],
    fix_start: bool = False,
    fix_end: bool = False,
    max_passes: int = config.TWO_OPT_MAX_PASSES,
) -> list[Place]:
    route = list(places)
    n = len(route)
    if n <= 2:
        return route

    lo = 1 if fix_start else 0
    hi = n - 2 if fix_end else n - 1

    for _ in range(max(1, max_passes)):
        improved = False
        for i in range(lo, hi):
            for j in range(i + 1, hi + 1):
                if i == 0 and j == n - 1:
                    continue   # whole-path reversal, same length
                before = after = 0.0
                if i > 0:
                    before += place_distance(route[i - 1], route[i])
                    after  += place_distance(route[i - 1], route[j])
                if j < n - 1:
                    before += place_distance(route[j], route[j + 1])
                    after  += place_distance(route[i], route[j + 1])
                if after < before - _EPS:
                    route[i:j + 1] = reversed(route[i:j + 1])
                    improved = True
        if not improved:
            break
    return route


def nearest_neighbor(places: Sequence[Place], start: Optional[Place] = None) -> list[Place]:
    """Greedy tour from start (default: the first place); ties → earliest in input."""
    remaining = list(places)
    if not remaining:
        return []
    current = start if start is not None and start in remaining else remaining[0]
    remaining.remove(current)
    order = [current]
    while remaining:
        nxt = min(remaining, key=lambda p: place_distance(current, p))
        remaining.remove(nxt)
        order.append(nxt)
        current = nxt
    return order


def _nn_seed(places: Sequence[Place], fix_end: bool) -> list[Place]:
    """Nearest-neighbour order from the first place, keeping a pinned last place last."""
    if fix_end and len(places) > 1:
        return nearest_neighbor(places[:-1], start=places[0]) + [places[-1]]
    return nearest_neighbor(places, start=places[0])


def _distance_strategy(places: Sequence[Place], fix_start: bool, fix_end: bool, max_passes: int) -> list[Place]:
    from_input = two_opt(places, fix_start, fix_end, max_passes)
    from_seed = two_opt(_nn_seed(places, fix_end), fix_start, fix_end, max_passes)
    if total_route_distance(from_seed) < total_route_distance(from_input) - _EPS:
        return from_seed
    return from_input


def _input_order_strategy(places: Sequence[Place], fix_start: bool, fix_end: bool, max_passes: int) -> list[Place]:
    return two_opt(places, fix_start, fix_end, max_passes)


# ── Time-aware costs ──────────────────────────────────────────────────────────

def block_congestion(block: TimeBlock) -> float:
    return config.BLOCK_CONGESTION.get(block.name, 1.0)


class RouteCostModel:
    """
    Pairwise costs over one place list, precomputed from the distance matrix
    and a travel-time matrix at CONGESTION_REFERENCE_MODE speed. Both costs
    are directional: congestion is that of the destination's time block.
    """

    def __init__(self, places: Sequence[Place]) -> None:
        self.places = list(places)
        self._index = {id(p): i for i, p in enumerate(self.places)}
        self.km = distance_matrix(self.places)
        self.minutes = DistanceTool(config.CONGESTION_REFERENCE_MODE).travel_time_matrix(self.places)
        self.congestion = [block_congestion(block_for_place(p)) for p in self.places]

    def time_cost(self, a: Place, b: Place) -> float:
        """Travel minutes from a to b scaled by b's block congestion."""
        j = self._index[id(b)]
        return self.minutes[self._index[id(a)]][j] * self.congestion[j]

    def balanced_cost(self, a: Place, b: Place) -> float:
        preference = 0.0
        if a.rating is not None and b.rating is not None:
            preference += max(0.0, a.rating - b.rating)   # stepping down in quality
        if (a.category or "").lower() != (b.category or "").lower():
            preference += config.CATEGORY_SWITCH_COST
        return (
            config.BALANCED_DISTANCE_WEIGHT * self.km[self._index[id(a)]][self._index[id(b)]]
            + config.BALANCED_TIME_WEIGHT * self.time_cost(a, b)
            + config.BALANCED_PREFERENCE_WEIGHT * preference
        )

    @staticmethod
    def route_cost(route: Sequence[Place], cost: PairCost) -> float:
        return sum(cost(a, b) for a, b in zip(route, route[1:]))


def _split_pinned(places: Sequence[Place], fix_start: bool, fix_end: bool) -> tuple[list[Place], list[Place], list[Place]]:
    head = [places[0]] if fix_start and places else []
    tail = [places[-1]] if fix_end and len(places) > len(head) else []
    return head, list(places[len(head): len(places) - len(tail)]), tail


def _group_by_block(places: Sequence[Place]) -> list[tuple[TimeBlock, list[Place]]]:
    """(block, members) in day order, members in input order; empty blocks omitted."""
    groups: dict[TimeBlock, list[Place]] = {}
    for p in places:
        groups.setdefault(block_for_place(p), []).append(p)
    return [(block, groups[block]) for block in TimeBlock if block in groups]


def _nearest_by_cost(places: Sequence[Place], cost: PairCost) -> list[Place]:
    """Greedy walk from the first place; ties → earliest in input."""
    remaining = list(places)
    if not remaining:
        return []
    order = [remaining.pop(0)]
    while remaining:
        nxt = min(remaining, key=lambda p: cost(order[-1], p))
        remaining.remove(nxt)
        order.append(nxt)
    return order


def _walkable_groups(places: Sequence[Place]) -> list[list[Place]]:
    """Greedy proximity groups: each unassigned place collects the walkable ones after it."""
    groups: list[list[Place]] = []
    assigned: set[int] = set()
    for seed in places:
        if id(seed) in assigned:
            continue
        group = [seed]
        assigned.add(id(seed))
        for other in places:
            if id(other) in assigned:
                continue
            if categorize_distance(place_distance(seed, other)) is DistanceCategory.WALKABLE:
                group.append(other)
                assigned.add(id(other))
        groups.append(group)
    return groups


def _time_strategy(places: Sequence[Place], fix_start: bool, fix_end: bool, max_passes: int) -> list[Place]:
    model = RouteCostModel(places)
    head, middle, tail = _split_pinned(places, fix_start, fix_end)
    ordered: list[Place] = []
    for block, group in _group_by_block(middle):
        if block_congestion(block) > config.CONGESTED_BLOCK_THRESHOLD:
            for bunch in _walkable_groups(group):
                ordered.extend(_nearest_by_cost(bunch, model.time_cost))
        else:
            ordered.extend(_nearest_by_cost(group, model.time_cost))
    return head + ordered + tail


def _key_place_weight(place: Place) -> float:
    key = normalize_category(place.category)
    return (place.rating or 0.0) * 2 + _KEY_PLACE_CATEGORY_WEIGHT.get(key or "", _DEFAULT_KEY_PLACE_WEIGHT)


def _insert_cheapest(route: list[Place], place: Place, lo: int, hi: int, cost: PairCost) -> None:
    """Insert at the index in [lo, hi] with the smallest added cost; ties → earliest."""
    best_delta, best_pos = float("inf"), lo
    for i in range(lo, hi + 1):
        prev = route[i - 1] if i > 0 else None
        nxt = route[i] if i < len(route) else None
        delta = 0.0
        if prev is not None:
            delta += cost(prev, place)
        if nxt is not None:
            delta += cost(place, nxt)
        if prev is not None and nxt is not None:
            delta -= cost(prev, nxt)
        if delta < best_delta - _EPS:
            best_delta, best_pos = delta, i
    route.insert(best_pos, place)


def two_opt_by_cost(
    places: Sequence[Place],
    cost: PairCost,
    fix_start: bool = False,
    fix_end: bool = False,
    max_passes: int = config.TWO_OPT_MAX_PASSES,
) -> list[Place]:
    """2-opt for a directional cost: each candidate reversal is re-costed in full."""
    route = list(places)
    n = len(route)
    if n <= 2:
        return route
    lo = 1 if fix_start else 0
    hi = n - 2 if fix_end else n - 1
    current = RouteCostModel.route_cost(route, cost)

    for _ in range(max(1, max_passes)):
        improved = False
        for i in range(lo, hi):
            for j in range(i + 1, hi + 1):
                candidate = route[:i] + route[i:j + 1][::-1] + route[j + 1:]
                c = RouteCostModel.route_cost(candidate, cost)
                if c < current - _EPS:
                    route, current, improved = candidate, c, True
        if not improved:
            break
    return route


def _balanced_strategy(places: Sequence[Place], fix_start: bool, fix_end: bool, max_passes: int) -> list[Place]:
    model = RouteCostModel(places)
    cost = model.balanced_cost
    head, middle, tail = _split_pinned(places, fix_start, fix_end)

    keys = [max(group, key=_key_place_weight) for _, group in _group_by_block(middle)]
    key_ids = {id(k) for k in keys}
    route = head + keys + tail
    for place in middle:
        if id(place) not in key_ids:
            _insert_cheapest(route, place, len(head), len(route) - len(tail), cost)

    route = two_opt_by_cost(route, cost, fix_start, fix_end, max_passes)
    if model.route_cost(route, cost) < model.route_cost(places, cost) - _EPS:
        return route
    return list(places)


ROUTE_STRATEGIES: dict[str, Strategy] = {
    "distance":    _distance_strategy,
    "input_order": _input_order_strategy,
    "time":        _time_strategy,
    "balanced":    _balanced_strategy,
}


# ── RouteOptimizer ────────────────────────────────────────────────────────────

class RouteOptimizer:
    """Orders one day's places and annotates the result with distances and travel times."""

    def __init__(
        self,
        strategy: str = config.ROUTE_STRATEGY,
        transport_mode: str = config.DEFAULT_TRANSPORT_MODE,
        max_passes: int = config.TWO_OPT_MAX_PASSES,
        stay_minutes: int = config.DEFAULT_STAY_MINUTES,
    ) -> None:
        if strategy not in ROUTE_STRATEGIES:
            raise ValueError(f"ERROR_UNKNOWN_ROUTE_STRATEGY: {strategy!r} (known: {sorted(ROUTE_STRATEGIES)})")
        self.strategy       = strategy
        self.transport_mode = transport_mode
        self.max_passes     = max_passes
        self.stay_minutes   = stay_minutes

    def optimize(
        self,
        places: Sequence[Place],
        fix_start: bool = False,
        fix_end: bool = False,
    ) -> tuple[list[Place], float]:
        """Return (ordered places, total distance km)."""
        if len(places) <= 2:
            ordered = list(places)
        else:
            ordered = ROUTE_STRATEGIES[self.strategy](places, fix_start, fix_end, self.max_passes)
        return ordered, total_route_distance(ordered)

    def build_route(
        self,
        places: Sequence[Place],
        transport_mode: Optional[str] = None,
        day_number: int = 0,
        original_distance_km: Optional[float] = None,
    ) -> OptimizedRoute:
        """Annotate an already-ordered place list with segments and totals."""
        mode = transport_mode or self.transport_mode
        tool = DistanceTool(mode)
        ordered = list(places)

        segments: list[RouteSegment] = []
        for a, b in zip(ordered, ordered[1:]):
            km = tool.distance_km(a, b)
            segments.append(RouteSegment(
                from_place=a,
                to_place=b,
                distance_km=km,
                travel_minutes=tool.travel_time(a, b),
                transport_mode=mode,
                distance_category=categorize_distance(km).value,
            ))
        total_km = sum(s.distance_km for s in segments)
        travel = sum(s.travel_minutes for s in segments)
        original = total_km if original_distance_km is None else original_distance_km

        stats = RouteStatistics(
            average_distance_km=total_km / len(segments) if segments else 0.0,
            average_travel_minutes=travel / len(segments) if segments else 0.0,
            total_segments=len(segments),
            optimization_rate=(total_km / original) if original > 0 else 1.0,
        )
        return OptimizedRoute(
            day_number=day_number,
            places=ordered,
            segments=segments,
            total_distance_km=total_km,
            original_distance_km=original,
            total_travel_minutes=travel,
            total_stay_minutes=self.stay_minutes * len(ordered),
            transport_mode=mode,
            statistics=stats,
        )

    def optimize_route(
        self,
        places: Sequence[Place],
        day_number: int = 0,
        fix_start: bool = False,
        fix_end: bool = False,
        transport_mode: Optional[str] = None,
    ) -> OptimizedRoute:
        """optimize() followed by build_route(), recording the input distance."""
        original = total_route_distance(places)
        ordered, _ = self.optimize(places, fix_start, fix_end)
        logger.debug("Day %d: %d places, %.2f km -> %.2f km", day_number, len(ordered),
                     original, total_route_distance(ordered))
        return self.build_route(ordered, transport_mode, day_number, original)
