"""
schemas/itinerary.py
--------------------
Dataclass definitions for the intermediate and output structures of the
synthesis pipeline: the Stage 1 candidate map, the Stage 2 day × time-block
grid, cluster assignments, optimised routes and the assembled itinerary.

Places are shared by reference between structures; they are frozen values
and never hold back-references, so no structure here owns another cyclically.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from schemas.place import ConfirmedSchedule, Place, TimeBlock


# ── Stage 1 ───────────────────────────────────────────────────────────────────

@dataclass
class Stage1Result:
    """Per-region, per-category top-N candidates."""
    thread_id: str = ""
    destinations: list[str] = field(default_factory=list)
    region_candidates: dict[str, dict[str, list[Place]]] = field(default_factory=dict)
    total_candidates: int = 0

    def candidates_for(self, category: str) -> list[Place]:
        """All regions' candidates for one category, in region order."""
        out: list[Place] = []
        for categories in self.region_candidates.values():
            out.extend(categories.get(category, []))
        return out

    def all_candidates(self) -> list[Place]:
        out: list[Place] = []
        for categories in self.region_candidates.values():
            for places in categories.values():
                out.extend(places)
        return out


# ── Stage 2 ───────────────────────────────────────────────────────────────────

@dataclass
class TimeBlockCandidates:
    """Everything allocated to one (day, time block) slot."""
    confirmed:     list[ConfirmedSchedule] = field(default_factory=list)
    user_selected: list[Place] = field(default_factory=list)
    ai_candidates: list[Place] = field(default_factory=list)   # ranked, best first

    @property
    def fixed_count(self) -> int:
        """Entries that can never be dropped: confirmed + user selections."""
        return len(self.confirmed) + len(self.user_selected)

    def remaining_capacity(self, capacity: int) -> int:
        return max(0, capacity - self.fixed_count)

    def is_full(self, capacity: int) -> bool:
        return self.fixed_count >= capacity


@dataclass
class DaySchedule:
    day_number: int
    date: Optional[date] = None
    blocks: dict[TimeBlock, TimeBlockCandidates] = field(
        default_factory=lambda: {block: TimeBlockCandidates() for block in TimeBlock}
    )

    def block(self, block: TimeBlock) -> TimeBlockCandidates:
        return self.blocks[block]

    @property
    def confirmed(self) -> list[ConfirmedSchedule]:
        return [s for b in TimeBlock for s in self.blocks[b].confirmed]

    @property
    def user_selected(self) -> list[Place]:
        return [p for b in TimeBlock for p in self.blocks[b].user_selected]

    @property
    def ai_candidates(self) -> list[Place]:
        return [p for b in TimeBlock for p in self.blocks[b].ai_candidates]


@dataclass
class Stage2Result:
    thread_id: str = ""
    trip_days: int = 0
    trip_start_date: Optional[date] = None
    days: dict[int, DaySchedule] = field(default_factory=dict)

    def day(self, day_number: int) -> DaySchedule:
        return self.days[day_number]

    @property
    def confirmed_count(self) -> int:
        return sum(len(d.confirmed) for d in self.days.values())

    @property
    def user_selected_count(self) -> int:
        return sum(len(d.user_selected) for d in self.days.values())


# ── Stage 3a: clustering ──────────────────────────────────────────────────────

@dataclass
class ClusterAssignment:
    """
    Result of one k-means run. Cluster ids are 0..k-1 over non-empty clusters
    only. Places without coordinates are never clustered and are returned in
    `unclustered`.
    """
    clusters:    dict[int, list[Place]] = field(default_factory=dict)
    centroids:   dict[int, tuple[float, float]] = field(default_factory=dict)
    iterations:  int = 0
    converged:   bool = True
    unclustered: list[Place] = field(default_factory=list)

    @property
    def num_clusters(self) -> int:
        return len(self.clusters)


# ── Stage 3b: routes ──────────────────────────────────────────────────────────

@dataclass
class RouteSegment:
    from_place:        Place
    to_place:          Place
    distance_km:       float
    travel_minutes:    int
    transport_mode:    str
    distance_category: str = ""   # walkable | near | far


@dataclass
class RouteStatistics:
    average_distance_km:    float = 0.0
    average_travel_minutes: float = 0.0
    total_segments:         int = 0
    optimization_rate:      float = 1.0   # optimised / original distance; 1.0 = no gain


@dataclass
class OptimizedRoute:
    """One day's visiting order with per-segment distance and travel time."""
    day_number:           int = 0
    places:               list[Place] = field(default_factory=list)
    segments:             list[RouteSegment] = field(default_factory=list)
    total_distance_km:    float = 0.0
    original_distance_km: float = 0.0
    total_travel_minutes: int = 0
    total_stay_minutes:   int = 0
    transport_mode:       str = ""
    statistics:           RouteStatistics = field(default_factory=RouteStatistics)

    @property
    def total_duration_minutes(self) -> int:
        return self.total_travel_minutes + self.total_stay_minutes

    @property
    def efficiency_score(self) -> float:
        """Fraction of the original distance saved by optimisation, in [0, 1]."""
        return max(0.0, min(1.0, 1.0 - self.statistics.optimization_rate))


# ── Assembled itinerary ───────────────────────────────────────────────────────

@dataclass
class TimeSlot:
    """What a day holds in one time block after final selection."""
    block: TimeBlock
    confirmed: list[ConfirmedSchedule] = field(default_factory=list)
    places: list[Place] = field(default_factory=list)


@dataclass
class DailyItinerary:
    day_number: int
    date: Optional[date] = None
    places: list[Place] = field(default_factory=list)        # visiting order
    time_slots: list[TimeSlot] = field(default_factory=list)
    route: Optional[OptimizedRoute] = None


@dataclass
class TravelStatistics:
    total_places:          int = 0
    user_selected_count:   int = 0
    ai_recommended_count:  int = 0
    confirmed_count:       int = 0
    user_selected_ratio:   float = 0.0
    average_rating:        float = 0.0
    total_review_count:    int = 0
    category_distribution: dict[str, int] = field(default_factory=dict)


@dataclass
class Itinerary:
    """
    Top-level output of Stage 3. Created fresh per request and returned to
    the caller; persistence is the caller's concern.
    """
    daily_itineraries:      list[DailyItinerary] = field(default_factory=list)
    optimized_routes:       list[OptimizedRoute] = field(default_factory=list)
    total_distance_km:      float = 0.0
    total_duration_minutes: int = 0
    statistics:             TravelStatistics = field(default_factory=TravelStatistics)
    generated_at:           datetime = field(default_factory=datetime.now)
