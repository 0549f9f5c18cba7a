"""
modules/planning/itinerary_assembler.py
-----------------------------------------
Folds per-day routes into DailyItinerary records and the days into the final
Itinerary with derived statistics. A pure reduction: missing ratings count as
0 toward the average, missing categories are left out of the histogram.
"""

from __future__ import annotations
import logging
from collections import Counter
from datetime import date
from typing import Optional, Sequence

from schemas.itinerary import (
    DailyItinerary,
    Itinerary,
    OptimizedRoute,
    TimeSlot,
    TravelStatistics,
)
from schemas.place import Place, PlaceSource
from modules.planning.route_planner import PlannedDay

logger = logging.getLogger(__name__)


class ItineraryAssembler:

    def assemble_day(
        self,
        day_number: int,
        day_date: Optional[date],
        route: OptimizedRoute,
        time_slots: Sequence[TimeSlot] = (),
        unrouted: Sequence[Place] = (),
    ) -> DailyItinerary:
        return DailyItinerary(
            day_number=day_number,
            date=day_date,
            places=list(route.places) + list(unrouted),
            time_slots=list(time_slots),
            route=route,
        )

    def assemble(
        self,
        days: Sequence[DailyItinerary],
        routes: Optional[Sequence[OptimizedRoute]] = None,
    ) -> Itinerary:
        daily = sorted(days, key=lambda d: d.day_number)
        if routes is None:
            routes = [d.route for d in daily if d.route is not None]
        routes = list(routes)

        itinerary = Itinerary(
            daily_itineraries=daily,
            optimized_routes=routes,
            total_distance_km=sum(r.total_distance_km for r in routes),
            total_duration_minutes=sum(r.total_duration_minutes for r in routes),
            statistics=compute_statistics(daily),
        )
        logger.info(
            "Assembled %d days: %d places, %.2f km, %d min",
            len(daily), itinerary.statistics.total_places,
            itinerary.total_distance_km, itinerary.total_duration_minutes,
        )
        return itinerary

    def assemble_planned(self, planned: Sequence[PlannedDay]) -> Itinerary:
        """assemble_day() over each planned day, then assemble()."""
        daily = [
            self.assemble_day(p.day_number, p.date, p.route, p.time_slots, p.unrouted)
            for p in planned
        ]
        return self.assemble(daily)


def compute_statistics(days: Sequence[DailyItinerary]) -> TravelStatistics:
    places = [p for d in days for p in d.places]
    total = len(places)
    user = sum(1 for p in places if p.source is PlaceSource.USER_SELECTED)
    ai = sum(1 for p in places if p.source is PlaceSource.AI_RECOMMENDED)
    confirmed = sum(len(slot.confirmed) for d in days for slot in d.time_slots)

    categories = Counter(p.category for p in places if p.category)

    return TravelStatistics(
        total_places=total,
        user_selected_count=user,
        ai_recommended_count=ai,
        confirmed_count=confirmed,
        user_selected_ratio=user / (user + ai) if (user + ai) else 0.0,
        average_rating=sum(p.rating or 0.0 for p in places) / total if total else 0.0,
        total_review_count=sum(p.review_count or 0 for p in places),
        category_distribution=dict(categories),
    )
