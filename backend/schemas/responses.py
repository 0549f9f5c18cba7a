"""
schemas/responses.py
--------------------
Pydantic wire models for the three stage outputs. Fields are snake_case in
Python and camelCase on the wire:

    stage1_response(result).model_dump(by_alias=True)
    -> {"threadId": ..., "destinations": [...], "regionCandidates": {...}, "totalCandidates": n}

The service layer that owns transport calls these; the core never serialises.
"""

from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from schemas.itinerary import (
    DailyItinerary,
    Itinerary,
    OptimizedRoute,
    Stage1Result,
    Stage2Result,
    TimeBlockCandidates,
)
from schemas.place import ConfirmedSchedule, Place


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Shared ────────────────────────────────────────────────────────────────────

class PlaceModel(CamelModel):
    place_id: str
    name: str
    category: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = ""
    rating: Optional[float] = None
    review_count: Optional[int] = None
    price_level: Optional[int] = None
    open_now: Optional[bool] = None
    source: str = "candidate"
    region: str = ""

    @classmethod
    def from_place(cls, place: Place) -> "PlaceModel":
        return cls(
            place_id=place.place_id,
            name=place.name,
            category=place.category,
            latitude=place.latitude,
            longitude=place.longitude,
            address=place.address,
            rating=place.rating,
            review_count=place.review_count,
            price_level=place.price_level,
            open_now=place.open_now,
            source=place.source.value,
            region=place.region,
        )


class ConfirmedScheduleModel(CamelModel):
    title: str
    start_time: datetime
    end_time: datetime
    location: str = ""
    document_type: str
    priority: int
    fixed: bool = True
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_schedule(cls, s: ConfirmedSchedule) -> "ConfirmedScheduleModel":
        return cls(
            title=s.title,
            start_time=s.start_time,
            end_time=s.end_time,
            location=s.location,
            document_type=s.document_type.value,
            priority=s.priority,
            address=s.address,
            latitude=s.latitude,
            longitude=s.longitude,
        )


# ── Stage 1 ───────────────────────────────────────────────────────────────────

class Stage1Response(CamelModel):
    thread_id: str = ""
    destinations: List[str]
    region_candidates: Dict[str, Dict[str, List[PlaceModel]]]
    total_candidates: int


def stage1_response(result: Stage1Result) -> Stage1Response:
    return Stage1Response(
        thread_id=result.thread_id,
        destinations=list(result.destinations),
        region_candidates={
            region: {cat: [PlaceModel.from_place(p) for p in places] for cat, places in cats.items()}
            for region, cats in result.region_candidates.items()
        },
        total_candidates=result.total_candidates,
    )


# ── Stage 2 ───────────────────────────────────────────────────────────────────

class TimeBlockCandidatesModel(CamelModel):
    confirmed: List[ConfirmedScheduleModel] = []
    user_selected: List[PlaceModel] = []
    ai_candidates: List[PlaceModel] = []

    @classmethod
    def from_candidates(cls, c: TimeBlockCandidates) -> "TimeBlockCandidatesModel":
        return cls(
            confirmed=[ConfirmedScheduleModel.from_schedule(s) for s in c.confirmed],
            user_selected=[PlaceModel.from_place(p) for p in c.user_selected],
            ai_candidates=[PlaceModel.from_place(p) for p in c.ai_candidates],
        )


class Stage2Response(CamelModel):
    thread_id: str
    trip_days: int
    time_blocks: Dict[int, Dict[str, TimeBlockCandidatesModel]]


def stage2_response(result: Stage2Result) -> Stage2Response:
    return Stage2Response(
        thread_id=result.thread_id,
        trip_days=result.trip_days,
        time_blocks={
            day_number: {
                block.name: TimeBlockCandidatesModel.from_candidates(c)
                for block, c in day.blocks.items()
            }
            for day_number, day in sorted(result.days.items())
        },
    )


# ── Stage 3 ───────────────────────────────────────────────────────────────────

class RouteSegmentModel(CamelModel):
    from_place_id: str
    to_place_id: str
    distance_km: float
    travel_minutes: int
    transport_mode: str
    distance_category: str = ""


class OptimizedRouteModel(CamelModel):
    day_number: int
    places: List[PlaceModel]
    segments: List[RouteSegmentModel]
    total_distance: float
    total_duration: int
    total_travel_minutes: int
    optimization_rate: float
    efficiency_score: float

    @classmethod
    def from_route(cls, r: OptimizedRoute) -> "OptimizedRouteModel":
        return cls(
            day_number=r.day_number,
            places=[PlaceModel.from_place(p) for p in r.places],
            segments=[
                RouteSegmentModel(
                    from_place_id=s.from_place.place_id,
                    to_place_id=s.to_place.place_id,
                    distance_km=round(s.distance_km, 3),
                    travel_minutes=s.travel_minutes,
                    transport_mode=s.transport_mode,
                    distance_category=s.distance_category,
                )
                for s in r.segments
            ],
            total_distance=round(r.total_distance_km, 3),
            total_duration=r.total_duration_minutes,
            total_travel_minutes=r.total_travel_minutes,
            optimization_rate=round(r.statistics.optimization_rate, 4),
            efficiency_score=round(r.efficiency_score, 4),
        )


class TimeSlotModel(CamelModel):
    confirmed: List[str] = []   # schedule titles
    place_ids: List[str] = []


class DailyItineraryModel(CamelModel):
    date: Optional[date_type] = None
    day_number: int
    places: List[PlaceModel]
    time_slots: Dict[str, TimeSlotModel]

    @classmethod
    def from_daily(cls, d: DailyItinerary) -> "DailyItineraryModel":
        return cls(
            date=d.date,
            day_number=d.day_number,
            places=[PlaceModel.from_place(p) for p in d.places],
            time_slots={
                slot.block.name: TimeSlotModel(
                    confirmed=[s.title for s in slot.confirmed],
                    place_ids=[p.place_id for p in slot.places],
                )
                for slot in d.time_slots
            },
        )


class StatisticsModel(CamelModel):
    total_places: int
    user_selected_count: int
    ai_recommended_count: int
    confirmed_count: int
    user_selected_ratio: float
    average_rating: float
    total_review_count: int
    category_distribution: Dict[str, int]


class Stage3Response(CamelModel):
    daily_itineraries: List[DailyItineraryModel]
    optimized_routes: List[OptimizedRouteModel]
    total_distance: float
    total_duration: int
    statistics: StatisticsModel
    generated_at: datetime


def stage3_response(itinerary: Itinerary) -> Stage3Response:
    s = itinerary.statistics
    return Stage3Response(
        daily_itineraries=[DailyItineraryModel.from_daily(d) for d in itinerary.daily_itineraries],
        optimized_routes=[OptimizedRouteModel.from_route(r) for r in itinerary.optimized_routes],
        total_distance=round(itinerary.total_distance_km, 3),
        total_duration=itinerary.total_duration_minutes,
        statistics=StatisticsModel(
            total_places=s.total_places,
            user_selected_count=s.user_selected_count,
            ai_recommended_count=s.ai_recommended_count,
            confirmed_count=s.confirmed_count,
            user_selected_ratio=round(s.user_selected_ratio, 4),
            average_rating=round(s.average_rating, 2),
            total_review_count=s.total_review_count,
            category_distribution=dict(s.category_distribution),
        ),
        generated_at=itinerary.generated_at,
    )


def to_response(result: Union[Stage1Result, Stage2Result, Itinerary]) -> CamelModel:
    """Dispatch on the stage result type."""
    if isinstance(result, Stage1Result):
        return stage1_response(result)
    if isinstance(result, Stage2Result):
        return stage2_response(result)
    if isinstance(result, Itinerary):
        return stage3_response(result)
    raise TypeError(f"no response model for {type(result).__name__}")
