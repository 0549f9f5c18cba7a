from datetime import date, datetime

import pytest

from schemas.context import SynthesisContext
from schemas.itinerary import DailyItinerary, DaySchedule, OptimizedRoute, Stage2Result, TimeSlot
from schemas.place import ConfirmedSchedule, DocumentType, PlaceSource, TimeBlock
from modules.planning.candidate_selector import CandidateSelector
from modules.planning.itinerary_assembler import ItineraryAssembler, compute_statistics
from modules.planning.route_planner import RoutePlanner
from modules.planning.time_block_distributor import TimeBlockDistributor
from modules.tool_usage.distance_tool import total_route_distance


@pytest.fixture
def schedules():
    museum = ConfirmedSchedule.event(
        "Palace morning tour", datetime(2026, 3, 10, 9, 0), venue="Changdeokgung",
        latitude=37.5794, longitude=126.9910, schedule_id="tour",
    )
    dinner = ConfirmedSchedule(
        title="Dinner at Mingles", start_time=datetime(2026, 3, 10, 19, 0),
        document_type=DocumentType.RESTAURANT_RESERVATION,
        latitude=37.5245, longitude=127.0430, schedule_id="dinner",
    )
    return [museum, dinner]


@pytest.fixture
def stage2(context, pool, places_by_id, schedules):
    stage1 = CandidateSelector(pool).select(context)
    picks = [places_by_id["gbg"], places_by_id["tst"], places_by_id["con"]]
    return TimeBlockDistributor().distribute(context, picks, schedules, stage1)


@pytest.fixture
def planned(stage2, context):
    return RoutePlanner().plan_from_time_blocks(stage2, context)


def _all_places(planned_days):
    return [p for d in planned_days for p in list(d.route.places) + list(d.unrouted)]


# ── Planner ───────────────────────────────────────────────────────────────────

def test_one_planned_day_per_trip_day(planned):
    assert [d.day_number for d in planned] == [1, 2]
    assert [d.date for d in planned] == [date(2026, 3, 10), date(2026, 3, 11)]


def test_user_selections_are_always_routed(planned):
    ids = {p.place_id for p in _all_places(planned)}
    assert {"gbg", "tst", "con"} <= ids


def test_places_are_visited_once(planned):
    ids = [p.place_id for p in _all_places(planned)]
    assert len(ids) == len(set(ids))


def test_ai_picks_respect_block_capacity(planned):
    for day in planned:
        for slot in day.time_slots:
            assert len(slot.places) + len(slot.confirmed) <= 2


def test_anchors_are_routed_in_time_order(planned):
    ids = [p.place_id for p in planned[0].route.places]
    assert "confirmed:tour" in ids and "confirmed:dinner" in ids
    assert ids.index("confirmed:tour") < ids.index("confirmed:dinner")
    anchors = [p for p in planned[0].route.places if p.source is PlaceSource.CONFIRMED]
    assert [a.fixed_time.hour for a in anchors] == [9, 19]


def test_time_slots_carry_confirmed_schedules(planned):
    day1 = {slot.block: slot for slot in planned[0].time_slots}
    assert [s.title for s in day1[TimeBlock.MORNING_ACTIVITY].confirmed] == ["Palace morning tour"]
    assert [s.title for s in day1[TimeBlock.DINNER].confirmed] == ["Dinner at Mingles"]


def test_route_day_without_anchors_never_regresses(seoul_places):
    places = [p for p in seoul_places if p.has_coordinates and p.region == "Seoul"]
    route = RoutePlanner().route_day([], places, day_number=1)
    assert route.total_distance_km <= total_route_distance(places) + 1e-9
    assert sorted(p.place_id for p in route.places) == sorted(p.place_id for p in places)


def test_route_day_keeps_anchor_order(places_by_id, schedules):
    anchors = [s.to_place() for s in schedules]
    flexible = [places_by_id[k] for k in ("gbg", "bhv", "nmk", "jsk", "mds", "gjm")]
    route = RoutePlanner().route_day(anchors, flexible, day_number=1)
    ids = [p.place_id for p in route.places]
    assert len(ids) == 8 and len(set(ids)) == 8
    assert ids.index("confirmed:tour") < ids.index("confirmed:dinner")


def test_order_by_clusters_keeps_every_place(seoul_places):
    places = [p for p in seoul_places if p.region == "Seoul"]
    ordered = RoutePlanner(places_per_cluster=4).order_by_clusters(places)
    assert sorted(p.place_id for p in ordered) == sorted(p.place_id for p in places)


def test_plan_from_places_covers_every_place_once(seoul_places):
    ctx = SynthesisContext(thread_id="t", destinations=["Seoul"], trip_days=2, start_date=date(2026, 5, 1))
    planned_days = RoutePlanner().plan_from_places(seoul_places + seoul_places[:3], ctx)
    ids = [p.place_id for p in _all_places(planned_days)]
    assert sorted(ids) == sorted(p.place_id for p in seoul_places)
    assert [d.date for d in planned_days] == [date(2026, 5, 1), date(2026, 5, 2)]
    assert any(p.place_id == "hdg" for d in planned_days for p in d.unrouted)


# ── AI selection ──────────────────────────────────────────────────────────────

def _detour_day(make_place):
    """A lunch selection with two morning AI options: a 5-star place 20 km away and a 4-star one next door."""
    lunch = make_place("x", 37.5665, 126.9780, category="restaurant", rating=4.0,
                       source=PlaceSource.USER_SELECTED)
    far   = make_place("far", 37.7465, 126.9780, category="museum", rating=5.0,
                       source=PlaceSource.AI_RECOMMENDED)
    near  = make_place("near", 37.5710, 126.9780, category="museum", rating=4.0,
                       source=PlaceSource.AI_RECOMMENDED)
    day = DaySchedule(day_number=1, date=date(2026, 3, 10))
    day.block(TimeBlock.LUNCH).user_selected.append(lunch)
    day.block(TimeBlock.MORNING_ACTIVITY).ai_candidates.extend([far, near])
    stage2 = Stage2Result(thread_id="t", trip_days=1, trip_start_date=date(2026, 3, 10), days={1: day})
    ctx = SynthesisContext(thread_id="t", destinations=["Seoul"], trip_days=1, start_date=date(2026, 3, 10))
    return stage2, ctx


def _morning_ids(planned_days):
    slots = {slot.block: slot for slot in planned_days[0].time_slots}
    return [p.place_id for p in slots[TimeBlock.MORNING_ACTIVITY].places]


def test_rank_selection_takes_top_ranked(make_place):
    stage2, ctx = _detour_day(make_place)
    assert _morning_ids(RoutePlanner(capacity=1).plan_from_time_blocks(stage2, ctx)) == ["far"]


def test_beam_selection_avoids_detour(make_place):
    stage2, ctx = _detour_day(make_place)
    planner = RoutePlanner(capacity=1, ai_selection="beam")
    planned_days = planner.plan_from_time_blocks(stage2, ctx)
    assert _morning_ids(planned_days) == ["near"]
    assert {p.place_id for p in planned_days[0].route.places} == {"near", "x"}


def test_beam_selection_skips_full_blocks(make_place):
    stage2, ctx = _detour_day(make_place)
    stage2.day(1).block(TimeBlock.MORNING_ACTIVITY).user_selected.append(
        make_place("own", 37.5700, 126.9800, rating=3.0, source=PlaceSource.USER_SELECTED))
    planned_days = RoutePlanner(capacity=1, ai_selection="beam").plan_from_time_blocks(stage2, ctx)
    assert _morning_ids(planned_days) == ["own"]


def test_unknown_ai_selection_mode_is_rejected():
    with pytest.raises(ValueError, match="ERROR_UNKNOWN_AI_SELECTION"):
        RoutePlanner(ai_selection="greedy")


# ── Assembler ─────────────────────────────────────────────────────────────────

def test_assemble_planned_totals(planned):
    itinerary = ItineraryAssembler().assemble_planned(planned)
    assert len(itinerary.daily_itineraries) == 2
    assert len(itinerary.optimized_routes) == 2
    assert itinerary.total_distance_km == pytest.approx(sum(d.route.total_distance_km for d in planned))
    assert itinerary.total_duration_minutes == sum(d.route.total_duration_minutes for d in planned)


def test_assembled_statistics(planned):
    stats = ItineraryAssembler().assemble_planned(planned).statistics
    assert stats.user_selected_count == 3
    assert stats.confirmed_count == 2
    assert stats.total_places == len(_all_places(planned))
    assert stats.user_selected_ratio == pytest.approx(3 / (3 + stats.ai_recommended_count))
    assert sum(stats.category_distribution.values()) <= stats.total_places


def test_statistics_are_null_safe(make_place):
    rated = make_place("r", 37.5, 127.0, category="cafe", rating=4.0, review_count=10,
                       source=PlaceSource.USER_SELECTED)
    bare = make_place("b", source=PlaceSource.AI_RECOMMENDED)
    day = DailyItinerary(day_number=1, places=[rated, bare], time_slots=[TimeSlot(TimeBlock.LUNCH)])
    stats = compute_statistics([day])
    assert stats.total_places == 2
    assert stats.average_rating == pytest.approx(2.0)
    assert stats.total_review_count == 10
    assert stats.category_distribution == {"cafe": 1}
    assert stats.user_selected_ratio == pytest.approx(0.5)


def test_empty_itinerary():
    itinerary = ItineraryAssembler().assemble([])
    assert itinerary.total_distance_km == 0.0
    assert itinerary.statistics.total_places == 0
    assert itinerary.statistics.average_rating == 0.0
    assert itinerary.statistics.user_selected_ratio == 0.0


def test_days_are_sorted_by_number():
    days = [
        DailyItinerary(day_number=2, route=OptimizedRoute(day_number=2)),
        DailyItinerary(day_number=1, route=OptimizedRoute(day_number=1)),
    ]
    itinerary = ItineraryAssembler().assemble(days)
    assert [d.day_number for d in itinerary.daily_itineraries] == [1, 2]
