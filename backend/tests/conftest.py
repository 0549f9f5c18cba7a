"""
Shared fixtures: a small Seoul-area candidate pool (plus one Busan place and one
place without coordinates), an in-memory pool over it, and a default two-day
request context.
"""

from __future__ import annotations

from datetime import date

import pytest

from schemas.context import SynthesisContext
from schemas.place import Place
from modules.tool_usage.candidate_pool import InMemoryCandidatePool


def _p(place_id, name, category, lat, lon, rating=None, reviews=None, region="Seoul"):
    return Place(
        place_id=place_id,
        name=name,
        category=category,
        latitude=lat,
        longitude=lon,
        rating=rating,
        review_count=reviews,
        region=region,
    )


SEOUL_PLACES = [
    _p("gbg", "Gyeongbokgung Palace",         "tourist attraction", 37.5796, 126.9770, 4.6, 52000),
    _p("nst", "N Seoul Tower",                "tourist attraction", 37.5512, 126.9882, 4.5, 48000),
    _p("bhv", "Bukchon Hanok Village",        "tourist attraction", 37.5826, 126.9830, 4.4, 30000),
    _p("nmk", "National Museum of Korea",     "museum",             37.5240, 126.9803, 4.7, 21000),
    _p("tst", "Tosokchon Samgyetang",         "restaurant",         37.5779, 126.9714, 4.3, 15000),
    _p("mdk", "Myeongdong Kyoja",             "restaurant",         37.5625, 126.9856, 4.4, 12000),
    _p("jsk", "Jungsik",                      "restaurant",         37.5254, 127.0404, 4.6, 3000),
    _p("unb", "Unrated Noodle Bar",           "restaurant",         37.5650, 126.9780),
    _p("con", "Cafe Onion Anguk",             "cafe",               37.5776, 126.9863, 4.5, 9000),
    _p("bbs", "Blue Bottle Samcheong",        "cafe",               37.5830, 126.9808, 4.2, 2000),
    _p("gjm", "Gwangjang Market",             "market",             37.5700, 126.9996, 4.4, 25000),
    _p("mds", "Myeongdong Shopping Street",   "shopping",           37.5636, 126.9850, 4.3, 40000),
    _p("ltw", "Lotte World",                  "theme park",         37.5111, 127.0982, 4.4, 60000),
    _p("nsp", "Namsan Park",                  "park",               37.5509, 126.9900, 4.5, 8000),
    _p("hrv", "Banpo Bridge Night View",      "night view",         37.5100, 126.9960, 4.6, 11000),
    _p("kcc", "Korean Cooking Class",         "activity",           37.5720, 126.9880, 4.8, 900),
    _p("hdg", "Hidden Gallery",               "gallery",            None,    None,     4.0, 50),
    _p("hdb", "Haeundae Beach",               "beach",              35.1587, 129.1604, 4.5, 33000, region="Busan"),
]


@pytest.fixture
def seoul_places() -> list[Place]:
    return list(SEOUL_PLACES)


@pytest.fixture
def places_by_id(seoul_places) -> dict[str, Place]:
    return {p.place_id: p for p in seoul_places}


@pytest.fixture
def pool(seoul_places) -> InMemoryCandidatePool:
    return InMemoryCandidatePool(seoul_places)


@pytest.fixture
def context() -> SynthesisContext:
    return SynthesisContext(
        thread_id="thread-test",
        destinations=["Seoul"],
        trip_days=2,
        start_date=date(2026, 3, 10),
    )


@pytest.fixture
def make_place():
    """Factory for ad-hoc places: make_place("a", 37.5, 127.0, category="cafe")."""
    def _make(place_id, lat=None, lon=None, **kwargs):
        kwargs.setdefault("name", place_id.upper())
        return Place(place_id=place_id, latitude=lat, longitude=lon, **kwargs)
    return _make
