import logging
from datetime import datetime, timedelta

import pytest

from schemas.context import SynthesisContext
from schemas.place import ConfirmedSchedule, DocumentType, Place, PlaceSource
from modules.validation import (
    InputValidationError,
    coordinate_errors,
    filter_valid,
    require_valid,
    validate_confirmed_schedule,
    validate_context,
    validate_place,
)


def _place_record(**overrides):
    record = {"place_id": "p1", "name": "Somewhere", "latitude": 37.5, "longitude": 127.0,
              "rating": 4.2, "review_count": 120}
    record.update(overrides)
    return record


# ── Places ────────────────────────────────────────────────────────────────────

def test_valid_place_record():
    result = validate_place(_place_record())
    assert result.valid and bool(result)
    assert result.errors == [] and result.code == ""


def test_thin_place_record_is_accepted():
    assert validate_place({"place_id": "p", "name": "Bare"}).valid


@pytest.mark.parametrize("overrides,code", [
    ({"place_id": "  "}, "ERROR_MISSING_PLACE_ID"),
    ({"place_id": None}, "ERROR_MISSING_PLACE_ID"),
    ({"name": ""}, "ERROR_MISSING_PLACE_NAME"),
    ({"latitude": 91.0}, "ERROR_INVALID_COORDINATES"),
    ({"longitude": -181.0}, "ERROR_INVALID_COORDINATES"),
    ({"longitude": None}, "ERROR_INVALID_COORDINATES"),
    ({"rating": 5.5}, "ERROR_INVALID_RATING"),
    ({"rating": "great"}, "ERROR_INVALID_RATING"),
    ({"review_count": -3}, "ERROR_INVALID_REVIEW_COUNT"),
])
def test_invalid_place_records(overrides, code):
    result = validate_place(_place_record(**overrides))
    assert not result.valid
    assert result.code == code


def test_first_failure_sets_code():
    result = validate_place(_place_record(place_id="", rating=9))
    assert result.code == "ERROR_MISSING_PLACE_ID"
    assert len(result.errors) == 2


def test_coordinate_errors():
    assert coordinate_errors(None, None) == []
    assert coordinate_errors(0, 0) == []
    assert len(coordinate_errors(100, 200)) == 2
    assert coordinate_errors("north", 1.0)


def test_place_construction_enforces_contract():
    with pytest.raises(InputValidationError) as exc:
        Place(place_id="", name="Nameless")
    assert exc.value.code == "ERROR_MISSING_PLACE_ID"
    with pytest.raises(InputValidationError) as exc:
        Place(place_id="p", name="Pole", latitude=95.0, longitude=0.0)
    assert exc.value.code == "ERROR_INVALID_COORDINATES"
    assert str(exc.value).startswith("ERROR_INVALID_COORDINATES: ")


def test_place_from_camel_case_record():
    place = Place.from_dict({"placeId": "x", "name": "X", "lat": 37.5, "lng": 127.0,
                             "reviewCount": "5", "source": "user_selected"})
    assert place.place_id == "x"
    assert (place.latitude, place.longitude) == (37.5, 127.0)
    assert place.review_count == 5
    assert place.source is PlaceSource.USER_SELECTED


def test_with_source_copies_only_when_needed(places_by_id):
    gbg = places_by_id["gbg"]
    assert gbg.with_source(PlaceSource.CANDIDATE) is gbg
    tagged = gbg.with_source(PlaceSource.AI_RECOMMENDED)
    assert tagged is not gbg and tagged.place_id == gbg.place_id
    assert gbg.source is PlaceSource.CANDIDATE


# ── Confirmed schedules ───────────────────────────────────────────────────────

def test_schedule_defaults():
    start = datetime(2026, 3, 10, 14, 0)
    plain = ConfirmedSchedule(title="Meeting", start_time=start)
    assert plain.end_time == start + timedelta(hours=1)
    assert plain.fixed and plain.priority == 3 and plain.category == "other"
    event = ConfirmedSchedule.event("Musical", start, venue="Charlotte Theater")
    assert event.end_time == start + timedelta(hours=3)
    assert event.document_type is DocumentType.EVENT_TICKET


def test_schedule_end_before_start_is_rejected():
    start = datetime(2026, 3, 10, 14, 0)
    with pytest.raises(InputValidationError) as exc:
        ConfirmedSchedule(title="Backwards", start_time=start, end_time=start - timedelta(minutes=1))
    assert exc.value.code == "ERROR_INVALID_SCHEDULE"


def test_validate_confirmed_schedule_record():
    start = datetime(2026, 3, 10, 14, 0)
    assert validate_confirmed_schedule({"title": "T", "start_time": start}).valid
    bad = validate_confirmed_schedule({"title": "T", "start_time": start, "end_time": start - timedelta(hours=1)})
    assert bad.code == "ERROR_INVALID_SCHEDULE"
    assert validate_confirmed_schedule({"title": "T", "start_time": "tomorrow"}).code == "ERROR_INVALID_SCHEDULE"


def test_time_conflicts():
    a = ConfirmedSchedule(title="A", start_time=datetime(2026, 3, 10, 10), end_time=datetime(2026, 3, 10, 12))
    b = ConfirmedSchedule(title="B", start_time=datetime(2026, 3, 10, 11), end_time=datetime(2026, 3, 10, 13))
    c = ConfirmedSchedule(title="C", start_time=datetime(2026, 3, 10, 12), end_time=datetime(2026, 3, 10, 13))
    assert a.has_time_conflict(b) and b.has_time_conflict(a)
    assert not a.has_time_conflict(c)


def test_schedule_to_place():
    hotel = ConfirmedSchedule.hotel("Lotte Hotel", datetime(2026, 3, 10, 15), schedule_id="h1",
                                    latitude=37.5651, longitude=126.9810)
    anchor = hotel.to_place()
    assert anchor.place_id == "confirmed:h1"
    assert anchor.source is PlaceSource.CONFIRMED
    assert anchor.fixed_time == hotel.start_time
    assert anchor.category == "accommodation"
    assert ConfirmedSchedule.flight("OZ1", datetime(2026, 3, 10, 7)).to_place() is None


# ── Context ───────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("record,code", [
    ({"thread_id": "", "destinations": ["Seoul"], "trip_days": 1}, "ERROR_MISSING_THREAD_ID"),
    ({"thread_id": "t", "destinations": ["", " "], "trip_days": 1}, "ERROR_MISSING_DESTINATION"),
    ({"thread_id": "t", "destinations": ["Seoul"], "trip_days": 0}, "ERROR_INVALID_TRIP_DAYS"),
    ({"thread_id": "t", "destinations": ["Seoul"], "trip_days": "many"}, "ERROR_INVALID_TRIP_DAYS"),
])
def test_invalid_context(record, code):
    assert validate_context(record).code == code


def test_context_validate_raises():
    with pytest.raises(InputValidationError) as exc:
        SynthesisContext(thread_id="t", destinations=["Seoul"], trip_days=0).validate()
    assert exc.value.code == "ERROR_INVALID_TRIP_DAYS"


def test_context_regions_are_deduplicated():
    ctx = SynthesisContext(thread_id="t", destinations=["Seoul", " Busan ", "Seoul", ""])
    assert ctx.regions == ["Seoul", "Busan"]
    assert ctx.validate() is ctx


def test_require_valid():
    require_valid(validate_place(_place_record()))
    with pytest.raises(InputValidationError) as exc:
        require_valid(validate_place(_place_record(name="")), "ERROR_BAD_SELECTION")
    assert exc.value.code == "ERROR_BAD_SELECTION"
    assert exc.value.errors == ["name must not be empty or NULL"]


# ── Batch filtering ───────────────────────────────────────────────────────────

def test_filter_valid_logs_rejects(caplog):
    records = [_place_record(), _place_record(place_id="p2", name="Bad", rating=11)]
    with caplog.at_level(logging.WARNING, logger="modules.validation.ingestion_validator"):
        kept = filter_valid(records, validate_place)
    assert kept == [records[0]]
    assert "Rejected 'Bad'" in caplog.text
    assert "1/2 records rejected" in caplog.text


def test_filter_valid_quiet_mode(caplog, places_by_id):
    with caplog.at_level(logging.WARNING):
        kept = filter_valid([places_by_id["gbg"]], validate_place, log=False)
    assert kept == [places_by_id["gbg"]]
    assert caplog.records == []
