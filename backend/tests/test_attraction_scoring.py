import pytest

from modules.planning.attraction_scoring import (
    AttractionScorer,
    base_score,
    comprehensive_score,
    distance_score,
    diversity_score,
    rating_score,
    review_score,
)


def test_review_score_is_log_scaled_and_capped():
    assert review_score(99) == pytest.approx(0.5)
    assert review_score(9999) == pytest.approx(1.0)
    assert review_score(10_000_000) == 1.0
    assert review_score(0) == 0.0
    assert review_score(None) == 0.0


def test_rating_score():
    assert rating_score(4.0) == pytest.approx(0.8)
    assert rating_score(5.0) == 1.0
    assert rating_score(None) == 0.0


def test_base_score(make_place):
    assert base_score(make_place("a", rating=5.0, review_count=9999)) == pytest.approx(1.0)
    assert base_score(make_place("b", rating=4.0, review_count=99)) == pytest.approx(0.65)


def test_missing_quality_data_contributes_zero(make_place):
    assert base_score(make_place("bare")) == 0.0
    assert base_score(make_place("rated", rating=5.0)) == pytest.approx(0.5)
    assert base_score(None) == 0.0


@pytest.mark.parametrize("km,expected", [
    (-1.0, 1.0),
    (0.0, 1.0),
    (3.0, 1.0),
    (5.0, 1.0),
    (7.5, 0.5),
    (10.0, 0.0),
    (25.0, 0.0),
])
def test_distance_score(km, expected):
    assert distance_score(km) == pytest.approx(expected)


@pytest.mark.parametrize("category,expected", [
    ("restaurant", 0.9),
    ("tourist attraction", 0.8),
    ("cafe", 0.7),
    ("activity", 0.6),
    ("shopping", 0.5),
    ("museum", 0.4),
    ("spaceport", 0.4),
    ("", 0.0),
    (None, 0.0),
])
def test_diversity_table(category, expected):
    assert diversity_score(category) == pytest.approx(expected)


def test_comprehensive_score_weights(make_place):
    ref = make_place("ref", 37.5, 127.0)
    best = make_place("best", 37.5, 127.0, category="restaurant", rating=5.0, review_count=9999)
    assert comprehensive_score(best, [ref]) == pytest.approx(0.4 + 0.4 + 0.2 * 0.9)


def test_comprehensive_score_without_references_drops_distance_term(make_place):
    best = make_place("best", 37.5, 127.0, category="restaurant", rating=5.0, review_count=9999)
    assert comprehensive_score(best, []) == pytest.approx(0.4 + 0.2 * 0.9)


def test_scores_are_bounded(seoul_places, places_by_id):
    refs = [places_by_id["gbg"], places_by_id["nst"]]
    for place in seoul_places:
        for value in (
            base_score(place),
            diversity_score(place.category),
            comprehensive_score(place, refs),
            comprehensive_score(place, []),
        ):
            assert 0.0 <= value <= 1.0


def test_comprehensive_score_is_idempotent(seoul_places, places_by_id):
    refs = [places_by_id["gbg"]]
    first = [comprehensive_score(p, refs) for p in seoul_places]
    second = [comprehensive_score(p, refs) for p in seoul_places]
    assert first == second


def test_closer_place_scores_higher(make_place):
    ref = make_place("ref", 37.5665, 126.9780)
    near = make_place("near", 37.5700, 126.9800, category="cafe", rating=4.0, review_count=100)
    far = make_place("far", 37.6665, 127.1280, category="cafe", rating=4.0, review_count=100)
    ranked = AttractionScorer([ref]).top([far, near], 2)
    assert [p.place_id for p in ranked] == ["near", "far"]


def test_scorer_breakdown_matches_functions(places_by_id):
    refs = [places_by_id["gbg"]]
    scorer = AttractionScorer(refs)
    s = scorer.score(places_by_id["tst"])
    assert s.total == pytest.approx(comprehensive_score(places_by_id["tst"], refs))
    assert s.base == pytest.approx(base_score(places_by_id["tst"]))
    assert s.distance == 1.0   # a few hundred metres from Gyeongbokgung


def test_scorer_top_respects_limit(seoul_places):
    scorer = AttractionScorer()
    assert len(scorer.top(seoul_places, 5)) == 5
    assert scorer.top(seoul_places, 0) == []
