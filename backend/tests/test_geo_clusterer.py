import pytest

from schemas.itinerary import ClusterAssignment
from modules.planning.geo_clusterer import (
    GeoClusterer,
    assign_clusters_to_days,
    centroid_of,
    kmeans_plus_plus_init,
    spread_init,
)


@pytest.fixture
def two_cities(make_place):
    seoul = [make_place(f"s{i}", 37.56 + i * 0.002, 126.98 + i * 0.001) for i in range(3)]
    busan = [make_place(f"b{i}", 35.15 + i * 0.002, 129.05 + i * 0.001) for i in range(3)]
    return seoul + busan


def _groups(assignment):
    return {frozenset(p.place_id for p in members) for members in assignment.clusters.values()}


def test_k_larger_than_points_gives_singletons(make_place):
    places = [make_place(c, 37.5 + i * 0.01, 127.0) for i, c in enumerate("abc")]
    result = GeoClusterer().cluster(places, 5)
    assert result.num_clusters == 3
    assert all(len(m) == 1 for m in result.clusters.values())
    assert result.iterations == 0


def test_cluster_count_is_bounded_and_points_preserved(seoul_places):
    result = GeoClusterer().cluster(seoul_places, 4)
    assert 1 <= result.num_clusters <= 4
    clustered = [p.place_id for members in result.clusters.values() for p in members]
    assert len(clustered) == len(set(clustered)) == 17
    assert [p.place_id for p in result.unclustered] == ["hdg"]
    assert sorted(result.clusters) == list(range(result.num_clusters))


def test_clustering_is_deterministic(seoul_places):
    a = GeoClusterer().cluster(seoul_places, 3)
    b = GeoClusterer().cluster(seoul_places, 3)
    assert _groups(a) == _groups(b)
    assert a.centroids == b.centroids


def test_separated_groups_are_split(two_cities):
    result = GeoClusterer(init="spread").cluster(two_cities, 2)
    assert _groups(result) == {frozenset({"s0", "s1", "s2"}), frozenset({"b0", "b1", "b2"})}
    assert result.converged


def test_kmeans_plus_plus_is_reproducible(two_cities):
    a = GeoClusterer(init="kmeans++", seed=7).cluster(two_cities, 2)
    b = GeoClusterer(init="kmeans++", seed=7).cluster(two_cities, 2)
    assert _groups(a) == _groups(b)
    assert _groups(a) == {frozenset({"s0", "s1", "s2"}), frozenset({"b0", "b1", "b2"})}


def test_initializers_pick_k_existing_points(two_cities):
    coords = {(p.latitude, p.longitude) for p in two_cities}
    for init in (spread_init, kmeans_plus_plus_init):
        centroids = init(two_cities, 3, 1)
        assert len(centroids) == 3
        assert set(centroids) <= coords


def test_nonpositive_k_means_one_cluster(two_cities):
    result = GeoClusterer().cluster(two_cities, 0)
    assert result.num_clusters == 1
    assert len(result.clusters[0]) == 6


def test_no_routable_points(make_place):
    result = GeoClusterer().cluster([make_place("x"), make_place("y")], 2)
    assert result.num_clusters == 0
    assert [p.place_id for p in result.unclustered] == ["x", "y"]
    assert GeoClusterer().cluster([], 3).num_clusters == 0


def test_unknown_initializer_is_rejected():
    with pytest.raises(ValueError, match="ERROR_UNKNOWN_KMEANS_INIT"):
        GeoClusterer(init="random")


def test_centroids_are_member_means(two_cities):
    result = GeoClusterer().cluster(two_cities, 2)
    assert sorted(len(m) for m in result.clusters.values()) == [3, 3]
    for cid, members in result.clusters.items():
        assert result.centroids[cid] == pytest.approx(centroid_of(members))


@pytest.fixture
def close_pair(make_place):
    # Two groups of three about 1 km apart; spread seeding starts on each group's southern point
    south = [make_place(f"s{i}", 37.500 + i * 0.002, 127.0) for i in range(3)]
    north = [make_place(f"n{i}", 37.512 + i * 0.002, 127.0) for i in range(3)]
    return south + north


def test_iteration_cap_reports_not_converged(close_pair):
    result = GeoClusterer(max_iterations=1).cluster(close_pair, 2)
    assert result.converged is False
    assert result.iterations == 1
    assigned = [p.place_id for members in result.clusters.values() for p in members]
    assert sorted(assigned) == sorted(p.place_id for p in close_pair)
    assert result.unclustered == []
    assert _groups(result) == {frozenset({"n0", "n1", "n2"}), frozenset({"s0", "s1", "s2"})}


def test_same_input_converges_without_cap(close_pair):
    result = GeoClusterer().cluster(close_pair, 2)
    assert result.converged is True
    assert result.iterations > 1


def test_assign_clusters_to_days_balances_load(make_place):
    a = [make_place(f"a{i}") for i in range(3)]
    b = [make_place(f"b{i}") for i in range(2)]
    c = [make_place("c0")]
    assignment = ClusterAssignment(clusters={0: c, 1: a, 2: b})
    days = assign_clusters_to_days(assignment, 2)
    assert [p.place_id for p in days[1]] == ["a0", "a1", "a2"]
    assert [p.place_id for p in days[2]] == ["b0", "b1", "c0"]


def test_assign_clusters_keeps_empty_days(make_place):
    assignment = ClusterAssignment(clusters={0: [make_place("only")]})
    days = assign_clusters_to_days(assignment, 3)
    assert list(days) == [1, 2, 3]
    assert days[2] == [] and days[3] == []


def test_centroid_of(make_place):
    assert centroid_of([make_place("a", 10.0, 20.0), make_place("b", 20.0, 40.0)]) == (15.0, 30.0)
    assert centroid_of([make_place("c")]) is None
