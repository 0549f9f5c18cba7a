"""
modules/planning/geo_clusterer.py
-----------------------------------
Stage 3a — k-means (Lloyd's algorithm) over place coordinates, Haversine metric.

  assign   : each point to its nearest centroid (ties → lowest cluster id)
  update   : centroid = arithmetic mean of member coordinates; an emptied
             cluster keeps its previous centroid
  stop     : no point changed cluster, or every centroid moved less than
             KMEANS_CONVERGENCE_KM, or KMEANS_MAX_ITERATIONS reached (the
             capped result is accepted as-is)

k is reduced to the number of points when larger. Only non-empty clusters are
returned, renumbered 0..m-1 in centroid order. Places without coordinates are
passed back untouched in ClusterAssignment.unclustered.

Initialisers (KMEANS_INIT):
  "spread"   -- points sorted by (lat, lon), k evenly spaced picks (deterministic)
  "kmeans++" -- D² sampling from random.Random(KMEANS_SEED)
"""

from __future__ import annotations
import logging
import random
from typing import Callable, Optional, Sequence

from schemas.itinerary import ClusterAssignment
from schemas.place import Place
from modules.tool_usage.distance_tool import haversine_km
import config

logger = logging.getLogger(__name__)

Centroid = tuple[float, float]
Initializer = Callable[[Sequence[Place], int, int], list[Centroid]]


# ── Initialisers ──────────────────────────────────────────────────────────────

def spread_init(points: Sequence[Place], k: int, seed: int = 0) -> list[Centroid]:
    """Evenly spaced picks over the (lat, lon)-sorted points."""
    ordered = sorted(points, key=lambda p: (p.latitude, p.longitude))
    step = len(ordered) / k
    return [(ordered[int(i * step)].latitude, ordered[int(i * step)].longitude) for i in range(k)]  # type: ignore[misc]


def kmeans_plus_plus_init(points: Sequence[Place], k: int, seed: int = config.KMEANS_SEED) -> list[Centroid]:
    """k-means++ seeding with a fixed-seed generator, so runs are reproducible."""
    rng = random.Random(seed)
    first = rng.choice(list(points))
    centroids: list[Centroid] = [(first.latitude, first.longitude)]  # type: ignore[list-item]
    while len(centroids) < k:
        weights = [
            min(haversine_km(p.latitude, p.longitude, c[0], c[1]) for c in centroids) ** 2  # type: ignore[arg-type]
            for p in points
        ]
        total = sum(weights)
        if total <= 0:
            pick = rng.choice(list(points))
        else:
            pick = rng.choices(list(points), weights=weights, k=1)[0]
        centroids.append((pick.latitude, pick.longitude))  # type: ignore[arg-type]
    return centroids


INITIALIZERS: dict[str, Initializer] = {
    "spread":   spread_init,
    "kmeans++": kmeans_plus_plus_init,
}


# ── Clusterer ─────────────────────────────────────────────────────────────────

class GeoClusterer:

    def __init__(
        self,
        max_iterations: int = config.KMEANS_MAX_ITERATIONS,
        tolerance_km: float = config.KMEANS_CONVERGENCE_KM,
        init: str = config.KMEANS_INIT,
        seed: int = config.KMEANS_SEED,
    ) -> None:
        if init not in INITIALIZERS:
            raise ValueError(f"ERROR_UNKNOWN_KMEANS_INIT: {init!r} (known: {sorted(INITIALIZERS)})")
        self.max_iterations = max(1, max_iterations)
        self.tolerance_km   = tolerance_km
        self.init           = init
        self.seed           = seed

    def cluster(self, places: Sequence[Place], k: int) -> ClusterAssignment:
        points = [p for p in places if p.has_coordinates]
        unclustered = [p for p in places if not p.has_coordinates]
        n = len(points)
        if n == 0:
            return ClusterAssignment(unclustered=unclustered)
        k = max(1, k)

        if k >= n:
            # Each point its own cluster
            return ClusterAssignment(
                clusters={i: [p] for i, p in enumerate(points)},
                centroids={i: (p.latitude, p.longitude) for i, p in enumerate(points)},  # type: ignore[misc]
                iterations=0,
                converged=True,
                unclustered=unclustered,
            )

        centroids = INITIALIZERS[self.init](points, k, self.seed)
        labels: list[int] = [-1] * n
        iterations = 0
        converged = False

        for iterations in range(1, self.max_iterations + 1):
            new_labels = [_nearest(p, centroids) for p in points]

            new_centroids: list[Centroid] = []
            for c in range(k):
                centre = centroid_of([points[i] for i in range(n) if new_labels[i] == c])
                new_centroids.append(centre if centre is not None else centroids[c])

            shift = max(
                haversine_km(a[0], a[1], b[0], b[1]) for a, b in zip(centroids, new_centroids)
            )
            unchanged = new_labels == labels
            labels, centroids = new_labels, new_centroids
            if unchanged or shift < self.tolerance_km:
                converged = True
                break

        if not converged:
            logger.debug("k-means hit the %d-iteration cap (k=%d, n=%d)", self.max_iterations, k, n)

        # Keep non-empty clusters only, renumbered in centroid order
        clusters: dict[int, list[Place]] = {}
        out_centroids: dict[int, Centroid] = {}
        for c in range(k):
            members = [points[i] for i in range(n) if labels[i] == c]
            if members:
                cid = len(clusters)
                clusters[cid] = members
                out_centroids[cid] = centroids[c]

        return ClusterAssignment(
            clusters=clusters,
            centroids=out_centroids,
            iterations=iterations,
            converged=converged,
            unclustered=unclustered,
        )


def _nearest(place: Place, centroids: Sequence[Centroid]) -> int:
    dists = [haversine_km(place.latitude, place.longitude, lat, lon) for lat, lon in centroids]  # type: ignore[arg-type]
    return dists.index(min(dists))


# ── Cluster → day balancing ───────────────────────────────────────────────────

def assign_clusters_to_days(assignment: ClusterAssignment, num_days: int) -> dict[int, list[Place]]:
    """
    Largest cluster first onto the least-loaded day (ties → lowest day number).
    Every day 1..num_days is present in the result, possibly empty.
    """
    days: dict[int, list[Place]] = {d: [] for d in range(1, max(1, num_days) + 1)}
    ordered = sorted(assignment.clusters.items(), key=lambda kv: (-len(kv[1]), kv[0]))
    for _, members in ordered:
        target = min(days, key=lambda d: (len(days[d]), d))
        days[target].extend(members)
    return days


def centroid_of(places: Sequence[Place]) -> Optional[Centroid]:
    pts = [p for p in places if p.has_coordinates]
    if not pts:
        return None
    return (
        sum(p.latitude for p in pts) / len(pts),   # type: ignore[misc]
        sum(p.longitude for p in pts) / len(pts),  # type: ignore[misc]
    )
