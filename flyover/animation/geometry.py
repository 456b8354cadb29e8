"""Distance and interpolation along a polyline of (lat, lng) coordinates.

All functions are pure. Distances are great-circle metres by default; the
position inside a segment is interpolated linearly on latitude and longitude,
which is close enough at the segment lengths found in real route data.
"""

from bisect import bisect_right
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from itertools import pairwise
import math

Coordinate = tuple[float, float]
Path = Sequence[Coordinate]
DistanceFn = Callable[[Coordinate, Coordinate], float]

EARTH_RADIUS_M = 6_371_000.0


@dataclass(frozen=True)
class PositionSample:
    """Where the marker is and how far it has travelled to get there."""

    coordinate: Coordinate
    cumulative_distance: float


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres between two (lat, lng) coordinates."""
    lat1, lng1 = math.radians(a[0]), math.radians(a[1])
    lat2, lng2 = math.radians(b[0]), math.radians(b[1])
    h = math.sin((lat2 - lat1) / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin((lng2 - lng1) / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def cumulative_distances(path: Path, distance_fn: DistanceFn = haversine_distance) -> list[float]:
    """Running distance at each vertex, starting at 0 for the first one.

    Returns an empty list for an empty path.
    """
    if not path:
        return []
    cumulative = [0.0]
    for start, end in pairwise(path):
        cumulative.append(cumulative[-1] + distance_fn(start, end))
    return cumulative


def total_distance(path: Path, distance_fn: DistanceFn = haversine_distance) -> float:
    if len(path) < 2:
        return 0.0
    return cumulative_distances(path, distance_fn)[-1]


def _interpolate(start: Coordinate, end: Coordinate, ratio: float) -> Coordinate:
    return (
        start[0] + (end[0] - start[0]) * ratio,
        start[1] + (end[1] - start[1]) * ratio,
    )


def _locate(path: Path, cumulative: list[float], distance: float) -> tuple[int, Coordinate]:
    """Segment index containing ``distance`` and the interpolated point on it.

    Callers guarantee ``0 < distance < cumulative[-1]``.
    """
    index = bisect_right(cumulative, distance) - 1
    start, end = path[index], path[index + 1]
    segment_length = cumulative[index + 1] - cumulative[index]
    if segment_length <= 0:
        return index, start
    ratio = (distance - cumulative[index]) / segment_length
    return index, _interpolate(start, end, ratio)


def point_at_distance(
    path: Path,
    distance: float,
    distance_fn: DistanceFn = haversine_distance,
    cumulative: list[float] | None = None,
) -> Coordinate | None:
    """Coordinate reached after travelling ``distance`` metres along ``path``.

    Args:
        path: Ordered (lat, lng) coordinates
        distance: Distance travelled from the first coordinate
        distance_fn: Distance between two coordinates
        cumulative: Precomputed ``cumulative_distances(path)``, if the caller caches it

    Returns:
        The first coordinate for ``distance <= 0``, the last one once the whole
        path is covered, ``None`` for an empty path.
    """
    if not path:
        return None
    if distance <= 0 or len(path) == 1:
        return path[0]
    if cumulative is None:
        cumulative = cumulative_distances(path, distance_fn)
    if distance >= cumulative[-1]:
        return path[-1]
    return _locate(path, cumulative, distance)[1]


def prefix_at_distance(
    path: Path,
    distance: float,
    distance_fn: DistanceFn = haversine_distance,
    cumulative: list[float] | None = None,
) -> list[Coordinate]:
    """Trail covered after ``distance`` metres: whole vertices passed, then the current point."""
    if not path:
        return []
    if distance <= 0 or len(path) == 1:
        return [path[0]]
    if cumulative is None:
        cumulative = cumulative_distances(path, distance_fn)
    if distance >= cumulative[-1]:
        return list(path)
    index, point = _locate(path, cumulative, distance)
    return [*path[: index + 1], point]


def sample_at_distance(
    path: Path,
    distance: float,
    distance_fn: DistanceFn = haversine_distance,
    cumulative: list[float] | None = None,
) -> PositionSample | None:
    if not path:
        return None
    if cumulative is None:
        cumulative = cumulative_distances(path, distance_fn)
    clamped = min(max(distance, 0.0), cumulative[-1])
    point = point_at_distance(path, clamped, distance_fn, cumulative)
    return PositionSample(coordinate=point, cumulative_distance=clamped)  # pyright: ignore[reportArgumentType]


def path_bounds(path: Path) -> tuple[float, float, float, float] | None:
    """Bounding box as (min_lat, min_lng, max_lat, max_lng)."""
    if not path:
        return None
    lats = [lat for lat, _ in path]
    lngs = [lng for _, lng in path]
    return min(lats), min(lngs), max(lats), max(lngs)
