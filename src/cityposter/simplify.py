"""Polyline simplification (Douglas-Peucker)."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import GeoPoint


__all__ = ["DEFAULT_TOLERANCE", "SIMPLIFY_TOLERANCE", "simplify_geometry"]

DEFAULT_TOLERANCE = 0.00001
# Roughly 2 meters, in decimal degrees
SIMPLIFY_TOLERANCE = 0.00002


def _sq_segment_distance(point: GeoPoint, start: GeoPoint, end: GeoPoint) -> float:
    """Squared distance from ``point`` to the segment ``start``-``end``.

    Computed in raw lon/lat space: x is longitude, y is latitude.
    """
    x, y = start.lon, start.lat
    dx, dy = end.lon - x, end.lat - y

    if dx != 0 or dy != 0:
        t = ((point.lon - x) * dx + (point.lat - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = end.lon, end.lat
        elif t > 0:
            x += dx * t
            y += dy * t

    dx = point.lon - x
    dy = point.lat - y
    return dx * dx + dy * dy


def _simplify_step(
    points: Sequence[GeoPoint],
    first: int,
    last: int,
    sq_tolerance: float,
    kept: list[int],
) -> None:
    max_sq_dist = sq_tolerance
    index = -1

    for i in range(first + 1, last):
        sq_dist = _sq_segment_distance(points[i], points[first], points[last])
        if sq_dist > max_sq_dist:
            index = i
            max_sq_dist = sq_dist

    if index < 0:
        return

    if index - first > 1:
        _simplify_step(points, first, index, sq_tolerance, kept)
    kept.append(index)
    if last - index > 1:
        _simplify_step(points, index, last, sq_tolerance, kept)


def simplify_geometry(
    points: Sequence[GeoPoint],
    tolerance: float = DEFAULT_TOLERANCE,
) -> tuple[GeoPoint, ...]:
    """Reduce the vertex count of a polyline while bounding its deviation.

    Interior points are kept only when their distance to the segment between
    the surrounding retained points exceeds ``tolerance``. Distances are
    compared squared. The first and last points are always kept, and
    sequences of two points or fewer come back unchanged.

    Args:
        points: Ordered polyline vertices.
        tolerance: Maximum allowed deviation, in degrees.

    Returns:
        A new tuple holding a subsequence of ``points``.
    """
    if len(points) <= 2:
        return tuple(points)

    last = len(points) - 1
    kept = [0]
    _simplify_step(points, 0, last, tolerance * tolerance, kept)
    kept.append(last)
    return tuple(points[i] for i in kept)
