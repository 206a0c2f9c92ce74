"""Projection of geographic coordinates onto the drawing surface."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .render_constants import CANVAS_LONG_SIDE


if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import BoundingBox, GeoPoint, Point2D


__all__ = ["Projector", "canvas_size", "parse_aspect_ratio", "project_points"]


@dataclass(frozen=True)
class Projector:
    """Local flat-earth projection of a bounding box onto a canvas.

    Longitudes are scaled by the cosine of the center latitude. The poster
    width spans the corrected longitude range, and the same scale is used for
    both axes so nothing is stretched. The y axis points down.
    """

    bounds: BoundingBox
    width: float
    height: float

    @property
    def cos_lat(self) -> float:
        return math.cos(math.radians(self.bounds.center.lat))

    @property
    def scale(self) -> float:
        """Drawing units per corrected degree."""
        lon_range = (self.bounds.max_lon - self.bounds.min_lon) * self.cos_lat
        return self.width / lon_range

    def project_point(self, point: GeoPoint) -> Point2D:
        center = self.bounds.center
        cos_lat = self.cos_lat
        scale = self.scale
        x_rel = (point.lon - center.lon) * cos_lat * scale
        y_rel = (point.lat - center.lat) * scale
        return (self.width / 2 + x_rel, self.height / 2 - y_rel)

    def project(self, points: Iterable[GeoPoint]) -> list[Point2D]:
        """Project a sequence of points, preserving order."""
        return [self.project_point(point) for point in points]


def project_points(
    points: Iterable[GeoPoint],
    bounds: BoundingBox,
    width: float,
    height: float,
) -> list[Point2D]:
    """Project points for a one-off bounds and canvas size."""
    return Projector(bounds, width, height).project(points)


def parse_aspect_ratio(aspect_ratio: str) -> tuple[float, float]:
    """Parse a ``"W:H"`` ratio string.

    Raises:
        ValueError: If the string is malformed or not positive.
    """
    parts = aspect_ratio.split(":")
    if len(parts) != 2:
        raise ValueError(f"Aspect ratio must look like '3:4', got '{aspect_ratio}'.")
    try:
        first, second = (float(part) for part in parts)
    except ValueError as e:
        raise ValueError(f"Aspect ratio must be numeric, got '{aspect_ratio}'.") from e
    if first <= 0 or second <= 0:
        raise ValueError(f"Aspect ratio must be positive, got '{aspect_ratio}'.")
    return first, second


def canvas_size(aspect_ratio: str = "3:4", orientation: str = "portrait") -> tuple[float, float]:
    """Compute canvas dimensions for an aspect ratio and orientation.

    The long side is fixed; ``"3:4"`` portrait gives 600x800 and landscape
    gives 800x600. The ratio is read short side first whatever its order.

    Returns:
        A tuple of (width, height).
    """
    first, second = parse_aspect_ratio(aspect_ratio)
    short, long = min(first, second), max(first, second)
    if orientation == "portrait":
        return (short / long) * CANVAS_LONG_SIDE, CANVAS_LONG_SIDE
    if orientation == "landscape":
        return CANVAS_LONG_SIDE, (short / long) * CANVAS_LONG_SIDE
    raise ValueError(f"Orientation must be 'portrait' or 'landscape', got '{orientation}'.")
