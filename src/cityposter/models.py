"""Core data types shared by the data pipeline."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Literal, TypeAlias


__all__ = [
    "METERS_PER_DEGREE",
    "BoundingBox",
    "CacheEntry",
    "ClassificationStats",
    "ClassifiedDataset",
    "DrawPrimitive",
    "GeoPoint",
    "PathPrimitive",
    "Point2D",
    "PolygonPrimitive",
    "RawElement",
]

# 1 degree of latitude is approximately 111,320 meters
METERS_PER_DEGREE = 111_320.0


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate."""

    lat: float
    lon: float


def _parse_node(node: Any) -> GeoPoint | None:
    if not isinstance(node, Mapping):
        return None
    try:
        lat, lon = float(node["lat"]), float(node["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return GeoPoint(lat, lon)


@dataclass(frozen=True)
class RawElement:
    """An OSM way or relation as returned by Overpass with ``out geom``."""

    id: int
    type: str
    tags: Mapping[str, str] = field(default_factory=dict)
    geometry: tuple[GeoPoint, ...] = ()

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> RawElement:
        """Build an element from one entry of an Overpass ``elements`` list.

        Geometry entries without usable coordinates (members outside the
        query area, nulls, non-numeric values) are skipped, as are tags that
        are not an object.
        """
        geometry = tuple(
            point for point in map(_parse_node, data.get("geometry") or ()) if point is not None
        )
        raw_tags = data.get("tags")
        if not isinstance(raw_tags, Mapping):
            raw_tags = {}
        tags = {str(key): str(value) for key, value in raw_tags.items()}
        return cls(
            id=int(data.get("id", 0)),
            type=str(data.get("type", "way")),
            tags=tags,
            geometry=geometry,
        )

    @property
    def highway(self) -> str | None:
        return self.tags.get("highway")

    def with_geometry(self, geometry: tuple[GeoPoint, ...]) -> RawElement:
        """Return a copy carrying a new geometry."""
        return replace(self, geometry=geometry)


@dataclass(frozen=True)
class BoundingBox:
    """Geographic frame of a poster, derived from the request."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def around(cls, lat: float, lon: float, radius_m: float) -> BoundingBox:
        """Compute the frame for a center point and radius in meters.

        The frame depends only on the request, never on the returned
        features, so framing stays stable whatever the server sends back.
        """
        lat_diff = radius_m / METERS_PER_DEGREE
        lon_diff = radius_m / (METERS_PER_DEGREE * math.cos(math.radians(lat)))
        return cls(
            min_lat=lat - lat_diff,
            max_lat=lat + lat_diff,
            min_lon=lon - lon_diff,
            max_lon=lon + lon_diff,
        )

    @property
    def center(self) -> GeoPoint:
        return GeoPoint(
            (self.min_lat + self.max_lat) / 2,
            (self.min_lon + self.max_lon) / 2,
        )

    @property
    def width_meters(self) -> float:
        """East-west extent in meters at the center latitude."""
        cos_lat = math.cos(math.radians(self.center.lat))
        return (self.max_lon - self.min_lon) * METERS_PER_DEGREE * cos_lat

    @property
    def height_meters(self) -> float:
        return (self.max_lat - self.min_lat) * METERS_PER_DEGREE


@dataclass(frozen=True)
class ClassificationStats:
    """Counts produced while sorting raw elements into layers."""

    total: int = 0
    roads: int = 0
    water: int = 0
    parks: int = 0
    discarded: int = 0
    dense: bool = False


@dataclass(frozen=True)
class ClassifiedDataset:
    """Roads, water and parks for one request, with the request frame."""

    roads: tuple[RawElement, ...]
    water: tuple[RawElement, ...]
    parks: tuple[RawElement, ...]
    bounds: BoundingBox
    stats: ClassificationStats = field(default_factory=ClassificationStats)

    @property
    def is_empty(self) -> bool:
        return not (self.roads or self.water or self.parks)


Point2D: TypeAlias = "tuple[float, float]"


def _format_point(point: tuple[float, float]) -> str:
    return f"{point[0]},{point[1]}"


@dataclass(frozen=True)
class PolygonPrimitive:
    """A filled closed shape in drawing-surface coordinates."""

    key: str
    coords: tuple[Point2D, ...]
    fill: str
    stroke: str = "none"
    kind: Literal["polygon"] = "polygon"

    @property
    def points(self) -> str:
        """SVG ``points`` attribute value."""
        return " ".join(_format_point(point) for point in self.coords)

    def to_svg_attributes(self) -> dict[str, str | float]:
        """Presentation attributes of the ``<polygon>`` element, geometry excluded."""
        return {"id": self.key, "fill": self.fill, "stroke": self.stroke}


@dataclass(frozen=True)
class PathPrimitive:
    """An open stroked line in drawing-surface coordinates."""

    key: str
    coords: tuple[Point2D, ...]
    stroke: str
    stroke_width: float
    fill: str = "none"
    cap: str = "round"
    join: str | None = None
    kind: Literal["path"] = "path"

    @property
    def d(self) -> str:
        """SVG path data: a moveto followed by linetos."""
        first, *rest = self.coords
        return " ".join([f"M {_format_point(first)}", *(f"L {_format_point(p)}" for p in rest)])

    def to_svg_attributes(self) -> dict[str, str | float]:
        attributes: dict[str, str | float] = {
            "id": self.key,
            "stroke": self.stroke,
            "stroke-width": self.stroke_width,
            "fill": self.fill,
            "stroke-linecap": self.cap,
        }
        if self.join:
            attributes["stroke-linejoin"] = self.join
        return attributes


DrawPrimitive: TypeAlias = "PolygonPrimitive | PathPrimitive"


@dataclass(frozen=True)
class CacheEntry:
    """A cached dataset and the monotonic time it was stored."""

    key: str
    data: ClassifiedDataset
    timestamp: float
