"""Sorting raw OSM elements into road, water and park layers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import ClassificationStats
from .simplify import SIMPLIFY_TOLERANCE, simplify_geometry


if TYPE_CHECKING:
    from collections.abc import Sequence

    from .models import RawElement


__all__ = [
    "DENSE_THRESHOLD",
    "MIN_PARK_NODES",
    "PARK_LANDUSE",
    "classify_element",
    "classify_elements",
]

logger = logging.getLogger(__name__)

DENSE_THRESHOLD = 5000
MIN_PARK_NODES = 3
MIN_ROAD_NODES = 2
# Minor roads shorter than this are mostly parking lot segments
MIN_MINOR_ROAD_NODES = 3
MINOR_HIGHWAYS = frozenset({"service", "unclassified"})
PARK_LANDUSE = frozenset({"grass", "forest", "recreation_ground"})


def classify_element(element: RawElement) -> str | None:
    """Return the layer an element belongs to, or None if it is not drawn.

    The first matching rule wins: roads, then water, then parks.
    """
    tags = element.tags
    if tags.get("highway"):
        return "roads"
    if (
        tags.get("natural") == "water"
        or tags.get("waterway")
        or tags.get("water")
        or element.type == "relation"
    ):
        return "water"
    if tags.get("leisure") == "park" or tags.get("landuse") in PARK_LANDUSE:
        return "parks"
    return None


def _keep_road(element: RawElement, dense: bool) -> bool:
    highway = element.tags.get("highway")
    if highway not in MINOR_HIGHWAYS:
        return True
    if dense:
        return False
    return len(element.geometry) >= MIN_MINOR_ROAD_NODES


def classify_elements(
    elements: Sequence[RawElement],
    tolerance: float = SIMPLIFY_TOLERANCE,
) -> tuple[
    tuple[RawElement, ...],
    tuple[RawElement, ...],
    tuple[RawElement, ...],
    ClassificationStats,
]:
    """Split raw elements into roads, water and parks, dropping noise.

    When more than ``DENSE_THRESHOLD`` elements arrive, service and
    unclassified roads are dropped entirely to keep the drawing light.
    Every kept element is simplified. Input order is preserved within each
    layer.

    Args:
        elements: Raw elements as returned by the fetch client.
        tolerance: Simplification tolerance in degrees.

    Returns:
        A tuple of (roads, water, parks, stats).
    """
    dense = len(elements) > DENSE_THRESHOLD
    if dense:
        logger.warning(
            "Data is very dense (%d elements). Applying aggressive filtering.",
            len(elements),
        )

    layers: dict[str, list[RawElement]] = {"roads": [], "water": [], "parks": []}
    discarded = 0

    for element in elements:
        if len(element.geometry) < MIN_ROAD_NODES:
            discarded += 1
            continue

        layer = classify_element(element)
        if layer == "roads" and not _keep_road(element, dense):
            layer = None
        elif layer == "parks" and len(element.geometry) < MIN_PARK_NODES:
            layer = None

        if layer is None:
            discarded += 1
            continue

        simplified = simplify_geometry(element.geometry, tolerance)
        layers[layer].append(element.with_geometry(simplified))

    if discarded:
        logger.debug("Discarded %d of %d elements", discarded, len(elements))

    stats = ClassificationStats(
        total=len(elements),
        roads=len(layers["roads"]),
        water=len(layers["water"]),
        parks=len(layers["parks"]),
        discarded=discarded,
        dense=dense,
    )
    return tuple(layers["roads"]), tuple(layers["water"]), tuple(layers["parks"]), stats
