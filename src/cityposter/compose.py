"""Turning classified map data into ordered, styled drawing primitives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .models import PathPrimitive, PolygonPrimitive
from .projection import Projector
from .render_constants import (
    HIGHWAY_COLOR_ROLES,
    ROAD_IMPORTANCE,
    ROAD_IMPORTANCE_DEFAULT,
    ROAD_WIDTH_DEFAULT,
)
from .styles import StyleConfig


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from .models import ClassifiedDataset, DrawPrimitive, RawElement


__all__ = [
    "ComposedLayers",
    "RoadStyle",
    "compose_layers",
    "road_style",
    "sort_roads_by_importance",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoadStyle:
    """Stroke style for one highway type."""

    highway: str
    color: str
    width: float


@dataclass(frozen=True)
class ComposedLayers:
    """Drawing primitives for one render pass, grouped by layer."""

    parks: tuple[PolygonPrimitive, ...] = ()
    water: tuple[DrawPrimitive, ...] = ()
    roads: tuple[PathPrimitive, ...] = ()
    width: float = 0.0
    height: float = 0.0
    dropped: int = 0

    def ordered(self) -> list[DrawPrimitive]:
        """All primitives in paint order: parks, water, then roads."""
        return [*self.parks, *self.water, *self.roads]

    def __len__(self) -> int:
        return len(self.parks) + len(self.water) + len(self.roads)


def _highway_type(road: RawElement) -> str:
    return road.tags.get("highway") or "unclassified"


def sort_roads_by_importance(roads: Iterable[RawElement]) -> list[RawElement]:
    """Order roads so that minor roads are painted first and motorways last.

    The sort is stable, so roads of equal rank keep their input order.
    """
    return sorted(
        roads,
        key=lambda road: ROAD_IMPORTANCE.get(_highway_type(road), ROAD_IMPORTANCE_DEFAULT),
    )


def road_style(
    highway: str | None,
    theme: Mapping[str, str],
    road_widths: Mapping[str, float] | None = None,
) -> RoadStyle:
    """Look up color and width for a highway type.

    Missing or unknown types fall back to the unclassified styling.
    """
    highway = highway or "unclassified"
    role = HIGHWAY_COLOR_ROLES.get(highway, "road_default")
    widths = road_widths if road_widths is not None else StyleConfig().road_widths
    width = widths.get(highway, widths.get("default", ROAD_WIDTH_DEFAULT))
    return RoadStyle(highway=highway, color=theme.get(role, theme["road_default"]), width=width)


def _project(projector: Projector, element: RawElement) -> tuple[tuple[float, float], ...]:
    return tuple(projector.project(element.geometry))


def _compose_parks(
    parks: Sequence[RawElement],
    theme: Mapping[str, str],
    projector: Projector,
) -> tuple[list[PolygonPrimitive], int]:
    primitives: list[PolygonPrimitive] = []
    dropped = 0
    for index, park in enumerate(parks):
        coords = _project(projector, park)
        if not coords:
            dropped += 1
            continue
        primitives.append(
            PolygonPrimitive(key=f"park-{index}", coords=coords, fill=theme["parks"])
        )
    return primitives, dropped


def _compose_water(
    water: Sequence[RawElement],
    theme: Mapping[str, str],
    projector: Projector,
    style: StyleConfig,
) -> tuple[list[DrawPrimitive], int]:
    primitives: list[DrawPrimitive] = []
    dropped = 0
    for index, body in enumerate(water):
        coords = _project(projector, body)
        if not coords:
            dropped += 1
            continue
        key = f"water-{index}"
        if body.tags.get("natural") == "water":
            primitives.append(PolygonPrimitive(key=key, coords=coords, fill=theme["water"]))
        else:
            # Rivers, streams and canals are drawn as lines
            primitives.append(
                PathPrimitive(
                    key=key,
                    coords=coords,
                    stroke=theme["water"],
                    stroke_width=style.waterway_width,
                    cap="round",
                )
            )
    return primitives, dropped


def _compose_roads(
    roads: Sequence[RawElement],
    theme: Mapping[str, str],
    projector: Projector,
    style: StyleConfig,
) -> tuple[list[PathPrimitive], int]:
    primitives: list[PathPrimitive] = []
    dropped = 0
    for index, road in enumerate(sort_roads_by_importance(roads)):
        coords = _project(projector, road)
        if not coords:
            dropped += 1
            continue
        styled = road_style(_highway_type(road), theme, style.road_widths)
        primitives.append(
            PathPrimitive(
                key=f"road-{index}",
                coords=coords,
                stroke=styled.color,
                stroke_width=styled.width,
                cap="round",
                join="round",
            )
        )
    return primitives, dropped


def compose_layers(
    dataset: ClassifiedDataset,
    theme: Mapping[str, str],
    width: float,
    height: float,
    style: StyleConfig | None = None,
) -> ComposedLayers:
    """Project and style a dataset into layered drawing primitives.

    Parks are painted first, then water, then roads sorted by importance.
    Elements whose geometry projects to nothing are skipped and counted in
    ``ComposedLayers.dropped``.

    Args:
        dataset: Classified map data with its bounding box.
        theme: Theme colors keyed by role.
        width: Canvas width in drawing units.
        height: Canvas height in drawing units.
        style: Optional style overrides for stroke widths.

    Returns:
        The composed layers for this render pass.
    """
    style = style or StyleConfig()
    projector = Projector(dataset.bounds, width, height)

    parks, dropped_parks = _compose_parks(dataset.parks, theme, projector)
    water, dropped_water = _compose_water(dataset.water, theme, projector, style)
    roads, dropped_roads = _compose_roads(dataset.roads, theme, projector, style)

    dropped = dropped_parks + dropped_water + dropped_roads
    if dropped:
        logger.debug("Dropped %d elements with empty geometry", dropped)

    return ComposedLayers(
        parks=tuple(parks),
        water=tuple(water),
        roads=tuple(roads),
        width=width,
        height=height,
        dropped=dropped,
    )
