"""Shared render constants."""

from __future__ import annotations


__all__ = [
    "CANVAS_LONG_SIDE",
    "DEFAULT_CANVAS_HEIGHT",
    "DEFAULT_CANVAS_WIDTH",
    "DEFAULT_EXPORT_SCALE",
    "GRADIENT_HEIGHT_FRACTION",
    "HIGHWAY_COLOR_ROLES",
    "ROAD_IMPORTANCE",
    "ROAD_IMPORTANCE_DEFAULT",
    "ROAD_WIDTHS",
    "ROAD_WIDTH_DEFAULT",
    "WATERWAY_WIDTH",
]

# Canvas size in SVG user units
CANVAS_LONG_SIDE = 800.0
DEFAULT_CANVAS_WIDTH = 600.0
DEFAULT_CANVAS_HEIGHT = 800.0

# PNG export zoom factor
DEFAULT_EXPORT_SCALE = 3.0

# Gradient constants
GRADIENT_HEIGHT_FRACTION = 0.25

# Road stroke widths by highway type
ROAD_WIDTH_DEFAULT = 0.5
ROAD_WIDTHS: dict[str, float] = {
    "motorway": 1.5,
    "trunk": 1.3,
    "primary": 1.2,
    "secondary": 1.0,
    "tertiary": 0.7,
    "residential": 0.4,
    "service": 0.3,
    "unclassified": 0.5,
}

# Theme role used for each highway type; anything else uses road_default
HIGHWAY_COLOR_ROLES: dict[str, str] = {
    "motorway": "road_motorway",
    "trunk": "road_motorway",
    "primary": "road_primary",
    "secondary": "road_secondary",
    "tertiary": "road_tertiary",
    "residential": "road_residential",
    "service": "road_residential",
    "unclassified": "road_default",
}

# Paint order for roads: higher ranks are drawn later, on top
ROAD_IMPORTANCE_DEFAULT = 1
ROAD_IMPORTANCE: dict[str, int] = {
    "motorway": 6,
    "trunk": 5,
    "primary": 4,
    "secondary": 3,
    "tertiary": 2,
    "residential": 1,
    "unclassified": 1,
    "service": 1,
}

WATERWAY_WIDTH = 0.8
