"""Style presets and style pack loading.

A style adjusts how a theme is drawn: road and waterway widths, the height
of the edge fades, and raster effects that only apply to PNG output.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import NamedTuple

from .render_constants import GRADIENT_HEIGHT_FRACTION, ROAD_WIDTHS, WATERWAY_WIDTH


__all__ = [
    "StyleConfig",
    "StylePreset",
    "get_available_presets",
    "get_preset_description",
    "get_style_preset",
    "load_style_pack",
]

# Style fields expressed as a 0-1 strength
STRENGTH_FIELDS = (
    "gradient_strength",
    "texture_strength",
    "grain_strength",
    "vignette_strength",
    "color_grading_strength",
)


@dataclass(frozen=True)
class StyleConfig:
    """Styling configuration for composing and exporting a poster."""

    theme_name: str | None = None
    road_widths: dict[str, float] = field(default_factory=lambda: dict(ROAD_WIDTHS))
    waterway_width: float = WATERWAY_WIDTH
    gradient_strength: float = GRADIENT_HEIGHT_FRACTION
    texture_strength: float = 0.0
    grain_strength: float = 0.0
    vignette_strength: float = 0.0
    color_grading_strength: float = 0.0
    paper_texture_path: str | None = None
    seed: int | None = None


class StylePreset(NamedTuple):
    style: StyleConfig
    description: str


def _scaled_widths(factor: float) -> dict[str, float]:
    return {highway: round(width * factor, 2) for highway, width in ROAD_WIDTHS.items()}


PRESETS: dict[str, StylePreset] = {
    "noir": StylePreset(
        StyleConfig(theme_name="noir", grain_strength=0.08, vignette_strength=0.15),
        "Classic film noir aesthetic with subtle grain and vignette",
    ),
    "film_noir": StylePreset(
        StyleConfig(
            theme_name="noir",
            grain_strength=0.2,
            vignette_strength=0.3,
            color_grading_strength=0.05,
        ),
        "Heavy film noir with pronounced grain and dark vignette",
    ),
    "blueprint": StylePreset(
        StyleConfig(theme_name="blueprint", gradient_strength=0.0, road_widths=_scaled_widths(0.8)),
        "Technical drawing style with fine lines and no fades",
    ),
    "neon_cyberpunk": StylePreset(
        StyleConfig(
            theme_name="neon_cyberpunk",
            road_widths={**ROAD_WIDTHS, "motorway": 2.0, "trunk": 1.7, "primary": 1.5},
            color_grading_strength=0.2,
        ),
        "Bold arterial roads with enhanced color saturation",
    ),
    "japanese_ink": StylePreset(
        StyleConfig(theme_name="japanese_ink", vignette_strength=0.25, gradient_strength=0.3),
        "Calligraphic style with deep fades and soft vignette",
    ),
    "warm_beige": StylePreset(
        StyleConfig(
            theme_name="warm_beige",
            grain_strength=0.12,
            vignette_strength=0.1,
            color_grading_strength=0.15,
        ),
        "Vintage warmth with film grain and subtle color grading",
    ),
    "vintage": StylePreset(
        StyleConfig(
            theme_name="warm_beige",
            grain_strength=0.15,
            vignette_strength=0.2,
            color_grading_strength=0.1,
        ),
        "Classic vintage film look with grain and vignette",
    ),
}


def _preset(name: str) -> StylePreset:
    try:
        return PRESETS[name]
    except KeyError:
        raise KeyError(f"Unknown preset '{name}'.") from None


def get_available_presets() -> list[str]:
    return sorted(PRESETS)


def get_preset_description(preset_name: str) -> str:
    return _preset(preset_name).description


def get_style_preset(preset_name: str) -> StyleConfig:
    """Return the style for a preset name.

    Raises:
        KeyError: If no preset has that name.
    """
    return _preset(preset_name).style


def load_style_pack(path: str | Path) -> StyleConfig:
    """Load a StyleConfig from a JSON style pack.

    Keys are StyleConfig field names. A partial ``road_widths`` table is
    merged over the default widths.

    Raises:
        ValueError: If the pack is not an object, has unknown keys, or holds
            a strength outside 0-1.
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Style pack must be a JSON object.")

    unknown = set(data) - {f.name for f in fields(StyleConfig)}
    if unknown:
        raise ValueError(f"Unknown style pack keys: {sorted(unknown)}")

    if "road_widths" in data:
        if not isinstance(data["road_widths"], dict):
            raise ValueError("Style pack 'road_widths' must be a JSON object.")
        data["road_widths"] = {**ROAD_WIDTHS, **data["road_widths"]}

    for name in STRENGTH_FIELDS:
        value = data.get(name, 0.0)
        if not isinstance(value, (int, float)) or not 0.0 <= value <= 1.0:
            raise ValueError(f"Style pack '{name}' must be a number between 0 and 1.")

    return StyleConfig(**data)
