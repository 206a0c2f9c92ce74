"""Raster effects applied to rasterized posters."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from PIL import Image, ImageEnhance


__all__ = [
    "PostProcessResult",
    "RasterStyle",
    "apply_raster_effects",
    "needs_raster_postprocessing",
]

logger = logging.getLogger(__name__)

GRAIN_OPACITY = 0.35
VIGNETTE_SOFTNESS = 0.1
COLOR_GRADING_GAIN = 0.1


class RasterStyle(Protocol):
    """Style values consulted by the raster effects."""

    @property
    def grain_strength(self) -> float: ...

    @property
    def vignette_strength(self) -> float: ...

    @property
    def texture_strength(self) -> float: ...

    @property
    def color_grading_strength(self) -> float: ...

    @property
    def paper_texture_path(self) -> str | None: ...

    @property
    def seed(self) -> int | None: ...


@dataclass(frozen=True)
class PostProcessResult:
    """A processed image and a record of what was done to it."""

    image: Image.Image
    effects_applied: tuple[str, ...] = ()
    grain_seed: int | None = None


def needs_raster_postprocessing(fmt: str, style: RasterStyle) -> bool:
    """Return True when ``fmt`` is a raster format and any effect is enabled."""
    if fmt.lower() != "png":
        return False
    strengths = (
        style.grain_strength,
        style.vignette_strength,
        style.texture_strength,
        style.color_grading_strength,
    )
    return max(strengths) > 0


def apply_raster_effects(image: Image.Image, style: RasterStyle) -> PostProcessResult:
    """Run the enabled raster effects over an image.

    Effects run in a fixed order: grain, vignette, paper texture, color
    grading. Texture is skipped when no texture file is configured.

    Args:
        image: The rasterized poster.
        style: Effect strengths, each in the 0-1 range.

    Returns:
        The RGBA result along with the names of the effects that ran and the
        grain seed, if grain ran.
    """
    result = image.convert("RGBA")
    applied: list[str] = []
    grain_seed = None

    if style.grain_strength > 0:
        result = _grain(result, style.grain_strength, style.seed)
        applied.append("grain")
        grain_seed = style.seed
    if style.vignette_strength > 0:
        result = _vignette(result, style.vignette_strength)
        applied.append("vignette")
    if style.texture_strength > 0 and style.paper_texture_path:
        result = _paper_texture(result, style.paper_texture_path, style.texture_strength)
        applied.append("texture")
    if style.color_grading_strength > 0:
        result = _color_grading(result, style.color_grading_strength)
        applied.append("color_grading")

    if applied:
        logger.debug("Applied raster effects: %s", ", ".join(applied))
    return PostProcessResult(image=result, effects_applied=tuple(applied), grain_seed=grain_seed)


def _grain(image: Image.Image, strength: float, seed: int | None) -> Image.Image:
    rng = np.random.default_rng(seed)
    size = (image.height, image.width)
    luminance = np.clip(rng.normal(128, 255 * strength, size), 0, 255).astype(np.uint8)
    alpha = np.full(size, int(255 * min(strength, 1.0) * GRAIN_OPACITY), dtype=np.uint8)
    overlay = np.dstack([luminance, luminance, luminance, alpha])
    return Image.alpha_composite(image, Image.fromarray(overlay, mode="RGBA"))


def _vignette(image: Image.Image, strength: float) -> Image.Image:
    width, height = image.size
    xv, yv = np.meshgrid(np.linspace(-1, 1, width), np.linspace(-1, 1, height))
    falloff = np.clip(1 - (xv**2 + yv**2), 0, 1)
    soft = strength * VIGNETTE_SOFTNESS
    falloff = falloff**1.5 * (1 - soft) + falloff * soft
    shade = Image.new("RGBA", (width, height), (0, 0, 0, 0))
    shade.putalpha(Image.fromarray(255 - (falloff * 255).astype(np.uint8)))
    return Image.alpha_composite(image, shade)


def _paper_texture(image: Image.Image, texture_path: str, strength: float) -> Image.Image:
    with Image.open(texture_path) as source:
        texture = source.convert("RGBA").resize(image.size)
    alpha = texture.getchannel("A").point(lambda value: int(value * strength))
    texture.putalpha(alpha)
    return Image.alpha_composite(image, texture)


def _color_grading(image: Image.Image, strength: float) -> Image.Image:
    factor = 1 + min(strength, 1.0) * COLOR_GRADING_GAIN
    saturated = ImageEnhance.Color(image).enhance(factor)
    return ImageEnhance.Contrast(saturated).enhance(factor)
