"""SVG document assembly for composed posters."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import svgwrite

from .models import PolygonPrimitive
from .render_constants import GRADIENT_HEIGHT_FRACTION


if TYPE_CHECKING:
    from collections.abc import Mapping

    from svgwrite.container import Group

    from .compose import ComposedLayers
    from .models import DrawPrimitive
    from .styles import StyleConfig


__all__ = ["build_svg"]


def _add_primitive(dwg: svgwrite.Drawing, group: Group, primitive: DrawPrimitive) -> None:
    attributes = primitive.to_svg_attributes()
    if isinstance(primitive, PolygonPrimitive):
        group.add(dwg.polygon(points=primitive.coords, **attributes))
    else:
        group.add(dwg.path(d=primitive.d, **attributes))


def _add_fades(
    dwg: svgwrite.Drawing,
    color: str,
    width: float,
    height: float,
    fraction: float,
) -> None:
    """Fade the top and bottom edges of the map into the gradient color."""
    fade_height = height * fraction

    top = dwg.linearGradient(start=("0%", "100%"), end=("0%", "0%"), id="topFade")
    bottom = dwg.linearGradient(start=("0%", "0%"), end=("0%", "100%"), id="bottomFade")
    for gradient in (top, bottom):
        gradient.add_stop_color(offset="0%", color=color, opacity=0)
        gradient.add_stop_color(offset="100%", color=color, opacity=1)
        dwg.defs.add(gradient)

    dwg.add(dwg.rect(insert=(0, 0), size=(width, fade_height), fill=top.get_paint_server()))
    dwg.add(
        dwg.rect(
            insert=(0, height - fade_height),
            size=(width, fade_height),
            fill=bottom.get_paint_server(),
        )
    )


def build_svg(
    layers: ComposedLayers,
    theme: Mapping[str, str],
    style: StyleConfig | None = None,
) -> str:
    """Serialize composed layers into a standalone SVG document.

    The document holds a background rect, a ``map-content`` group with the
    primitives in paint order, and optional top and bottom fades.

    Args:
        layers: Primitives for this render pass, with the canvas size.
        theme: Theme colors keyed by role.
        style: Optional style; ``gradient_strength`` sets the fade height.

    Returns:
        The SVG document as a string, XML declaration included.
    """
    width, height = layers.width, layers.height
    dwg = svgwrite.Drawing(size=(width, height), profile="full", debug=False)
    dwg.viewbox(0, 0, width, height)
    dwg.add(dwg.rect(insert=(0, 0), size=(width, height), fill=theme["bg"]))

    content = dwg.g(id="map-content")
    for primitive in layers.ordered():
        _add_primitive(dwg, content, primitive)
    dwg.add(content)

    fraction = style.gradient_strength if style is not None else GRADIENT_HEIGHT_FRACTION
    if fraction > 0:
        _add_fades(dwg, theme.get("gradient_color", theme["bg"]), width, height, fraction)

    buffer = io.StringIO()
    dwg.write(buffer)
    return buffer.getvalue()
