"""Poster rendering: fetch, compose, serialize and export."""

from __future__ import annotations

import io
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import matplotlib.colors as mcolors
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import PathPatch
from matplotlib.patches import Polygon as PolygonPatch
from matplotlib.path import Path as MplPath
from PIL import Image
from tqdm import tqdm

from .compose import compose_layers
from .config import DEFAULT_THEME_NAME, PosterConfig
from .models import PolygonPrimitive
from .overpass import fetch_osm_data
from .postprocess import apply_raster_effects, needs_raster_postprocessing
from .styles import StyleConfig
from .svg import build_svg


if TYPE_CHECKING:
    from pathlib import Path

    from matplotlib.axes import Axes

    from .compose import ComposedLayers
    from .models import ClassifiedDataset, DrawPrimitive
    from .overpass import OverpassClient


__all__ = [
    "BACKEND_REGISTRY",
    "ExportError",
    "MatplotlibBackend",
    "PosterRenderer",
    "PosterScene",
    "RasterBackend",
    "create_poster",
    "get_backend",
]

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("svg", "png")
RASTER_DPI = 100
POINTS_PER_INCH = 72.0


class ExportError(Exception):
    """Raised when a poster cannot be rasterized or written."""


@dataclass(frozen=True)
class PosterScene:
    """Everything needed to export one poster."""

    layers: ComposedLayers
    theme: dict[str, str]
    svg: str
    style: StyleConfig

    @property
    def width(self) -> float:
        return self.layers.width

    @property
    def height(self) -> float:
        return self.layers.height


class RasterBackend(Protocol):
    """Raster backend interface."""

    name: str

    def rasterize(self, scene: PosterScene, scale: float) -> bytes:
        """Rasterize a scene.

        Args:
            scene: The composed poster.
            scale: Output pixels per drawing unit.

        Returns:
            PNG-encoded image bytes.

        Raises:
            ExportError: If the scene cannot be rasterized.
        """
        ...


class MatplotlibBackend:
    """Rasterizes composed primitives with matplotlib patches on the Agg canvas."""

    name = "matplotlib"

    def rasterize(self, scene: PosterScene, scale: float) -> bytes:
        """Draw the scene at ``width*scale`` by ``height*scale`` pixels."""
        if scale <= 0:
            raise ExportError(f"Export scale must be positive, got {scale}")

        width, height = scene.width, scene.height
        bg = scene.theme["bg"]
        fig = plt.figure(
            figsize=(width * scale / RASTER_DPI, height * scale / RASTER_DPI),
            dpi=RASTER_DPI,
            facecolor=bg,
        )
        try:
            ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))
            ax.set_axis_off()
            ax.set_facecolor(bg)

            # Drawing units are canvas pixels; one unit is ``scale`` output pixels
            points_per_unit = scale * POINTS_PER_INCH / RASTER_DPI
            for zorder, primitive in enumerate(scene.layers.ordered(), start=1):
                self._draw_primitive(ax, primitive, zorder, points_per_unit)

            fraction = scene.style.gradient_strength
            if fraction > 0:
                color = scene.theme.get("gradient_color", bg)
                self._draw_fade(ax, color, width, height, fraction, location="top")
                self._draw_fade(ax, color, width, height, fraction, location="bottom")

            # SVG coordinates grow downwards
            ax.set_xlim(0, width)
            ax.set_ylim(height, 0)

            buffer = io.BytesIO()
            fig.savefig(buffer, format="png", dpi=RASTER_DPI, facecolor=bg)
        except (ValueError, RuntimeError, OSError) as e:
            raise ExportError(f"Failed to rasterize poster: {e}") from e
        finally:
            plt.close(fig)
        return buffer.getvalue()

    def _draw_primitive(
        self,
        ax: Axes,
        primitive: DrawPrimitive,
        zorder: int,
        points_per_unit: float,
    ) -> None:
        if isinstance(primitive, PolygonPrimitive):
            ax.add_patch(
                PolygonPatch(
                    primitive.coords,
                    closed=True,
                    facecolor=primitive.fill,
                    edgecolor=primitive.stroke,
                    linewidth=0,
                    zorder=zorder,
                )
            )
            return

        ax.add_patch(
            PathPatch(
                MplPath(primitive.coords),
                fill=False,
                edgecolor=primitive.stroke,
                linewidth=primitive.stroke_width * points_per_unit,
                capstyle=primitive.cap,
                joinstyle=primitive.join or "miter",
                zorder=zorder,
            )
        )

    def _draw_fade(
        self,
        ax: Axes,
        color: str,
        width: float,
        height: float,
        fraction: float,
        location: str,
    ) -> None:
        """Overlay a vertical alpha ramp at the top or bottom edge."""
        colors = np.zeros((256, 4))
        colors[:, :3] = mcolors.to_rgb(color)
        colors[:, 3] = np.linspace(1, 0, 256)
        ramp = np.linspace(0, 1, 256).reshape(-1, 1)

        fade_height = height * fraction
        if location == "top":
            # Row 0 sits on the top edge, fully opaque
            extent = (0, width, fade_height, 0)
        else:
            extent = (0, width, height - fade_height, height)

        ax.imshow(
            np.hstack((ramp, ramp)),
            extent=extent,
            origin="upper",
            aspect="auto",
            cmap=mcolors.ListedColormap(colors),
            interpolation="bilinear",
            zorder=len(ax.patches) + 1,
        )


BACKEND_REGISTRY: dict[str, RasterBackend] = {
    "matplotlib": MatplotlibBackend(),
}


def get_backend(name: str) -> RasterBackend:
    """Resolve a raster backend by name, falling back to matplotlib."""
    backend = BACKEND_REGISTRY.get(name)
    if backend is None:
        logger.warning("Unknown raster backend '%s'. Falling back to matplotlib.", name)
        return BACKEND_REGISTRY["matplotlib"]
    return backend


class PosterRenderer:
    """Builds posters from live map data and writes them to disk."""

    def __init__(
        self,
        config: PosterConfig,
        client: OverpassClient | None = None,
        backend: RasterBackend | None = None,
    ) -> None:
        self.config = config
        self.theme = config.theme
        self.style = config.style_config or StyleConfig()
        self.client = client
        self.backend = backend or get_backend("matplotlib")

    def fetch(self, point: tuple[float, float]) -> ClassifiedDataset:
        """Fetch classified map data around ``point`` for the configured radius."""
        lat, lon = point
        dataset = fetch_osm_data(lat, lon, self.config.distance, client=self.client)
        if dataset.is_empty:
            logger.warning("No roads, water or parks found around %s, %s", lat, lon)
        return dataset

    def build_scene(self, point: tuple[float, float]) -> PosterScene:
        """Fetch, compose and serialize the poster centered on ``point``."""
        return self.compose_scene(self.fetch(point))

    def compose_scene(self, dataset: ClassifiedDataset) -> PosterScene:
        layers = compose_layers(
            dataset,
            self.theme,
            self.config.width,
            self.config.height,
            style=self.style,
        )
        svg = build_svg(layers, self.theme, self.style)
        return PosterScene(layers=layers, theme=self.theme, svg=svg, style=self.style)

    def export(self, scene: PosterScene, output_file: Path) -> Path:
        """Write a scene as SVG or PNG, depending on the configured format.

        Raises:
            ExportError: On unsupported formats, rasterization failures or
                write errors.
        """
        fmt = self.config.output_format.lower()
        if fmt not in SUPPORTED_FORMATS:
            raise ExportError(
                f"Unsupported output format '{fmt}'. Use one of: {', '.join(SUPPORTED_FORMATS)}"
            )

        output_file.parent.mkdir(parents=True, exist_ok=True)
        try:
            if fmt == "svg":
                output_file.write_text(scene.svg, encoding="utf-8")
                return output_file

            png = self.backend.rasterize(scene, self.config.scale)
            if needs_raster_postprocessing(fmt, self.style):
                with Image.open(io.BytesIO(png)) as image:
                    result = apply_raster_effects(image, self.style)
                result.image.save(output_file, format="PNG")
            else:
                output_file.write_bytes(png)
        except OSError as e:
            raise ExportError(f"Could not write {output_file}: {e}") from e
        return output_file

    def render(
        self,
        point: tuple[float, float],
        output_file: Path,
        show_progress: bool = True,
    ) -> Path:
        """Render the poster and save it to ``output_file``.

        Args:
            point: The center coordinates (latitude, longitude).
            output_file: Destination path.
            show_progress: Whether to display a progress bar (TTY only).

        Returns:
            The path that was written.
        """
        config = self.config
        logger.info(
            "Generating map for %s, %s (theme: %s, format: %s)...",
            config.city,
            config.country,
            config.theme_name,
            config.output_format,
        )

        show_progress = show_progress and sys.stderr.isatty()
        with tqdm(
            total=3,
            desc="Building poster",
            unit="step",
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt}",
            disable=not show_progress,
        ) as pbar:
            pbar.set_description("Downloading map data")
            dataset = self.fetch(point)
            pbar.update(1)

            pbar.set_description("Composing layers")
            scene = self.compose_scene(dataset)
            pbar.update(1)

            pbar.set_description(f"Writing {config.output_format.upper()}")
            logger.info("Saving to %s...", output_file)
            written = self.export(scene, output_file)
            pbar.update(1)

        logger.info("Done! Poster saved as %s", written)
        return written


def create_poster(
    city: str,
    country: str,
    point: tuple[float, float],
    dist: int,
    output_file: Path,
    output_format: str = "svg",
    width: float | None = None,
    height: float | None = None,
    scale: float | None = None,
    theme_name: str | None = None,
    theme: dict[str, str] | None = None,
    style_config: StyleConfig | None = None,
    client: OverpassClient | None = None,
    show_progress: bool = True,
) -> Path:
    """Create a map poster for a city.

    This is a convenience function that wraps PosterRenderer.

    Args:
        city: The city name.
        country: The country name.
        point: The center coordinates (latitude, longitude).
        dist: Map radius in meters.
        output_file: Path to save the poster.
        output_format: Output format (svg or png).
        width: Canvas width in drawing units.
        height: Canvas height in drawing units.
        scale: Output pixels per drawing unit for PNG export.
        theme_name: Name of the theme to use.
        theme: Theme dictionary (loaded if not provided).
        style_config: Style overrides and raster effects.
        client: Overpass client to fetch with; a default one is created if omitted.
        show_progress: Whether to display a progress bar (TTY only).

    Returns:
        The path that was written.
    """
    overrides: dict[str, float] = {}
    if width is not None:
        overrides["width"] = width
    if height is not None:
        overrides["height"] = height
    if scale is not None:
        overrides["scale"] = scale

    config = PosterConfig(
        city=city,
        country=country,
        theme_name=theme_name or DEFAULT_THEME_NAME,
        distance=dist,
        output_format=output_format,
        theme=theme or {},
        style_config=style_config,
        **overrides,  # type: ignore[arg-type]
    )

    renderer = PosterRenderer(config, client=client)
    return renderer.render(point, output_file, show_progress=show_progress)
