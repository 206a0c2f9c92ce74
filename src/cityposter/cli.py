"""Command-line interface for cityposter."""

from __future__ import annotations

import argparse
import csv
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from . import __version__
from .cache import clear_cache, get_cache_dir, get_cache_stats
from .config import DEFAULT_THEME_NAME, PosterConfig, get_available_themes, load_theme
from .geo import GeoError, get_coordinates
from .overpass import RateLimited
from .projection import canvas_size
from .render import ExportError, PosterRenderer
from .styles import (
    StyleConfig,
    get_available_presets,
    get_preset_description,
    get_style_preset,
    load_style_pack,
)


__all__ = ["cli", "create_parser", "main"]

logger = logging.getLogger(__name__)

RATE_LIMIT_HINT = (
    "The Overpass servers are busy right now. Please try again later, "
    "or pick a smaller --distance."
)

USAGE_EXAMPLES = """
City Poster Generator
=====================

Usage:
  cityposter --city <city> --country <country> [options]
  cityposter --lat <lat> --lon <lon> [options]

Examples:
  cityposter -c "Amsterdam" -C "Netherlands" -t blueprint -d 4000
  cityposter -c "Paris" -C "France" --preset noir --format png --scale 4
  cityposter --lat 51.505 --lon -0.09 --city London -t japanese_ink
  cityposter -c "Tokyo" -C "Japan" --aspect-ratio 2:3 --orientation landscape
  cityposter --batch cities.txt --theme warm_beige

Distance guide:
  2000-4000m   Old town centers
  5000-8000m   Most cities
  10000m+      Large metros (slower queries, more likely to be rate limited)

Run with --help for every option. Posters are saved to 'posters/' unless
--output or CITYPOSTER_OUTPUT_DIR says otherwise.
"""


class UsageError(Exception):
    """Raised for option combinations that cannot be rendered."""


@dataclass(frozen=True)
class RenderOptions:
    """Options shared by every poster of one invocation."""

    theme_name: str
    theme: dict[str, str]
    style: StyleConfig
    width: float
    height: float
    distance: int
    output_format: str
    scale: float

    def poster_config(self, city: str, country: str) -> PosterConfig:
        return PosterConfig(
            city=city,
            country=country,
            theme_name=self.theme_name,
            distance=self.distance,
            width=self.width,
            height=self.height,
            output_format=self.output_format,
            scale=self.scale,
            style_config=self.style,
            theme=dict(self.theme),
        )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="cityposter",
        description="Generate minimalist SVG and PNG map posters from OpenStreetMap data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=USAGE_EXAMPLES,
    )

    location = parser.add_argument_group("location")
    location.add_argument("--city", "-c", help="City name, used for geocoding and file names")
    location.add_argument("--country", "-C", help="Country name")
    location.add_argument("--lat", type=float, help="Center latitude (skips geocoding)")
    location.add_argument("--lon", type=float, help="Center longitude (skips geocoding)")
    location.add_argument(
        "--distance",
        "-d",
        type=int,
        default=5000,
        help="Map radius in meters (default: 5000)",
    )

    style = parser.add_argument_group("style")
    style.add_argument(
        "--theme",
        "-t",
        default=DEFAULT_THEME_NAME,
        help=f"Theme name (default: {DEFAULT_THEME_NAME})",
    )
    style.add_argument("--preset", help="Style preset; its theme replaces --theme")
    style.add_argument("--style-pack", help="JSON style pack file; may name its own theme")
    style.add_argument("--aspect-ratio", default="3:4", help="Canvas ratio W:H (default: 3:4)")
    style.add_argument(
        "--orientation",
        default="portrait",
        choices=["portrait", "landscape"],
        help="Canvas orientation (default: portrait)",
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "--format",
        "-f",
        default="svg",
        choices=["svg", "png"],
        help="Output format (default: svg)",
    )
    output.add_argument(
        "--scale",
        type=float,
        default=3.0,
        help="PNG pixels per canvas unit (default: 3)",
    )
    output.add_argument("--output", "-o", help="Output file path")
    output.add_argument(
        "--batch",
        metavar="FILE",
        help='Render one poster per "city,country" line of FILE, one after another',
    )

    info = parser.add_argument_group("information")
    info.add_argument("--list-themes", action="store_true", help="List available themes")
    info.add_argument("--list-presets", action="store_true", help="List available presets")
    info.add_argument("--cache-stats", action="store_true", help="Show cache statistics")
    info.add_argument("--clear-cache", action="store_true", help="Delete cached coordinates")
    info.add_argument("--version", "-v", action="store_true", help="Show version and exit")

    return parser


def _list_themes() -> None:
    names = get_available_themes()
    if not names:
        print("No themes found.")
        return

    print("\nAvailable Themes:")
    print("-" * 60)
    for name in names:
        try:
            theme = load_theme(name)
        except ValueError as e:
            print(f"  {name}  (invalid: {e})")
            continue
        print(f"  {name}")
        print(f"    {theme['name']}")
        if theme.get("description"):
            print(f"    {theme['description']}")
        print()


def _list_presets() -> None:
    print("\nAvailable Presets:")
    print("-" * 60)
    for name in get_available_presets():
        print(f"  {name}")
        print(f"    {get_preset_description(name)}")


def _show_cache_stats() -> None:
    stats = get_cache_stats()
    print("\nCache Statistics:")
    print("-" * 60)
    print(f"  Directory: {get_cache_dir()}")
    print(f"  Files: {stats['total_files']}")
    print(f"  Size: {stats['total_size_mb']} MB")


def _run_info_command(parsed: argparse.Namespace) -> bool:
    """Run the first requested informational command.

    Returns:
        True if a command ran and the program should exit.
    """
    if parsed.version:
        print(f"cityposter {__version__}")
    elif parsed.list_themes:
        _list_themes()
    elif parsed.list_presets:
        _list_presets()
    elif parsed.cache_stats:
        _show_cache_stats()
    elif parsed.clear_cache:
        print(f"Cleared {clear_cache()} cache files.")
    else:
        return False
    return True


def _parse_batch_file(batch_file: str) -> list[tuple[str, str]]:
    """Read ``city,country`` pairs, skipping blanks, ``#`` comments and bad lines."""
    lines = Path(batch_file).expanduser().read_text(encoding="utf-8").splitlines()
    cities: list[tuple[str, str]] = []
    for line_num, row in enumerate(csv.reader(lines), 1):
        if not row or not "".join(row).strip() or row[0].lstrip().startswith("#"):
            continue
        parts = [part.strip() for part in row]
        if len(parts) != 2 or not all(parts):
            logger.warning("Skipping invalid line %d: %s", line_num, lines[line_num - 1])
            continue
        cities.append((parts[0], parts[1]))
    return cities


def _resolve_style(parsed: argparse.Namespace) -> tuple[StyleConfig, str, dict[str, str]]:
    """Pick the style and theme from --preset, --style-pack and --theme.

    Raises:
        UsageError: On an unknown preset or theme, a broken theme file, or an
            unreadable style pack.
    """
    if parsed.preset and parsed.style_pack:
        raise UsageError("--preset cannot be combined with --style-pack.")

    style = StyleConfig()
    if parsed.preset:
        try:
            style = get_style_preset(parsed.preset)
        except KeyError:
            raise UsageError(
                f"Preset '{parsed.preset}' not found. "
                f"Available presets: {', '.join(get_available_presets())}"
            ) from None
    elif parsed.style_pack:
        pack = Path(parsed.style_pack).expanduser()
        if pack.suffix.lower() != ".json" or not pack.is_file():
            raise UsageError(f"Style pack '{parsed.style_pack}' is not a JSON file.")
        try:
            style = load_style_pack(pack)
        except (OSError, TypeError, ValueError) as e:
            raise UsageError(f"Failed to load style pack: {e}") from e

    theme_name = style.theme_name or parsed.theme
    themes = get_available_themes()
    if theme_name not in themes:
        raise UsageError(f"Theme '{theme_name}' not found. Available themes: {', '.join(themes)}")
    try:
        theme = load_theme(theme_name)
    except (OSError, ValueError) as e:
        raise UsageError(f"Theme '{theme_name}' could not be loaded: {e}") from e
    return style, theme_name, theme


def _resolve_options(parsed: argparse.Namespace) -> RenderOptions:
    try:
        width, height = canvas_size(parsed.aspect_ratio, parsed.orientation)
    except ValueError as e:
        raise UsageError(str(e)) from e
    if parsed.scale <= 0:
        raise UsageError("--scale must be positive.")

    style, theme_name, theme = _resolve_style(parsed)
    return RenderOptions(
        theme_name=theme_name,
        theme=theme,
        style=style,
        width=width,
        height=height,
        distance=parsed.distance,
        output_format=parsed.format,
        scale=parsed.scale,
    )


def _resolve_location(parsed: argparse.Namespace) -> tuple[str, str, tuple[float, float] | None]:
    """Return (city, country, point); point is None when geocoding is needed."""
    if (parsed.lat is None) != (parsed.lon is None):
        raise UsageError("--lat and --lon must be given together.")
    if parsed.lat is not None:
        city = parsed.city or f"{parsed.lat:.4f}_{parsed.lon:.4f}"
        return city, parsed.country or "", (parsed.lat, parsed.lon)
    if not (parsed.city and parsed.country):
        raise UsageError("--city and --country (or --lat and --lon) are required.")
    return parsed.city, parsed.country, None


def _render_one(
    options: RenderOptions,
    city: str,
    country: str,
    point: tuple[float, float] | None = None,
    output_file: Path | None = None,
) -> Path:
    """Geocode if needed and render one poster."""
    if point is None:
        point = get_coordinates(city, country)
    config = options.poster_config(city, country)
    return PosterRenderer(config).render(point, output_file or config.get_output_path())


def _process_batch(batch_file: str, options: RenderOptions) -> int:
    """Render one poster per batch line and report each outcome.

    Cities are rendered one after another so every fetch goes through the
    shared server rotation and request pacing in turn.

    Returns:
        0 when every city succeeded, 1 otherwise.
    """
    if not Path(batch_file).expanduser().is_file():
        print(f"Error: Batch file '{batch_file}' not found.")
        return 1
    cities = _parse_batch_file(batch_file)
    if not cities:
        print("Error: No valid cities found in batch file.")
        return 1

    print("=" * 50)
    print(f"Batch: {len(cities)} cities, theme {options.theme_name}")
    print("=" * 50)

    failures = 0
    for city, country in cities:
        try:
            written = _render_one(options, city, country)
        except RateLimited:
            failures += 1
            print(f"  ✗ {city}: {RATE_LIMIT_HINT}")
        except (GeoError, ExportError) as e:
            failures += 1
            print(f"  ✗ {city}: {e}")
        else:
            print(f"  ✓ {city} -> {written}")

    print("=" * 50)
    print(f"Batch complete: {len(cities) - failures} succeeded, {failures} failed")
    return 1 if failures else 0


def cli(args: list[str] | None = None) -> int:
    """Run the CLI with the given arguments.

    Args:
        args: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    argv = sys.argv[1:] if args is None else args
    if not argv:
        print(USAGE_EXAMPLES)
        return 0

    parsed = create_parser().parse_args(argv)
    if _run_info_command(parsed):
        return 0

    try:
        options = _resolve_options(parsed)
        if parsed.batch:
            return _process_batch(parsed.batch, options)
        city, country, point = _resolve_location(parsed)
    except UsageError as e:
        print(f"Error: {e}")
        return 1

    output_file = Path(parsed.output).expanduser() if parsed.output else None
    try:
        written = _render_one(options, city, country, point, output_file)
    except RateLimited as e:
        logger.debug("Rate limited: %s", e)
        print(f"\n✗ {RATE_LIMIT_HINT}")
        return 1
    except (GeoError, ExportError) as e:
        print(f"\n✗ Error: {e}")
        return 1

    print(f"\n✓ Poster saved to {written}")
    return 0


def main() -> NoReturn:
    """Console script entry point."""
    sys.exit(cli())


if __name__ == "__main__":
    main()
