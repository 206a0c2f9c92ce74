"""Configuration: themes, output paths and fetch settings.

Themes are JSON files mapping color roles to hex colors. The bundled set
ships in ``data/themes``; ``CITYPOSTER_THEMES_DIR`` points the loader at a
different directory. Posters are written to ``posters/`` under the working
directory unless ``CITYPOSTER_OUTPUT_DIR`` says otherwise.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .render_constants import DEFAULT_CANVAS_HEIGHT, DEFAULT_CANVAS_WIDTH, DEFAULT_EXPORT_SCALE
from .styles import StyleConfig


__all__ = [
    "DEFAULT_OVERPASS_SERVERS",
    "DEFAULT_THEME_NAME",
    "FetchSettings",
    "PosterConfig",
    "ThemeValidationError",
    "generate_output_filename",
    "get_available_themes",
    "get_posters_dir",
    "get_themes_dir",
    "load_theme",
]

logger = logging.getLogger(__name__)


class ThemeValidationError(ValueError):
    """Raised when a theme file lacks one of the required color roles."""


DEFAULT_THEME_NAME = "feature_based"

REQUIRED_THEME_KEYS = frozenset(
    {
        "name",
        "bg",
        "text",
        "gradient_color",
        "water",
        "parks",
        "road_motorway",
        "road_primary",
        "road_secondary",
        "road_tertiary",
        "road_residential",
        "road_default",
    }
)

# Used when a requested theme file does not exist
FALLBACK_THEME: dict[str, str] = {
    "name": "Feature-Based Shading",
    "bg": "#FFFFFF",
    "text": "#000000",
    "gradient_color": "#FFFFFF",
    "water": "#C0C0C0",
    "parks": "#F0F0F0",
    "road_motorway": "#0A0A0A",
    "road_primary": "#1A1A1A",
    "road_secondary": "#2A2A2A",
    "road_tertiary": "#3A3A3A",
    "road_residential": "#4A4A4A",
    "road_default": "#3A3A3A",
}

# Overpass API instances, tried in round-robin order
DEFAULT_OVERPASS_SERVERS = (
    "https://overpass-api.de/api/interpreter",
    "https://overpass.openstreetmap.ru/api/interpreter",
    "https://overpass.nchc.org.tw/api/interpreter",
    "https://overpass.kumi.systems/api/interpreter",
)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w-]+")


def get_themes_dir() -> Path:
    override = os.environ.get("CITYPOSTER_THEMES_DIR")
    if override:
        return Path(override).expanduser()
    return Path(__file__).parent / "data" / "themes"


def get_posters_dir() -> Path:
    """Return the output directory, creating it if necessary."""
    posters_dir = Path(os.environ.get("CITYPOSTER_OUTPUT_DIR") or Path.cwd() / "posters")
    posters_dir.mkdir(parents=True, exist_ok=True)
    return posters_dir


def get_available_themes() -> list[str]:
    """Return the sorted names of every theme file, without extension."""
    themes_dir = get_themes_dir()
    if not themes_dir.is_dir():
        return []
    return sorted(path.stem for path in themes_dir.glob("*.json"))


def load_theme(theme_name: str = DEFAULT_THEME_NAME) -> dict[str, str]:
    """Load a theme by name.

    A name with no matching file logs a warning and yields the built-in
    fallback colors, so a typo never stops a render.

    Args:
        theme_name: File name of the theme, without ``.json``.

    Returns:
        A mapping from color role to color.

    Raises:
        ThemeValidationError: If the file lacks required roles.
        ValueError: If the file does not hold a JSON object.
    """
    theme_file = get_themes_dir() / f"{theme_name}.json"
    if not theme_file.is_file():
        logger.warning("Theme '%s' not found. Using fallback colors.", theme_name)
        return dict(FALLBACK_THEME)

    data = json.loads(theme_file.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Theme file '{theme_file}' is not a JSON object.")

    missing = REQUIRED_THEME_KEYS - data.keys()
    if missing:
        raise ThemeValidationError(
            f"Theme '{theme_name}' is missing required keys: {', '.join(sorted(missing))}"
        )

    logger.debug("Loaded theme: %s", data["name"])
    return {str(key): str(value) for key, value in data.items()}


def _slug(text: str) -> str:
    slug = _UNSAFE_FILENAME_CHARS.sub("_", text.lower()).strip("_")
    return slug or "poster"


def generate_output_filename(
    city: str,
    theme_name: str,
    output_format: str = "svg",
) -> Path:
    """Build a timestamped path such as ``posters/paris_noir_20240101_120000.svg``."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"{_slug(city)}_{_slug(theme_name)}_{timestamp}.{output_format.lower()}"
    return get_posters_dir() / filename


@dataclass(frozen=True)
class FetchSettings:
    """Backend etiquette and retry policy for the Overpass client."""

    servers: tuple[str, ...] = DEFAULT_OVERPASS_SERVERS
    cache_ttl_seconds: float = 15 * 60
    request_spacing_seconds: float = 1.0
    max_retries: int = 3
    initial_backoff_seconds: float = 2.0
    backoff_multiplier: float = 1.5
    # Fetch beyond the radius so the frame is filled after aspect correction
    radius_expansion: float = 1.35
    query_timeout: int = 60
    request_timeout: float = 90.0
    user_agent: str = "cityposter"

    def __post_init__(self) -> None:
        if not self.servers:
            raise ValueError("At least one Overpass server is required.")

    @classmethod
    def from_env(cls) -> FetchSettings:
        """Build settings, honoring CITYPOSTER_* environment overrides."""
        overrides: dict[str, object] = {}
        servers = os.environ.get("CITYPOSTER_OVERPASS_SERVERS")
        if servers:
            overrides["servers"] = tuple(s.strip() for s in servers.split(",") if s.strip())
        ttl = os.environ.get("CITYPOSTER_CACHE_TTL")
        if ttl:
            overrides["cache_ttl_seconds"] = float(ttl)
        return cls(**overrides)  # type: ignore[arg-type]


@dataclass
class PosterConfig:
    """Configuration for poster generation."""

    city: str
    country: str
    theme_name: str = DEFAULT_THEME_NAME
    distance: int = 5000
    width: float = DEFAULT_CANVAS_WIDTH
    height: float = DEFAULT_CANVAS_HEIGHT
    output_format: str = "svg"
    scale: float = DEFAULT_EXPORT_SCALE
    style_config: StyleConfig | None = None
    theme: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Load theme data after initialization."""
        if not self.theme:
            self.theme = load_theme(self.theme_name)
        if self.style_config is None:
            self.style_config = StyleConfig()

    def get_output_path(self) -> Path:
        """Generate the output file path."""
        return generate_output_filename(self.city, self.theme_name, self.output_format)
