"""Tests for the config module."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from cityposter.config import (
    DEFAULT_OVERPASS_SERVERS,
    REQUIRED_THEME_KEYS,
    FetchSettings,
    PosterConfig,
    ThemeValidationError,
    generate_output_filename,
    get_available_themes,
    load_theme,
)
from cityposter.styles import StyleConfig


class TestThemes:
    """Tests for theme loading functions."""

    def test_bundled_themes_are_found(self) -> None:
        """Test that the packaged themes are discovered."""
        themes = get_available_themes()
        assert "feature_based" in themes
        assert themes == sorted(themes)

    def test_load_default_theme(self) -> None:
        """Test loading the default theme."""
        theme = load_theme("feature_based")
        assert theme["bg"] == "#FFFFFF"
        assert theme["road_motorway"] == "#0A0A0A"

    def test_load_nonexistent_theme_falls_back(self) -> None:
        """Test that an unknown theme name yields the default colors."""
        theme = load_theme("nonexistent_theme_xyz")
        assert theme["name"] == "Feature-Based Shading"
        assert REQUIRED_THEME_KEYS <= theme.keys()

    def test_incomplete_theme_is_rejected(self, tmp_path: Path) -> None:
        """Test that a theme file missing keys raises ThemeValidationError."""
        (tmp_path / "partial.json").write_text(json.dumps({"name": "Partial", "bg": "#000"}))
        with (
            patch("cityposter.config.get_themes_dir", return_value=tmp_path),
            pytest.raises(ThemeValidationError, match="missing required keys"),
        ):
            load_theme("partial")

    def test_non_object_theme_is_rejected(self, tmp_path: Path) -> None:
        """Test that a theme file holding a JSON list raises ValueError."""
        (tmp_path / "listy.json").write_text("[1, 2, 3]")
        with (
            patch("cityposter.config.get_themes_dir", return_value=tmp_path),
            pytest.raises(ValueError, match="not a JSON object"),
        ):
            load_theme("listy")


class TestOutputFilename:
    """Tests for filename generation."""

    def test_generate_output_filename_format(self, tmp_path: Path) -> None:
        """Test output filename carries city, theme and extension."""
        with patch("cityposter.config.get_posters_dir", return_value=tmp_path):
            filename = generate_output_filename("New York", "noir", "png")
        assert filename.parent == tmp_path
        assert filename.stem.startswith("new_york_noir_")
        assert filename.suffix == ".png"

    def test_default_format_is_svg(self, tmp_path: Path) -> None:
        """Test that SVG is the default extension."""
        with patch("cityposter.config.get_posters_dir", return_value=tmp_path):
            assert generate_output_filename("Tokyo", "japanese_ink").suffix == ".svg"

    def test_unsafe_characters_are_removed(self, tmp_path: Path) -> None:
        """Test that path characters in city names do not escape the directory."""
        with patch("cityposter.config.get_posters_dir", return_value=tmp_path):
            filename = generate_output_filename("../São/Paulo", "noir", "svg")
        assert filename.parent == tmp_path
        assert "/" not in filename.name
        assert filename.name.startswith("são_paulo_noir_")


class TestDirectoryOverrides:
    """Tests for environment-driven directories."""

    def test_themes_dir_override(self, tmp_path: Path) -> None:
        """Test that CITYPOSTER_THEMES_DIR replaces the bundled themes."""
        theme = {key: "#ABCDEF" for key in REQUIRED_THEME_KEYS}
        (tmp_path / "custom.json").write_text(json.dumps({**theme, "name": "Custom"}))
        with patch.dict("os.environ", {"CITYPOSTER_THEMES_DIR": str(tmp_path)}):
            assert get_available_themes() == ["custom"]
            assert load_theme("custom")["bg"] == "#ABCDEF"

    def test_output_dir_override(self, tmp_path: Path) -> None:
        """Test that CITYPOSTER_OUTPUT_DIR is created and used."""
        target = tmp_path / "out"
        with patch.dict("os.environ", {"CITYPOSTER_OUTPUT_DIR": str(target)}):
            filename = generate_output_filename("Lima", "noir")
        assert filename.parent == target
        assert target.is_dir()


class TestPosterConfig:
    """Tests for PosterConfig dataclass."""

    def test_defaults(self) -> None:
        """Test the default canvas, radius and format."""
        config = PosterConfig(city="Paris", country="France")
        assert config.theme_name == "feature_based"
        assert config.distance == 5000
        assert (config.width, config.height) == (600, 800)
        assert config.output_format == "svg"
        assert config.scale == 3.0

    def test_loads_theme_and_style(self) -> None:
        """Test that theme and style are filled in on init."""
        config = PosterConfig(city="Berlin", country="Germany", theme_name="noir")
        assert config.theme["name"]
        assert isinstance(config.style_config, StyleConfig)

    def test_explicit_theme_is_kept(self) -> None:
        """Test that a provided theme dict is not reloaded."""
        theme = {**load_theme("feature_based"), "bg": "#123456"}
        config = PosterConfig(city="Oslo", country="Norway", theme=theme)
        assert config.theme["bg"] == "#123456"


class TestFetchSettings:
    """Tests for Overpass fetch settings."""

    def test_defaults(self) -> None:
        """Test default etiquette values."""
        settings = FetchSettings()
        assert settings.servers == DEFAULT_OVERPASS_SERVERS
        assert len(settings.servers) == 4
        assert settings.cache_ttl_seconds == 900
        assert settings.request_spacing_seconds == 1.0
        assert settings.max_retries == 3
        assert settings.initial_backoff_seconds == 2.0
        assert settings.backoff_multiplier == 1.5
        assert settings.radius_expansion == 1.35

    def test_empty_server_list_rejected(self) -> None:
        """Test that at least one server is required."""
        with pytest.raises(ValueError, match="At least one"):
            FetchSettings(servers=())

    def test_from_env_overrides(self) -> None:
        """Test that environment variables override servers and TTL."""
        env = {
            "CITYPOSTER_OVERPASS_SERVERS": "https://a.example/api, https://b.example/api",
            "CITYPOSTER_CACHE_TTL": "60",
        }
        with patch.dict("os.environ", env):
            settings = FetchSettings.from_env()
        assert settings.servers == ("https://a.example/api", "https://b.example/api")
        assert settings.cache_ttl_seconds == 60.0

    def test_from_env_without_overrides(self) -> None:
        """Test that missing variables keep defaults."""
        with patch.dict("os.environ", {}, clear=True):
            assert FetchSettings.from_env() == FetchSettings()


class TestAllThemesParametric:
    """Parametric tests that run against all available themes."""

    @pytest.mark.parametrize("theme_name", get_available_themes())
    def test_theme_has_required_keys(self, theme_name: str) -> None:
        """Test that each theme has all required keys."""
        theme = load_theme(theme_name)
        missing = REQUIRED_THEME_KEYS - theme.keys()
        assert not missing, f"Theme {theme_name} missing keys: {missing}"

    @pytest.mark.parametrize("theme_name", get_available_themes())
    def test_theme_colors_are_hex(self, theme_name: str) -> None:
        """Test that every color role holds a hex color."""
        theme = load_theme(theme_name)
        for key in REQUIRED_THEME_KEYS - {"name"}:
            color = theme[key]
            assert color.startswith("#"), f"{theme_name}.{key} should start with #"
            assert len(color) in (4, 7, 9), f"{theme_name}.{key} has invalid length"
