"""Tests for SVG document assembly."""

from __future__ import annotations

import xml.etree.ElementTree as ET

from cityposter.compose import ComposedLayers
from cityposter.config import load_theme
from cityposter.models import PathPrimitive, PolygonPrimitive
from cityposter.styles import StyleConfig
from cityposter.svg import build_svg


SVG_NS = "{http://www.w3.org/2000/svg}"
THEME = load_theme("noir")


def sample_layers() -> ComposedLayers:
    park = PolygonPrimitive(
        key="park-0", coords=((10.0, 10.0), (20.0, 10.0), (20.0, 20.0)), fill=THEME["parks"]
    )
    lake = PolygonPrimitive(
        key="water-0", coords=((30.0, 30.0), (40.0, 30.0), (40.0, 40.0)), fill=THEME["water"]
    )
    river = PathPrimitive(
        key="water-1", coords=((0.0, 50.0), (600.0, 60.0)), stroke=THEME["water"], stroke_width=0.8
    )
    road = PathPrimitive(
        key="road-0",
        coords=((100.0, 100.0), (200.0, 150.0), (300.0, 100.0)),
        stroke=THEME["road_motorway"],
        stroke_width=1.5,
        join="round",
    )
    return ComposedLayers(
        parks=(park,), water=(lake, river), roads=(road,), width=600.0, height=800.0
    )


def parse(document: str) -> ET.Element:
    return ET.fromstring(document.encode("utf-8"))


class TestBuildSvg:
    """Tests for build_svg."""

    def test_document_header_and_size(self) -> None:
        """Test that the root element carries the canvas size and viewBox."""
        document = build_svg(sample_layers(), THEME)
        assert document.startswith("<?xml")
        root = parse(document)
        assert root.tag == f"{SVG_NS}svg"
        view_box = root.get("viewBox").replace(",", " ").split()
        assert [float(v) for v in view_box] == [0.0, 0.0, 600.0, 800.0]

    def test_background_first(self) -> None:
        """Test that the background rect is painted before the map."""
        root = parse(build_svg(sample_layers(), THEME))
        drawn = [child for child in root if child.tag != f"{SVG_NS}defs"]
        assert drawn[0].tag == f"{SVG_NS}rect"
        assert drawn[0].get("fill") == THEME["bg"]
        assert drawn[1].get("id") == "map-content"

    def test_primitives_in_paint_order(self) -> None:
        """Test that the content group holds every primitive in order."""
        root = parse(build_svg(sample_layers(), THEME))
        group = root.find(f"{SVG_NS}g[@id='map-content']")
        assert group is not None
        assert [child.get("id") for child in group] == ["park-0", "water-0", "water-1", "road-0"]
        assert [child.tag for child in group] == [
            f"{SVG_NS}polygon",
            f"{SVG_NS}polygon",
            f"{SVG_NS}path",
            f"{SVG_NS}path",
        ]

    def test_polygon_attributes(self) -> None:
        """Test fill, stroke and points of a polygon."""
        root = parse(build_svg(sample_layers(), THEME))
        park = root.find(f".//{SVG_NS}polygon[@id='park-0']")
        assert park is not None
        assert park.get("fill") == THEME["parks"]
        assert park.get("stroke") == "none"
        assert len(park.get("points").split()) == 3

    def test_path_attributes(self) -> None:
        """Test stroke styling and path data of a road."""
        root = parse(build_svg(sample_layers(), THEME))
        road = root.find(f".//{SVG_NS}path[@id='road-0']")
        assert road is not None
        assert road.get("d") == "M 100.0,100.0 L 200.0,150.0 L 300.0,100.0"
        assert road.get("stroke") == THEME["road_motorway"]
        assert float(road.get("stroke-width")) == 1.5
        assert road.get("fill") == "none"
        assert road.get("stroke-linecap") == "round"
        assert road.get("stroke-linejoin") == "round"

    def test_waterway_has_no_join(self) -> None:
        """Test that the join attribute is only set when requested."""
        root = parse(build_svg(sample_layers(), THEME))
        river = root.find(f".//{SVG_NS}path[@id='water-1']")
        assert river is not None
        assert river.get("stroke-linejoin") is None

    def test_default_fades(self) -> None:
        """Test that top and bottom fades are drawn with the gradient color."""
        root = parse(build_svg(sample_layers(), THEME))
        gradients = root.findall(f".//{SVG_NS}linearGradient")
        assert {g.get("id") for g in gradients} == {"topFade", "bottomFade"}
        stops = gradients[0].findall(f"{SVG_NS}stop")
        assert {s.get("stop-color") for s in stops} == {THEME["gradient_color"]}

        fades = [r for r in root.findall(f"{SVG_NS}rect") if "url(#" in (r.get("fill") or "")]
        assert len(fades) == 2
        assert float(fades[0].get("height")) == 200.0
        assert float(fades[1].get("y")) == 600.0

    def test_fades_disabled(self) -> None:
        """Test that a zero gradient strength leaves out the fades."""
        document = build_svg(sample_layers(), THEME, StyleConfig(gradient_strength=0.0))
        assert "linearGradient" not in document

    def test_empty_layers(self) -> None:
        """Test that an empty map still yields a valid document."""
        root = parse(build_svg(ComposedLayers(width=800.0, height=600.0), THEME))
        group = root.find(f"{SVG_NS}g[@id='map-content']")
        assert group is not None
        assert len(group) == 0
