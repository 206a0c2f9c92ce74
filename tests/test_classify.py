"""Tests for sorting raw elements into layers."""

from __future__ import annotations

import logging

import pytest

from cityposter.classify import DENSE_THRESHOLD, classify_element, classify_elements
from cityposter.models import GeoPoint, RawElement


def line(count: int, lat: float = 51.5, wiggle: float = 0.001) -> tuple[GeoPoint, ...]:
    """A polyline with enough bends to survive simplification."""
    return tuple(
        GeoPoint(lat + (wiggle if i % 2 else 0.0), -0.1 + i * 0.001) for i in range(count)
    )


def element(tags: dict[str, str], count: int = 4, kind: str = "way", eid: int = 1) -> RawElement:
    return RawElement(id=eid, type=kind, tags=tags, geometry=line(count))


class TestClassifyElement:
    """Tests for the per-element layer rules."""

    @pytest.mark.parametrize(
        ("tags", "kind", "expected"),
        [
            ({"highway": "residential"}, "way", "roads"),
            ({"natural": "water"}, "way", "water"),
            ({"waterway": "river"}, "way", "water"),
            ({"water": "lake"}, "way", "water"),
            ({"type": "multipolygon"}, "relation", "water"),
            ({"leisure": "park"}, "way", "parks"),
            ({"landuse": "forest"}, "way", "parks"),
            ({"landuse": "recreation_ground"}, "way", "parks"),
            ({"landuse": "industrial"}, "way", None),
            ({}, "way", None),
        ],
    )
    def test_rules(self, tags: dict[str, str], kind: str, expected: str | None) -> None:
        """Test each classification rule."""
        assert classify_element(element(tags, kind=kind)) == expected

    def test_highway_wins_over_other_tags(self) -> None:
        """Test that the first matching rule decides."""
        assert classify_element(element({"highway": "path", "leisure": "park"})) == "roads"

    def test_water_wins_over_park(self) -> None:
        """Test that water is checked before parks."""
        assert classify_element(element({"natural": "water", "leisure": "park"})) == "water"


class TestClassifyElements:
    """Tests for batch classification."""

    def test_two_point_motorway_is_kept(self) -> None:
        """Test that major roads need only two nodes."""
        roads, _, _, stats = classify_elements([element({"highway": "motorway"}, count=2)])
        assert len(roads) == 1
        assert stats.discarded == 0

    def test_two_point_park_is_dropped(self) -> None:
        """Test that parks need at least three nodes."""
        _, _, parks, stats = classify_elements([element({"leisure": "park"}, count=2)])
        assert parks == ()
        assert stats.discarded == 1

    def test_single_point_geometry_is_dropped(self) -> None:
        """Test that anything under two nodes is dropped."""
        _, water, _, stats = classify_elements([element({"natural": "water"}, count=1)])
        assert water == ()
        assert stats.discarded == 1

    @pytest.mark.parametrize("highway", ["service", "unclassified"])
    def test_short_minor_roads_dropped(self, highway: str) -> None:
        """Test that two-node service and unclassified roads are dropped."""
        roads, _, _, _ = classify_elements([element({"highway": highway}, count=2)])
        assert roads == ()

    @pytest.mark.parametrize("highway", ["service", "unclassified"])
    def test_longer_minor_roads_kept(self, highway: str) -> None:
        """Test that minor roads with three nodes survive when not dense."""
        roads, _, _, _ = classify_elements([element({"highway": highway}, count=3)])
        assert len(roads) == 1

    def test_untagged_elements_are_discarded(self) -> None:
        """Test that elements matching no layer are counted as discarded."""
        _, _, _, stats = classify_elements([element({"building": "yes"})])
        assert stats.discarded == 1
        assert stats.total == 1

    def test_order_preserved_per_layer(self) -> None:
        """Test that each layer keeps input order."""
        items = [
            element({"highway": "primary"}, eid=1),
            element({"leisure": "park"}, eid=2),
            element({"highway": "residential"}, eid=3),
            element({"natural": "water"}, eid=4),
            element({"highway": "motorway"}, eid=5),
        ]
        roads, water, parks, stats = classify_elements(items)
        assert [r.id for r in roads] == [1, 3, 5]
        assert [w.id for w in water] == [4]
        assert [p.id for p in parks] == [2]
        assert (stats.roads, stats.water, stats.parks) == (3, 1, 1)

    def test_geometry_is_simplified(self) -> None:
        """Test that straight runs lose their interior vertices."""
        straight = tuple(GeoPoint(51.5, -0.1 + i * 0.001) for i in range(20))
        raw = RawElement(id=9, type="way", tags={"highway": "primary"}, geometry=straight)
        roads, _, _, _ = classify_elements([raw])
        assert roads[0].geometry == (straight[0], straight[-1])
        assert roads[0].tags == raw.tags

    def test_dense_mode_drops_all_minor_roads(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that above the threshold minor roads vanish and a warning is logged."""
        items = [
            element({"highway": "service" if i % 2 else "residential"}, count=5, eid=i)
            for i in range(DENSE_THRESHOLD + 1)
        ]
        with caplog.at_level(logging.WARNING, logger="cityposter.classify"):
            roads, _, _, stats = classify_elements(items)

        assert stats.dense is True
        assert all(road.highway == "residential" for road in roads)
        assert len(roads) == (DENSE_THRESHOLD + 1 + 1) // 2
        assert "very dense" in caplog.text

    def test_at_threshold_is_not_dense(self) -> None:
        """Test that exactly the threshold count keeps normal filtering."""
        items = [element({"highway": "service"}, count=3, eid=i) for i in range(DENSE_THRESHOLD)]
        roads, _, _, stats = classify_elements(items)
        assert stats.dense is False
        assert len(roads) == DENSE_THRESHOLD

    def test_empty_input(self) -> None:
        """Test that no elements give empty layers."""
        roads, water, parks, stats = classify_elements([])
        assert roads == water == parks == ()
        assert stats.total == 0
