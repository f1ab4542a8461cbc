"""
Unit tests for corridor route synthesis.

Tests waypoint selection, direction handling, predicted-sample merging and
the straight-line fallback.
"""

import pytest

from voyagesim.data.corridors import (
    ASIA_EUROPE_SEA,
    CORRIDOR_BY_CODE,
    DEFAULT_CORRIDOR,
    CorridorDefinition,
    get_corridor,
)
from voyagesim.routes.corridor import CorridorSynthesizer, synthesize_route
from voyagesim.routes.geometry import cumulative_lengths_km, nearest_point_on_line
from voyagesim.routes.route import RouteKind, RouteSource

ORIGIN = (120.0, 30.0)
DESTINATION = (-0.5, 51.5)


# ---------------------------------------------------------------------------
# §1 – Corridor data
# ---------------------------------------------------------------------------
class TestCorridorData:

    def test_default_is_asia_europe(self):
        assert DEFAULT_CORRIDOR is ASIA_EUROPE_SEA
        assert CORRIDOR_BY_CODE["ASEU"] is ASIA_EUROPE_SEA

    def test_waypoints_valid(self):
        for lon, lat in ASIA_EUROPE_SEA.waypoints:
            assert -180 <= lon <= 180
            assert -90 <= lat <= 90

    def test_unknown_code_falls_back(self):
        assert get_corridor("NOPE") is DEFAULT_CORRIDOR


# ---------------------------------------------------------------------------
# §2 – Waypoint selection
# ---------------------------------------------------------------------------
class TestCorridorWaypoints:

    @pytest.fixture
    def synth(self):
        return CorridorSynthesizer(margin_deg=3.0)

    def test_westbound_descending_order(self, synth):
        waypoints = synth.corridor_waypoints(ORIGIN, DESTINATION)
        lons = [wp[0] for wp in waypoints]
        assert lons == sorted(lons, reverse=True)
        # 122 is within the 3 degree margin east of the origin
        assert lons[0] == 122.0
        assert lons[-1] == 0.0

    def test_eastbound_ascending_order(self, synth):
        waypoints = synth.corridor_waypoints(DESTINATION, ORIGIN)
        lons = [wp[0] for wp in waypoints]
        assert lons == sorted(lons)

    def test_margin_excludes_far_waypoints(self):
        synth = CorridorSynthesizer(margin_deg=0.0)
        lons = [wp[0] for wp in synth.corridor_waypoints((100.0, 10.0), (60.0, 20.0))]
        assert lons == [97.0, 82.0, 68.0]

    def test_corridor_line_dedupes(self, synth):
        line = synth.corridor_line((122.0, 33.0), (116.0, 22.0))
        for a, b in zip(line, line[1:]):
            assert a != b


# ---------------------------------------------------------------------------
# §3 – Synthesis
# ---------------------------------------------------------------------------
class TestSynthesize:

    @pytest.fixture
    def synth(self):
        return CorridorSynthesizer()

    def test_origin_destination_only_scenario(self, synth):
        route = synth.synthesize(ORIGIN, DESTINATION)
        assert len(route) >= 2
        assert route[0] == ORIGIN
        assert route[-1] == DESTINATION

    def test_follows_corridor(self, synth):
        route = synth.synthesize(ORIGIN, DESTINATION)
        assert (40.0, 30.0) in route  # Suez approach

    def test_outside_corridor_is_straight(self):
        empty = CorridorDefinition(name="Empty", code="NONE", waypoints=())
        synth = CorridorSynthesizer(corridor=empty)
        assert synth.synthesize((0.0, 0.0), (1.0, 1.0)) == [(0.0, 0.0), (1.0, 1.0)]

    def test_same_origin_and_destination(self, synth):
        route = synth.synthesize((50.0, 50.0), (50.0, 50.0))
        assert route == [(50.0, 50.0), (50.0, 50.0)]

    def test_predicted_samples_merged_in_corridor_order(self, synth):
        predicted = [(60.0, 19.0), (90.0, 7.5), (30.0, 33.0)]
        route = synth.synthesize(ORIGIN, DESTINATION, predicted)

        corridor = synth.corridor_line(ORIGIN, DESTINATION)
        locations = [nearest_point_on_line(corridor, point).location_km for point in route]
        assert locations == sorted(locations)
        assert route[0] == ORIGIN
        assert route[-1] == DESTINATION
        assert len(route) > len(corridor)

    def test_predicted_order_does_not_matter(self, synth):
        predicted = [(60.0, 19.0), (90.0, 7.5), (30.0, 33.0)]
        forward = synth.synthesize(ORIGIN, DESTINATION, predicted)
        shuffled = synth.synthesize(ORIGIN, DESTINATION, list(reversed(predicted)))
        assert forward == shuffled

    def test_sample_on_waypoint_collapses(self, synth):
        route = synth.synthesize(ORIGIN, DESTINATION, [(82.0, 8.0)])
        assert route.count((82.0, 8.0)) == 1
        assert route == synth.corridor_line(ORIGIN, DESTINATION)

    def test_samples_beyond_ends_are_dropped(self, synth):
        route = synth.synthesize(ORIGIN, DESTINATION, [(130.0, 30.0), (-10.0, 55.0)])
        assert route == synth.corridor_line(ORIGIN, DESTINATION)
        assert route[-1] == DESTINATION

    def test_no_zero_length_segments(self, synth):
        route = synth.synthesize(ORIGIN, DESTINATION, [(60.0, 19.0), (60.0, 19.0)])
        lengths = cumulative_lengths_km(route)
        assert all(b > a for a, b in zip(lengths, lengths[1:]))

    def test_functional_shortcut(self):
        assert synthesize_route(ORIGIN, DESTINATION) == CorridorSynthesizer().synthesize(ORIGIN, DESTINATION)


class TestCorridorRoute:

    def test_route_tagged_corridor(self):
        route = CorridorSynthesizer().route(ORIGIN, DESTINATION)
        assert route.source == RouteSource.CORRIDOR
        assert route.kind == RouteKind.PREDICTED

    def test_route_tagged_straight(self):
        empty = CorridorDefinition(name="Empty", code="NONE", waypoints=())
        route = CorridorSynthesizer(corridor=empty).route((0.0, 0.0), (1.0, 1.0), kind=RouteKind.LAST_MILE)
        assert route.source == RouteSource.STRAIGHT
        assert route.kind == RouteKind.LAST_MILE
