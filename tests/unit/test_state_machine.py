"""
Unit tests for the navigation state machine.

Async scenarios are driven with ``asyncio.run``; the gated fake directions
provider holds a lookup open until the test releases it.
"""

import asyncio

import pytest

from conftest import DELIVERY, DESTINATION, ORIGIN, PICKUP, FakeDirections, RecordingSurface
from voyagesim.navigation.scene import DELIVERY_LAYER, PICKUP_LAYER, CameraAction, NavigationMode
from voyagesim.navigation.state_machine import NavigationStateMachine, TransitionTrigger
from voyagesim.navigation.viewport import Viewport
from voyagesim.resolution.resolver import RouteResolver
from voyagesim.routes.route import Route, RouteEndpoints, RouteKind, RouteSource

OVERVIEW = NavigationMode.OVERVIEW
PICKUP_LEG = NavigationMode.PICKUP_LEG
DELIVERY_LEG = NavigationMode.DELIVERY_LEG


def _cache_both_legs(resolver):
    resolver.cache.store_route(
        PICKUP, ORIGIN,
        Route.build([PICKUP, (120.2, 36.2), ORIGIN], RouteKind.LAST_MILE, RouteSource.DIRECTIONS),
    )
    resolver.cache.store_route(
        DESTINATION, DELIVERY,
        Route.build([DESTINATION, (0.2, 51.5), DELIVERY], RouteKind.LAST_MILE, RouteSource.DIRECTIONS),
    )


@pytest.fixture
def nav(endpoints, resolver, surface, settings):
    return NavigationStateMachine(endpoints, resolver, surface=surface, settings=settings)


@pytest.fixture
def gated(endpoints, geocoder, cache, settings, metrics_collector, surface):
    """State machine whose directions lookups wait for ``release()``."""
    directions = FakeDirections(gated=True)
    resolver = RouteResolver(geocoder, directions, cache=cache, settings=settings, metrics=metrics_collector)
    machine = NavigationStateMachine(endpoints, resolver, surface=surface, settings=settings)
    return machine, directions


# ---------------------------------------------------------------------------
# §1 – Entering and leaving legs
# ---------------------------------------------------------------------------
class TestTransitions:

    def test_starts_in_overview(self, nav):
        assert nav.mode == OVERVIEW
        assert not nav.is_3d
        assert nav.truck is None

    def test_enter_resolves_route(self, nav, directions, surface):
        mode = asyncio.run(nav.enter(PICKUP_LEG))

        assert mode == PICKUP_LEG
        assert nav.is_3d
        assert nav.truck is not None
        assert nav.segment.distance_km > 0
        assert nav.active_route.source == RouteSource.DIRECTIONS
        assert directions.calls == [(PICKUP, ORIGIN)]
        assert nav.transitions == [(OVERVIEW, PICKUP_LEG)]

    def test_camera_applied_before_layers(self, nav, surface):
        asyncio.run(nav.enter(PICKUP_LEG))

        assert surface.kinds() == ["camera", "camera", "terrain", "layers"]
        fly = surface.calls[0][1]
        assert fly.action == CameraAction.FLY_TO
        assert fly.pitch == 45.0
        assert surface.last("terrain")[1].enabled

    def test_cached_route_enters_immediately(self, nav, resolver):
        _cache_both_legs(resolver)
        assert nav.request_leg(DELIVERY_LEG)
        assert nav.mode == DELIVERY_LEG
        assert nav.pending_mode is None

    def test_failed_directions_still_enter(self, endpoints, geocoder, cache, settings, metrics_collector, surface):
        resolver = RouteResolver(
            geocoder, FakeDirections(fail=True), cache=cache, settings=settings, metrics=metrics_collector
        )
        machine = NavigationStateMachine(endpoints, resolver, surface=surface, settings=settings)

        assert asyncio.run(machine.enter(DELIVERY_LEG)) == DELIVERY_LEG
        assert machine.active_route.source != RouteSource.DIRECTIONS
        assert machine.active_route.start == DESTINATION
        assert machine.active_route.end == DELIVERY

    def test_no_direct_leg_to_leg(self, nav, resolver):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        assert nav.request_leg(DELIVERY_LEG) is False
        assert nav.mode == PICKUP_LEG

        nav.close()
        assert nav.request_leg(DELIVERY_LEG)
        assert nav.transitions == [
            (OVERVIEW, PICKUP_LEG),
            (PICKUP_LEG, OVERVIEW),
            (OVERVIEW, DELIVERY_LEG),
        ]

    def test_overview_request_closes(self, nav, resolver):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        assert nav.request_leg(OVERVIEW)
        assert nav.mode == OVERVIEW

    def test_leg_endpoints(self, nav):
        assert nav.leg_endpoints(PICKUP_LEG) == (PICKUP, ORIGIN)
        assert nav.leg_endpoints(DELIVERY_LEG) == (DESTINATION, DELIVERY)
        with pytest.raises(ValueError):
            nav.leg_endpoints(OVERVIEW)


class TestClose:

    def test_close_resets_view(self, nav, resolver, surface):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        surface.clear()

        nav.close()
        assert nav.mode == OVERVIEW
        assert not nav.is_3d
        assert nav.truck is None
        assert nav.segment is None

        ease, fit = [call[1] for call in surface.calls if call[0] == "camera"]
        assert ease.action == CameraAction.EASE_TO
        assert ease.pitch == 0.0 and ease.bearing == 0.0
        assert fit.action == CameraAction.FIT_BOUNDS
        assert surface.last("terrain")[1].enabled is False
        _, layers, markers = surface.last("layers")
        assert "truck" not in {m.id for m in markers}

    def test_double_close_is_noop(self, nav, resolver, surface):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        nav.close()
        transitions = list(nav.transitions)
        surface.clear()

        nav.close()
        assert nav.mode == OVERVIEW
        assert nav.transitions == transitions
        assert surface.calls == []

    def test_close_clears_emphasis(self, nav, resolver):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        assert nav.scene().layer(PICKUP_LAYER).width == 8.0
        assert nav.scene().layer(DELIVERY_LAYER).opacity == 0.3

        nav.close()
        scene = nav.scene()
        assert scene.layer(PICKUP_LAYER).width == 6.0
        assert scene.layer(PICKUP_LAYER).opacity == 0.9
        assert scene.layer(DELIVERY_LAYER).opacity == 0.9

    def test_close_before_resolution(self, gated, surface):
        machine, directions = gated

        async def scenario():
            assert machine.request_leg(PICKUP_LEG)
            await asyncio.sleep(0)
            assert machine.pending_mode == PICKUP_LEG
            machine.close()
            assert machine.mode == OVERVIEW
            assert machine.pending_mode is None

            directions.release()
            await machine.resolver.wait_idle()
            await asyncio.sleep(0)

        asyncio.run(scenario())
        # The late result is cached but causes no transition
        assert machine.mode == OVERVIEW
        assert machine.transitions == []
        assert machine.resolver.peek_route(PICKUP, ORIGIN) is not None
        assert "camera" not in surface.kinds()

    def test_close_in_same_tick_still_fetches(self, gated):
        machine, directions = gated

        async def scenario():
            machine.request_leg(PICKUP_LEG)
            machine.close()
            directions.release()
            await machine.resolver.wait_idle()

        asyncio.run(scenario())
        assert machine.mode == OVERVIEW
        assert directions.calls == [(PICKUP, ORIGIN)]
        assert machine.resolver.peek_route(PICKUP, ORIGIN) is not None


# ---------------------------------------------------------------------------
# §2 – Single-writer queue
# ---------------------------------------------------------------------------
class TestPendingRequests:

    def test_requests_dropped_while_pending(self, gated):
        machine, directions = gated

        async def scenario():
            assert machine.request_leg(PICKUP_LEG)
            assert machine.request_leg(DELIVERY_LEG) is False
            assert machine.request_leg(PICKUP_LEG) is False
            await asyncio.sleep(0)
            directions.release()
            await machine.wait_pending()

        asyncio.run(scenario())
        assert machine.mode == PICKUP_LEG
        assert machine.transitions == [(OVERVIEW, PICKUP_LEG)]
        assert len(directions.calls) == 1

    def test_request_after_cancel_is_accepted(self, gated):
        machine, directions = gated

        async def scenario():
            machine.request_leg(PICKUP_LEG)
            machine.close()
            assert machine.request_leg(DELIVERY_LEG)
            await asyncio.sleep(0)
            directions.release()
            await machine.wait_pending()

        asyncio.run(scenario())
        assert machine.mode == DELIVERY_LEG
        assert machine.transitions == [(OVERVIEW, DELIVERY_LEG)]


# ---------------------------------------------------------------------------
# §3 – Viewport-triggered navigation
# ---------------------------------------------------------------------------
class TestViewportNavigation:

    def test_zoom_in_near_pickup_enters(self, nav, resolver):
        _cache_both_legs(resolver)
        assert nav.on_viewport_change(Viewport(center=PICKUP, zoom=10)) == PICKUP_LEG
        assert nav.mode == PICKUP_LEG

    def test_zoomed_out_stays_in_overview(self, nav, resolver):
        _cache_both_legs(resolver)
        assert nav.on_viewport_change(Viewport(center=PICKUP, zoom=5)) is None
        assert nav.mode == OVERVIEW

    def test_viewport_ignored_inside_leg(self, nav, resolver):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        assert nav.on_viewport_change(Viewport(center=DELIVERY, zoom=10)) is None
        assert nav.mode == PICKUP_LEG

    def test_abandoned_when_viewport_moves_away(self, gated):
        machine, directions = gated

        async def scenario():
            assert machine.on_viewport_change(Viewport(center=PICKUP, zoom=10)) == PICKUP_LEG
            await asyncio.sleep(0)
            machine.on_viewport_change(Viewport(center=(60.0, 20.0), zoom=10))
            directions.release()
            await machine.wait_pending()

        asyncio.run(scenario())
        assert machine.mode == OVERVIEW
        assert machine.transitions == []
        # The route is kept for the next request
        assert machine.legs.pickup is not None

    def test_explicit_request_ignores_viewport(self, gated):
        machine, directions = gated

        async def scenario():
            machine.viewport = Viewport(center=(60.0, 20.0), zoom=3)
            machine.request_leg(PICKUP_LEG, TransitionTrigger.EXPLICIT)
            await asyncio.sleep(0)
            directions.release()
            await machine.wait_pending()

        asyncio.run(scenario())
        assert machine.mode == PICKUP_LEG


# ---------------------------------------------------------------------------
# §4 – 3D, animation and data updates
# ---------------------------------------------------------------------------
class TestViewControls:

    def test_toggle_3d(self, nav, surface):
        assert nav.toggle_3d() is True
        command = surface.last("camera")[1]
        assert command.pitch == 65.0
        assert command.bearing == -20.0
        assert surface.last("terrain")[1].enabled

        assert nav.toggle_3d() is False
        assert surface.last("camera")[1].pitch == 0.0

    def test_close_flattens_overview_3d(self, nav, surface):
        nav.toggle_3d()
        surface.clear()
        nav.close()
        assert not nav.is_3d
        assert nav.transitions == []
        assert surface.last("camera") is not None

    def test_truck_animation(self, nav, resolver, surface, settings):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        surface.clear()

        position = nav.advance(settings.leg_animation_s / 2)
        assert nav.truck.progress == pytest.approx(50.0)
        assert position is not None
        assert surface.kinds() == ["layers"]
        assert "truck" in {m.id for m in surface.last("layers")[2]}

        nav.advance(settings.leg_animation_s)
        assert nav.truck_position() == ORIGIN

    def test_advance_in_overview(self, nav):
        assert nav.advance(1.0) is None

    def test_vessel_marker(self, nav):
        nav.set_vessel_position((80.0, 8.0))
        assert nav.scene().marker("vessel").coordinate == (80.0, 8.0)
        nav.set_vessel_position(None)
        assert nav.scene().marker("vessel") is None

    def test_update_endpoints_drops_moved_legs(self, nav, resolver):
        _cache_both_legs(resolver)
        nav.request_leg(PICKUP_LEG)
        nav.close()
        nav.request_leg(DELIVERY_LEG)
        nav.close()

        moved = RouteEndpoints(pickup=(120.0, 36.5), origin=ORIGIN, destination=DESTINATION, delivery=DELIVERY)
        nav.update_endpoints(moved)
        assert nav.legs.pickup is None
        assert nav.legs.delivery is not None

    def test_prefetch(self, nav, directions, surface):
        async def scenario():
            handles = nav.prefetch()
            assert len(handles) == 2
            await asyncio.gather(*(h.wait() for h in handles))

        asyncio.run(scenario())
        assert nav.legs.pickup is not None
        assert nav.legs.delivery is not None
        assert len(directions.calls) == 2

        # Both legs known: entering needs no further lookup
        assert nav.request_leg(DELIVERY_LEG)
        assert nav.mode == DELIVERY_LEG
        assert len(directions.calls) == 2

    def test_scene_serializes(self, nav, resolver):
        _cache_both_legs(resolver)
        nav.request_leg(DELIVERY_LEG)
        dumped = nav.scene().model_dump(mode="json")
        assert dumped["mode"] == "delivery_leg"
        assert dumped["terrain"]["enabled"] is True
