"""
Navigation view state machine.

Three modes, exactly one active:

    OVERVIEW ──request_leg──> PICKUP_LEG
    OVERVIEW ──request_leg──> DELIVERY_LEG
    PICKUP_LEG | DELIVERY_LEG ──close──> OVERVIEW

There is no direct transition between the two legs.

Entering a leg needs its last-mile route. When the route is not resolved
yet the request is parked on a cancellable resolution handle and applied
when the handle completes. Requests form a single-writer queue: while one
is parked, further leg requests are dropped. ``close()`` is never dropped;
it cancels the parked request, so a late resolution (still cached by the
resolver) causes no transition. A request triggered by the viewport is
re-checked on completion and abandoned if the viewport has moved away.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from voyagesim.config import Settings, get_settings
from voyagesim.navigation import styles
from voyagesim.navigation.scene import (
    CameraCommand,
    CameraAction,
    MapSurface,
    MarkerPlacement,
    NavigationMode,
    Scene,
    StyledRoute,
    endpoint_markers,
    leg_cameras,
    leg_layers,
    overview_camera,
    render,
    reset_cameras,
    route_layers,
    terrain,
)
from voyagesim.navigation.viewport import Viewport, detect_leg
from voyagesim.resolution.handles import ResolutionHandle
from voyagesim.resolution.resolver import RouteResolver
from voyagesim.routes.geometry import Coordinate
from voyagesim.routes.route import LegRoutes, Route, RouteEndpoints
from voyagesim.voyage.playback import ProgressAnimator
from voyagesim.voyage.segment import SegmentSummary, summarize_segment

logger = logging.getLogger(__name__)

__all__ = ["NavigationMode", "NavigationStateMachine", "TransitionTrigger"]


class TransitionTrigger(Enum):
    """What asked for a leg."""
    EXPLICIT = "explicit"   # marker or route click
    VIEWPORT = "viewport"   # zoomed in near a leg


@dataclass
class _PendingTransition:
    mode: NavigationMode
    trigger: TransitionTrigger
    handle: ResolutionHandle[Route]


class NavigationStateMachine:
    """
    Drives the map between the overview and the two last-mile legs.

    Usage:
        nav = NavigationStateMachine(endpoints, resolver, surface=adapter)
        nav.request_leg(NavigationMode.PICKUP_LEG)
        ...
        nav.close()
    """

    def __init__(
        self,
        endpoints: RouteEndpoints,
        resolver: RouteResolver,
        surface: Optional[MapSurface] = None,
        main_routes: Sequence[StyledRoute] = (),
        settings: Optional[Settings] = None,
    ):
        self.endpoints = endpoints
        self.resolver = resolver
        self.surface = surface
        self.main_routes: List[StyledRoute] = list(main_routes)
        self.settings = settings or get_settings()

        self.mode = NavigationMode.OVERVIEW
        self.legs = LegRoutes()
        self.is_3d = False
        self.viewport: Optional[Viewport] = None
        self.truck: Optional[ProgressAnimator] = None
        self.segment: Optional[SegmentSummary] = None
        self.vessel_marker: Optional[MarkerPlacement] = None
        self.transitions: List[Tuple[NavigationMode, NavigationMode]] = []

        self._pending: Optional[_PendingTransition] = None
        self._prefetch: List[ResolutionHandle[Route]] = []

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def pending_mode(self) -> Optional[NavigationMode]:
        return self._pending.mode if self._pending is not None else None

    @property
    def active_route(self) -> Optional[Route]:
        return self.leg_route(self.mode)

    def leg_route(self, mode: NavigationMode) -> Optional[Route]:
        if mode == NavigationMode.PICKUP_LEG:
            return self.legs.pickup
        if mode == NavigationMode.DELIVERY_LEG:
            return self.legs.delivery
        return None

    def leg_endpoints(self, mode: NavigationMode) -> Tuple[Coordinate, Coordinate]:
        """(start, end) of the last-mile route for a leg mode."""
        if mode == NavigationMode.PICKUP_LEG:
            return self.endpoints.pickup, self.endpoints.origin
        if mode == NavigationMode.DELIVERY_LEG:
            return self.endpoints.destination, self.endpoints.delivery
        raise ValueError(f"{mode} is not a leg")

    def truck_position(self) -> Optional[Coordinate]:
        route = self.active_route
        if self.truck is None or route is None:
            return None
        return self.truck.position_on(route.coordinates)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def request_leg(
        self,
        mode: NavigationMode,
        trigger: TransitionTrigger = TransitionTrigger.EXPLICIT,
    ) -> bool:
        """
        Ask to focus a leg.

        Enters immediately when the leg's route is known, otherwise parks the
        request until resolution completes (needs a running event loop).

        Returns:
            True if the leg was entered or the request parked, False if it
            was dropped
        """
        if mode == NavigationMode.OVERVIEW:
            self.close()
            return True

        if self.mode != NavigationMode.OVERVIEW:
            logger.debug(f"Dropping {mode.value} request: {self.mode.value} is active, close it first")
            return False

        if self._pending is not None:
            logger.debug(
                f"Dropping {mode.value} request ({trigger.value}): "
                f"{self._pending.mode.value} transition in progress"
            )
            return False

        start, end = self.leg_endpoints(mode)
        route = self.leg_route(mode) or self.resolver.peek_route(start, end)
        if route is not None:
            self._enter_leg(mode, route)
            return True

        handle = self.resolver.resolve_route_handle(start, end)
        self._pending = _PendingTransition(mode=mode, trigger=trigger, handle=handle)
        handle.add_done_callback(self._on_route_resolved)
        logger.info(f"Waiting for {mode.value} route before transition ({trigger.value})")
        return True

    async def enter(self, mode: NavigationMode) -> NavigationMode:
        """Request a leg and wait for the outcome; returns the resulting mode."""
        if self.request_leg(mode):
            await self.wait_pending()
        return self.mode

    async def wait_pending(self) -> None:
        """Wait until the parked leg request, if any, completes or is cancelled."""
        if self._pending is not None:
            await self._pending.handle.wait()

    def _on_route_resolved(self, handle: ResolutionHandle[Route]) -> None:
        pending = self._pending
        if pending is None or pending.handle is not handle:
            logger.debug(f"Ignoring stale resolution {handle!r}")
            return
        self._pending = None

        if handle.cancelled():
            return
        error = handle.exception()
        if error is not None:
            logger.error(f"Resolution for {pending.mode.value} failed: {error!r}")
            return

        route = handle.result()
        self._store_leg(pending.mode, route)

        if pending.trigger == TransitionTrigger.VIEWPORT and not self._viewport_selects(pending.mode):
            logger.debug(f"Viewport left the {pending.mode.value} area, abandoning transition")
            self.refresh()
            return

        self._enter_leg(pending.mode, route)

    def _enter_leg(self, mode: NavigationMode, route: Route) -> None:
        previous = self.mode
        self._store_leg(mode, route)
        self.mode = mode
        self.is_3d = True
        self.truck = ProgressAnimator(duration_s=self.settings.leg_animation_s)
        self.segment = summarize_segment(route)
        self.transitions.append((previous, mode))
        logger.info(
            f"Navigation {previous.value} -> {mode.value} "
            f"({self.segment.distance_km:.1f} km, {route.source.value})"
        )
        render(self.scene(cameras=leg_cameras(route)), self.surface)

    def close(self) -> None:
        """
        Return to the overview.

        Cancels any parked leg request, levels the camera, turns 3D terrain
        off and removes the truck marker. Calling it again is a no-op.
        """
        if self._pending is not None:
            logger.info(f"Cancelling pending {self._pending.mode.value} transition")
            pending, self._pending = self._pending, None
            pending.handle.cancel()

        if self.mode == NavigationMode.OVERVIEW and not self.is_3d:
            return

        previous = self.mode
        self.mode = NavigationMode.OVERVIEW
        self.is_3d = False
        self.truck = None
        self.segment = None
        if previous != NavigationMode.OVERVIEW:
            self.transitions.append((previous, NavigationMode.OVERVIEW))
        logger.info(f"Navigation {previous.value} -> {NavigationMode.OVERVIEW.value}")
        render(self.scene(cameras=reset_cameras(self._overview_coordinates())), self.surface)

    def toggle_3d(self) -> bool:
        """Flip between a tilted 3D view and a flat one; returns the new state."""
        self.is_3d = not self.is_3d
        if self.is_3d:
            pitch, bearing = styles.TOGGLE_3D_PITCH, styles.TOGGLE_3D_BEARING
        else:
            pitch, bearing = 0.0, 0.0
        command = CameraCommand(
            action=CameraAction.EASE_TO,
            pitch=pitch,
            bearing=bearing,
            duration_ms=styles.TOGGLE_DURATION_MS,
        )
        render(self.scene(cameras=[command]), self.surface)
        return self.is_3d

    # ------------------------------------------------------------------
    # Viewport
    # ------------------------------------------------------------------

    def on_viewport_change(self, viewport: Viewport) -> Optional[NavigationMode]:
        """
        Record the surface's viewport and enter a leg it selects.

        Returns:
            The leg requested, if any
        """
        self.viewport = viewport
        if self.mode != NavigationMode.OVERVIEW:
            return None

        mode = self._detect(viewport)
        if mode is None:
            return None
        accepted = self.request_leg(mode, TransitionTrigger.VIEWPORT)
        return mode if accepted else None

    def _detect(self, viewport: Viewport) -> Optional[NavigationMode]:
        return detect_leg(
            viewport,
            self.endpoints,
            zoom_threshold=self.settings.leg_zoom_threshold,
            proximity_km=self.settings.leg_proximity_km,
        )

    def _viewport_selects(self, mode: NavigationMode) -> bool:
        return self.viewport is not None and self._detect(self.viewport) == mode

    # ------------------------------------------------------------------
    # Animation and data updates
    # ------------------------------------------------------------------

    def advance(self, delta_s: float) -> Optional[Coordinate]:
        """Step the truck animation; returns the truck position in a leg."""
        if self.truck is None:
            return None
        self.truck.advance(delta_s)
        render(self.scene(), self.surface, camera=False)
        return self.truck_position()

    def set_vessel_position(self, coordinate: Optional[Coordinate], icon: str = styles.ICON_VESSEL) -> None:
        if coordinate is None:
            self.vessel_marker = None
            return
        self.vessel_marker = MarkerPlacement(id="vessel", coordinate=coordinate, icon=icon)

    def update_endpoints(self, endpoints: RouteEndpoints) -> None:
        """Swap in newly geocoded endpoints, dropping legs whose ends moved."""
        if endpoints.pickup != self.endpoints.pickup or endpoints.origin != self.endpoints.origin:
            self.legs.pickup = None
        if endpoints.destination != self.endpoints.destination or endpoints.delivery != self.endpoints.delivery:
            self.legs.delivery = None
        self.endpoints = endpoints

    def prefetch(self) -> List[ResolutionHandle[Route]]:
        """
        Resolve both last-mile routes in the background.

        Completion stores the route and redraws the layers, so a later leg
        request usually enters immediately.
        """
        handles = []
        for mode in (NavigationMode.PICKUP_LEG, NavigationMode.DELIVERY_LEG):
            if self.leg_route(mode) is not None:
                continue
            start, end = self.leg_endpoints(mode)
            handle = self.resolver.resolve_route_handle(start, end)
            handle.add_done_callback(self._prefetch_callback(mode, start, end))
            handles.append(handle)
        self._prefetch = handles
        return handles

    def _prefetch_callback(self, mode: NavigationMode, start: Coordinate, end: Coordinate):
        def on_done(handle: ResolutionHandle[Route]) -> None:
            if handle.cancelled():
                return
            error = handle.exception()
            if error is not None:
                logger.error(f"Prefetch for {mode.value} failed: {error!r}")
                return
            if self.leg_endpoints(mode) != (start, end):
                logger.debug(f"Discarding prefetched {mode.value} route for moved endpoints")
                return
            if self.leg_route(mode) is None:
                self._store_leg(mode, handle.result())
                render(self.scene(), self.surface, camera=False)
        return on_done

    def cancel_all(self) -> None:
        """Cancel prefetches and any parked request (session shutdown)."""
        for handle in self._prefetch:
            handle.cancel()
        self._prefetch = []
        if self._pending is not None:
            pending, self._pending = self._pending, None
            pending.handle.cancel()

    def refresh(self) -> None:
        """Redraw layers and markers without moving the camera."""
        render(self.scene(), self.surface, camera=False)

    def _store_leg(self, mode: NavigationMode, route: Route) -> None:
        if mode == NavigationMode.PICKUP_LEG:
            self.legs.pickup = route
        elif mode == NavigationMode.DELIVERY_LEG:
            self.legs.delivery = route

    # ------------------------------------------------------------------
    # Scene
    # ------------------------------------------------------------------

    def _overview_coordinates(self) -> List[Coordinate]:
        coords = self.endpoints.all_coordinates()
        for styled in self.main_routes:
            coords.extend(styled.route.coordinates)
        for route in (self.legs.pickup, self.legs.delivery):
            if route is not None:
                coords.extend(route.coordinates)
        return coords

    def scene(self, cameras: Optional[List[CameraCommand]] = None) -> Scene:
        """
        Declarative scene for the current state.

        Args:
            cameras: Camera moves to include; defaults to the framing for the
                current mode
        """
        if cameras is None:
            route = self.active_route
            if route is not None:
                cameras = leg_cameras(route)
            else:
                cameras = [overview_camera(self._overview_coordinates())]

        layers = []
        for styled in self.main_routes:
            layers.extend(route_layers(styled.layer_id, styled.route.coordinates, styled.style))
        layers.extend(leg_layers(self.legs, self.mode))

        markers = endpoint_markers(self.endpoints, self.mode)
        if self.vessel_marker is not None:
            markers.append(self.vessel_marker)
        truck = self.truck_position()
        if truck is not None:
            markers.append(MarkerPlacement(id="truck", coordinate=truck, icon=styles.ICON_TRUCK, emphasized=True))

        return Scene(
            mode=self.mode,
            layers=layers,
            markers=markers,
            camera=cameras,
            terrain=terrain(self.is_3d),
        )
