"""
Declarative scene description.

The engine never talks to a rendering API. Each navigation state is turned
into a ``Scene`` (line layers, markers, camera commands, terrain) and handed
to a ``MapSurface`` adapter, which owns the actual drawing.

Within one transition the camera is always applied before the layers, so
highlighted geometry is in frame before its styling changes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, Field

from voyagesim.navigation import styles
from voyagesim.navigation.styles import LineStyle
from voyagesim.routes.geometry import Coordinate, bounding_box
from voyagesim.routes.route import LegRoutes, Route, RouteEndpoints

logger = logging.getLogger(__name__)


class NavigationMode(str, Enum):
    """Which leg, if any, the view is focused on."""
    OVERVIEW = "overview"
    PICKUP_LEG = "pickup_leg"
    DELIVERY_LEG = "delivery_leg"


class CameraAction(str, Enum):
    FIT_BOUNDS = "fit_bounds"
    EASE_TO = "ease_to"
    FLY_TO = "fly_to"


# =============================================================================
# Scene models
# =============================================================================

class LineLayer(BaseModel):
    """A styled polyline."""
    id: str
    coordinates: List[Tuple[float, float]]
    color: str
    width: float = Field(..., gt=0)
    opacity: float = Field(..., ge=0, le=1)
    dash: Optional[List[float]] = None
    blur: float = 0.0
    visible: bool = True


class MarkerPlacement(BaseModel):
    """An icon pinned at a coordinate."""
    id: str
    coordinate: Tuple[float, float]
    icon: str
    emphasized: bool = False
    label: Optional[str] = None


class CameraCommand(BaseModel):
    """One camera move."""
    action: CameraAction
    bounds: Optional[Tuple[Tuple[float, float], Tuple[float, float]]] = None
    center: Optional[Tuple[float, float]] = None
    zoom: Optional[float] = None
    pitch: float = Field(0.0, ge=0, le=85)
    bearing: float = 0.0
    padding: Optional[Dict[str, float]] = None
    max_zoom: Optional[float] = None
    duration_ms: int = Field(1000, ge=0)


class TerrainSettings(BaseModel):
    """3D terrain and extruded buildings."""
    enabled: bool = False
    exaggeration: float = 1.0
    buildings: bool = False


class Scene(BaseModel):
    """Everything the map surface needs for one navigation state."""
    mode: NavigationMode
    layers: List[LineLayer] = Field(default_factory=list)
    markers: List[MarkerPlacement] = Field(default_factory=list)
    camera: List[CameraCommand] = Field(default_factory=list)
    terrain: TerrainSettings = Field(default_factory=TerrainSettings)

    def layer(self, layer_id: str) -> Optional[LineLayer]:
        return next((layer for layer in self.layers if layer.id == layer_id), None)

    def marker(self, marker_id: str) -> Optional[MarkerPlacement]:
        return next((m for m in self.markers if m.id == marker_id), None)


class MapSurface(Protocol):
    """Rendering adapter consuming scenes."""

    def apply_camera(self, command: CameraCommand) -> None:
        ...

    def apply_layers(self, layers: List[LineLayer], markers: List[MarkerPlacement]) -> None:
        ...

    def apply_terrain(self, terrain: TerrainSettings) -> None:
        ...


def render(scene: Scene, surface: Optional[MapSurface], camera: bool = True) -> None:
    """Hand ``scene`` to ``surface``: camera moves first, then terrain, then layers."""
    if surface is None:
        return
    if camera:
        for command in scene.camera:
            surface.apply_camera(command)
        surface.apply_terrain(scene.terrain)
    surface.apply_layers(scene.layers, scene.markers)


# =============================================================================
# Builders
# =============================================================================

@dataclass(frozen=True)
class StyledRoute:
    """A main-leg route with its layer id and paint."""
    layer_id: str
    route: Route
    style: LineStyle


PICKUP_LAYER = "pickup-nav"
DELIVERY_LAYER = "delivery-nav"


def route_layers(layer_id: str, coordinates: Sequence[Coordinate], style: LineStyle) -> List[LineLayer]:
    """Glow underlay (when styled) followed by the main line."""
    coords = [tuple(c) for c in coordinates]
    layers = []
    if style.glow_color and style.glow_width > 0:
        layers.append(LineLayer(
            id=f"{layer_id}-glow",
            coordinates=coords,
            color=style.glow_color,
            width=style.glow_width,
            opacity=style.glow_opacity,
            blur=4.0,
        ))
    layers.append(LineLayer(
        id=layer_id,
        coordinates=coords,
        color=style.color,
        width=style.width,
        opacity=style.opacity,
        dash=style.dash,
    ))
    return layers


def leg_layers(legs: LegRoutes, mode: NavigationMode) -> List[LineLayer]:
    """
    Last-mile layers with emphasis for ``mode``.

    The focused leg is emphasized and the other dimmed; in overview both are
    drawn at normal weight. Built from scratch each time, so no emphasis
    survives a transition.
    """
    if mode == NavigationMode.PICKUP_LEG:
        pickup_level, delivery_level = styles.EMPHASIZED, styles.DIMMED
    elif mode == NavigationMode.DELIVERY_LEG:
        pickup_level, delivery_level = styles.DIMMED, styles.EMPHASIZED
    else:
        pickup_level = delivery_level = styles.NORMAL_EMPHASIS

    layers: List[LineLayer] = []
    if legs.pickup is not None:
        style = styles.LAST_MILE_ROUTE.with_emphasis(*pickup_level)
        layers.extend(route_layers(PICKUP_LAYER, legs.pickup.coordinates, style))
    if legs.delivery is not None:
        style = styles.LAST_MILE_ROUTE.with_emphasis(*delivery_level)
        layers.extend(route_layers(DELIVERY_LAYER, legs.delivery.coordinates, style))
    return layers


def endpoint_markers(endpoints: RouteEndpoints, mode: NavigationMode) -> List[MarkerPlacement]:
    return [
        MarkerPlacement(
            id="pickup",
            coordinate=endpoints.pickup,
            icon=styles.ICON_PICKUP,
            emphasized=mode == NavigationMode.PICKUP_LEG,
        ),
        MarkerPlacement(id="origin", coordinate=endpoints.origin, icon=styles.ICON_PORT),
        MarkerPlacement(id="destination", coordinate=endpoints.destination, icon=styles.ICON_PORT),
        MarkerPlacement(
            id="delivery",
            coordinate=endpoints.delivery,
            icon=styles.ICON_DELIVERY,
            emphasized=mode == NavigationMode.DELIVERY_LEG,
        ),
    ]


def overview_camera(coordinates: Sequence[Coordinate], duration_ms: int = styles.OVERVIEW_DURATION_MS) -> CameraCommand:
    """Fit every visible coordinate."""
    return CameraCommand(
        action=CameraAction.FIT_BOUNDS,
        bounds=bounding_box(coordinates),
        padding=dict(styles.OVERVIEW_PADDING),
        duration_ms=duration_ms,
    )


def leg_cameras(route: Route) -> List[CameraCommand]:
    """Tilt towards the leg, then frame its route tightly."""
    return [
        CameraCommand(
            action=CameraAction.FLY_TO,
            center=route.midpoint,
            pitch=styles.LEG_ENTRY_PITCH,
            bearing=styles.LEG_ENTRY_BEARING,
            duration_ms=styles.LEG_ENTRY_DURATION_MS,
        ),
        CameraCommand(
            action=CameraAction.FIT_BOUNDS,
            bounds=route.bounds,
            padding=dict(styles.LEG_PADDING),
            max_zoom=styles.LEG_MAX_ZOOM,
            pitch=styles.LEG_ENTRY_PITCH,
            bearing=styles.LEG_ENTRY_BEARING,
            duration_ms=styles.LEG_FIT_DURATION_MS,
        ),
    ]


def reset_cameras(coordinates: Sequence[Coordinate]) -> List[CameraCommand]:
    """Level the camera, then return to the overview framing."""
    return [
        CameraCommand(
            action=CameraAction.EASE_TO,
            pitch=0.0,
            bearing=0.0,
            duration_ms=styles.CLOSE_DURATION_MS,
        ),
        overview_camera(coordinates),
    ]


def terrain(enabled: bool) -> TerrainSettings:
    if not enabled:
        return TerrainSettings()
    return TerrainSettings(enabled=True, exaggeration=styles.TERRAIN_EXAGGERATION, buildings=True)
