"""
Viewport tracking and automatic leg detection.

The map surface reports its centre and zoom after every pan or zoom. Once
zoomed in past a threshold, a centre near either end of a last-mile leg
selects that leg.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from voyagesim.navigation.scene import NavigationMode
from voyagesim.routes.geometry import Coordinate, haversine_km
from voyagesim.routes.route import RouteEndpoints

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    """Visible map region as reported by the surface."""
    center: Coordinate
    zoom: float


def detect_leg(
    viewport: Viewport,
    endpoints: RouteEndpoints,
    zoom_threshold: float = 8.0,
    proximity_km: float = 50.0,
) -> Optional[NavigationMode]:
    """
    Leg the viewport is focused on, if any.

    Requires ``zoom > zoom_threshold``. The pickup leg (pickup or origin
    closer than ``proximity_km`` to the centre) is checked before the delivery
    leg (destination or delivery). A leg is only detected once its address
    has geocoded; provisional fallback endpoints never select a leg.
    """
    if viewport.zoom <= zoom_threshold:
        return None

    def near(point: Coordinate) -> bool:
        return haversine_km(viewport.center, point) < proximity_km

    if endpoints.pickup_resolved and (near(endpoints.pickup) or near(endpoints.origin)):
        return NavigationMode.PICKUP_LEG
    if endpoints.delivery_resolved and (near(endpoints.destination) or near(endpoints.delivery)):
        return NavigationMode.DELIVERY_LEG
    return None
