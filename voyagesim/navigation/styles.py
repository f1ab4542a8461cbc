"""
Map styling constants.

Colors, line weights and camera parameters for the scenes handed to the map
surface. Values match the tracking dashboard's map.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class LineStyle:
    """Paint for a route line and its glow underlay."""
    color: str
    width: float
    opacity: float
    glow_color: Optional[str] = None
    glow_width: float = 0.0
    glow_opacity: float = 0.0
    dash: Optional[List[float]] = None

    def with_emphasis(self, width: float, opacity: float, glow_opacity: float) -> "LineStyle":
        return LineStyle(
            color=self.color,
            width=width,
            opacity=opacity,
            glow_color=self.glow_color,
            glow_width=self.glow_width,
            glow_opacity=glow_opacity,
            dash=self.dash,
        )


# =============================================================================
# Main-leg routes
# =============================================================================

HISTORIC_ROUTE = LineStyle(
    color="#059669",        # Rich emerald
    width=5.0,
    opacity=0.9,
    glow_color="#10B981",
    glow_width=14.0,
    glow_opacity=0.3,
)

PREDICTED_ROUTE = LineStyle(
    color="#D97706",        # Deep amber
    width=5.0,
    opacity=0.85,
    glow_color="#F59E0B",
    glow_width=14.0,
    glow_opacity=0.3,
    dash=[2.0, 2.0],
)

AIR_ROUTE = LineStyle(color="#facc15", width=3.0, opacity=0.95)

ROAD_ROUTE = LineStyle(color="#22c55e", width=4.0, opacity=0.95)

# =============================================================================
# Last-mile routes and their emphasis levels
# =============================================================================

LAST_MILE_ROUTE = LineStyle(
    color="#10B981",
    width=6.0,
    opacity=0.9,
    glow_color="#10B981",
    glow_width=8.0,
    glow_opacity=0.3,
)

# (width, opacity, glow opacity)
NORMAL_EMPHASIS = (6.0, 0.9, 0.3)
EMPHASIZED = (8.0, 1.0, 0.6)
DIMMED = (6.0, 0.3, 0.1)

# =============================================================================
# Markers
# =============================================================================

ICON_VESSEL = "vessel"
ICON_AIRCRAFT = "aircraft"
ICON_TRUCK = "truck"
ICON_PORT = "port"
ICON_PICKUP = "pickup"
ICON_DELIVERY = "delivery"

# =============================================================================
# Camera
# =============================================================================

OVERVIEW_PADDING: Dict[str, float] = {"top": 80, "bottom": 80, "left": 80, "right": 80}
OVERVIEW_DURATION_MS = 1000

# Leg entry: tilt first, then frame the last-mile route
LEG_ENTRY_PITCH = 45.0
LEG_ENTRY_BEARING = -15.0
LEG_ENTRY_DURATION_MS = 800
LEG_PADDING: Dict[str, float] = {"top": 100, "bottom": 100, "left": 300, "right": 100}
LEG_MAX_ZOOM = 13.5
LEG_FIT_DURATION_MS = 1500

# Manual 3D toggle
TOGGLE_3D_PITCH = 65.0
TOGGLE_3D_BEARING = -20.0
TOGGLE_DURATION_MS = 1000

CLOSE_DURATION_MS = 1000

TERRAIN_EXAGGERATION = 1.8
