"""Navigation view state machine and the declarative scene it produces."""

from .scene import CameraCommand, LineLayer, MapSurface, MarkerPlacement, NavigationMode, Scene, TerrainSettings
from .viewport import Viewport, detect_leg
from .state_machine import NavigationStateMachine, TransitionTrigger

__all__ = [
    "CameraCommand",
    "LineLayer",
    "MapSurface",
    "MarkerPlacement",
    "NavigationMode",
    "Scene",
    "TerrainSettings",
    "Viewport",
    "detect_leg",
    "NavigationStateMachine",
    "TransitionTrigger",
]
