"""
Pre-defined corridor waypoints for synthesized forward paths.

A corridor is a coarse, ordered set of open-water (or airway) waypoints
approximating a known transport lane. The corridor synthesizer snaps a leg
onto the waypoints that lie between its origin and destination so the drawn
path follows the lane instead of cutting across a continent.

Coordinates are (lon, lat), the order used throughout voyagesim.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorridorDefinition:
    """A transport lane approximated by ordered waypoints."""
    name: str
    code: str  # Short identifier, e.g. "ASEU"
    waypoints: Tuple[Tuple[float, float], ...]  # (lon, lat), west-to-east or east-to-west
    primary_axis: int = 0  # 0 = longitude, 1 = latitude


# ---------------------------------------------------------------------------
# Asia - Europe sea lane via Malacca, the Indian Ocean, Suez and Gibraltar.
# Sorted by the filter at use time, listed here east to west.
# ---------------------------------------------------------------------------
ASIA_EUROPE_SEA = CorridorDefinition(
    name="Asia - Europe (Suez)",
    code="ASEU",
    waypoints=(
        (122.0, 33.0),   # Yellow Sea
        (116.0, 22.0),   # South China Sea, Pearl River approach
        (106.0, 13.0),   # South China Sea, off Vietnam
        (97.0, 6.0),     # Northern Malacca approach
        (82.0, 8.0),     # South of Sri Lanka
        (68.0, 16.0),    # Arabian Sea
        (55.0, 23.0),    # Gulf of Oman
        (40.0, 30.0),    # Red Sea / Suez approach
        (25.0, 35.0),    # Eastern Mediterranean
        (10.0, 40.0),    # Western Mediterranean
        (0.0, 48.0),     # Bay of Biscay / Channel approach
    ),
)

CORRIDORS: List[CorridorDefinition] = [ASIA_EUROPE_SEA]

# Lookup by code
CORRIDOR_BY_CODE: Dict[str, CorridorDefinition] = {c.code: c for c in CORRIDORS}

DEFAULT_CORRIDOR = ASIA_EUROPE_SEA


def get_corridor(code: str) -> CorridorDefinition:
    """Return a corridor by code, falling back to the default sea lane."""
    corridor = CORRIDOR_BY_CODE.get(code)
    if corridor is None:
        logger.warning(f"Unknown corridor code {code!r}, using {DEFAULT_CORRIDOR.code}")
        return DEFAULT_CORRIDOR
    return corridor
