"""Port coordinates keyed by UN/LOCODE."""

import logging
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# (lon, lat)
PORT_COORDINATES: Dict[str, Tuple[float, float]] = {
    "CNQDG": (120.3200, 36.0649),  # Qingdao
    "CNYTN": (121.6000, 31.2000),  # Yantian terminal entry used by the tracking feed
    "GBLGP": (0.5810, 51.4816),    # London Gateway
}


def port_coordinate(
    code: Optional[str],
    fallback: Optional[Tuple[float, float]] = None,
) -> Optional[Tuple[float, float]]:
    """Look up a port by UN/LOCODE, returning ``fallback`` when unknown."""
    if code:
        coord = PORT_COORDINATES.get(code.strip().upper())
        if coord is not None:
            return coord
        logger.debug(f"No coordinate for port {code!r}, using fallback {fallback}")
    return fallback
