"""
Vessel tracking file parser.

Reads the JSON document delivered by the container-tracking provider:

    {
      "id": 1,
      "transport_tracks": [{
        "pol_un_location_code": "CNQDG",
        "pod_un_location_code": "GBLGP",
        "start_datetime": "...", "end_datetime": "...",
        "vessel": {"vessel_name": "...", ...},
        "portcalls": [...],
        "positions": [
          {"longitude": 120.3, "latitude": 36.0,
           "position_datetime": "2025-01-02T08:00:00Z", "tag": "historic"},
          ...
        ]
      }]
    }

Only the first transport track is used. Rows with missing or non-numeric
coordinates, or an unknown tag, are skipped.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from voyagesim.routes.track import PositionTag, TrackPoint, VoyageTrack

logger = logging.getLogger(__name__)

_TAGS = {tag.value: tag for tag in PositionTag}


@dataclass
class VoyageFile:
    """Parsed tracking document."""
    vessel_name: str
    origin_port_code: Optional[str]
    destination_port_code: Optional[str]
    samples: List[TrackPoint]
    start_datetime: Optional[datetime] = None
    end_datetime: Optional[datetime] = None
    portcalls: List[Dict[str, Any]] = field(default_factory=list)
    skipped_rows: int = 0

    def track(self) -> VoyageTrack:
        """Normalized track built from the samples."""
        return VoyageTrack.from_samples(self.samples)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _parse_position(row: Dict[str, Any]) -> Optional[TrackPoint]:
    try:
        lon = float(row["longitude"])
        lat = float(row["latitude"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        return None

    tag = _TAGS.get(str(row.get("tag", "historic")).lower())
    if tag is None:
        return None
    return TrackPoint(
        coordinate=(lon, lat),
        timestamp=_parse_datetime(row.get("position_datetime")),
        tag=tag,
    )


def parse_voyage_data(data: Dict[str, Any]) -> VoyageFile:
    """
    Parse an already-decoded tracking document.

    Raises:
        ValueError: If the document has no transport track
    """
    tracks = data.get("transport_tracks") or []
    if not tracks:
        raise ValueError("No transport_tracks found in voyage file")

    primary = tracks[0]
    samples: List[TrackPoint] = []
    skipped = 0
    for row in primary.get("positions") or []:
        point = _parse_position(row) if isinstance(row, dict) else None
        if point is None:
            skipped += 1
            continue
        samples.append(point)

    if skipped:
        logger.warning(f"Skipped {skipped} unusable position rows")

    vessel = primary.get("vessel") or {}
    voyage = VoyageFile(
        vessel_name=str(vessel.get("vessel_name") or "Unknown vessel"),
        origin_port_code=primary.get("pol_un_location_code"),
        destination_port_code=primary.get("pod_un_location_code"),
        samples=samples,
        start_datetime=_parse_datetime(primary.get("start_datetime")),
        end_datetime=_parse_datetime(primary.get("end_datetime")),
        portcalls=list(primary.get("portcalls") or []),
        skipped_rows=skipped,
    )
    logger.info(
        f"Parsed voyage for '{voyage.vessel_name}' with {len(samples)} positions "
        f"({voyage.origin_port_code} -> {voyage.destination_port_code})"
    )
    return voyage


def parse_voyage_string(content: str) -> VoyageFile:
    """Parse a tracking document from a JSON string."""
    return parse_voyage_data(json.loads(content))


def parse_voyage_file(file_path: Path) -> VoyageFile:
    """
    Parse a tracking document from disk.

    Raises:
        ValueError: If the file has no transport track
        json.JSONDecodeError: If the file is not JSON
    """
    return parse_voyage_string(Path(file_path).read_text(encoding="utf-8"))
