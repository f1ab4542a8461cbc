"""
Last-mile segment summary.

Distance, road emissions, drayage cost and drive time for a pickup or
delivery route, shown next to the focused leg.
"""

from dataclasses import dataclass

from voyagesim.routes.route import Route

# Average truck CO2e (kg per km)
ROAD_EMISSIONS_KG_PER_KM = 0.262
# Drayage cost estimate (USD per km)
DRAYAGE_USD_PER_KM = 5.5
# Average urban/regional road speed (km/h)
ROAD_SPEED_KMH = 45.0


@dataclass(frozen=True)
class SegmentSummary:
    """Headline numbers for one last-mile route."""
    distance_km: float
    emissions_kg: float
    cost_usd: int
    travel_minutes: int

    def to_dict(self) -> dict:
        return {
            "distance_km": round(self.distance_km, 1),
            "emissions_kg": round(self.emissions_kg, 1),
            "cost_usd": self.cost_usd,
            "travel_minutes": self.travel_minutes,
        }


def summarize_segment(route: Route) -> SegmentSummary:
    """Compute the segment summary for a last-mile route."""
    distance = route.length_km
    return SegmentSummary(
        distance_km=distance,
        emissions_kg=distance * ROAD_EMISSIONS_KG_PER_KM,
        cost_usd=int(round(distance * DRAYAGE_USD_PER_KM)),
        travel_minutes=int(round(distance / ROAD_SPEED_KMH * 60)),
    )
