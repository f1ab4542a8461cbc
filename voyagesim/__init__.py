"""VoyageSim - voyage simulation and route engine for shipment tracking maps."""

__version__ = "0.1.0"
