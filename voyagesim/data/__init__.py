"""Static reference data: corridors, ports and address exports."""

from .corridors import CorridorDefinition, ASIA_EUROPE_SEA, DEFAULT_CORRIDOR, get_corridor
from .ports import PORT_COORDINATES, port_coordinate
from .addresses import ParsedAddress, ShipmentAddresses, parse_address_file, parse_address_text

__all__ = [
    "CorridorDefinition",
    "ASIA_EUROPE_SEA",
    "DEFAULT_CORRIDOR",
    "get_corridor",
    "PORT_COORDINATES",
    "port_coordinate",
    "ParsedAddress",
    "ShipmentAddresses",
    "parse_address_file",
    "parse_address_text",
]
