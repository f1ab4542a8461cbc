"""
Shipment address file parsing.

The booking system exports pickup and delivery addresses as a loose
key/value text block:

    Delivery Address
    AddressLine1: "12 Dock Road",
    AddressCity: Glasgow,
    ...
    Pickup Address
    AddressLine1: ...

Only lines containing ``:`` are read; quoted values, trailing commas and the
literal ``null`` are cleaned away.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)

GEOCODING_FIELDS = (
    "AddressLine1",
    "AddressLine2",
    "AddressCity",
    "AddressState",
    "AddressPostCode",
    "AddressCountryName",
)

_PICKUP_SPLIT = re.compile(r"Pickup Address", re.IGNORECASE)


@dataclass
class ParsedAddress:
    """One address block from the export."""
    title: str
    fields: Dict[str, str] = field(default_factory=dict)

    def geocoding_query(self) -> str:
        """Join the address fields into a single free-text geocoding query."""
        return ", ".join(self.fields[k] for k in GEOCODING_FIELDS if self.fields.get(k))


@dataclass
class ShipmentAddresses:
    pickup: Optional[ParsedAddress] = None
    delivery: Optional[ParsedAddress] = None


def _clean_value(value: str) -> str:
    value = value.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith(","):
        value = value[:-1]
    if value.endswith('"'):
        value = value[:-1]
    return value.strip()


def parse_address_section(title: str, block: str) -> Optional[ParsedAddress]:
    """
    Parse one key/value block.

    Args:
        title: Label for the section ("Pickup Address", "Delivery Address")
        block: Raw text of the section

    Returns:
        ParsedAddress, or None if the block has no usable fields
    """
    fields: Dict[str, str] = {}
    for line in block.splitlines():
        line = line.strip()
        if ":" not in line:
            continue
        key, raw_value = line.split(":", 1)
        value = _clean_value(raw_value)
        if key.strip() and value and value != "null":
            fields[key.strip()] = value

    if not fields:
        return None
    return ParsedAddress(title=title, fields=fields)


def parse_address_text(raw: str) -> ShipmentAddresses:
    """Split an export into its delivery (first) and pickup (second) sections."""
    parts = _PICKUP_SPLIT.split(raw or "", maxsplit=1)
    delivery_block = parts[0]
    pickup_block = parts[1] if len(parts) > 1 else ""

    addresses = ShipmentAddresses(
        pickup=parse_address_section("Pickup Address", pickup_block),
        delivery=parse_address_section("Delivery Address", delivery_block),
    )
    logger.debug(
        f"Parsed addresses: pickup={'yes' if addresses.pickup else 'no'}, "
        f"delivery={'yes' if addresses.delivery else 'no'}"
    )
    return addresses


def parse_address_file(file_path: Path) -> ShipmentAddresses:
    """Read and parse an address export from disk."""
    return parse_address_text(Path(file_path).read_text(encoding="utf-8"))
