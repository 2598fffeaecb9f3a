"""
Zone resolution for Compose-External-DNS.
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from compose_external_dns.models.models import DnsEntry, Zone


@dataclass(frozen=True)
class ZoneMatch:
    success: bool
    zone: Optional[Zone] = None


def zone_contains(zone_name: str, hostname: str) -> bool:
    """
    Check if a hostname belongs to a zone.

    The zone must match whole labels: ``example.com`` contains
    ``api.example.com`` and ``example.com`` but not ``badexample.com``.
    """
    zone_name = zone_name.lower().rstrip(".")
    hostname = hostname.lower().rstrip(".")
    return hostname == zone_name or hostname.endswith("." + zone_name)


def resolve_zone(
    zones: List[Zone], entry: DnsEntry, logger: Optional[logging.Logger] = None
) -> ZoneMatch:
    """
    Finds the zone an entry belongs to.

    The first zone whose name is a suffix of the entry's name is selected.

    Args:
        zones: Candidate zones
        entry: Entry to place
        logger: Logger to warn on when no zone matches

    Returns:
        ZoneMatch: The matching zone, or an unsuccessful match
    """
    for zone in zones:
        if zone_contains(zone.name, entry.name):
            return ZoneMatch(success=True, zone=zone)

    logger = logger or logging.getLogger("compose-external-dns.provider.zones")
    logger.warning(
        f'No zone found for entry. (name: "{entry.name}", '
        f"zones: {json.dumps([zone.name for zone in zones])})"
    )
    return ZoneMatch(success=False)
