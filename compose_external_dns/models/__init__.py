"""
Data models for Compose-External-DNS.
"""

from compose_external_dns.models.models import (
    DYNAMIC_ADDRESS,
    AEntry,
    CNAMEEntry,
    ContainerDescriptor,
    DnsEntry,
    DNSType,
    EntryUpdate,
    MXEntry,
    NSEntry,
    ObservedEntry,
    SetDifference,
    SyncSummary,
    UnsupportedEntry,
    Zone,
    has_same_value,
)

__all__ = [
    "DYNAMIC_ADDRESS",
    "AEntry",
    "CNAMEEntry",
    "ContainerDescriptor",
    "DnsEntry",
    "DNSType",
    "EntryUpdate",
    "MXEntry",
    "NSEntry",
    "ObservedEntry",
    "SetDifference",
    "SyncSummary",
    "UnsupportedEntry",
    "Zone",
    "has_same_value",
]
