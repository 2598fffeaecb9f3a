"""
Data models for Compose-External-DNS.

DNS entries are a tagged union of frozen dataclasses. Every entry carries an
explicit ``type`` discriminant, and behaviour that depends on the record type
switches on it rather than on the class hierarchy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union


class DNSType(str, Enum):
    """
    Record types known to Compose-External-DNS.

    ``UNSUPPORTED`` is only ever produced from provider records of a type this
    application does not manage.
    """

    A = "A"
    CNAME = "CNAME"
    MX = "MX"
    NS = "NS"
    UNSUPPORTED = "Unsupported"


# Placeholder address replaced with the discovered public address at sync time
DYNAMIC_ADDRESS = "DYNAMIC"
DYNAMIC_ADDRESS_ALIASES = frozenset({DYNAMIC_ADDRESS, "DDNS"})


def is_dynamic_address(address: object) -> bool:
    """Check if an address is the dynamic-address sentinel."""
    return isinstance(address, str) and address in DYNAMIC_ADDRESS_ALIASES


def normalise_hostname(value: object) -> object:
    """
    Lowercase a host name, the form Cloudflare stores and returns names in.

    Values that are not strings are returned unchanged for validation to report.
    """
    if isinstance(value, str):
        return value.lower()
    return value


@dataclass(frozen=True)
class AEntry:
    """
    Represents an A record.
    """

    name: str
    address: str
    proxied: bool = False
    type: DNSType = field(default=DNSType.A, init=False)

    @property
    def key(self) -> str:
        return entry_key(self)


@dataclass(frozen=True)
class CNAMEEntry:
    """
    Represents a CNAME record.
    """

    name: str
    target: str
    proxied: bool = False
    type: DNSType = field(default=DNSType.CNAME, init=False)

    @property
    def key(self) -> str:
        return entry_key(self)


@dataclass(frozen=True)
class MXEntry:
    """
    Represents an MX record.
    """

    name: str
    server: str
    priority: int
    type: DNSType = field(default=DNSType.MX, init=False)

    @property
    def key(self) -> str:
        return entry_key(self)


@dataclass(frozen=True)
class NSEntry:
    """
    Represents an NS record.
    """

    name: str
    server: str
    type: DNSType = field(default=DNSType.NS, init=False)

    @property
    def key(self) -> str:
        return entry_key(self)


@dataclass(frozen=True)
class UnsupportedEntry:
    """
    Represents a provider record of a type that is not managed.

    Its key can never match an entry declared on a container, so it is always
    planned for deletion.
    """

    name: str
    provider_type: Optional[str] = None
    type: DNSType = field(default=DNSType.UNSUPPORTED, init=False)

    @property
    def key(self) -> str:
        return entry_key(self)


DnsEntry = Union[AEntry, CNAMEEntry, MXEntry, NSEntry, UnsupportedEntry]

ENTRY_CLASSES: Dict[DNSType, type] = {
    DNSType.A: AEntry,
    DNSType.CNAME: CNAMEEntry,
    DNSType.MX: MXEntry,
    DNSType.NS: NSEntry,
}


def entry_key(entry: DnsEntry) -> str:
    """
    Identity of an entry used to match desired and observed entries.

    Args:
        entry: DNS entry

    Returns:
        str: Key in the form ``{type}-{name}``
    """
    return f"{entry.type.value}-{entry.name}"


def has_same_value(entry: DnsEntry, other: DnsEntry) -> bool:
    """
    Compare the non identity values of two entries.

    Names, keys, record ids and zone ids are never consulted.

    Args:
        entry: First entry
        other: Second entry

    Returns:
        bool: True if the values match, False otherwise
    """
    if isinstance(other, ObservedEntry):
        other = other.entry
    if isinstance(entry, ObservedEntry):
        entry = entry.entry

    if entry.type != other.type:
        return False

    if entry.type == DNSType.A:
        return entry.address == other.address and entry.proxied == other.proxied
    elif entry.type == DNSType.CNAME:
        return entry.target == other.target and entry.proxied == other.proxied
    elif entry.type == DNSType.MX:
        return entry.server == other.server and entry.priority == other.priority
    elif entry.type == DNSType.NS:
        return entry.server == other.server

    # Unsupported entries are never considered up-to-date
    return False


@dataclass(frozen=True)
class ObservedEntry:
    """
    A DNS entry as it exists on the provider, with the provider's identity.
    """

    entry: DnsEntry
    id: str
    zone_id: str

    @property
    def key(self) -> str:
        return self.entry.key

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def type(self) -> DNSType:
        return self.entry.type


@dataclass(frozen=True)
class Zone:
    """
    A DNS zone on the provider.
    """

    id: str
    name: str


@dataclass(frozen=True)
class ContainerDescriptor:
    """
    The parts of a container the desired-state extraction reads.
    """

    id: str
    labels: Dict[str, str]
    name: Optional[str] = None


@dataclass(frozen=True)
class EntryUpdate:
    old: ObservedEntry
    update: DnsEntry


@dataclass
class SetDifference:
    """
    Changes needed to bring the observed entries in line with the desired ones.
    """

    add: List[DnsEntry] = field(default_factory=list)
    update: List[EntryUpdate] = field(default_factory=list)
    delete: List[ObservedEntry] = field(default_factory=list)
    unchanged: List[ObservedEntry] = field(default_factory=list)

    def has_changes(self) -> bool:
        """
        Check if there are any changes to be applied.

        Returns:
            bool: True if there are changes, False otherwise
        """
        return bool(self.add or self.update or self.delete)


@dataclass(frozen=True)
class SyncSummary:
    """Number of entries touched by a single synchronisation cycle."""

    added: int = 0
    updated: int = 0
    deleted: int = 0
    unchanged: int = 0
