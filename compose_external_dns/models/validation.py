"""
Field validation for DNS entries declared on containers.

Each validator returns ``None`` for a valid value or a message describing the
problem. ``validate_entry`` collects every violation of an entry so they can be
reported together.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import List, Optional

from compose_external_dns.models.models import (
    DNSType,
    DnsEntry,
    is_dynamic_address,
)

MAX_FQDN_LENGTH = 253
MIN_PRIORITY = 0
MAX_PRIORITY = 65535

_LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$", re.IGNORECASE)
_TLD_PATTERN = re.compile(r"^([a-z]{2,63}|xn--[a-z0-9-]{2,59})$", re.IGNORECASE)


@dataclass(frozen=True)
class Violation:
    """A single invalid field on an entry."""

    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def check_fqdn(value: object) -> Optional[str]:
    """
    Check that a value is a fully qualified domain name.

    Labels are 1-63 letters, digits or hyphens, not starting or ending with a
    hyphen, and the top level label is alphabetic (or punycode).
    """
    if not isinstance(value, str):
        return "must be a string"
    if not value:
        return "must not be empty"
    if len(value) > MAX_FQDN_LENGTH:
        return f"must be at most {MAX_FQDN_LENGTH} characters"

    labels = value.split(".")
    if len(labels) < 2:
        return "must be a fully qualified domain name"
    for label in labels:
        if not _LABEL_PATTERN.match(label):
            return f"contains an invalid label '{label}'"
    if not _TLD_PATTERN.match(labels[-1]):
        return f"has an invalid top level domain '{labels[-1]}'"
    return None


def check_ip(value: object) -> Optional[str]:
    """Check that a value is an IPv4 or IPv6 address."""
    if not isinstance(value, str) or not value:
        return "must be an IPv4 or IPv6 address"
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return "must be an IPv4 or IPv6 address"
    return None


def check_ip_or_dynamic(value: object) -> Optional[str]:
    """Check that a value is an IP address or the dynamic-address sentinel."""
    if is_dynamic_address(value):
        return None
    if check_ip(value) is None:
        return None
    return 'must be "DYNAMIC" or an IPv4 or IPv6 address'


def check_boolean(value: object) -> Optional[str]:
    if not isinstance(value, bool):
        return "must be a boolean"
    return None


def check_int_range(value: object, minimum: int, maximum: int) -> Optional[str]:
    # bool is a subclass of int, reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        return "must be an integer"
    if value < minimum or value > maximum:
        return f"must be between {minimum} and {maximum}"
    return None


def validate_entry(entry: DnsEntry) -> List[Violation]:
    """
    Validate every field of an entry.

    Args:
        entry: Entry built from a container label

    Returns:
        List[Violation]: Violations found, empty if the entry is valid
    """
    checks = [("name", check_fqdn(entry.name))]

    if entry.type == DNSType.A:
        checks.append(("address", check_ip_or_dynamic(entry.address)))
        checks.append(("proxied", check_boolean(entry.proxied)))
    elif entry.type == DNSType.CNAME:
        checks.append(("target", check_fqdn(entry.target)))
        checks.append(("proxied", check_boolean(entry.proxied)))
    elif entry.type == DNSType.MX:
        checks.append(("server", check_fqdn(entry.server)))
        checks.append(
            ("priority", check_int_range(entry.priority, MIN_PRIORITY, MAX_PRIORITY))
        )
    elif entry.type == DNSType.NS:
        checks.append(("server", check_fqdn(entry.server)))
    else:
        checks.append(("type", f"'{entry.type.value}' cannot be declared"))

    return [Violation(name, message) for name, message in checks if message]
