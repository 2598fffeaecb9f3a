"""
Cloudflare record parameters for Compose-External-DNS.

Maps entries to the keyword arguments of the Cloudflare SDK's record create and
update calls.
"""

from typing import Any, Dict

from compose_external_dns.errors import UnreachableStateError
from compose_external_dns.models.models import DnsEntry, DNSType

# Cloudflare's "automatic" TTL
AUTOMATIC_TTL = 1


class CloudflareRecordFactory:
    """
    Builds create and update parameters for Cloudflare records.

    Every record is tagged with the entry identifier as its comment, which is
    how records owned by this instance are found again.
    """

    def __init__(self, entry_identifier: str):
        self.entry_identifier = entry_identifier

    def params(self, zone_id: str, entry: DnsEntry) -> Dict[str, Any]:
        """
        Build the parameters to create or update a record.

        Args:
            zone_id: Zone the record belongs to
            entry: Entry to write

        Returns:
            Dict[str, Any]: Keyword arguments for the Cloudflare SDK

        Raises:
            UnreachableStateError: If the entry's type cannot be written
        """
        params: Dict[str, Any] = {
            "zone_id": zone_id,
            "type": entry.type.value,
            "name": entry.name,
            "ttl": AUTOMATIC_TTL,
            "comment": self.entry_identifier,
        }

        if entry.type == DNSType.A:
            params["content"] = entry.address
            params["proxied"] = entry.proxied
        elif entry.type == DNSType.CNAME:
            params["content"] = entry.target
            params["proxied"] = entry.proxied
        elif entry.type == DNSType.MX:
            params["content"] = entry.server
            params["priority"] = entry.priority
        elif entry.type == DNSType.NS:
            params["content"] = entry.server
        else:
            raise UnreachableStateError(
                f"No record parameters available for unsupported type. (type: {entry.type.value}, name: {entry.name})"
            )

        return params
