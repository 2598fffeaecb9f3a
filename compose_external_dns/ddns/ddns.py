"""
Dynamic DNS module for Compose-External-DNS.

This module is responsible for periodically discovering the host's public IP
address, which replaces the ``DYNAMIC`` address of A entries at sync time.
"""

import logging
from typing import Iterable, Optional

import httpx

from compose_external_dns.models.models import DnsEntry, DNSType, is_dynamic_address
from compose_external_dns.models.validation import check_ip
from compose_external_dns.scheduler.periodic import PeriodicTask

DEFAULT_LOOKUP_URL = "https://ipinfo.io"


class DdnsService(PeriodicTask):
    """
    Periodically fetches the public IP address and caches the latest valid one.
    """

    def __init__(
        self,
        interval_minutes: int = 60,
        lookup_url: str = DEFAULT_LOOKUP_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize a DdnsService.

        Args:
            interval_minutes: Minutes between lookups
            lookup_url: Service answering with a JSON object holding ``ip``
            transport: HTTP transport, the default network transport when omitted
            timeout: Seconds before a lookup is abandoned
            logger: Logger to report on, defaults to the ddns logger
        """
        self.interval_minutes = interval_minutes
        self.lookup_url = lookup_url
        self.transport = transport
        self.timeout = timeout
        self._ip_address: Optional[str] = None
        super().__init__(logger or logging.getLogger("compose-external-dns.ddns"))

    @property
    def name(self) -> str:
        return "DdnsService"

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60

    @property
    def ip_address(self) -> Optional[str]:
        """The last discovered public IP address, None until one is found."""
        return self._ip_address

    async def job(self) -> None:
        """
        Fetch the public IP address and update the cached value.

        Failures are logged and leave the cached value unchanged.
        """
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout
            ) as client:
                response = await client.get(
                    self.lookup_url, headers={"accept": "application/json"}
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            self.logger.error(f"Error fetching IP address from {self.lookup_url}: {e}")
            return
        except ValueError as e:
            self.logger.error(
                f"Error fetching IP address, deserializing response failed: {e}"
            )
            return

        ip = body.get("ip") if isinstance(body, dict) else None
        if ip is None:
            self.logger.error(
                f"Error fetching IP address, response has unexpected shape ({body})"
            )
            return

        if check_ip(ip) is not None:
            self.logger.error(
                f"Error fetching IP address, value returned is not recognisable as an IP address ({ip})"
            )
            return

        if self._ip_address is None:
            self.logger.info(
                f"DDNS found a new IP address {ip}. DNS will update on next synchronisation."
            )
        elif self._ip_address != ip:
            self.logger.info(
                f"DDNS found a new IP address {ip}, old address was {self._ip_address}. "
                "DNS will update on next synchronisation."
            )
        self._ip_address = ip

    @staticmethod
    def is_required(entries: Iterable[DnsEntry]) -> bool:
        """
        Check if any entry needs the dynamic address.

        Args:
            entries: Desired entries

        Returns:
            bool: True if an A entry uses the dynamic-address sentinel
        """
        return any(
            entry.type == DNSType.A and is_dynamic_address(entry.address)
            for entry in entries
        )
