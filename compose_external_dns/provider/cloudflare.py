"""
Cloudflare provider module for Compose-External-DNS.

This module is responsible for interfacing with the Cloudflare API: listing
zones and the records owned by this instance, mapping them to entries, and
creating, updating and deleting records.
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import cloudflare

from compose_external_dns.errors import (
    AlreadyInitializedError,
    NotInitializedError,
    ProviderError,
)
from compose_external_dns.models.models import (
    AEntry,
    CNAMEEntry,
    DnsEntry,
    MXEntry,
    NSEntry,
    ObservedEntry,
    UnsupportedEntry,
    Zone,
    normalise_hostname,
)


class State(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class CloudflareProvider:
    """
    Provider that interfaces with the Cloudflare API.
    """

    def __init__(
        self,
        api_token: str,
        entry_identifier: str,
        client: Optional[cloudflare.AsyncCloudflare] = None,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize a CloudflareProvider.

        Args:
            api_token: Cloudflare API token
            entry_identifier: Comment identifying records owned by this instance
            client: Preconfigured client, built from the token when omitted
            dry_run: Whether to log write calls instead of issuing them
            logger: Logger to report on, defaults to the provider logger
        """
        self.api_token = api_token
        self.entry_identifier = entry_identifier
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(
            "compose-external-dns.provider.cloudflare"
        )
        self.cf = client
        self.state = State.UNINITIALIZED

    def initialize(self) -> None:
        """
        Configure the Cloudflare client.

        Raises:
            AlreadyInitializedError: If already initialized
        """
        if self.state is State.INITIALIZED:
            raise AlreadyInitializedError(
                "CloudflareProvider is already initialized"
            )

        if self.cf is None:
            self.cf = cloudflare.AsyncCloudflare(api_token=self.api_token)
        self.state = State.INITIALIZED

    def _ensure_initialized(self, operation: str) -> None:
        if self.state is not State.INITIALIZED:
            raise NotInitializedError(
                f"CloudflareProvider, {operation}: not initialized, call initialize first"
            )

    async def zones(self) -> List[Zone]:
        """
        Returns every zone readable with the API token.

        Returns:
            List[Zone]: Zones in the order Cloudflare pages them

        Raises:
            ProviderError: If Cloudflare errors listing zones
        """
        self._ensure_initialized("zones")
        self.logger.debug("Fetching zones from Cloudflare API")

        try:
            page = await self.cf.zones.list()
            zones = list(page.result or [])
            # Pages are fetched one after the other, each from its predecessor
            while page.has_next_page():
                page = await page.get_next_page()
                zones.extend(page.result or [])
        except cloudflare.CloudflareError as e:
            raise ProviderError(f"Error fetching zones from Cloudflare: {e}") from e

        self.logger.debug(f"Received {len(zones)} zones from Cloudflare API")
        return [Zone(id=zone.id, name=zone.name) for zone in zones]

    async def zone_records(self, zone_id: str) -> List[Any]:
        """
        Returns the records of a zone owned by this instance.

        Only records carrying this instance's comment are returned, other
        records in the zone are never seen.

        Args:
            zone_id: Zone to fetch records for

        Returns:
            List[Any]: Cloudflare record objects

        Raises:
            ProviderError: If Cloudflare errors listing records
        """
        self._ensure_initialized("zone_records")

        try:
            page = await self.cf.dns.records.list(
                zone_id=zone_id, comment={"exact": self.entry_identifier}
            )
            records = list(page.result or [])
            while page.has_next_page():
                page = await page.get_next_page()
                records.extend(page.result or [])
        except cloudflare.CloudflareError as e:
            raise ProviderError(
                f"Error fetching DNS records for zone {zone_id} from Cloudflare: {e}"
            ) from e

        self.logger.debug(f"Received {len(records)} records for zone {zone_id}")
        return records

    def map_records(self, zone_id: str, records: List[Any]) -> List[ObservedEntry]:
        """
        Maps Cloudflare records to observed entries.

        Records of a type that is not managed become unsupported entries, which
        are always planned for deletion.

        Args:
            zone_id: Zone the records were fetched from
            records: Cloudflare record objects

        Returns:
            List[ObservedEntry]: Observed entries
        """
        self._ensure_initialized("map_records")

        observed = []
        for record in records:
            record_type = getattr(record, "type", None)
            record_id = getattr(record, "id", None)
            name = normalise_hostname(getattr(record, "name", None))
            content = getattr(record, "content", None)

            entry: DnsEntry
            if record_type == "A":
                entry = AEntry(
                    name=name,
                    address=content,
                    proxied=bool(getattr(record, "proxied", False)),
                )
            elif record_type == "CNAME":
                entry = CNAMEEntry(
                    name=name,
                    target=normalise_hostname(content),
                    proxied=bool(getattr(record, "proxied", False)),
                )
            elif record_type == "MX":
                entry = MXEntry(
                    name=name,
                    server=normalise_hostname(content),
                    priority=getattr(record, "priority", None),
                )
            elif record_type == "NS":
                entry = NSEntry(name=name, server=normalise_hostname(content))
            else:
                entry = UnsupportedEntry(name=name, provider_type=record_type)
                self.logger.warning(
                    f"Unsupported {record_type} record with id {record_id} found. "
                    "It will be DELETED. Do not add the tracking comment to other DNS entries in Cloudflare!"
                )

            observed.append(ObservedEntry(entry=entry, id=record_id, zone_id=zone_id))
        return observed

    async def create_entry(self, params: Dict[str, Any]) -> None:
        """
        Creates a DNS record.

        Args:
            params: Record parameters, including the zone id

        Raises:
            ProviderError: If Cloudflare errors creating the record
        """
        self._ensure_initialized("create_entry")

        if self.dry_run:
            self.logger.info(f"Dry run, not creating DNS record: {_describe(params)}")
            return

        self.logger.info(f"Creating DNS record: {_describe(params)}")
        try:
            await self.cf.dns.records.create(**params)
        except cloudflare.CloudflareError as e:
            raise ProviderError(
                f"Cloudflare errored creating entry. ({_describe(params)}): {e}"
            ) from e

    async def update_entry(self, record_id: str, params: Dict[str, Any]) -> None:
        """
        Updates an existing DNS record.

        Args:
            record_id: Record to update
            params: Record parameters, including the zone id

        Raises:
            ProviderError: If Cloudflare errors updating the record
        """
        self._ensure_initialized("update_entry")

        if self.dry_run:
            self.logger.info(
                f"Dry run, not updating DNS record {record_id}: {_describe(params)}"
            )
            return

        self.logger.info(f"Updating DNS record {record_id}: {_describe(params)}")
        try:
            await self.cf.dns.records.update(record_id, **params)
        except cloudflare.CloudflareError as e:
            raise ProviderError(
                f"Cloudflare errored updating entry {record_id}. ({_describe(params)}): {e}"
            ) from e

    async def delete_entry(self, record_id: str, zone_id: str) -> None:
        """
        Deletes a DNS record.

        Args:
            record_id: Record to delete
            zone_id: Zone the record belongs to

        Raises:
            ProviderError: If Cloudflare errors deleting the record
        """
        self._ensure_initialized("delete_entry")

        if self.dry_run:
            self.logger.info(
                f"Dry run, not deleting DNS record {record_id} in zone {zone_id}"
            )
            return

        self.logger.info(f"Deleting DNS record {record_id} in zone {zone_id}")
        try:
            await self.cf.dns.records.delete(record_id, zone_id=zone_id)
        except cloudflare.CloudflareError as e:
            raise ProviderError(
                f"Cloudflare errored deleting entry. (zone_id: {zone_id}, dns_record_id: {record_id}): {e}"
            ) from e


def _describe(params: Dict[str, Any]) -> str:
    return json.dumps(params, sort_keys=True, default=str)
