"""
Controller module for Compose-External-DNS.

This module is responsible for coordinating the source, the provider and the
dynamic DNS service to bring Cloudflare in line with the container labels.
"""

import asyncio
import dataclasses
import functools
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from compose_external_dns.controller.plan import Plan
from compose_external_dns.ddns.ddns import DdnsService
from compose_external_dns.errors import (
    AlreadyInitializedError,
    NoZonesError,
    NotInitializedError,
    SynchronisationError,
)
from compose_external_dns.models.models import (
    DnsEntry,
    DNSType,
    ObservedEntry,
    SetDifference,
    SyncSummary,
    Zone,
    is_dynamic_address,
)
from compose_external_dns.provider.cloudflare import CloudflareProvider
from compose_external_dns.provider.params import CloudflareRecordFactory
from compose_external_dns.provider.zones import resolve_zone
from compose_external_dns.scheduler.periodic import PeriodicTask
from compose_external_dns.source.docker_container import DockerContainerSource
from compose_external_dns.utils.health import HealthStatus


class State(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class Controller:
    """
    Controller that runs synchronisation cycles between Docker and Cloudflare.
    """

    def __init__(
        self,
        source: DockerContainerSource,
        provider: CloudflareProvider,
        factory: CloudflareRecordFactory,
        ddns: DdnsService,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize a Controller.

        Args:
            source: Source of desired entries
            provider: Cloudflare provider
            factory: Builds record parameters for the provider
            ddns: Dynamic DNS service supplying the public IP address
            logger: Logger to report on, defaults to the controller logger
        """
        self.source = source
        self.provider = provider
        self.factory = factory
        self.ddns = ddns
        self.logger = logger or logging.getLogger("compose-external-dns.controller")
        self.state = State.UNINITIALIZED

    def initialize(self) -> None:
        """
        Initialize the source and the provider.

        Raises:
            AlreadyInitializedError: If already initialized
        """
        if self.state is State.INITIALIZED:
            raise AlreadyInitializedError("Controller is already initialized")

        self.provider.initialize()
        self.source.initialize()
        self.state = State.INITIALIZED

    async def run_once(self) -> SyncSummary:
        """
        Performs a single synchronisation cycle.

        Returns:
            SyncSummary: Number of entries added, updated, deleted and unchanged

        Raises:
            NotInitializedError: If not initialized
            NoZonesError: If Cloudflare returned no zones
            SynchronisationError: If any write call failed
        """
        if self.state is not State.INITIALIZED:
            raise NotInitializedError(
                "Controller, run_once: not initialized, call initialize first"
            )

        zones = await self.provider.zones()
        if not zones:
            raise NoZonesError(
                "No zones returned by Cloudflare, check the API token's permissions"
            )

        # Fetch every zone's records concurrently while the containers are read
        records_future = asyncio.gather(
            *(self.provider.zone_records(zone.id) for zone in zones)
        )
        try:
            # Containers are resolved first so a failure surfaces before the
            # zone records are used
            desired = await self.source.endpoints()
            desired = await self._resolve_dynamic_entries(desired)
        except BaseException:
            records_future.cancel()
            # Retrieve the outcome so a failed fetch is not reported as unhandled
            await asyncio.gather(records_future, return_exceptions=True)
            raise
        zone_records = await records_future

        observed: List[ObservedEntry] = []
        for zone, records in zip(zones, zone_records):
            observed.extend(self.provider.map_records(zone.id, records))

        self.logger.debug(
            f"Found {len(desired)} desired and {len(observed)} current entries"
        )
        changes = Plan(desired, observed).calculate_changes()

        requests: List[Callable[[], Awaitable[None]]] = []
        added = 0
        if changes.has_changes():
            requests, added = self._write_requests(zones, changes)
        else:
            self.logger.debug("Entries are up-to-date, nothing to write")

        if requests:
            # A failing write does not cancel the others
            results = await asyncio.gather(
                *(request() for request in requests), return_exceptions=True
            )
            failures = [result for result in results if isinstance(result, BaseException)]
            if failures:
                for failure in failures:
                    self.logger.error(f"Write failed during synchronisation: {failure}")
                raise SynchronisationError(
                    f"{len(failures)} of {len(requests)} write calls failed during synchronisation",
                    failures,
                ) from failures[0]

        summary = SyncSummary(
            added=added,
            updated=len(changes.update),
            deleted=len(changes.delete),
            unchanged=len(changes.unchanged),
        )
        self.logger.info(
            f"Synchronisation complete, entries changed: Added {summary.added}, "
            f"Updated {summary.updated}, Deleted {summary.deleted}, "
            f"Unchanged {summary.unchanged}"
        )
        return summary

    async def _resolve_dynamic_entries(self, desired: List[DnsEntry]) -> List[DnsEntry]:
        """
        Replace the dynamic-address sentinel with the discovered IP address.

        Entries needing the address are dropped while it is still unknown. The
        dynamic DNS service is started when first needed and stopped once no
        entry needs it.

        Args:
            desired: Desired entries

        Returns:
            List[DnsEntry]: Entries ready to be planned
        """
        if not self.ddns.is_required(desired):
            if self.ddns.is_running:
                self.logger.info("No entries use a dynamic address, stopping DDNS")
                self.ddns.stop()
            return desired

        if not self.ddns.is_running:
            self.logger.info("Entries use a dynamic address, starting DDNS")
            await self.ddns.start()

        ip_address = self.ddns.ip_address
        dynamic = [entry for entry in desired if _uses_dynamic_address(entry)]
        if ip_address is None:
            self.logger.warning(
                f"Public IP address not known yet, ignoring {len(dynamic)} dynamic entries "
                f"this synchronisation: {[entry.name for entry in dynamic]}"
            )
            return [entry for entry in desired if not _uses_dynamic_address(entry)]

        # New objects, the declared entries are left untouched
        return [
            dataclasses.replace(entry, address=ip_address)
            if _uses_dynamic_address(entry)
            else entry
            for entry in desired
        ]

    def _write_requests(
        self, zones: List[Zone], changes: SetDifference
    ) -> Tuple[List[Callable[[], Awaitable[None]]], int]:
        """
        Build the provider calls for a set difference.

        Returns:
            Tuple: The calls to issue and the number of additions among them
        """
        requests: List[Callable[[], Awaitable[None]]] = []

        added = 0
        for entry in changes.add:
            match = resolve_zone(zones, entry, self.logger)
            if not match.success:
                continue
            added += 1
            requests.append(
                functools.partial(
                    self.provider.create_entry, self.factory.params(match.zone.id, entry)
                )
            )

        for pair in changes.update:
            requests.append(
                functools.partial(
                    self.provider.update_entry,
                    pair.old.id,
                    self.factory.params(pair.old.zone_id, pair.update),
                )
            )

        for observed in changes.delete:
            requests.append(
                functools.partial(
                    self.provider.delete_entry, observed.id, observed.zone_id
                )
            )

        return requests, added


def _uses_dynamic_address(entry: DnsEntry) -> bool:
    return entry.type == DNSType.A and is_dynamic_address(entry.address)


class SyncScheduler(PeriodicTask):
    """
    Runs the controller's synchronisation cycle on an interval.
    """

    def __init__(
        self,
        controller: Controller,
        interval: int = 60,
        health: Optional[HealthStatus] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize a SyncScheduler.

        Args:
            controller: Controller to run
            interval: Seconds between the end of a cycle and the next
            health: Status the outcome of each cycle is recorded on
        """
        self.controller = controller
        self.interval = interval
        self.health = health
        super().__init__(logger or logging.getLogger("compose-external-dns.scheduler"))

    @property
    def name(self) -> str:
        return "SyncScheduler"

    @property
    def interval_seconds(self) -> float:
        return self.interval

    async def job(self) -> None:
        try:
            summary = await self.controller.run_once()
        except Exception as e:
            if self.health is not None:
                self.health.record_failure(e)
            raise
        if self.health is not None:
            self.health.record_success(summary)
