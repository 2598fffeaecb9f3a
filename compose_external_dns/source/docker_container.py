"""
Docker container source module for Compose-External-DNS.

This module is responsible for fetching containers carrying this instance's
label and extracting the desired DNS entries from the label's JSON value.
"""

import asyncio
import functools
import json
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

import docker

from compose_external_dns.errors import (
    AlreadyInitializedError,
    NotInitializedError,
    SourceError,
)
from compose_external_dns.models.models import (
    ENTRY_CLASSES,
    ContainerDescriptor,
    DnsEntry,
    DNSType,
    normalise_hostname,
)
from compose_external_dns.models.validation import validate_entry

DOCKER_SOCKET_URL = "unix://var/run/docker.sock"

# Fields read from each entry declaration, per record type
_ENTRY_FIELDS: Dict[DNSType, Tuple[str, ...]] = {
    DNSType.A: ("address", "proxied"),
    DNSType.CNAME: ("target", "proxied"),
    DNSType.MX: ("server", "priority"),
    DNSType.NS: ("server",),
}
_OPTIONAL_DEFAULTS = {"proxied": False}
# Host name fields besides "name", lowercased to match the names Cloudflare returns
_HOSTNAME_FIELDS = ("target", "server")


class State(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"


class DockerContainerSource:
    """
    Source that fetches desired DNS entries from Docker container labels.
    """

    def __init__(
        self,
        docker_label: str,
        client_factory: Optional[Callable[[], docker.DockerClient]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize a DockerContainerSource.

        Args:
            docker_label: Label key holding the JSON array of entries
            client_factory: Builds the docker client, defaults to the environment
            logger: Logger to report on, defaults to the source logger
        """
        self.docker_label = docker_label
        self.client_factory = client_factory or self._connect
        self.logger = logger or logging.getLogger("compose-external-dns.source.docker")
        self.docker_client = None
        self.state = State.UNINITIALIZED

    def initialize(self) -> None:
        """
        Connect to the docker daemon.

        Raises:
            AlreadyInitializedError: If already initialized
            SourceError: If the docker daemon cannot be reached
        """
        if self.state is State.INITIALIZED:
            raise AlreadyInitializedError(
                "DockerContainerSource is already initialized"
            )

        try:
            self.docker_client = self.client_factory()
        except docker.errors.DockerException as e:
            raise SourceError(f"Failed initializing docker client: {e}") from e

        self.state = State.INITIALIZED

    def _connect(self) -> docker.DockerClient:
        """Connect using the environment, falling back to the default socket."""
        try:
            client = docker.from_env()
            client.ping()
            self.logger.debug("Successfully connected to Docker daemon")
            return client
        except docker.errors.DockerException as e:
            self.logger.warning(
                f"Error connecting to Docker daemon from environment: {e}. "
                "Trying explicit socket path"
            )
            client = docker.DockerClient(base_url=DOCKER_SOCKET_URL)
            client.ping()
            self.logger.debug(
                "Successfully connected to Docker daemon with explicit socket path"
            )
            return client

    def _ensure_initialized(self, operation: str) -> None:
        if self.state is not State.INITIALIZED:
            raise NotInitializedError(
                f"DockerContainerSource, {operation}: not initialized, call initialize first"
            )

    async def containers(self) -> List[ContainerDescriptor]:
        """
        Returns the running containers carrying this instance's label.

        Returns:
            List[ContainerDescriptor]: Matching containers

        Raises:
            NotInitializedError: If not initialized
            SourceError: If docker fails listing containers
        """
        self._ensure_initialized("containers")

        loop = asyncio.get_running_loop()
        try:
            # The docker SDK is blocking, keep it off the event loop
            containers = await loop.run_in_executor(
                None,
                functools.partial(
                    self.docker_client.containers.list,
                    filters={"label": [self.docker_label]},
                ),
            )
        except docker.errors.DockerException as e:
            raise SourceError(f"Failed listing containers: {e}") from e

        return [
            ContainerDescriptor(
                id=container.id,
                name=getattr(container, "name", None),
                labels=dict(container.labels or {}),
            )
            for container in containers
        ]

    async def endpoints(self) -> List[DnsEntry]:
        """
        Returns the desired DNS entries declared on running containers.

        Returns:
            List[DnsEntry]: Validated, deduplicated entries
        """
        containers = await self.containers()
        return self.extract_entries(containers)

    def extract_entries(self, containers: List[ContainerDescriptor]) -> List[DnsEntry]:
        """
        Parse, validate and deduplicate the entries declared on containers.

        Malformed labels and entries are skipped with a warning. When more than
        one declaration produces the same key, every declaration of that key is
        dropped and reported once.

        Args:
            containers: Containers to read the label from

        Returns:
            List[DnsEntry]: Valid entries with unique keys

        Raises:
            NotInitializedError: If not initialized
        """
        self._ensure_initialized("extract_entries")

        accepted: Dict[str, Tuple[str, DnsEntry]] = {}
        duplicates: Dict[str, List[Tuple[str, DnsEntry]]] = {}

        for container in containers:
            for entry in self._entries_from_container(container):
                key = entry.key
                if key in duplicates:
                    duplicates[key].append((container.id, entry))
                elif key in accepted:
                    duplicates[key] = [accepted.pop(key), (container.id, entry)]
                else:
                    accepted[key] = (container.id, entry)

        for contributors in duplicates.values():
            container_ids = [container_id for container_id, _ in contributors]
            entry = contributors[0][1]
            self.logger.warning(
                f"Duplicate entries found, all are ignored until resolved. "
                f"(type: {entry.type.value}, name: {entry.name}, containers: {container_ids})"
            )

        return [entry for _, entry in accepted.values()]

    def _entries_from_container(self, container: ContainerDescriptor) -> List[DnsEntry]:
        """
        Generate entries from a single container's label.

        Args:
            container: Container to read

        Returns:
            List[DnsEntry]: Valid entries declared by the container
        """
        raw_label = container.labels.get(self.docker_label)
        try:
            declarations = json.loads(raw_label)
        except (TypeError, ValueError):
            self.logger.warning(
                f"Container with id {container.id} has a non JSON formatted label, ignoring it"
            )
            return []

        if not isinstance(declarations, list):
            self.logger.warning(
                f"Container with id {container.id} has a label which is not a JSON array, "
                "entries must be declared in an array"
            )
            return []

        if not declarations:
            self.logger.warning(
                f"Container with id {container.id} has a label with an empty array, no entries declared"
            )
            return []

        entries = []
        for declaration in declarations:
            entry = self._entry_from_declaration(container, declaration)
            if entry is not None:
                entries.append(entry)
        return entries

    def _entry_from_declaration(
        self, container: ContainerDescriptor, declaration: object
    ) -> Optional[DnsEntry]:
        if not isinstance(declaration, dict):
            self.logger.warning(
                f"Container with id {container.id} has an entry which is not a JSON object, ignoring it"
            )
            return None

        if "id" in declaration:
            self.logger.warning(
                f"Container with id {container.id} has 'id' within an entry of its JSON label, "
                "please remove it"
            )
            return None

        entry_type = self._parse_type(declaration.get("type"))
        if entry_type is None:
            self.logger.warning(
                f"Container with id {container.id} has an entry with an unrecognised type "
                f"({declaration.get('type')!r}), check the values"
            )
            return None

        values = {"name": normalise_hostname(declaration.get("name"))}
        for field_name in _ENTRY_FIELDS[entry_type]:
            value = declaration.get(field_name, _OPTIONAL_DEFAULTS.get(field_name))
            if field_name in _HOSTNAME_FIELDS:
                value = normalise_hostname(value)
            values[field_name] = value
        entry = ENTRY_CLASSES[entry_type](**values)

        violations = validate_entry(entry)
        if violations:
            self.logger.warning(
                f"Container with id {container.id} has validation errors, ignoring entry "
                f"'{declaration.get('name')}': {'; '.join(str(v) for v in violations)}"
            )
            return None

        return entry

    @staticmethod
    def _parse_type(value: object) -> Optional[DNSType]:
        """Record type from a declaration, None if it cannot be declared."""
        if not isinstance(value, str):
            return None
        try:
            entry_type = DNSType(value)
        except ValueError:
            return None
        if entry_type not in ENTRY_CLASSES:
            return None
        return entry_type
