"""Unit tests for DockerContainerSource label extraction."""

import asyncio
import json
import logging
from typing import List
from unittest.mock import MagicMock

import docker
import pytest

from compose_external_dns.errors import (
    AlreadyInitializedError,
    NotInitializedError,
    SourceError,
)
from compose_external_dns.models.models import (
    AEntry,
    CNAMEEntry,
    ContainerDescriptor,
    MXEntry,
    NSEntry,
)
from compose_external_dns.source.docker_container import DockerContainerSource

LABEL = "docker-compose-external-dns.1"


# =============================================================================
# Test Helpers
# =============================================================================


def make_source(client=None) -> DockerContainerSource:
    """Create an initialized source backed by a mock docker client."""
    source = DockerContainerSource(LABEL, client_factory=lambda: client or MagicMock())
    source.initialize()
    return source


def container(container_id: str, label_value) -> ContainerDescriptor:
    if not isinstance(label_value, str):
        label_value = json.dumps(label_value)
    return ContainerDescriptor(id=container_id, labels={LABEL: label_value})


def warnings(caplog) -> List[str]:
    return [record.getMessage() for record in caplog.records if record.levelno == logging.WARNING]


# =============================================================================
# Initialization
# =============================================================================


class TestInitialization:
    def test_extract_before_initialize_raises(self) -> None:
        source = DockerContainerSource(LABEL, client_factory=MagicMock)

        with pytest.raises(NotInitializedError):
            source.extract_entries([])

    def test_initialize_twice_raises(self) -> None:
        source = make_source()

        with pytest.raises(AlreadyInitializedError):
            source.initialize()

    def test_connection_failure_is_wrapped(self) -> None:
        def failing_factory():
            raise docker.errors.DockerException("socket missing")

        source = DockerContainerSource(LABEL, client_factory=failing_factory)

        with pytest.raises(SourceError) as exc_info:
            source.initialize()

        assert isinstance(exc_info.value.__cause__, docker.errors.DockerException)


# =============================================================================
# Label parsing
# =============================================================================


class TestExtractEntries:
    def test_extracts_every_supported_type(self) -> None:
        source = make_source()
        declarations = [
            {"type": "A", "name": "a.example.com", "address": "1.1.1.1", "proxied": True},
            {"type": "CNAME", "name": "www.example.com", "target": "example.com"},
            {"type": "MX", "name": "example.com", "server": "mail.example.com", "priority": 10},
            {"type": "NS", "name": "sub.example.com", "server": "ns1.example.net"},
        ]

        entries = source.extract_entries([container("c1", declarations)])

        assert entries == [
            AEntry("a.example.com", "1.1.1.1", proxied=True),
            CNAMEEntry("www.example.com", "example.com", proxied=False),
            MXEntry("example.com", "mail.example.com", 10),
            NSEntry("sub.example.com", "ns1.example.net"),
        ]

    def test_accepts_dynamic_address(self) -> None:
        source = make_source()

        entries = source.extract_entries(
            [container("c1", [{"type": "A", "name": "a.example.com", "address": "DYNAMIC"}])]
        )

        assert entries == [AEntry("a.example.com", "DYNAMIC")]

    def test_empty_array_warns_once(self, caplog) -> None:
        source = make_source()

        entries = source.extract_entries([container("c1", "[]")])

        assert entries == []
        messages = warnings(caplog)
        assert len(messages) == 1
        assert "empty array" in messages[0]
        assert "c1" in messages[0]

    def test_non_json_label_is_skipped(self, caplog) -> None:
        source = make_source()

        entries = source.extract_entries(
            [
                container("bad", "{not json"),
                container("good", [{"type": "NS", "name": "s.example.com", "server": "ns.example.net"}]),
            ]
        )

        assert entries == [NSEntry("s.example.com", "ns.example.net")]
        messages = warnings(caplog)
        assert len(messages) == 1
        assert "non JSON" in messages[0] and "bad" in messages[0]

    def test_non_array_label_is_skipped_with_distinct_warning(self, caplog) -> None:
        source = make_source()

        entries = source.extract_entries(
            [container("c1", {"type": "A", "name": "a.example.com", "address": "1.1.1.1"})]
        )

        assert entries == []
        messages = warnings(caplog)
        assert len(messages) == 1
        assert "not a JSON array" in messages[0]
        assert "empty array" not in messages[0]

    def test_entry_with_id_is_skipped(self, caplog) -> None:
        source = make_source()
        declarations = [
            {"id": "abc", "type": "A", "name": "a.example.com", "address": "1.1.1.1"},
            {"type": "A", "name": "b.example.com", "address": "1.1.1.1"},
        ]

        entries = source.extract_entries([container("c1", declarations)])

        assert entries == [AEntry("b.example.com", "1.1.1.1")]
        assert any("'id'" in message for message in warnings(caplog))

    @pytest.mark.parametrize("entry_type", [None, "TXT", "Unsupported", "a", 0])
    def test_unrecognised_type_is_skipped(self, caplog, entry_type) -> None:
        source = make_source()
        declaration = {"name": "a.example.com", "address": "1.1.1.1"}
        if entry_type is not None:
            declaration["type"] = entry_type

        entries = source.extract_entries([container("c1", [declaration])])

        assert entries == []
        assert any("unrecognised type" in message for message in warnings(caplog))

    def test_invalid_fields_are_reported_together(self, caplog) -> None:
        source = make_source()
        declaration = {"type": "MX", "name": "example.com", "server": "not valid", "priority": 70000}

        entries = source.extract_entries([container("c1", [declaration])])

        assert entries == []
        messages = warnings(caplog)
        assert len(messages) == 1
        assert "server" in messages[0] and "priority" in messages[0]

    def test_host_names_are_lowercased(self) -> None:
        source = make_source()
        declarations = [
            {"type": "A", "name": "WWW.Example.com", "address": "DYNAMIC"},
            {"type": "CNAME", "name": "Api.Example.com", "target": "WWW.Example.COM"},
            {"type": "MX", "name": "Example.com", "server": "Mail.Example.com", "priority": 5},
        ]

        entries = source.extract_entries([container("c1", declarations)])

        assert entries == [
            AEntry("www.example.com", "DYNAMIC"),
            CNAMEEntry("api.example.com", "www.example.com"),
            MXEntry("example.com", "mail.example.com", 5),
        ]

    def test_non_object_element_is_skipped(self) -> None:
        source = make_source()

        entries = source.extract_entries(
            [container("c1", ["a.example.com", {"type": "A", "name": "a.example.com", "address": "1.1.1.1"}])]
        )

        assert entries == [AEntry("a.example.com", "1.1.1.1")]


# =============================================================================
# Duplicate handling
# =============================================================================


class TestDuplicates:
    def test_conflicting_declarations_are_all_dropped(self, caplog) -> None:
        source = make_source()
        containers = [
            container("container-one", [{"type": "A", "name": "test.example.com", "address": "1.1.1.1"}]),
            container("container-two", [{"type": "A", "name": "test.example.com", "address": "2.2.2.2"}]),
        ]

        entries = source.extract_entries(containers)

        assert [entry for entry in entries if entry.key == "A-test.example.com"] == []
        messages = warnings(caplog)
        assert len(messages) == 1
        assert "container-one" in messages[0] and "container-two" in messages[0]
        assert "test.example.com" in messages[0]

    def test_every_contributor_is_dropped_and_warned_once(self, caplog) -> None:
        source = make_source()
        declaration = [{"type": "MX", "name": "example.com", "server": "mail.example.com", "priority": 1}]
        containers = [container(f"c{i}", declaration) for i in range(3)]
        containers.append(
            container("other", [{"type": "NS", "name": "s.example.com", "server": "ns.example.net"}])
        )

        entries = source.extract_entries(containers)

        assert entries == [NSEntry("s.example.com", "ns.example.net")]
        messages = warnings(caplog)
        assert len(messages) == 1
        assert all(f"c{i}" in messages[0] for i in range(3))

    def test_names_differing_only_in_case_are_duplicates(self, caplog) -> None:
        source = make_source()
        containers = [
            container("c1", [{"type": "NS", "name": "S.example.com", "server": "ns.example.net"}]),
            container("c2", [{"type": "NS", "name": "s.example.com", "server": "ns.example.net"}]),
        ]

        assert source.extract_entries(containers) == []
        assert len(warnings(caplog)) == 1

    def test_same_name_with_different_types_is_not_a_duplicate(self) -> None:
        source = make_source()
        declarations = [
            {"type": "A", "name": "example.com", "address": "1.1.1.1"},
            {"type": "MX", "name": "example.com", "server": "mail.example.com", "priority": 10},
        ]

        entries = source.extract_entries([container("c1", declarations)])

        assert len(entries) == 2


# =============================================================================
# Docker access
# =============================================================================


class TestContainers:
    def test_lists_containers_filtered_by_label(self) -> None:
        docker_container = MagicMock()
        docker_container.id = "abcdef1234567890"
        docker_container.name = "web"
        docker_container.labels = {LABEL: "[]"}
        client = MagicMock()
        client.containers.list.return_value = [docker_container]
        source = make_source(client)

        containers = asyncio.run(source.containers())

        client.containers.list.assert_called_once_with(filters={"label": [LABEL]})
        assert containers == [
            ContainerDescriptor(id="abcdef1234567890", name="web", labels={LABEL: "[]"})
        ]

    def test_docker_errors_are_wrapped(self) -> None:
        client = MagicMock()
        client.containers.list.side_effect = docker.errors.APIError("daemon gone")
        source = make_source(client)

        with pytest.raises(SourceError):
            asyncio.run(source.containers())

    def test_endpoints_extracts_from_listed_containers(self) -> None:
        docker_container = MagicMock()
        docker_container.id = "c1"
        docker_container.labels = {
            LABEL: json.dumps([{"type": "A", "name": "a.example.com", "address": "1.1.1.1"}])
        }
        client = MagicMock()
        client.containers.list.return_value = [docker_container]
        source = make_source(client)

        entries = asyncio.run(source.endpoints())

        assert entries == [AEntry("a.example.com", "1.1.1.1")]
