"""Unit tests for configuration loading."""

import pytest
from pydantic import ValidationError

from compose_external_dns.config.config import Config


def write_config(tmp_path, content: str):
    path = tmp_path / "compose-external-dns.yaml"
    path.write_text(content)
    return path


class TestDefaults:
    def test_defaults_without_file(self, tmp_path) -> None:
        config = Config.from_yaml(tmp_path / "missing.yaml", environ={})

        assert config.project_label == "docker-compose-external-dns"
        assert config.instance_id == "1"
        assert config.interval == 60
        assert config.ddns_interval == 60
        assert config.log_level == "info"
        assert config.dry_run is False
        assert config.once is False

    def test_derived_label_and_identifier(self) -> None:
        config = Config(project_label="my-dns", instance_id="prod_2")

        assert config.docker_label == "my-dns.prod_2"
        assert config.entry_identifier == "my-dns:prod_2"


class TestYaml:
    def test_nested_sections_are_read(self, tmp_path) -> None:
        path = write_config(
            tmp_path,
            """
instance:
  project_label: labs
  instance_id: "7"
cloudflare:
  api_token: secret
controller:
  interval: 30
  dry_run: true
ddns:
  interval: 5
  lookup_url: https://ip.example.com
health:
  enabled: false
  port: 9090
logging:
  level: DEBUG
""",
        )

        config = Config.from_yaml(path, environ={})

        assert config.docker_label == "labs.7"
        assert config.api_token() == "secret"
        assert config.interval == 30
        assert config.dry_run is True
        assert config.ddns_interval == 5
        assert config.ddns_lookup_url == "https://ip.example.com"
        assert config.health_enabled is False
        assert config.health_port == 9090
        assert config.log_level == "debug"

    def test_environment_substitution(self, tmp_path) -> None:
        path = write_config(
            tmp_path,
            """
cloudflare:
  api_token: ${CF_TOKEN}
instance:
  instance_id: ${NODE:-edge}
""",
        )

        config = Config.from_yaml(path, environ={"CF_TOKEN": "from-env"})

        assert config.cloudflare_api_token == "from-env"
        assert config.instance_id == "edge"

    def test_empty_file_uses_defaults(self, tmp_path) -> None:
        config = Config.from_yaml(write_config(tmp_path, ""), environ={})

        assert config.entry_identifier == "docker-compose-external-dns:1"


class TestEnvironmentOverrides:
    def test_environment_wins_over_file(self, tmp_path) -> None:
        path = write_config(tmp_path, "controller:\n  interval: 30\n")
        environ = {
            "PROJECT_LABEL": "env-label",
            "INSTANCE_ID": " 3 ",
            "API_TOKEN": "env-token",
            "EXECUTION_FREQUENCY_SECONDS": "15",
            "DDNS_EXECUTION_FREQUENCY_MINUTES": "2",
            "LOG_LEVEL": "warning",
            "DRY_RUN": "true",
            "ONCE": "1",
        }

        config = Config.from_yaml(path, environ=environ)

        assert config.docker_label == "env-label.3"
        assert config.api_token() == "env-token"
        assert config.interval == 15
        assert config.ddns_interval == 2
        assert config.log_level == "warning"
        assert config.dry_run is True
        assert config.once is True

    def test_empty_values_are_ignored(self, tmp_path) -> None:
        path = write_config(tmp_path, "controller:\n  interval: 30\n")

        config = Config.from_yaml(path, environ={"EXECUTION_FREQUENCY_SECONDS": ""})

        assert config.interval == 30

    def test_token_file(self, tmp_path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("file-token\n")

        config = Config.from_yaml(
            tmp_path / "missing.yaml",
            environ={"API_TOKEN": "ignored", "API_TOKEN_FILE": str(token_file)},
        )

        assert config.api_token() == "file-token"


class TestValidation:
    @pytest.mark.parametrize("instance_id", ["has space", "dot.ted", "colon:", ""])
    def test_rejects_invalid_identifiers(self, instance_id: str) -> None:
        with pytest.raises(ValidationError):
            Config(instance_id=instance_id)

    @pytest.mark.parametrize("field", ["interval", "ddns_interval"])
    def test_rejects_non_positive_intervals(self, field: str) -> None:
        with pytest.raises(ValidationError):
            Config(**{field: 0})

    def test_rejects_unknown_log_level(self) -> None:
        with pytest.raises(ValidationError):
            Config(log_level="verbose")

    def test_rejects_non_numeric_interval_from_environment(self, tmp_path) -> None:
        with pytest.raises(ValidationError):
            Config.from_yaml(
                tmp_path / "missing.yaml", environ={"EXECUTION_FREQUENCY_SECONDS": "soon"}
            )
