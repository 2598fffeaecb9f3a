"""
Configuration module for Compose-External-DNS.
"""

import os
import re
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

IDENTIFIER_PATTERN = r"^[A-Za-z0-9_-]+$"
LOG_LEVELS = ("debug", "info", "warning", "error")

# Environment variables taking precedence over the configuration file
ENV_OVERRIDES = {
    "PROJECT_LABEL": "project_label",
    "INSTANCE_ID": "instance_id",
    "API_TOKEN": "cloudflare_api_token",
    "API_TOKEN_FILE": "cloudflare_api_token_file",
    "EXECUTION_FREQUENCY_SECONDS": "interval",
    "DDNS_EXECUTION_FREQUENCY_MINUTES": "ddns_interval",
    "LOG_LEVEL": "log_level",
    "DRY_RUN": "dry_run",
    "ONCE": "once",
}


class Config(BaseModel):
    """Configuration for Compose-External-DNS."""

    # Instance identity
    project_label: str = Field(
        default="docker-compose-external-dns", pattern=IDENTIFIER_PATTERN
    )
    instance_id: str = Field(default="1", pattern=IDENTIFIER_PATTERN)

    # Provider configuration
    cloudflare_api_token: str = ""
    cloudflare_api_token_file: Optional[str] = None

    # Controller configuration
    interval: int = Field(default=60, ge=1)
    once: bool = False
    dry_run: bool = False

    # Dynamic DNS configuration
    ddns_interval: int = Field(default=60, ge=1)
    ddns_lookup_url: str = "https://ipinfo.io"

    # Health check configuration
    health_enabled: bool = True
    health_host: str = "0.0.0.0"
    health_port: int = Field(default=8080, ge=1, le=65535)

    # Logging configuration
    log_level: str = "info"

    @field_validator("project_label", "instance_id", mode="before")
    @classmethod
    def _strip_identifier(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    @property
    def docker_label(self) -> str:
        """Container label key holding this instance's entries."""
        return f"{self.project_label}.{self.instance_id}"

    @property
    def entry_identifier(self) -> str:
        """Comment written on every Cloudflare record owned by this instance."""
        return f"{self.project_label}:{self.instance_id}"

    def api_token(self) -> str:
        """
        Resolve the Cloudflare API token, reading the secret file if configured.

        Returns:
            str: API token
        """
        if self.cloudflare_api_token_file:
            return Path(self.cloudflare_api_token_file).read_text().strip()
        return self.cloudflare_api_token

    @classmethod
    def from_yaml(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Config":
        """
        Load configuration from a YAML file and the environment.

        Args:
            config_path: Path to the YAML configuration file
            environ: Environment variables, defaults to ``os.environ``

        Returns:
            Config: Config instance populated with values from the YAML file
        """
        environ = os.environ if environ is None else environ

        # Default configuration paths to check
        default_paths = [
            Path("./compose-external-dns.yaml"),
            Path("./compose-external-dns.yml"),
            Path("/etc/compose-external-dns/config.yaml"),
        ]

        # If config_path is provided, use it
        if config_path:
            paths = [Path(config_path)]
        else:
            paths = default_paths

        # Try to load configuration from the first existing path
        config_data = {}
        for path in paths:
            if path.exists():
                with open(path, "r") as f:
                    yaml_content = f.read()
                    # Substitute environment variables
                    yaml_content = cls._substitute_env_vars(yaml_content, environ)
                    config_data = yaml.safe_load(yaml_content) or {}
                break

        flat_config = cls._flatten_config(config_data)
        flat_config.update(cls._env_overrides(environ))

        return cls(**flat_config)

    @staticmethod
    def _substitute_env_vars(content: str, environ: Mapping[str, str]) -> str:
        """
        Substitute environment variables in the configuration content.

        Args:
            content: Configuration content
            environ: Environment variables

        Returns:
            str: Configuration content with environment variables substituted
        """
        # Pattern for ${ENV_VAR} or ${ENV_VAR:-default}
        pattern = r"\${([^}]+)}"

        def replace_env_var(match):
            env_var = match.group(1)
            if ":-" in env_var:
                env_var, default = env_var.split(":-", 1)
                return environ.get(env_var, default)
            return environ.get(env_var, "")

        return re.sub(pattern, replace_env_var, content)

    @staticmethod
    def _flatten_config(config_data: dict) -> dict:
        """
        Flatten nested configuration.

        Only keys present in the file are returned so field defaults apply.

        Args:
            config_data: Nested configuration data

        Returns:
            dict: Flattened configuration data
        """
        sections = {
            "instance": {"project_label": "project_label", "instance_id": "instance_id"},
            "cloudflare": {
                "api_token": "cloudflare_api_token",
                "api_token_file": "cloudflare_api_token_file",
            },
            "controller": {"interval": "interval", "once": "once", "dry_run": "dry_run"},
            "ddns": {"interval": "ddns_interval", "lookup_url": "ddns_lookup_url"},
            "health": {
                "enabled": "health_enabled",
                "host": "health_host",
                "port": "health_port",
            },
            "logging": {"level": "log_level"},
        }

        flat_config = {}
        for section, keys in sections.items():
            values = config_data.get(section) or {}
            for key, field_name in keys.items():
                if key in values:
                    flat_config[field_name] = values[key]
        return flat_config

    @staticmethod
    def _env_overrides(environ: Mapping[str, str]) -> Dict[str, str]:
        """Configuration values set through the environment, empty ones ignored."""
        overrides = {}
        for env_var, field_name in ENV_OVERRIDES.items():
            value = environ.get(env_var, "").strip()
            if value:
                overrides[field_name] = value
        return overrides
