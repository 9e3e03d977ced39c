"""Mesh configuration loading via mesh.yaml and the 1Password CLI."""

import os
import subprocess
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml

from .addressing import DEFAULT_BLOCKS, ApipaBook
from .errors import ConfigurationError
from .models import CloudNetwork, ConnectivityMatrix, Provider, Topology
from .topology import select_topology

# Default location of the mesh definition, relative to the working directory
DEFAULT_CONFIG_PATH = Path("mesh.yaml")

# Environment variable overriding the config location
CONFIG_ENV_VAR = "VPN_MESH_CONFIG"


@dataclass(frozen=True)
class AwsSettings:
    """AWS side of the mesh."""

    asn: Optional[int] = None
    gateway_name: str = "mesh-vgw"
    customer_gateway_name: str = "mesh-cgw"
    vpn_connection_name: str = "mesh-vpn"
    log_retention_days: int = 7
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class GoogleSettings:
    """Google Cloud side of the mesh."""

    asn: Optional[int] = None
    project: Optional[str] = None
    vpn_gateway_name: str = "google-vpn-gateway"
    cloud_router_name: str = "google-cloud-router"
    ike_version: int = 2
    # Extra ranges reachable through Google (e.g., Cloud SQL private services, Cloud DNS)
    custom_ip_ranges: tuple[str, ...] = ()
    labels: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AzureSettings:
    """Azure side of the mesh."""

    asn: Optional[int] = None
    gateway_name: str = "azure-vpn-gateway"
    gateway_subnet_cidr: Optional[str] = None
    public_ip_names: tuple[str, ...] = ("azure-vpn-gateway-ip-1", "azure-vpn-gateway-ip-2")
    sku: str = "VpnGw1"
    batch_size: int = 2
    diagnostics_retention_days: Optional[int] = None
    tags: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AWSCredentials:
    """AWS credentials for S3 backend access."""

    access_key_id: str
    secret_access_key: str


@dataclass(frozen=True)
class PulumiConfig:
    """Pulumi backend configuration."""

    backend: str
    aws: AWSCredentials


@dataclass(frozen=True)
class MeshConfig:
    """Everything the mesh needs, resolved once and passed explicitly."""

    environment: str
    topology: Topology
    matrix: ConnectivityMatrix
    networks: dict[Provider, CloudNetwork]
    aws: AwsSettings = field(default_factory=AwsSettings)
    google: GoogleSettings = field(default_factory=GoogleSettings)
    azure: AzureSettings = field(default_factory=AzureSettings)
    google_azure_preshared_key: Optional[str] = None
    apipa: ApipaBook = field(default_factory=ApipaBook)

    def network(self, provider: Provider) -> CloudNetwork:
        try:
            return self.networks[provider]
        except KeyError:
            raise ConfigurationError(f"No network configured for {provider.value}") from None

    def asn(self, provider: Provider) -> int:
        settings = {
            Provider.AWS: self.aws,
            Provider.GOOGLE: self.google,
            Provider.AZURE: self.azure,
        }[provider]
        if settings.asn is None:
            raise ConfigurationError(f"No BGP ASN configured for {provider.value}")
        return settings.asn

    def validate(self) -> None:
        """Check that every enabled pair has its required inputs.

        Raises:
            ConfigurationError: Listing every missing value
        """
        problems = []
        for provider in self.matrix.participants():
            network = self.networks.get(provider)
            if network is None or not network.cidr:
                problems.append(f"networks.{provider.value}.cidr is required")
            if network is not None and not network.network_id:
                problems.append(f"networks.{provider.value}.network_id is required")
            try:
                self.asn(provider)
            except ConfigurationError:
                problems.append(f"{provider.value}.asn is required")

        if Provider.AZURE in self.matrix.participants():
            network = self.networks.get(Provider.AZURE)
            if network is not None and not network.resource_group:
                problems.append("networks.azure.resource_group is required")
            if network is not None and not (network.gateway_subnet_id or self.azure.gateway_subnet_cidr):
                problems.append("azure.gateway_subnet_cidr or networks.azure.gateway_subnet_id is required")

        if self.matrix.google_azure and not self.google_azure_preshared_key:
            problems.append("secrets.google_azure_preshared_key is required")

        if problems:
            raise ConfigurationError("Invalid mesh configuration: " + "; ".join(problems))


def config_path(path: Optional[Path] = None) -> Path:
    """Resolve the config location from an explicit path, the environment, or the default."""
    if path is not None:
        return Path(path)
    return Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))


@lru_cache
def _load_yaml(path: Path) -> dict:
    """Load and cache a YAML config file.

    Args:
        path: Config file location

    Returns:
        Parsed config dictionary

    Raises:
        ConfigurationError: If config file cannot be loaded
    """
    if not path.exists():
        raise ConfigurationError(f"Config file not found at {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")
    return data


def _op_read(reference: str) -> str:
    """Execute 'op read' to fetch a secret from 1Password.

    Args:
        reference: 1Password secret reference (e.g., "op://vault/item/field")

    Returns:
        The secret value

    Raises:
        ConfigurationError: If the op command fails or is not found
    """
    try:
        result = subprocess.run(
            ["op", "read", reference],
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise ConfigurationError(
            f"Failed to read 1Password reference '{reference}': {e.stderr}"
        ) from e
    except FileNotFoundError:
        raise ConfigurationError(
            "1Password CLI (op) not found. Please install it: "
            "https://developer.1password.com/docs/cli/get-started/"
        ) from None


def _resolve_value(value):
    """Resolve a value, fetching from 1Password if it's an op:// reference."""
    if isinstance(value, str) and value.startswith("op://"):
        return _op_read(value)
    return value


def _as_int(value, name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(_resolve_value(value))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _as_bool(value, name: str) -> bool:
    """Pair flags must be YAML booleans; a quoted "false" is rejected."""
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ConfigurationError(f"{name} must be true or false, got {value!r}")
    return value


def _section(data: dict, key: str, name: Optional[str] = None) -> dict:
    """Return ``data[key]`` as a mapping; an empty YAML section counts as ``{}``."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{name or key} must be a mapping, got {type(value).__name__}")
    return value


def _list(data: dict, key: str, name: str, default=()) -> tuple:
    value = data.get(key)
    if value is None:
        return tuple(default)
    if not isinstance(value, list):
        raise ConfigurationError(f"{name} must be a list, got {type(value).__name__}")
    return tuple(value)


def _parse_network(provider: Provider, data: dict) -> CloudNetwork:
    return CloudNetwork(
        provider=provider,
        network_id=data.get("network_id") or "",
        cidr=data.get("cidr") or "",
        region=data.get("region"),
        route_table_ids=_list(data, "route_table_ids", f"networks.{provider.value}.route_table_ids"),
        resource_group=data.get("resource_group"),
        gateway_subnet_id=data.get("gateway_subnet_id"),
    )


def _parse_matrix(data: dict) -> ConnectivityMatrix:
    return ConnectivityMatrix(
        aws_google=_as_bool(data.get("aws_google"), "pairs.aws_google"),
        aws_azure=_as_bool(data.get("aws_azure"), "pairs.aws_azure"),
        google_azure=_as_bool(data.get("google_azure"), "pairs.google_azure"),
    )


def _parse_aws(data: dict) -> AwsSettings:
    defaults = AwsSettings()
    return AwsSettings(
        asn=_as_int(data.get("asn"), "aws.asn"),
        gateway_name=data.get("gateway_name", defaults.gateway_name),
        customer_gateway_name=data.get("customer_gateway_name", defaults.customer_gateway_name),
        vpn_connection_name=data.get("vpn_connection_name", defaults.vpn_connection_name),
        log_retention_days=_as_int(data.get("log_retention_days", defaults.log_retention_days), "aws.log_retention_days"),
        tags=dict(_section(data, "tags", "aws.tags")),
    )


def _parse_google(data: dict) -> GoogleSettings:
    defaults = GoogleSettings()
    return GoogleSettings(
        asn=_as_int(data.get("asn"), "google.asn"),
        project=data.get("project"),
        vpn_gateway_name=data.get("vpn_gateway_name", defaults.vpn_gateway_name),
        cloud_router_name=data.get("cloud_router_name", defaults.cloud_router_name),
        ike_version=_as_int(data.get("ike_version", defaults.ike_version), "google.ike_version"),
        custom_ip_ranges=_list(data, "custom_ip_ranges", "google.custom_ip_ranges"),
        labels=dict(_section(data, "labels", "google.labels")),
    )


def _parse_azure(data: dict) -> AzureSettings:
    defaults = AzureSettings()
    return AzureSettings(
        asn=_as_int(data.get("asn"), "azure.asn"),
        gateway_name=data.get("gateway_name", defaults.gateway_name),
        gateway_subnet_cidr=data.get("gateway_subnet_cidr"),
        public_ip_names=_list(data, "public_ip_names", "azure.public_ip_names", defaults.public_ip_names),
        sku=data.get("sku", defaults.sku),
        batch_size=_as_int(data.get("batch_size", defaults.batch_size), "azure.batch_size"),
        diagnostics_retention_days=_as_int(data.get("diagnostics_retention_days"), "azure.diagnostics_retention_days"),
        tags=dict(_section(data, "tags", "azure.tags")),
    )


def parse_config(data: dict) -> MeshConfig:
    """Build a MeshConfig from an already-parsed mapping.

    Sections left empty in YAML (``secrets:`` with nothing under it) are
    treated as empty mappings.

    Args:
        data: Parsed mesh.yaml contents

    Returns:
        Validated MeshConfig

    Raises:
        ConfigurationError: If required values are missing or malformed
    """
    environment = str(data.get("environment") or "dev")
    network_data = _section(data, "networks")
    networks = {
        provider: _parse_network(provider, _section(network_data, provider.value, f"networks.{provider.value}"))
        for provider in Provider
        if provider.value in network_data
    }
    secrets = _section(data, "secrets")

    config = MeshConfig(
        environment=environment,
        topology=select_topology(environment),
        matrix=_parse_matrix(_section(data, "pairs")),
        networks=networks,
        aws=_parse_aws(_section(data, "aws")),
        google=_parse_google(_section(data, "google")),
        azure=_parse_azure(_section(data, "azure")),
        google_azure_preshared_key=_resolve_value(secrets.get("google_azure_preshared_key")),
        apipa=ApipaBook({**DEFAULT_BLOCKS, **_section(data, "apipa")}),
    )
    config.validate()
    return config


def load_config(path: Optional[Path] = None) -> MeshConfig:
    """Load mesh.yaml, resolving 1Password references.

    Args:
        path: Explicit config location (default: $VPN_MESH_CONFIG or ./mesh.yaml)

    Returns:
        Validated MeshConfig

    Raises:
        ConfigurationError: If the file is missing, malformed, or incomplete
    """
    return parse_config(_load_yaml(config_path(path)))


def get_pulumi_config(path: Optional[Path] = None) -> PulumiConfig:
    """Retrieve Pulumi backend configuration from mesh.yaml and 1Password.

    Returns:
        PulumiConfig with backend URL and AWS credentials

    Raises:
        ConfigurationError: If configuration cannot be retrieved
    """
    config = _load_yaml(config_path(path))
    pulumi_config = _section(config, "pulumi")

    backend = _resolve_value(pulumi_config.get("backend", ""))
    access_key_id = _resolve_value(pulumi_config.get("aws_access_key_id", ""))
    secret_access_key = _resolve_value(pulumi_config.get("aws_secret_access_key", ""))

    if not backend:
        raise ConfigurationError("pulumi.backend is required for preview, deploy and destroy")

    return PulumiConfig(
        backend=backend,
        aws=AWSCredentials(
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
        ),
    )
