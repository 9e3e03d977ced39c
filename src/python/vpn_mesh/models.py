"""Data models for vpn_mesh."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .engine import ResourceHandle


class Provider(str, Enum):
    """Cloud providers participating in the mesh."""

    AWS = "aws"
    GOOGLE = "google"
    AZURE = "azure"


# Canonical ordering used for pair keys: aws-google, aws-azure, google-azure
PROVIDER_ORDER = (Provider.AWS, Provider.GOOGLE, Provider.AZURE)


class Topology(str, Enum):
    """Connectivity mode shared by every link in the mesh."""

    SINGLE_TUNNEL = "single-tunnel"
    HIGH_AVAILABILITY = "high-availability"

    @property
    def uses_bgp(self) -> bool:
        return self is Topology.HIGH_AVAILABILITY


@dataclass(frozen=True)
class Pair:
    """An unordered provider pair, stored in canonical order."""

    first: Provider
    second: Provider

    @classmethod
    def of(cls, a: Provider, b: Provider) -> "Pair":
        if a == b:
            raise ValueError(f"A pair needs two different providers, got {a.value} twice")
        first, second = sorted((a, b), key=PROVIDER_ORDER.index)
        return cls(first, second)

    @property
    def key(self) -> str:
        return f"{self.first.value}-{self.second.value}"

    @property
    def has_aws(self) -> bool:
        return Provider.AWS in (self.first, self.second)

    def involves(self, provider: Provider) -> bool:
        return provider in (self.first, self.second)

    def other(self, provider: Provider) -> Provider:
        if provider == self.first:
            return self.second
        if provider == self.second:
            return self.first
        raise ValueError(f"{provider.value} is not part of pair {self.key}")

    def __str__(self) -> str:
        return self.key


ALL_PAIRS = (
    Pair(Provider.AWS, Provider.GOOGLE),
    Pair(Provider.AWS, Provider.AZURE),
    Pair(Provider.GOOGLE, Provider.AZURE),
)


@dataclass(frozen=True)
class CloudNetwork:
    """A provider network supplied by the network builders."""

    provider: Provider
    network_id: str  # VPC id, VPC network name, or VNet name
    cidr: str  # e.g., "10.0.0.0/16"
    region: Optional[str] = None
    route_table_ids: tuple[str, ...] = ()  # AWS only
    resource_group: Optional[str] = None  # Azure only
    gateway_subnet_id: Optional[str] = None  # Azure only, pre-existing GatewaySubnet


@dataclass(frozen=True)
class ConnectivityMatrix:
    """Which provider pairs must be linked."""

    aws_google: bool = False
    aws_azure: bool = False
    google_azure: bool = False

    def is_enabled(self, pair: Pair) -> bool:
        return {
            "aws-google": self.aws_google,
            "aws-azure": self.aws_azure,
            "google-azure": self.google_azure,
        }[pair.key]

    def enabled_pairs(self) -> list[Pair]:
        return [pair for pair in ALL_PAIRS if self.is_enabled(pair)]

    def participants(self) -> list[Provider]:
        """Providers that take part in at least one enabled pair."""
        enabled = self.enabled_pairs()
        return [p for p in PROVIDER_ORDER if any(pair.involves(p) for pair in enabled)]


@dataclass(frozen=True)
class Gateway:
    """A provider's realized VPN gateway construct."""

    provider: Provider
    topology: Topology
    asn: int
    handle: ResourceHandle
    addresses: tuple[Any, ...] = ()  # public addresses, 1 (single) or 2 (HA)
    router: Optional[ResourceHandle] = None  # Google Cloud Router (HA)
    forwarding_rules: tuple[ResourceHandle, ...] = ()  # Google classic gateway
    resources: tuple[ResourceHandle, ...] = ()


@dataclass(frozen=True)
class TunnelEndpoint:
    """One AWS-side tunnel endpoint exposed by a VPN connection."""

    connection: int
    tunnel: int
    address: Any
    preshared_key: Any
    inside_cidr: Optional[str]
    cgw_inside_address: Any
    vgw_inside_address: Any


@dataclass(frozen=True)
class AwsConnections:
    """Customer gateways and VPN connections built by AWS toward one peer."""

    pair: Pair
    peer: Provider
    customer_gateways: tuple[ResourceHandle, ...]
    vpn_connections: tuple[ResourceHandle, ...]
    endpoints: tuple[TunnelEndpoint, ...]
    log_group: Optional[ResourceHandle] = None
    provider: Provider = field(default=Provider.AWS, init=False)


@dataclass(frozen=True)
class TunnelEntry:
    """Parameters of a single tunnel instance on the target side."""

    index: int
    peer_address: Any
    shared_key: Any = None  # None when the target generates its own key (AWS)
    local_interface: int = 0
    bgp_cidr: Optional[str] = None  # "/30" link-local range for the BGP session
    bgp_local_address: Optional[Any] = None
    bgp_peer_address: Optional[Any] = None


@dataclass(frozen=True)
class AwsTunnelParameters:
    """Input shape for the AWS connection builder: one connection per peer address."""

    pair: Pair
    peer: Provider
    peer_asn: int
    entries: tuple[TunnelEntry, ...]
    static_routes_only: bool
    kind: Provider = field(default=Provider.AWS, init=False)

    def connections(self) -> list[tuple[TunnelEntry, ...]]:
        """Group entries by VPN connection (two tunnels per connection)."""
        grouped: dict[int, list[TunnelEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.local_interface, []).append(entry)
        return [tuple(grouped[index]) for index in sorted(grouped)]


@dataclass(frozen=True)
class GoogleTunnelParameters:
    """Input shape for the Google tunnel builder."""

    pair: Pair
    peer: Provider
    peer_asn: int
    entries: tuple[TunnelEntry, ...]
    local_cidr: str
    peer_cidr: str
    external_interfaces: tuple[Any, ...] = ()  # HA only
    redundancy_type: Optional[str] = None  # HA only
    kind: Provider = field(default=Provider.GOOGLE, init=False)


@dataclass(frozen=True)
class AzureTunnelParameters:
    """Input shape for the Azure local-network-gateway builder."""

    pair: Pair
    peer: Provider
    peer_asn: int
    entries: tuple[TunnelEntry, ...]
    peer_address_spaces: tuple[str, ...]
    kind: Provider = field(default=Provider.AZURE, init=False)


TunnelParameterSet = Union[AwsTunnelParameters, GoogleTunnelParameters, AzureTunnelParameters]


@dataclass(frozen=True)
class TunnelInstance:
    """A created IPsec tunnel (one side of it)."""

    pair: Pair
    provider: Provider
    index: int
    peer_address: Any
    shared_key: Any
    local_selectors: tuple[str, ...]
    remote_selectors: tuple[str, ...]
    handle: ResourceHandle
    bgp_peer_address: Optional[Any] = None
    supporting: tuple[ResourceHandle, ...] = ()  # e.g., the Azure local network gateway


class RouteKind(str, Enum):
    STATIC = "static"
    BGP = "bgp"


@dataclass(frozen=True)
class RouteAdvertisement:
    """A static route or a BGP interface/peer binding over one tunnel."""

    pair: Pair
    provider: Provider
    kind: RouteKind
    tunnel_index: int
    handles: tuple[ResourceHandle, ...]
    destination: Optional[str] = None  # static only
    peer_address: Optional[Any] = None  # BGP only
    peer_asn: Optional[int] = None  # BGP only


class PairState(str, Enum):
    """Per-pair provisioning state machine."""

    PENDING = "pending"
    GATEWAYS_READY = "gateways-ready"
    PARAMETERS_DERIVED = "parameters-derived"
    TUNNELS_CREATED = "tunnels-created"
    INTERFACES_CREATED = "interfaces-created"
    PEERS_CREATED = "peers-created"
    ROUTES_CREATED = "routes-created"
    LINKED = "linked"


_TRANSITIONS = {
    PairState.PENDING: {PairState.GATEWAYS_READY},
    PairState.GATEWAYS_READY: {PairState.PARAMETERS_DERIVED},
    PairState.PARAMETERS_DERIVED: {PairState.TUNNELS_CREATED},
    PairState.TUNNELS_CREATED: {PairState.INTERFACES_CREATED, PairState.ROUTES_CREATED},
    PairState.INTERFACES_CREATED: {PairState.PEERS_CREATED},
    PairState.PEERS_CREATED: {PairState.LINKED},
    PairState.ROUTES_CREATED: {PairState.LINKED},
    PairState.LINKED: set(),
}


@dataclass
class PairResult:
    """Outcome of provisioning one pair."""

    pair: Pair
    topology: Topology
    state: PairState = PairState.PENDING
    tunnels: list[TunnelInstance] = field(default_factory=list)
    routes: list[RouteAdvertisement] = field(default_factory=list)
    parameters: dict[Provider, TunnelParameterSet] = field(default_factory=dict)
    connections: Optional[AwsConnections] = None
    error: Optional[Exception] = None

    @property
    def linked(self) -> bool:
        return self.state is PairState.LINKED

    def advance(self, state: PairState) -> None:
        """Move to ``state``, enforcing the pair state machine."""
        if state is self.state:
            return
        if state not in _TRANSITIONS[self.state]:
            raise ValueError(
                f"Invalid transition for {self.pair.key}: {self.state.value} -> {state.value}"
            )
        if self.topology.uses_bgp and state is PairState.ROUTES_CREATED:
            raise ValueError(f"{self.pair.key} uses BGP and cannot install static routes")
        if not self.topology.uses_bgp and state is PairState.INTERFACES_CREATED:
            raise ValueError(f"{self.pair.key} uses static routes and has no BGP interfaces")
        self.state = state


@dataclass
class MeshResult:
    """Outcome of a full mesh run."""

    topology: Topology
    gateways: dict[Provider, Gateway] = field(default_factory=dict)
    pairs: dict[str, PairResult] = field(default_factory=dict)
    gateway_errors: dict[Provider, Exception] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.gateway_errors and all(r.linked for r in self.pairs.values())

    def incomplete_pairs(self) -> list[PairResult]:
        return [r for r in self.pairs.values() if not r.linked]
