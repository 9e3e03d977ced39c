"""Peer parameter derivation.

Each function here reads one provider's realized gateway outputs and shapes
them into the tunnel parameters the *other* provider's builder consumes.  There
is one explicit mapping per (source, target) provider combination.  All of
them are pure: the same inputs always produce an equal parameter set.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence, Union

from .config import MeshConfig
from .errors import ConfigurationError, DependencyNotReadyError, InterfaceCountError
from .models import (
    AwsConnections,
    AwsTunnelParameters,
    AzureTunnelParameters,
    Gateway,
    GoogleTunnelParameters,
    Pair,
    Provider,
    Topology,
    TunnelEntry,
    TunnelParameterSet,
)

Source = Union[Gateway, AwsConnections]

# AWS always exposes two tunnel endpoints per VPN connection
TUNNELS_PER_AWS_CONNECTION = 2


def expected_tunnel_count(pair: Pair, topology: Topology) -> int:
    """Number of tunnel instances each side of ``pair`` builds.

    AWS pairs get one VPN connection (two tunnels) per peer interface: 2 in
    single-tunnel mode, 4 with the two-interface HA gateways.  The
    Google-Azure link has one tunnel per gateway interface.
    """
    interfaces = 2 if topology is Topology.HIGH_AVAILABILITY else 1
    if pair.has_aws:
        return interfaces * TUNNELS_PER_AWS_CONNECTION
    return interfaces


def _require(items: Sequence[Any], count: int, what: str, pair: Pair) -> None:
    if len(items) < count:
        raise InterfaceCountError(
            f"{pair.key} needs {count} {what}, but only {len(items)} are available"
        )


def _check_topology(source: Gateway, config: MeshConfig) -> None:
    if source.topology is not config.topology:
        raise ConfigurationError(
            f"{source.provider.value} gateway was built for {source.topology.value}, "
            f"but the mesh runs {config.topology.value}"
        )


def _shared_key(config: MeshConfig) -> str:
    if not config.google_azure_preshared_key:
        raise ConfigurationError("The Google-Azure link needs secrets.google_azure_preshared_key")
    return config.google_azure_preshared_key


def _aws_from_peer(source: Gateway, pair: Pair, config: MeshConfig) -> AwsTunnelParameters:
    _check_topology(source, config)
    count = expected_tunnel_count(pair, config.topology)
    connections = count // TUNNELS_PER_AWS_CONNECTION
    _require(source.addresses, connections, f"{source.provider.value} gateway interfaces", pair)

    entries = []
    for connection in range(connections):
        for tunnel in range(TUNNELS_PER_AWS_CONNECTION):
            link = config.apipa.link(pair, connection, tunnel) if config.topology.uses_bgp else None
            entries.append(
                TunnelEntry(
                    index=connection * TUNNELS_PER_AWS_CONNECTION + tunnel,
                    peer_address=source.addresses[connection],
                    local_interface=connection,
                    bgp_cidr=link.cidr if link else None,
                    bgp_local_address=link.first if link else None,
                    bgp_peer_address=link.second if link else None,
                )
            )

    return AwsTunnelParameters(
        pair=pair,
        peer=source.provider,
        peer_asn=config.asn(source.provider),
        entries=tuple(entries),
        static_routes_only=not config.topology.uses_bgp,
    )


def _entries_from_aws(source: AwsConnections, pair: Pair, config: MeshConfig) -> tuple[TunnelEntry, ...]:
    """One entry per AWS tunnel endpoint.

    Inside addresses come from the address book, the same source AWS used
    for the tunnel inside CIDRs, so they are known before AWS reports them.
    """
    count = expected_tunnel_count(pair, config.topology)
    _require(source.endpoints, count, "AWS tunnel endpoints", pair)
    ha = config.topology.uses_bgp

    entries = []
    for index, endpoint in enumerate(source.endpoints[:count]):
        link = config.apipa.link(pair, endpoint.connection, endpoint.tunnel) if ha else None
        entries.append(
            TunnelEntry(
                index=index,
                peer_address=endpoint.address,
                shared_key=endpoint.preshared_key,
                # Both tunnels of one AWS connection land on the same local interface
                local_interface=endpoint.connection if ha else 0,
                bgp_cidr=link.cidr if link else None,
                bgp_local_address=link.second if link else None,
                bgp_peer_address=link.first if link else None,
            )
        )
    return tuple(entries)


def _google_from_aws(source: AwsConnections, pair: Pair, config: MeshConfig) -> GoogleTunnelParameters:
    ha = config.topology.uses_bgp
    entries = _entries_from_aws(source, pair, config)

    return GoogleTunnelParameters(
        pair=pair,
        peer=Provider.AWS,
        peer_asn=config.asn(Provider.AWS),
        entries=entries,
        local_cidr=config.network(Provider.GOOGLE).cidr,
        peer_cidr=config.network(Provider.AWS).cidr,
        external_interfaces=tuple(e.peer_address for e in entries) if ha else (),
        redundancy_type="FOUR_IPS_REDUNDANCY" if ha else None,
    )


def _google_from_azure(source: Gateway, pair: Pair, config: MeshConfig) -> GoogleTunnelParameters:
    _check_topology(source, config)
    count = expected_tunnel_count(pair, config.topology)
    _require(source.addresses, count, "Azure gateway public IPs", pair)
    ha = config.topology.uses_bgp
    shared_key = _shared_key(config)

    entries = []
    for index in range(count):
        link = config.apipa.link(pair, index) if ha else None
        entries.append(
            TunnelEntry(
                index=index,
                peer_address=source.addresses[index],
                shared_key=shared_key,
                local_interface=index,
                bgp_cidr=link.cidr if link else None,
                bgp_local_address=link.first if link else None,
                bgp_peer_address=link.second if link else None,
            )
        )

    return GoogleTunnelParameters(
        pair=pair,
        peer=Provider.AZURE,
        peer_asn=config.asn(Provider.AZURE),
        entries=tuple(entries),
        local_cidr=config.network(Provider.GOOGLE).cidr,
        peer_cidr=config.network(Provider.AZURE).cidr,
        external_interfaces=tuple(source.addresses[:count]) if ha else (),
        redundancy_type="TWO_IPS_REDUNDANCY" if ha else None,
    )


def _azure_from_aws(source: AwsConnections, pair: Pair, config: MeshConfig) -> AzureTunnelParameters:
    entries = _entries_from_aws(source, pair, config)

    return AzureTunnelParameters(
        pair=pair,
        peer=Provider.AWS,
        peer_asn=config.asn(Provider.AWS),
        entries=entries,
        peer_address_spaces=(config.network(Provider.AWS).cidr,),
    )


def _azure_from_google(source: Gateway, pair: Pair, config: MeshConfig) -> AzureTunnelParameters:
    _check_topology(source, config)
    count = expected_tunnel_count(pair, config.topology)
    _require(source.addresses, count, "Google gateway interfaces", pair)
    ha = config.topology.uses_bgp
    shared_key = _shared_key(config)

    entries = []
    for index in range(count):
        link = config.apipa.link(pair, index) if ha else None
        entries.append(
            TunnelEntry(
                index=index,
                peer_address=source.addresses[index],
                shared_key=shared_key,
                local_interface=index,
                bgp_cidr=link.cidr if link else None,
                bgp_local_address=link.second if link else None,
                bgp_peer_address=link.first if link else None,
            )
        )

    address_spaces = [config.network(Provider.GOOGLE).cidr]
    if not ha:
        # Without BGP the auxiliary Google ranges must be listed explicitly
        address_spaces.extend(config.google.custom_ip_ranges)

    return AzureTunnelParameters(
        pair=pair,
        peer=Provider.GOOGLE,
        peer_asn=config.asn(Provider.GOOGLE),
        entries=tuple(entries),
        peer_address_spaces=tuple(address_spaces),
    )


_DERIVERS: dict[tuple[Provider, Provider], Callable[[Any, Pair, MeshConfig], TunnelParameterSet]] = {
    (Provider.GOOGLE, Provider.AWS): _aws_from_peer,
    (Provider.AZURE, Provider.AWS): _aws_from_peer,
    (Provider.AWS, Provider.GOOGLE): _google_from_aws,
    (Provider.AZURE, Provider.GOOGLE): _google_from_azure,
    (Provider.AWS, Provider.AZURE): _azure_from_aws,
    (Provider.GOOGLE, Provider.AZURE): _azure_from_google,
}


def derive(source: Source, target: Provider, pair: Pair, config: MeshConfig) -> TunnelParameterSet:
    """Translate ``source`` outputs into ``target``'s tunnel parameters.

    Args:
        source: Realized gateway of the peer, or AWS's VPN connections toward ``target``
        target: Provider whose builder will consume the result
        pair: The link being wired
        config: Mesh configuration

    Returns:
        The TunnelParameterSet variant matching ``target``

    Raises:
        DependencyNotReadyError: If the required upstream output does not exist yet
        InterfaceCountError: If the source exposes too few interfaces
        ConfigurationError: If a required input is missing
    """
    if source is None:
        raise DependencyNotReadyError(f"No realized source to derive {target.value} parameters for {pair.key}")
    if not (pair.involves(source.provider) and pair.involves(target)) or source.provider == target:
        raise ValueError(f"Cannot derive {source.provider.value} -> {target.value} parameters for {pair.key}")
    if source.provider is Provider.AWS and not isinstance(source, AwsConnections):
        raise DependencyNotReadyError(
            f"AWS tunnel endpoints for {pair.key} come from its VPN connections, which do not exist yet"
        )
    return _DERIVERS[(source.provider, target)](source, pair, config)
