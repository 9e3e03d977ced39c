"""Google Cloud VPN gateway, tunnel and Cloud Router builders.

Single-tunnel mode uses a classic VPN gateway on one static address.  It is
only reachable once the ESP, UDP/500 and UDP/4500 forwarding rules exist, so
every tunnel on it declares a dependency on all three rules.

High-availability mode uses an HA VPN gateway with two interfaces and a Cloud
Router that runs one BGP session per tunnel.
"""

from abc import ABC, abstractmethod
from dataclasses import replace

from .. import kinds
from ..errors import DependencyNotReadyError
from ..models import (
    Gateway,
    GoogleTunnelParameters,
    Provider,
    RouteAdvertisement,
    RouteKind,
    Topology,
    TunnelInstance,
)
from .base import Builder

# Forwarding rules required by a classic VPN gateway: name -> (protocol, port range)
FORWARDING_RULES = {
    "esp": ("ESP", None),
    "udp500": ("UDP", "500"),
    "udp4500": ("UDP", "4500"),
}

ADVERTISED_ROUTE_PRIORITY = 100


class GoogleGatewayFactory(Builder, ABC):
    """Common inputs for both Google gateway strategies."""

    @abstractmethod
    def create(self) -> Gateway:
        """Create the Google gateway for the configured topology."""

    @property
    def _network(self):
        return self.config.network(Provider.GOOGLE)


class SingleTunnelGoogleGateway(GoogleGatewayFactory):
    """Classic VPN gateway with one static address and explicit forwarding rules."""

    def create(self) -> Gateway:
        settings = self.config.google
        network = self._network
        asn = self.config.asn(Provider.GOOGLE)

        address = self._create(
            kinds.GCP_ADDRESS,
            "google-vpn-gateway-address",
            {
                "name": f"{settings.vpn_gateway_name}-ip",
                "region": network.region,
                "labels": settings.labels,
            },
        )

        vpn_gateway = self._create(
            kinds.GCP_VPN_GATEWAY,
            "google-vpn-gateway",
            {
                "name": settings.vpn_gateway_name,
                "network": network.network_id,
                "region": network.region,
            },
        )

        forwarding_rules = []
        for key, (protocol, port) in FORWARDING_RULES.items():
            forwarding_rules.append(
                self._create(
                    kinds.GCP_FORWARDING_RULE,
                    f"google-vpn-rule-{key}",
                    {
                        "name": f"fr-{settings.vpn_gateway_name}-{key}",
                        "ip_protocol": protocol,
                        "ip_address": address["address"],
                        "target": vpn_gateway["self_link"],
                        "port_range": port,
                        "region": network.region,
                    },
                    depends_on=[address, vpn_gateway],
                )
            )

        return Gateway(
            provider=Provider.GOOGLE,
            topology=Topology.SINGLE_TUNNEL,
            asn=asn,
            handle=vpn_gateway,
            addresses=(address["address"],),
            forwarding_rules=tuple(forwarding_rules),
            resources=(address, vpn_gateway, *forwarding_rules),
        )


class HaGoogleGateway(GoogleGatewayFactory):
    """HA VPN gateway with two interfaces plus a Cloud Router."""

    def create(self) -> Gateway:
        settings = self.config.google
        network = self._network
        asn = self.config.asn(Provider.GOOGLE)

        vpn_gateway = self._create(
            kinds.GCP_HA_VPN_GATEWAY,
            "google-ha-vpn-gateway",
            {
                "name": settings.vpn_gateway_name,
                "network": network.network_id,
                "region": network.region,
            },
        )

        router = self._create(
            kinds.GCP_ROUTER,
            "google-cloud-router",
            {
                "name": settings.cloud_router_name,
                "network": network.network_id,
                "region": network.region,
                "asn": asn,
                # Cloud SQL / Cloud DNS ranges are only learned by peers when advertised
                "advertised_ip_ranges": list(settings.custom_ip_ranges) or None,
            },
        )

        interfaces = vpn_gateway["interface_addresses"]
        return Gateway(
            provider=Provider.GOOGLE,
            topology=Topology.HIGH_AVAILABILITY,
            asn=asn,
            handle=vpn_gateway,
            addresses=(interfaces[0], interfaces[1]),
            router=router,
            resources=(vpn_gateway, router),
        )


class GoogleTunnelBuilder(Builder, ABC):
    """Builds the Google side of one link."""

    def __init__(self, config, engine, gateway: Gateway) -> None:
        super().__init__(config, engine)
        if gateway is None or gateway.provider is not Provider.GOOGLE:
            raise DependencyNotReadyError("The Google VPN gateway must exist before its tunnels")
        self.gateway = gateway

    @abstractmethod
    def build_tunnels(self, params: GoogleTunnelParameters) -> list[TunnelInstance]:
        """Create the Google tunnels toward ``params.peer``."""

    def _names(self, params: GoogleTunnelParameters) -> dict[str, str]:
        prefix = f"{self.config.network(Provider.GOOGLE).network_id}-{params.peer.value}"
        return {
            "tunnel": f"{prefix}-vpn-tunnel",
            "interface": f"{prefix}-router-interface",
            "peer": f"{prefix}-router-peer",
            "route": f"{prefix}-route-to-peer",
        }

    def _tunnel_instance(self, params, entry, handle) -> TunnelInstance:
        return TunnelInstance(
            pair=params.pair,
            provider=Provider.GOOGLE,
            index=entry.index,
            peer_address=entry.peer_address,
            shared_key=entry.shared_key,
            local_selectors=(params.local_cidr,),
            remote_selectors=(params.peer_cidr,),
            handle=handle,
            bgp_peer_address=entry.bgp_peer_address,
        )


class SingleTunnelGoogleBuilder(GoogleTunnelBuilder):
    """Policy-based tunnels on the classic gateway, routed statically."""

    def build_tunnels(self, params: GoogleTunnelParameters) -> list[TunnelInstance]:
        rules = self.gateway.forwarding_rules
        if len(rules) != len(FORWARDING_RULES):
            raise DependencyNotReadyError(
                f"Google tunnels to {params.peer.value} need all {len(FORWARDING_RULES)} forwarding rules, "
                f"found {len(rules)}"
            )

        names = self._names(params)
        network = self.config.network(Provider.GOOGLE)
        tunnels = []
        for entry in params.entries:
            handle = self._create(
                kinds.GCP_VPN_TUNNEL,
                f"google-{params.peer.value}-vpn-tunnel-{entry.index + 1}",
                {
                    "name": f"{names['tunnel']}-{entry.index + 1}",
                    "target_vpn_gateway": self.gateway.handle["self_link"],
                    "peer_ip": entry.peer_address,
                    "shared_secret": entry.shared_key,
                    "ike_version": self.config.google.ike_version,
                    "local_traffic_selectors": [params.local_cidr],
                    "remote_traffic_selectors": [params.peer_cidr],
                    "region": network.region,
                    "labels": self.config.google.labels,
                },
                depends_on=rules,
            )
            tunnels.append(self._tunnel_instance(params, entry, handle))
        return tunnels

    def build_routes(self, tunnels: list[TunnelInstance], params: GoogleTunnelParameters) -> list[RouteAdvertisement]:
        """One route to the peer network per tunnel."""
        names = self._names(params)
        network = self.config.network(Provider.GOOGLE)
        routes = []
        for tunnel in tunnels:
            route = self._create(
                kinds.GCP_ROUTE,
                f"google-{params.peer.value}-route-{tunnel.index + 1}",
                {
                    "name": f"{names['route']}-{tunnel.index + 1}",
                    "dest_range": params.peer_cidr,
                    "network": network.network_id,
                    "next_hop_vpn_tunnel": tunnel.handle["id"],
                },
                depends_on=[tunnel.handle],
            )
            routes.append(
                RouteAdvertisement(
                    pair=params.pair,
                    provider=Provider.GOOGLE,
                    kind=RouteKind.STATIC,
                    tunnel_index=tunnel.index,
                    handles=(route,),
                    destination=params.peer_cidr,
                )
            )
        return routes


class HaGoogleBuilder(GoogleTunnelBuilder):
    """Route-based tunnels on the HA gateway with one BGP session each."""

    def build_tunnels(self, params: GoogleTunnelParameters) -> list[TunnelInstance]:
        router = self.gateway.router
        if router is None:
            raise DependencyNotReadyError("HA tunnels need the Cloud Router to exist first")

        names = self._names(params)
        network = self.config.network(Provider.GOOGLE)
        external_gateway = self._create(
            kinds.GCP_EXTERNAL_VPN_GATEWAY,
            f"google-{params.peer.value}-external-gateway",
            {
                "name": f"{self.config.google.vpn_gateway_name}-{params.peer.value}-external-gateway",
                "redundancy_type": params.redundancy_type,
                "interfaces": [
                    {"id": index, "ip_address": address}
                    for index, address in enumerate(params.external_interfaces)
                ],
                "labels": self.config.google.labels,
            },
        )

        tunnels = []
        for entry in params.entries:
            handle = self._create(
                kinds.GCP_VPN_TUNNEL,
                f"google-{params.peer.value}-vpn-tunnel-{entry.index + 1}",
                {
                    "name": f"{names['tunnel']}-{entry.index + 1}",
                    "vpn_gateway": self.gateway.handle["id"],
                    "vpn_gateway_interface": entry.local_interface,
                    "peer_external_gateway": external_gateway["id"],
                    "peer_external_gateway_interface": entry.index,
                    "shared_secret": entry.shared_key,
                    "router": router["name"],
                    "ike_version": self.config.google.ike_version,
                    "region": network.region,
                    "labels": self.config.google.labels,
                },
                depends_on=[self.gateway.handle, router, external_gateway],
            )
            tunnel = self._tunnel_instance(params, entry, handle)
            tunnels.append(
                replace(tunnel, supporting=(external_gateway,))
            )
        return tunnels

    def build_interfaces(self, tunnels: list[TunnelInstance], params: GoogleTunnelParameters) -> list:
        """Attach one Cloud Router interface to each tunnel."""
        names = self._names(params)
        router = self.gateway.router
        network = self.config.network(Provider.GOOGLE)
        entries = {entry.index: entry for entry in params.entries}
        interfaces = []
        for tunnel in tunnels:
            entry = entries[tunnel.index]
            interfaces.append(
                self._create(
                    kinds.GCP_ROUTER_INTERFACE,
                    f"google-{params.peer.value}-router-interface-{tunnel.index + 1}",
                    {
                        "name": f"{names['interface']}-{tunnel.index + 1}",
                        "router": router["name"],
                        "region": network.region,
                        "ip_range": f"{entry.bgp_local_address}/30" if entry.bgp_local_address else None,
                        "vpn_tunnel": tunnel.handle["name"],
                    },
                    depends_on=[tunnel.handle, router],
                )
            )
        return interfaces

    def build_peers(
        self, interfaces: list, tunnels: list[TunnelInstance], params: GoogleTunnelParameters
    ) -> list[RouteAdvertisement]:
        """Bind a BGP peer to each router interface."""
        names = self._names(params)
        router = self.gateway.router
        network = self.config.network(Provider.GOOGLE)
        advertisements = []
        for entry, interface in zip(params.entries, interfaces):
            peer = self._create(
                kinds.GCP_ROUTER_PEER,
                f"google-{params.peer.value}-router-peer-{entry.index + 1}",
                {
                    "name": f"{names['peer']}-{entry.index + 1}",
                    "router": router["name"],
                    "region": network.region,
                    "peer_ip_address": entry.bgp_peer_address,
                    "peer_asn": params.peer_asn,
                    "interface": interface["name"],
                    "advertised_route_priority": ADVERTISED_ROUTE_PRIORITY,
                    "ip_address": entry.bgp_local_address,
                },
                depends_on=[interface],
            )
            advertisements.append(
                RouteAdvertisement(
                    pair=params.pair,
                    provider=Provider.GOOGLE,
                    kind=RouteKind.BGP,
                    tunnel_index=entry.index,
                    handles=(interface, peer),
                    peer_address=entry.bgp_peer_address,
                    peer_asn=params.peer_asn,
                )
            )
        return advertisements


_GATEWAYS = {
    Topology.SINGLE_TUNNEL: SingleTunnelGoogleGateway,
    Topology.HIGH_AVAILABILITY: HaGoogleGateway,
}

_TUNNEL_BUILDERS = {
    Topology.SINGLE_TUNNEL: SingleTunnelGoogleBuilder,
    Topology.HIGH_AVAILABILITY: HaGoogleBuilder,
}


def google_gateway_factory(config, engine) -> GoogleGatewayFactory:
    return _GATEWAYS[config.topology](config, engine)


def google_tunnel_builder(config, engine, gateway: Gateway) -> GoogleTunnelBuilder:
    return _TUNNEL_BUILDERS[config.topology](config, engine, gateway)
