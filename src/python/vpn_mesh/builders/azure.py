"""Azure virtual network gateway and local network gateway builders."""

import logging

from .. import kinds
from ..addressing import AZURE_APIPA_RANGE, is_azure_apipa
from ..batching import BatchScheduler
from ..errors import ConfigurationError, DependencyNotReadyError
from ..models import (
    AzureTunnelParameters,
    Gateway,
    Pair,
    Provider,
    RouteAdvertisement,
    RouteKind,
    Topology,
    TunnelInstance,
)
from .base import Builder

LOG = logging.getLogger(__name__)

GATEWAY_SUBNET_NAME = "GatewaySubnet"
IP_CONFIGURATION_NAME = "vnetGatewayConfig-{}"

AWS_AZURE = Pair(Provider.AWS, Provider.AZURE)
GOOGLE_AZURE = Pair(Provider.GOOGLE, Provider.AZURE)


def azure_apipa_addresses(config) -> list[list[str]]:
    """Link-local BGP addresses Azure must own, per gateway ip configuration.

    Interface ``i`` carries the customer end of both tunnels of the AWS VPN
    connection that terminates on it, plus its Google-Azure link.

    Raises:
        ConfigurationError: If an address falls outside Azure's APIPA range
    """
    addresses = [[], []]
    for interface in range(2):
        if config.matrix.aws_azure:
            for tunnel in range(2):
                addresses[interface].append(config.apipa.link(AWS_AZURE, interface, tunnel).second)
        if config.matrix.google_azure:
            addresses[interface].append(config.apipa.link(GOOGLE_AZURE, interface).second)

    for address in (a for group in addresses for a in group):
        if not is_azure_apipa(address):
            raise ConfigurationError(
                f"Azure BGP address {address} is outside {AZURE_APIPA_RANGE[0]}-{AZURE_APIPA_RANGE[1]}; "
                "adjust the apipa blocks in mesh.yaml"
            )
    return addresses


class AzureGatewayFactory(Builder):
    """Creates the gateway subnet, public IPs and the virtual network gateway."""

    def create(self) -> Gateway:
        """Create the Azure VPN gateway for the current topology.

        Single-tunnel mode gets one public IP and a route-based gateway
        without BGP.  High-availability mode runs active-active with two
        ip configurations, each owning its APIPA BGP addresses.

        Returns:
            Gateway exposing one or two public addresses

        Raises:
            ConfigurationError: If the gateway subnet or public IP names are missing
        """
        settings = self.config.azure
        network = self.config.network(Provider.AZURE)
        asn = self.config.asn(Provider.AZURE)
        ha = self.topology is Topology.HIGH_AVAILABILITY
        common = {"resource_group_name": network.resource_group, "location": network.region}

        resources = []
        subnet_id = network.gateway_subnet_id
        if subnet_id is None:
            if not settings.gateway_subnet_cidr:
                raise ConfigurationError(
                    "Azure needs azure.gateway_subnet_cidr or networks.azure.gateway_subnet_id"
                )
            subnet = self._create(
                kinds.AZURE_SUBNET,
                "azure-gateway-subnet",
                {
                    "name": GATEWAY_SUBNET_NAME,
                    "resource_group_name": network.resource_group,
                    "virtual_network_name": network.network_id,
                    "address_prefixes": [settings.gateway_subnet_cidr],
                },
            )
            resources.append(subnet)
            subnet_id = subnet["id"]

        count = 2 if ha else 1
        if len(settings.public_ip_names) < count:
            raise ConfigurationError(
                f"{self.topology.value} needs {count} azure.public_ip_names, got {len(settings.public_ip_names)}"
            )

        public_ips = [
            self._create(
                kinds.AZURE_PUBLIC_IP,
                f"azure-vpn-gateway-public-ip-{index + 1}",
                {
                    "name": name,
                    **common,
                    "allocation_method": "Static",
                    "sku": "Standard",
                    "tags": settings.tags,
                },
            )
            for index, name in enumerate(settings.public_ip_names[:count])
        ]
        resources.extend(public_ips)

        ip_configurations = [
            {
                "name": IP_CONFIGURATION_NAME.format(index + 1),
                "public_ip_address_id": public_ip["id"],
                "private_ip_address_allocation": "Dynamic",
                "subnet_id": subnet_id,
            }
            for index, public_ip in enumerate(public_ips)
        ]

        bgp_settings = None
        if ha:
            bgp_settings = {
                "asn": asn,
                "peering_addresses": [
                    {"ip_configuration_name": configuration["name"], "apipa_addresses": apipa}
                    for configuration, apipa in zip(ip_configurations, azure_apipa_addresses(self.config))
                ],
            }

        gateway = self._create(
            kinds.AZURE_VIRTUAL_NETWORK_GATEWAY,
            "azure-vpn-gateway",
            {
                "name": settings.gateway_name,
                **common,
                "type": "Vpn",
                "vpn_type": "RouteBased",
                "sku": settings.sku,
                "active_active": ha,
                "enable_bgp": ha,
                "ip_configurations": ip_configurations,
                "bgp_settings": bgp_settings,
                "tags": settings.tags,
            },
            depends_on=resources,
        )
        resources.append(gateway)

        if settings.diagnostics_retention_days:
            resources.extend(self._diagnostics(gateway, common))

        return Gateway(
            provider=Provider.AZURE,
            topology=self.topology,
            asn=asn,
            handle=gateway,
            addresses=tuple(public_ip["ip_address"] for public_ip in public_ips),
            resources=tuple(resources),
        )

    def _diagnostics(self, gateway, common) -> list:
        """Send gateway, tunnel and route diagnostic logs to a Log Analytics workspace."""
        settings = self.config.azure
        workspace = self._create(
            kinds.AZURE_LOG_ANALYTICS_WORKSPACE,
            "azure-vpn-log-workspace",
            {
                "name": f"{settings.gateway_name}-logs",
                **common,
                "sku": "PerGB2018",
                "retention_in_days": settings.diagnostics_retention_days,
                "tags": settings.tags,
            },
        )
        setting = self._create(
            kinds.AZURE_DIAGNOSTIC_SETTING,
            "azure-vpn-gateway-diagnostics",
            {
                "name": f"{settings.gateway_name}-diagnostics",
                "target_resource_id": gateway["id"],
                "log_analytics_workspace_id": workspace["id"],
                "log_categories": ["GatewayDiagnosticLog", "TunnelDiagnosticLog", "RouteDiagnosticLog", "IKEDiagnosticLog"],
            },
            depends_on=[gateway, workspace],
        )
        return [workspace, setting]


class AzureTunnelBuilder(Builder):
    """Builds a local network gateway and connection per remote tunnel endpoint.

    Connections are created through a :class:`BatchScheduler` so that no more
    than ``azure.batch_size`` of them are in flight against the gateway.
    """

    def __init__(self, config, engine, gateway: Gateway) -> None:
        super().__init__(config, engine)
        if gateway is None or gateway.provider is not Provider.AZURE:
            raise DependencyNotReadyError("The Azure virtual network gateway must exist before its connections")
        self.gateway = gateway
        self.scheduler = BatchScheduler(config.azure.batch_size)

    def build_tunnels(self, params: AzureTunnelParameters) -> list[TunnelInstance]:
        network = self.config.network(Provider.AZURE)
        settings = self.config.azure
        peer = params.peer.value
        ha = self.topology.uses_bgp
        common = {"resource_group_name": network.resource_group, "location": network.region}

        def create(entry, index, previous):
            if ha:
                routing = {"bgp_settings": {"asn": params.peer_asn, "bgp_peering_address": entry.bgp_peer_address}}
            else:
                routing = {"address_spaces": list(params.peer_address_spaces)}

            local_gateway = self._create(
                kinds.AZURE_LOCAL_NETWORK_GATEWAY,
                f"azure-{peer}-local-gateway-{index}",
                {
                    "name": f"{settings.gateway_name}-{peer}-lng-{index + 1}",
                    **common,
                    "gateway_address": entry.peer_address,
                    **routing,
                    "tags": settings.tags,
                },
            )
            connection = self._create(
                kinds.AZURE_VPN_CONNECTION,
                f"azure-{peer}-vpn-connection-{index}",
                {
                    "name": f"{settings.gateway_name}-{peer}-connection-{index + 1}",
                    **common,
                    "type": "IPsec",
                    "virtual_network_gateway_id": self.gateway.handle["id"],
                    "local_network_gateway_id": local_gateway["id"],
                    "shared_key": entry.shared_key,
                    "enable_bgp": ha,
                    "tags": settings.tags,
                },
                depends_on=[self.gateway.handle, local_gateway, *previous],
            )
            return TunnelInstance(
                pair=params.pair,
                provider=Provider.AZURE,
                index=entry.index,
                peer_address=entry.peer_address,
                shared_key=entry.shared_key,
                local_selectors=(network.cidr,),
                remote_selectors=tuple(params.peer_address_spaces),
                handle=connection,
                bgp_peer_address=entry.bgp_peer_address,
                supporting=(local_gateway,),
            )

        tunnels = self.scheduler.run(list(params.entries), create, lambda tunnel: (tunnel.handle,))
        LOG.info("Azure connections toward %s: %d", peer, len(tunnels))
        return tunnels

    def build_routes(self, tunnels: list[TunnelInstance], params: AzureTunnelParameters) -> list[RouteAdvertisement]:
        """Static routes live in each local network gateway's address spaces."""
        return [
            RouteAdvertisement(
                pair=params.pair,
                provider=Provider.AZURE,
                kind=RouteKind.STATIC,
                tunnel_index=tunnel.index,
                handles=tunnel.supporting,
                destination=destination,
            )
            for tunnel in tunnels
            for destination in params.peer_address_spaces
        ]

    def build_interfaces(self, tunnels: list[TunnelInstance], params: AzureTunnelParameters) -> list:
        """BGP interfaces are the gateway ip configurations, already bound to their APIPA addresses."""
        return [self.gateway.handle for _ in tunnels]

    def build_peers(
        self, interfaces: list, tunnels: list[TunnelInstance], params: AzureTunnelParameters
    ) -> list[RouteAdvertisement]:
        """BGP peers are carried by each local network gateway and its BGP-enabled connection."""
        return [
            RouteAdvertisement(
                pair=params.pair,
                provider=Provider.AZURE,
                kind=RouteKind.BGP,
                tunnel_index=tunnel.index,
                handles=(*tunnel.supporting, tunnel.handle),
                peer_address=tunnel.bgp_peer_address,
                peer_asn=params.peer_asn,
            )
            for tunnel in tunnels
        ]


def azure_gateway_factory(config, engine) -> AzureGatewayFactory:
    return AzureGatewayFactory(config, engine)


def azure_tunnel_builder(config, engine, gateway: Gateway) -> AzureTunnelBuilder:
    return AzureTunnelBuilder(config, engine, gateway)
