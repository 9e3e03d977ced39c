"""AWS gateway, customer gateway / VPN connection and static route builders."""

from typing import Sequence

from .. import kinds
from ..errors import ConfigurationError, DependencyNotReadyError
from ..models import (
    AwsConnections,
    AwsTunnelParameters,
    Gateway,
    Provider,
    RouteAdvertisement,
    RouteKind,
    TunnelEndpoint,
)
from .base import Builder

# VPN type supported by AWS site-to-site VPN
IPSEC_TYPE = "ipsec.1"


class AwsGatewayFactory(Builder):
    """Creates the virtual private gateway shared by every AWS link."""

    def create(self) -> Gateway:
        """Create the VPN gateway and propagate its routes into the VPC route tables.

        Returns:
            Gateway with the AWS ASN; AWS tunnel addresses are exposed later by
            each VPN connection

        Raises:
            ConfigurationError: If the VPC or ASN is missing
        """
        settings = self.config.aws
        network = self.config.network(Provider.AWS)
        asn = self.config.asn(Provider.AWS)
        if not network.network_id:
            raise ConfigurationError("The AWS VPN gateway needs networks.aws.network_id")

        vpn_gateway = self._create(
            kinds.AWS_VPN_GATEWAY,
            "aws-vpn-gateway",
            {
                "vpc_id": network.network_id,
                "amazon_side_asn": asn,
                "tags": {"Name": settings.gateway_name, **settings.tags},
            },
        )

        propagations = [
            self._create(
                kinds.AWS_ROUTE_PROPAGATION,
                f"aws-vpn-gateway-route-propagation-{index}",
                {
                    "route_table_id": route_table_id,
                    "vpn_gateway_id": vpn_gateway["id"],
                },
                depends_on=[vpn_gateway],
            )
            for index, route_table_id in enumerate(network.route_table_ids)
        ]

        return Gateway(
            provider=Provider.AWS,
            topology=self.topology,
            asn=asn,
            handle=vpn_gateway,
            resources=(vpn_gateway, *propagations),
        )


class AwsConnectionBuilder(Builder):
    """Builds customer gateways and VPN connections toward one peer."""

    def build(self, gateway: Gateway, params: AwsTunnelParameters) -> AwsConnections:
        """Create one customer gateway and VPN connection per peer interface.

        Args:
            gateway: The realized AWS VPN gateway
            params: Parameters derived from the peer's gateway

        Returns:
            AwsConnections exposing two tunnel endpoints per connection
        """
        if gateway is None or gateway.provider is not Provider.AWS:
            raise DependencyNotReadyError(f"AWS VPN gateway is required before connecting to {params.peer.value}")

        settings = self.config.aws
        peer = params.peer.value

        log_group = self._create(
            kinds.AWS_LOG_GROUP,
            f"aws-{peer}-vpn-log-group",
            {
                "name": f"{settings.customer_gateway_name}-{peer}-log-group",
                "retention_in_days": settings.log_retention_days,
            },
        )

        customer_gateways = []
        vpn_connections = []
        endpoints = []
        for connection, entries in enumerate(params.connections()):
            customer_gateway = self._create(
                kinds.AWS_CUSTOMER_GATEWAY,
                f"aws-{peer}-customer-gateway-{connection}",
                {
                    "bgp_asn": params.peer_asn,
                    "ip_address": entries[0].peer_address,
                    "type": IPSEC_TYPE,
                    "tags": {"Name": f"{settings.customer_gateway_name}-{peer}-{connection + 1}", **settings.tags},
                },
            )

            properties = {
                "vpn_gateway_id": gateway.handle["id"],
                "customer_gateway_id": customer_gateway["id"],
                "type": IPSEC_TYPE,
                "static_routes_only": params.static_routes_only,
                "log_group_arn": log_group["arn"],
                "tags": {"Name": f"{settings.vpn_connection_name}-{peer}-{connection + 1}", **settings.tags},
            }
            for tunnel, entry in enumerate(entries, start=1):
                if entry.bgp_cidr:
                    properties[f"tunnel{tunnel}_inside_cidr"] = entry.bgp_cidr

            vpn_connection = self._create(
                kinds.AWS_VPN_CONNECTION,
                f"aws-{peer}-vpn-connection-{connection}",
                properties,
                depends_on=[gateway.handle, customer_gateway, log_group],
            )

            customer_gateways.append(customer_gateway)
            vpn_connections.append(vpn_connection)
            for tunnel in (1, 2):
                endpoints.append(
                    TunnelEndpoint(
                        connection=connection,
                        tunnel=tunnel - 1,
                        address=vpn_connection[f"tunnel{tunnel}_address"],
                        preshared_key=vpn_connection[f"tunnel{tunnel}_preshared_key"],
                        inside_cidr=properties.get(f"tunnel{tunnel}_inside_cidr"),
                        cgw_inside_address=vpn_connection[f"tunnel{tunnel}_cgw_inside_address"],
                        vgw_inside_address=vpn_connection[f"tunnel{tunnel}_vgw_inside_address"],
                    )
                )

        return AwsConnections(
            pair=params.pair,
            peer=params.peer,
            customer_gateways=tuple(customer_gateways),
            vpn_connections=tuple(vpn_connections),
            endpoints=tuple(endpoints),
            log_group=log_group,
        )

    def build_static_routes(
        self, connections: AwsConnections, destinations: Sequence[str]
    ) -> list[RouteAdvertisement]:
        """Route each destination through the first VPN connection (tunnel index 0)."""
        if not connections.vpn_connections:
            raise DependencyNotReadyError(f"No AWS VPN connection exists for {connections.pair.key}")

        vpn_connection = connections.vpn_connections[0]
        peer = connections.peer.value
        routes = []
        for index, cidr in enumerate(destinations):
            route = self._create(
                kinds.AWS_VPN_CONNECTION_ROUTE,
                f"aws-{peer}-vpn-route-{index}",
                {
                    "destination_cidr_block": cidr,
                    "vpn_connection_id": vpn_connection["id"],
                },
                depends_on=[vpn_connection],
            )
            routes.append(
                RouteAdvertisement(
                    pair=connections.pair,
                    provider=Provider.AWS,
                    kind=RouteKind.STATIC,
                    tunnel_index=0,
                    handles=(route,),
                    destination=cidr,
                )
            )
        return routes
