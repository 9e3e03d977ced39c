"""Mappers for AWS site-to-site VPN resources."""

import pulumi
import pulumi_aws as aws

from .. import kinds


def create_vpn_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    """Create a virtual private gateway attached to the VPC."""
    gateway = aws.ec2.VpnGateway(
        name,
        vpc_id=props["vpc_id"],
        # The provider takes the ASN as a string
        amazon_side_asn=str(props["amazon_side_asn"]),
        tags=props.get("tags"),
        opts=opts,
    )
    return gateway, {"id": gateway.id}


def create_route_propagation(name: str, props: dict, opts: pulumi.ResourceOptions):
    propagation = aws.ec2.VpnGatewayRoutePropagation(
        name,
        route_table_id=props["route_table_id"],
        vpn_gateway_id=props["vpn_gateway_id"],
        opts=opts,
    )
    return propagation, {"id": propagation.id}


def create_log_group(name: str, props: dict, opts: pulumi.ResourceOptions):
    log_group = aws.cloudwatch.LogGroup(
        name,
        name=props["name"],
        retention_in_days=props.get("retention_in_days"),
        opts=opts,
    )
    return log_group, {"id": log_group.id, "name": log_group.name, "arn": log_group.arn}


def create_customer_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    customer_gateway = aws.ec2.CustomerGateway(
        name,
        bgp_asn=str(props["bgp_asn"]),
        ip_address=props["ip_address"],
        type=props["type"],
        tags=props.get("tags"),
        opts=opts,
    )
    return customer_gateway, {"id": customer_gateway.id}


def create_vpn_connection(name: str, props: dict, opts: pulumi.ResourceOptions):
    """Create a VPN connection with both tunnels logging to CloudWatch.

    Args:
        name: Pulumi resource name
        props: Connection properties; tunnel inside CIDRs are optional
        opts: Resource options carrying the provider and dependencies

    Returns:
        The connection and its per-tunnel outputs
    """
    log_group_arn = props.get("log_group_arn")
    connection = aws.ec2.VpnConnection(
        name,
        vpn_gateway_id=props["vpn_gateway_id"],
        customer_gateway_id=props["customer_gateway_id"],
        type=props["type"],
        static_routes_only=props.get("static_routes_only", False),
        tunnel1_inside_cidr=props.get("tunnel1_inside_cidr"),
        tunnel2_inside_cidr=props.get("tunnel2_inside_cidr"),
        tunnel1_log_options=_tunnel1_log_options(log_group_arn),
        tunnel2_log_options=_tunnel2_log_options(log_group_arn),
        tags=props.get("tags"),
        opts=opts,
    )

    attributes = {"id": connection.id}
    for tunnel in (1, 2):
        for field in ("address", "preshared_key", "vgw_inside_address", "cgw_inside_address"):
            key = f"tunnel{tunnel}_{field}"
            attributes[key] = getattr(connection, key)
    return connection, attributes


def _tunnel1_log_options(log_group_arn):
    if log_group_arn is None:
        return None
    return aws.ec2.VpnConnectionTunnel1LogOptionsArgs(
        cloudwatch_log_options=aws.ec2.VpnConnectionTunnel1LogOptionsCloudwatchLogOptionsArgs(
            log_enabled=True,
            log_group_arn=log_group_arn,
            log_output_format="json",
        )
    )


def _tunnel2_log_options(log_group_arn):
    if log_group_arn is None:
        return None
    return aws.ec2.VpnConnectionTunnel2LogOptionsArgs(
        cloudwatch_log_options=aws.ec2.VpnConnectionTunnel2LogOptionsCloudwatchLogOptionsArgs(
            log_enabled=True,
            log_group_arn=log_group_arn,
            log_output_format="json",
        )
    )


def create_vpn_connection_route(name: str, props: dict, opts: pulumi.ResourceOptions):
    route = aws.ec2.VpnConnectionRoute(
        name,
        destination_cidr_block=props["destination_cidr_block"],
        vpn_connection_id=props["vpn_connection_id"],
        opts=opts,
    )
    return route, {"id": route.id}


MAPPERS = {
    kinds.AWS_VPN_GATEWAY: create_vpn_gateway,
    kinds.AWS_ROUTE_PROPAGATION: create_route_propagation,
    kinds.AWS_LOG_GROUP: create_log_group,
    kinds.AWS_CUSTOMER_GATEWAY: create_customer_gateway,
    kinds.AWS_VPN_CONNECTION: create_vpn_connection,
    kinds.AWS_VPN_CONNECTION_ROUTE: create_vpn_connection_route,
}
