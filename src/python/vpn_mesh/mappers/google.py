"""Mappers for Google Cloud VPN and Cloud Router resources."""

import pulumi
import pulumi_gcp as gcp

from .. import kinds

# Number of interfaces on an HA VPN gateway
HA_INTERFACES = 2


def create_address(name: str, props: dict, opts: pulumi.ResourceOptions):
    address = gcp.compute.Address(
        name,
        name=props["name"],
        region=props.get("region"),
        labels=props.get("labels") or None,
        opts=opts,
    )
    return address, {"id": address.id, "name": address.name, "address": address.address}


def create_vpn_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    gateway = gcp.compute.VPNGateway(
        name,
        name=props["name"],
        network=props["network"],
        region=props.get("region"),
        opts=opts,
    )
    return gateway, {"id": gateway.id, "name": gateway.name, "self_link": gateway.self_link}


def create_forwarding_rule(name: str, props: dict, opts: pulumi.ResourceOptions):
    rule = gcp.compute.ForwardingRule(
        name,
        name=props["name"],
        ip_protocol=props["ip_protocol"],
        ip_address=props["ip_address"],
        target=props["target"],
        port_range=props.get("port_range"),
        region=props.get("region"),
        opts=opts,
    )
    return rule, {"id": rule.id, "name": rule.name}


def create_ha_vpn_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    """Create an HA VPN gateway and expose both interface addresses."""
    gateway = gcp.compute.HaVpnGateway(
        name,
        name=props["name"],
        network=props["network"],
        region=props.get("region"),
        opts=opts,
    )
    interface_addresses = [
        gateway.vpn_interfaces.apply(lambda interfaces, i=i: interfaces[i].ip_address)
        for i in range(HA_INTERFACES)
    ]
    return gateway, {"id": gateway.id, "name": gateway.name, "interface_addresses": interface_addresses}


def create_router(name: str, props: dict, opts: pulumi.ResourceOptions):
    """Create a Cloud Router, advertising extra ranges when configured."""
    ranges = props.get("advertised_ip_ranges") or []
    if ranges:
        bgp = gcp.compute.RouterBgpArgs(
            asn=props["asn"],
            advertise_mode="CUSTOM",
            advertised_groups=["ALL_SUBNETS"],
            advertised_ip_ranges=[gcp.compute.RouterBgpAdvertisedIpRangeArgs(range=r) for r in ranges],
        )
    else:
        bgp = gcp.compute.RouterBgpArgs(asn=props["asn"])

    router = gcp.compute.Router(
        name,
        name=props["name"],
        network=props["network"],
        region=props.get("region"),
        bgp=bgp,
        opts=opts,
    )
    return router, {"id": router.id, "name": router.name}


def create_external_vpn_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    gateway = gcp.compute.ExternalVpnGateway(
        name,
        name=props["name"],
        redundancy_type=props["redundancy_type"],
        interfaces=[
            gcp.compute.ExternalVpnGatewayInterfaceArgs(id=interface["id"], ip_address=interface["ip_address"])
            for interface in props["interfaces"]
        ],
        labels=props.get("labels") or None,
        opts=opts,
    )
    return gateway, {"id": gateway.id, "name": gateway.name}


def create_vpn_tunnel(name: str, props: dict, opts: pulumi.ResourceOptions):
    # Classic and HA tunnels share one resource type; the property set differs
    args = {key: value for key, value in props.items() if key != "labels"}
    tunnel = gcp.compute.VPNTunnel(name, labels=props.get("labels") or None, **args, opts=opts)
    return tunnel, {"id": tunnel.id, "name": tunnel.name}


def create_route(name: str, props: dict, opts: pulumi.ResourceOptions):
    route = gcp.compute.Route(
        name,
        name=props["name"],
        dest_range=props["dest_range"],
        network=props["network"],
        next_hop_vpn_tunnel=props["next_hop_vpn_tunnel"],
        opts=opts,
    )
    return route, {"id": route.id, "name": route.name}


def create_router_interface(name: str, props: dict, opts: pulumi.ResourceOptions):
    interface = gcp.compute.RouterInterface(
        name,
        name=props["name"],
        router=props["router"],
        region=props.get("region"),
        ip_range=props.get("ip_range"),
        vpn_tunnel=props["vpn_tunnel"],
        opts=opts,
    )
    return interface, {"id": interface.id, "name": interface.name}


def create_router_peer(name: str, props: dict, opts: pulumi.ResourceOptions):
    peer = gcp.compute.RouterPeer(
        name,
        name=props["name"],
        router=props["router"],
        region=props.get("region"),
        peer_ip_address=props.get("peer_ip_address"),
        peer_asn=props["peer_asn"],
        interface=props["interface"],
        advertised_route_priority=props.get("advertised_route_priority"),
        ip_address=props.get("ip_address"),
        opts=opts,
    )
    return peer, {"id": peer.id, "name": peer.name}


MAPPERS = {
    kinds.GCP_ADDRESS: create_address,
    kinds.GCP_VPN_GATEWAY: create_vpn_gateway,
    kinds.GCP_FORWARDING_RULE: create_forwarding_rule,
    kinds.GCP_HA_VPN_GATEWAY: create_ha_vpn_gateway,
    kinds.GCP_ROUTER: create_router,
    kinds.GCP_EXTERNAL_VPN_GATEWAY: create_external_vpn_gateway,
    kinds.GCP_VPN_TUNNEL: create_vpn_tunnel,
    kinds.GCP_ROUTE: create_route,
    kinds.GCP_ROUTER_INTERFACE: create_router_interface,
    kinds.GCP_ROUTER_PEER: create_router_peer,
}
