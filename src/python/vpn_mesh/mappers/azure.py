"""Mappers for Azure VPN gateway resources."""

import pulumi
import pulumi_azure as azure

from .. import kinds


def create_subnet(name: str, props: dict, opts: pulumi.ResourceOptions):
    subnet = azure.network.Subnet(
        name,
        name=props["name"],
        resource_group_name=props["resource_group_name"],
        virtual_network_name=props["virtual_network_name"],
        address_prefixes=props["address_prefixes"],
        opts=opts,
    )
    return subnet, {"id": subnet.id, "name": subnet.name}


def create_public_ip(name: str, props: dict, opts: pulumi.ResourceOptions):
    public_ip = azure.network.PublicIp(
        name,
        name=props["name"],
        resource_group_name=props["resource_group_name"],
        location=props.get("location"),
        allocation_method=props["allocation_method"],
        sku=props.get("sku"),
        tags=props.get("tags"),
        opts=opts,
    )
    return public_ip, {"id": public_ip.id, "name": public_ip.name, "ip_address": public_ip.ip_address}


def create_virtual_network_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    """Create the route-based VPN gateway.

    Args:
        name: Pulumi resource name
        props: Gateway properties; ``bgp_settings`` is only present in active-active mode
        opts: Resource options carrying the provider and dependencies

    Returns:
        The gateway and its id
    """
    bgp_settings = None
    if props.get("bgp_settings"):
        settings = props["bgp_settings"]
        bgp_settings = azure.network.VirtualNetworkGatewayBgpSettingsArgs(
            asn=settings["asn"],
            peering_addresses=[
                azure.network.VirtualNetworkGatewayBgpSettingsPeeringAddressArgs(
                    ip_configuration_name=peering["ip_configuration_name"],
                    apipa_addresses=peering["apipa_addresses"],
                )
                for peering in settings["peering_addresses"]
            ],
        )

    gateway = azure.network.VirtualNetworkGateway(
        name,
        name=props["name"],
        resource_group_name=props["resource_group_name"],
        location=props.get("location"),
        type=props["type"],
        vpn_type=props["vpn_type"],
        sku=props["sku"],
        active_active=props["active_active"],
        enable_bgp=props["enable_bgp"],
        ip_configurations=[
            azure.network.VirtualNetworkGatewayIpConfigurationArgs(
                name=configuration["name"],
                public_ip_address_id=configuration["public_ip_address_id"],
                private_ip_address_allocation=configuration["private_ip_address_allocation"],
                subnet_id=configuration["subnet_id"],
            )
            for configuration in props["ip_configurations"]
        ],
        bgp_settings=bgp_settings,
        tags=props.get("tags"),
        opts=opts,
    )
    return gateway, {"id": gateway.id, "name": gateway.name}


def create_log_analytics_workspace(name: str, props: dict, opts: pulumi.ResourceOptions):
    workspace = azure.operationalinsights.AnalyticsWorkspace(
        name,
        name=props["name"],
        resource_group_name=props["resource_group_name"],
        location=props.get("location"),
        sku=props.get("sku"),
        retention_in_days=props.get("retention_in_days"),
        tags=props.get("tags"),
        opts=opts,
    )
    return workspace, {"id": workspace.id, "name": workspace.name}


def create_diagnostic_setting(name: str, props: dict, opts: pulumi.ResourceOptions):
    setting = azure.monitoring.DiagnosticSetting(
        name,
        name=props["name"],
        target_resource_id=props["target_resource_id"],
        log_analytics_workspace_id=props["log_analytics_workspace_id"],
        enabled_logs=[
            azure.monitoring.DiagnosticSettingEnabledLogArgs(category=category)
            for category in props.get("log_categories", [])
        ],
        opts=opts,
    )
    return setting, {"id": setting.id, "name": setting.name}


def create_local_network_gateway(name: str, props: dict, opts: pulumi.ResourceOptions):
    bgp_settings = None
    if props.get("bgp_settings"):
        bgp_settings = azure.network.LocalNetworkGatewayBgpSettingsArgs(
            asn=props["bgp_settings"]["asn"],
            bgp_peering_address=props["bgp_settings"]["bgp_peering_address"],
        )

    gateway = azure.network.LocalNetworkGateway(
        name,
        name=props["name"],
        resource_group_name=props["resource_group_name"],
        location=props.get("location"),
        gateway_address=props["gateway_address"],
        address_spaces=props.get("address_spaces"),
        bgp_settings=bgp_settings,
        tags=props.get("tags"),
        opts=opts,
    )
    return gateway, {"id": gateway.id, "name": gateway.name}


def create_vpn_connection(name: str, props: dict, opts: pulumi.ResourceOptions):
    connection = azure.network.VirtualNetworkGatewayConnection(
        name,
        name=props["name"],
        resource_group_name=props["resource_group_name"],
        location=props.get("location"),
        type=props["type"],
        virtual_network_gateway_id=props["virtual_network_gateway_id"],
        local_network_gateway_id=props["local_network_gateway_id"],
        shared_key=props.get("shared_key"),
        enable_bgp=props.get("enable_bgp", False),
        tags=props.get("tags"),
        opts=opts,
    )
    return connection, {"id": connection.id, "name": connection.name}


MAPPERS = {
    kinds.AZURE_SUBNET: create_subnet,
    kinds.AZURE_PUBLIC_IP: create_public_ip,
    kinds.AZURE_VIRTUAL_NETWORK_GATEWAY: create_virtual_network_gateway,
    kinds.AZURE_LOG_ANALYTICS_WORKSPACE: create_log_analytics_workspace,
    kinds.AZURE_DIAGNOSTIC_SETTING: create_diagnostic_setting,
    kinds.AZURE_LOCAL_NETWORK_GATEWAY: create_local_network_gateway,
    kinds.AZURE_VPN_CONNECTION: create_vpn_connection,
}
