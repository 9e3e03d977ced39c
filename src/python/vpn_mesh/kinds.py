"""Resource kinds understood by the provisioning engines."""

# AWS
AWS_VPN_GATEWAY = "aws:vpn-gateway"
AWS_ROUTE_PROPAGATION = "aws:vpn-gateway-route-propagation"
AWS_LOG_GROUP = "aws:cloudwatch-log-group"
AWS_CUSTOMER_GATEWAY = "aws:customer-gateway"
AWS_VPN_CONNECTION = "aws:vpn-connection"
AWS_VPN_CONNECTION_ROUTE = "aws:vpn-connection-route"

# Google Cloud
GCP_ADDRESS = "gcp:address"
GCP_VPN_GATEWAY = "gcp:vpn-gateway"
GCP_FORWARDING_RULE = "gcp:forwarding-rule"
GCP_HA_VPN_GATEWAY = "gcp:ha-vpn-gateway"
GCP_ROUTER = "gcp:router"
GCP_EXTERNAL_VPN_GATEWAY = "gcp:external-vpn-gateway"
GCP_VPN_TUNNEL = "gcp:vpn-tunnel"
GCP_ROUTE = "gcp:route"
GCP_ROUTER_INTERFACE = "gcp:router-interface"
GCP_ROUTER_PEER = "gcp:router-peer"

# Azure
AZURE_SUBNET = "azure:subnet"
AZURE_PUBLIC_IP = "azure:public-ip"
AZURE_VIRTUAL_NETWORK_GATEWAY = "azure:virtual-network-gateway"
AZURE_LOG_ANALYTICS_WORKSPACE = "azure:log-analytics-workspace"
AZURE_DIAGNOSTIC_SETTING = "azure:diagnostic-setting"
AZURE_LOCAL_NETWORK_GATEWAY = "azure:local-network-gateway"
AZURE_VPN_CONNECTION = "azure:vpn-connection"

GATEWAY_KINDS = frozenset(
    {
        AWS_VPN_GATEWAY,
        GCP_VPN_GATEWAY,
        GCP_HA_VPN_GATEWAY,
        AZURE_VIRTUAL_NETWORK_GATEWAY,
    }
)

TUNNEL_KINDS = frozenset({GCP_VPN_TUNNEL, AZURE_VPN_CONNECTION})

ROUTE_KINDS = frozenset({GCP_ROUTE, GCP_ROUTER_PEER, AWS_VPN_CONNECTION_ROUTE})
