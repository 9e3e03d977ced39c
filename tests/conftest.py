import pytest

from vpn_mesh.config import parse_config
from vpn_mesh.engine import InMemoryEngine

AWS_CIDR = "10.0.0.0/16"
GOOGLE_CIDR = "10.1.0.0/16"
AZURE_CIDR = "10.2.0.0/16"
AUXILIARY_RANGES = ["10.100.0.0/16", "35.199.192.0/19"]


def mesh_data(environment="dev", aws_google=True, aws_azure=True, google_azure=True) -> dict:
    return {
        "environment": environment,
        "pairs": {
            "aws_google": aws_google,
            "aws_azure": aws_azure,
            "google_azure": google_azure,
        },
        "networks": {
            "aws": {
                "network_id": "vpc-123",
                "cidr": AWS_CIDR,
                "region": "ap-northeast-1",
                "route_table_ids": ["rtb-1", "rtb-2"],
            },
            "google": {"network_id": "mesh-vpc", "cidr": GOOGLE_CIDR, "region": "asia-northeast1"},
            "azure": {
                "network_id": "mesh-vnet",
                "cidr": AZURE_CIDR,
                "region": "japaneast",
                "resource_group": "mesh-rg",
            },
        },
        "aws": {"asn": 65001},
        "google": {"asn": 65000, "project": "mesh", "custom_ip_ranges": list(AUXILIARY_RANGES)},
        "azure": {"asn": 65515, "gateway_subnet_cidr": "10.2.255.0/27"},
        "secrets": {"google_azure_preshared_key": "google-azure-secret"},
    }


@pytest.fixture
def make_config():
    def _make(environment="dev", **pairs):
        return parse_config(mesh_data(environment, **pairs))

    return _make


@pytest.fixture
def engine():
    return InMemoryEngine()
