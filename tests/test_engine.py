import pytest

from vpn_mesh import kinds
from vpn_mesh.engine import InMemoryEngine, ResourceRequest
from vpn_mesh.errors import ProviderRejectionError


def test_identical_request_returns_existing_handle():
    engine = InMemoryEngine()
    request = ResourceRequest(kinds.GCP_ADDRESS, "google-vpn-gateway-address", {"name": "gw-ip"})

    first = engine.create(request)
    second = engine.create(request)

    assert first == second
    assert len(engine.calls) == 1


def test_conflicting_request_is_rejected():
    engine = InMemoryEngine()
    engine.create(ResourceRequest(kinds.GCP_ADDRESS, "address", {"name": "a"}))

    with pytest.raises(ProviderRejectionError, match="already exists"):
        engine.create(ResourceRequest(kinds.GCP_ADDRESS, "address", {"name": "b"}))


def test_rejected_kind():
    engine = InMemoryEngine(reject=[kinds.AZURE_PUBLIC_IP])

    with pytest.raises(ProviderRejectionError) as info:
        engine.create(ResourceRequest(kinds.AZURE_PUBLIC_IP, "pip", {}))

    assert info.value.kind == kinds.AZURE_PUBLIC_IP
    assert engine.calls == []

    engine.allow(kinds.AZURE_PUBLIC_IP)
    assert engine.create(ResourceRequest(kinds.AZURE_PUBLIC_IP, "pip", {}))["ip_address"]


def test_unknown_dependency_is_rejected():
    engine = InMemoryEngine()
    other = InMemoryEngine().create(ResourceRequest(kinds.AWS_VPN_GATEWAY, "vgw", {}))

    with pytest.raises(ProviderRejectionError, match="unknown resource"):
        engine.create(ResourceRequest(kinds.AWS_VPN_CONNECTION, "vpn", {}, depends_on=(other,)))


def test_vpn_connection_outputs_follow_inside_cidrs():
    engine = InMemoryEngine()

    handle = engine.create(
        ResourceRequest(
            kinds.AWS_VPN_CONNECTION,
            "vpn",
            {"tunnel1_inside_cidr": "169.254.21.0/30", "tunnel2_inside_cidr": "169.254.21.4/30"},
        )
    )

    assert handle["tunnel1_vgw_inside_address"] == "169.254.21.1"
    assert handle["tunnel1_cgw_inside_address"] == "169.254.21.2"
    assert handle["tunnel2_cgw_inside_address"] == "169.254.21.6"
    assert handle["tunnel1_preshared_key"] != handle["tunnel2_preshared_key"]


def test_outputs_are_deterministic():
    request = ResourceRequest(kinds.GCP_HA_VPN_GATEWAY, "google-ha-vpn-gateway", {"name": "gw"})

    first = InMemoryEngine().create(request)
    second = InMemoryEngine().create(request)

    assert first["interface_addresses"] == second["interface_addresses"]


def test_missing_attribute_names_the_resource():
    handle = InMemoryEngine().create(ResourceRequest(kinds.AWS_VPN_GATEWAY, "vgw", {}))

    with pytest.raises(KeyError, match="vgw"):
        handle["address"]
