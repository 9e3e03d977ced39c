import pulumi
import pytest

from vpn_mesh import pulumi_engine
from vpn_mesh.engine import ResourceRequest
from vpn_mesh.errors import ProviderRejectionError
from vpn_mesh.models import PairState
from vpn_mesh.orchestrator import run_mesh
from vpn_mesh.pulumi_engine import PulumiEngine


class MeshMocks(pulumi.runtime.Mocks):
    """Records registered resources and fills in the outputs the builders read."""

    def __init__(self):
        self.resources = {}
        self._addresses = 0

    def _address(self):
        self._addresses += 1
        return f"203.0.113.{self._addresses}"

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources[args.name] = args
        outputs = dict(args.inputs)
        token = args.typ.rsplit(":", 1)[-1]

        if token == "HaVpnGateway":
            outputs["vpnInterfaces"] = [{"id": i, "ipAddress": self._address()} for i in range(2)]
        elif token == "Address":
            outputs["address"] = self._address()
        elif token == "VPNGateway":
            outputs["selfLink"] = f"projects/mesh/regions/asia-northeast1/targetVpnGateways/{args.name}"
        elif token == "PublicIp":
            outputs["ipAddress"] = self._address()
        elif token == "LogGroup":
            outputs["arn"] = f"arn:aws:logs:ap-northeast-1:000000000000:log-group:{args.name}"
        elif args.typ.startswith("aws:") and token == "VpnConnection":
            for tunnel in (1, 2):
                outputs[f"tunnel{tunnel}Address"] = self._address()
                outputs[f"tunnel{tunnel}PresharedKey"] = f"{args.name}-psk-{tunnel}"
                outputs[f"tunnel{tunnel}VgwInsideAddress"] = "169.254.0.1"
                outputs[f"tunnel{tunnel}CgwInsideAddress"] = "169.254.0.2"
        return [f"{args.name}-id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}


def camel(key):
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def value(mapping, key):
    """Read a registered input by its Python or its schema name."""
    return mapping[camel(key)] if camel(key) in mapping else mapping[key]


def register(config, monkeypatch):
    """Run the mesh as a Pulumi program against mocks.

    Returns the mocks, the engine, the mesh result and the ResourceOptions
    each resource was registered with.
    """
    mocks = MeshMocks()
    pulumi.runtime.set_mocks(mocks, preview=False)

    options = {}

    def recording(mapper):
        def create(name, props, opts):
            options[name] = opts
            return mapper(name, props, opts)

        return create

    monkeypatch.setattr(
        pulumi_engine, "MAPPERS", {kind: recording(mapper) for kind, mapper in pulumi_engine.MAPPERS.items()}
    )
    engine = PulumiEngine(config)
    results = []

    @pulumi.runtime.test
    def program():
        results.append(run_mesh(config, engine))

    program()
    return mocks, engine, results[0], options


def registered_types(mocks):
    return {args.typ.rsplit(":", 1)[-1] for args in mocks.resources.values()}


def test_single_tunnel_mesh_registers_classic_resources(make_config, monkeypatch):
    mocks, _, result, _ = register(make_config("dev"), monkeypatch)

    assert all(pair.state is PairState.LINKED for pair in result.pairs.values())
    assert {
        "VpnGateway",
        "CustomerGateway",
        "VpnConnection",
        "VpnConnectionRoute",
        "Address",
        "VPNGateway",
        "ForwardingRule",
        "VPNTunnel",
        "Route",
        "PublicIp",
        "VirtualNetworkGateway",
        "LocalNetworkGateway",
        "VirtualNetworkGatewayConnection",
    } <= registered_types(mocks)
    assert "HaVpnGateway" not in registered_types(mocks)

    tunnel = mocks.resources["google-aws-vpn-tunnel-1"].inputs
    assert value(tunnel, "local_traffic_selectors") == ["10.1.0.0/16"]
    assert value(tunnel, "remote_traffic_selectors") == ["10.0.0.0/16"]

    connection = mocks.resources["aws-google-vpn-connection-0"].inputs
    assert value(connection, "static_routes_only") is True


def test_tunnels_depend_on_forwarding_rules(make_config, monkeypatch):
    _, engine, _, options = register(make_config("dev"), monkeypatch)

    rules = {
        id(engine.get(name).resource)
        for name in ("google-vpn-rule-esp", "google-vpn-rule-udp500", "google-vpn-rule-udp4500")
    }
    for name in ("google-aws-vpn-tunnel-1", "google-aws-vpn-tunnel-2", "google-azure-vpn-tunnel-1"):
        assert {id(resource) for resource in options[name].depends_on} == rules


def test_resources_use_one_explicit_provider_per_cloud(make_config, monkeypatch):
    mocks, _, _, _ = register(make_config("prod"), monkeypatch)

    providers = {args.name for args in mocks.resources.values() if args.typ.startswith("pulumi:providers:")}
    assert providers == {"vpn-mesh-aws", "vpn-mesh-gcp", "vpn-mesh-azure"}
    assert "vpn-mesh-aws" in mocks.resources["aws-vpn-gateway"].provider
    assert "vpn-mesh-gcp" in mocks.resources["google-ha-vpn-gateway"].provider
    assert "vpn-mesh-azure" in mocks.resources["azure-vpn-gateway"].provider


def test_high_availability_mesh_registers_bgp_resources(make_config, monkeypatch):
    mocks, _, result, _ = register(make_config("prod"), monkeypatch)

    assert all(pair.state is PairState.LINKED for pair in result.pairs.values())
    assert {"HaVpnGateway", "Router", "ExternalVpnGateway", "RouterInterface", "RouterPeer"} <= registered_types(mocks)
    assert not {"ForwardingRule", "Route", "VpnConnectionRoute"} & registered_types(mocks)

    assert value(mocks.resources["google-aws-external-gateway"].inputs, "redundancy_type") == "FOUR_IPS_REDUNDANCY"
    assert value(mocks.resources["google-azure-external-gateway"].inputs, "redundancy_type") == "TWO_IPS_REDUNDANCY"

    toward_aws = [mocks.resources[f"google-aws-vpn-tunnel-{i}"].inputs for i in range(1, 5)]
    assert [value(t, "vpn_gateway_interface") for t in toward_aws] == [0, 0, 1, 1]
    assert [value(t, "peer_external_gateway_interface") for t in toward_aws] == [0, 1, 2, 3]


def test_azure_gateway_owns_every_apipa_address(make_config, monkeypatch):
    mocks, _, _, _ = register(make_config("prod"), monkeypatch)

    gateway = mocks.resources["azure-vpn-gateway"].inputs
    assert value(gateway, "active_active") is True
    peering = value(value(gateway, "bgp_settings"), "peering_addresses")
    assert [
        (value(p, "ip_configuration_name"), value(p, "apipa_addresses")) for p in peering
    ] == [
        ("vnetGatewayConfig-1", ["169.254.21.2", "169.254.21.6", "169.254.22.2"]),
        ("vnetGatewayConfig-2", ["169.254.21.10", "169.254.21.14", "169.254.22.10"]),
    ]

    local_gateway = mocks.resources["azure-aws-local-gateway-0"].inputs
    assert value(value(local_gateway, "bgp_settings"), "bgp_peering_address") == "169.254.21.1"


def test_unsupported_kind_is_rejected(make_config):
    with pytest.raises(ProviderRejectionError, match="unsupported resource kind"):
        PulumiEngine(make_config("dev")).create(ResourceRequest(kind="gcp:unknown", name="mystery"))
