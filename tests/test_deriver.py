import pytest

from vpn_mesh.builders import AwsConnectionBuilder, create_gateway_factory
from vpn_mesh.deriver import derive, expected_tunnel_count
from vpn_mesh.engine import ResourceHandle
from vpn_mesh.errors import ConfigurationError, DependencyNotReadyError, InterfaceCountError
from vpn_mesh.models import (
    ALL_PAIRS,
    AwsTunnelParameters,
    AzureTunnelParameters,
    Gateway,
    GoogleTunnelParameters,
    Provider,
    Topology,
)

AWS_GOOGLE, AWS_AZURE, GOOGLE_AZURE = ALL_PAIRS


def aws_connections(config, engine, pair):
    peer = pair.other(Provider.AWS)
    aws_gateway = create_gateway_factory(Provider.AWS, config, engine).create()
    peer_gateway = create_gateway_factory(peer, config, engine).create()
    params = derive(peer_gateway, Provider.AWS, pair, config)
    return AwsConnectionBuilder(config, engine).build(aws_gateway, params)


@pytest.mark.parametrize(
    "pair, topology, expected",
    [
        (AWS_GOOGLE, Topology.SINGLE_TUNNEL, 2),
        (AWS_AZURE, Topology.SINGLE_TUNNEL, 2),
        (AWS_GOOGLE, Topology.HIGH_AVAILABILITY, 4),
        (AWS_AZURE, Topology.HIGH_AVAILABILITY, 4),
        (GOOGLE_AZURE, Topology.SINGLE_TUNNEL, 1),
        (GOOGLE_AZURE, Topology.HIGH_AVAILABILITY, 2),
    ],
)
def test_expected_tunnel_count(pair, topology, expected):
    assert expected_tunnel_count(pair, topology) == expected


def test_aws_parameters_from_ha_google_gateway(make_config, engine):
    config = make_config("prod")
    google = create_gateway_factory(Provider.GOOGLE, config, engine).create()

    params = derive(google, Provider.AWS, AWS_GOOGLE, config)

    assert isinstance(params, AwsTunnelParameters)
    assert params.kind is Provider.AWS
    assert len(params.entries) == 4
    assert len(params.connections()) == 2
    assert [c[0].peer_address for c in params.connections()] == list(google.addresses)
    assert not params.static_routes_only
    assert [e.bgp_cidr for e in params.entries] == [
        "169.254.10.0/30",
        "169.254.10.4/30",
        "169.254.10.8/30",
        "169.254.10.12/30",
    ]


def test_aws_parameters_in_single_tunnel_mode(make_config, engine):
    config = make_config("dev")
    azure = create_gateway_factory(Provider.AZURE, config, engine).create()

    params = derive(azure, Provider.AWS, AWS_AZURE, config)

    assert len(params.entries) == 2
    assert len(params.connections()) == 1
    assert params.static_routes_only
    assert all(e.bgp_cidr is None for e in params.entries)


def test_google_parameters_from_aws_map_two_tunnels_per_interface(make_config, engine):
    config = make_config("prod")
    connections = aws_connections(config, engine, AWS_GOOGLE)

    params = derive(connections, Provider.GOOGLE, AWS_GOOGLE, config)

    assert isinstance(params, GoogleTunnelParameters)
    assert [e.local_interface for e in params.entries] == [0, 0, 1, 1]
    assert params.redundancy_type == "FOUR_IPS_REDUNDANCY"
    assert len(set(params.external_interfaces)) == 4
    assert len({e.shared_key for e in params.entries}) == 4
    assert params.entries[0].bgp_local_address == "169.254.10.2"
    assert params.entries[0].bgp_peer_address == "169.254.10.1"


def test_derived_inside_addresses_match_aws_outputs(make_config, engine):
    config = make_config("prod")
    connections = aws_connections(config, engine, AWS_AZURE)

    params = derive(connections, Provider.AZURE, AWS_AZURE, config)

    for entry, endpoint in zip(params.entries, connections.endpoints):
        assert entry.bgp_local_address == endpoint.cgw_inside_address
        assert entry.bgp_peer_address == endpoint.vgw_inside_address


def test_google_azure_parameters_use_configured_key(make_config, engine):
    config = make_config("prod")
    google = create_gateway_factory(Provider.GOOGLE, config, engine).create()
    azure = create_gateway_factory(Provider.AZURE, config, engine).create()

    to_google = derive(azure, Provider.GOOGLE, GOOGLE_AZURE, config)
    to_azure = derive(google, Provider.AZURE, GOOGLE_AZURE, config)

    assert isinstance(to_azure, AzureTunnelParameters)
    assert {e.shared_key for e in to_google.entries + to_azure.entries} == {"google-azure-secret"}
    assert [e.bgp_local_address for e in to_google.entries] == [e.bgp_peer_address for e in to_azure.entries]
    assert to_google.redundancy_type == "TWO_IPS_REDUNDANCY"


def test_single_tunnel_azure_parameters_include_auxiliary_ranges(make_config, engine):
    config = make_config("dev")
    google = create_gateway_factory(Provider.GOOGLE, config, engine).create()

    params = derive(google, Provider.AZURE, GOOGLE_AZURE, config)

    assert params.peer_address_spaces == ("10.1.0.0/16", "10.100.0.0/16", "35.199.192.0/19")


def test_derivation_is_idempotent(make_config, engine):
    config = make_config("prod")
    connections = aws_connections(config, engine, AWS_AZURE)

    first = derive(connections, Provider.AZURE, AWS_AZURE, config)
    second = derive(connections, Provider.AZURE, AWS_AZURE, config)

    assert first == second
    assert repr(first) == repr(second)


def test_too_few_interfaces(make_config):
    config = make_config("prod")
    gateway = Gateway(
        provider=Provider.GOOGLE,
        topology=Topology.HIGH_AVAILABILITY,
        asn=65000,
        handle=ResourceHandle("gcp:ha-vpn-gateway", "google-ha-vpn-gateway"),
        addresses=("198.18.0.1",),
    )

    with pytest.raises(InterfaceCountError):
        derive(gateway, Provider.AWS, AWS_GOOGLE, config)


def test_gateway_built_for_other_topology(make_config):
    config = make_config("prod")
    gateway = Gateway(
        provider=Provider.AZURE,
        topology=Topology.SINGLE_TUNNEL,
        asn=65515,
        handle=ResourceHandle("azure:virtual-network-gateway", "azure-vpn-gateway"),
        addresses=("198.18.0.1", "198.18.0.2"),
    )

    with pytest.raises(ConfigurationError):
        derive(gateway, Provider.GOOGLE, GOOGLE_AZURE, config)


def test_missing_source_is_a_sequencing_defect(make_config):
    with pytest.raises(DependencyNotReadyError):
        derive(None, Provider.GOOGLE, AWS_GOOGLE, make_config("dev"))


def test_aws_endpoints_need_vpn_connections(make_config, engine):
    config = make_config("dev")
    aws_gateway = create_gateway_factory(Provider.AWS, config, engine).create()

    with pytest.raises(DependencyNotReadyError):
        derive(aws_gateway, Provider.GOOGLE, AWS_GOOGLE, config)


def test_source_outside_pair_is_rejected(make_config, engine):
    config = make_config("dev")
    google = create_gateway_factory(Provider.GOOGLE, config, engine).create()

    with pytest.raises(ValueError):
        derive(google, Provider.AZURE, AWS_AZURE, config)
