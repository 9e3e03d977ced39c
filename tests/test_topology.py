import pytest

from vpn_mesh.models import Topology
from vpn_mesh.topology import select_topology


def test_dev_runs_single_tunnel():
    assert select_topology("dev") is Topology.SINGLE_TUNNEL


@pytest.mark.parametrize("environment", ["prod", "stg", "DEV", ""])
def test_other_environments_run_high_availability(environment):
    assert select_topology(environment) is Topology.HIGH_AVAILABILITY


def test_selection_is_deterministic():
    assert {select_topology("prod") for _ in range(10)} == {Topology.HIGH_AVAILABILITY}


def test_only_high_availability_uses_bgp():
    assert Topology.HIGH_AVAILABILITY.uses_bgp
    assert not Topology.SINGLE_TUNNEL.uses_bgp
