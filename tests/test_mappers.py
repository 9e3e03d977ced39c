import pytest

from vpn_mesh import kinds
from vpn_mesh.mappers import MAPPERS


def all_kinds():
    return {value for name, value in vars(kinds).items() if name.isupper() and isinstance(value, str)}


def test_every_kind_has_a_mapper():
    assert set(MAPPERS) == all_kinds()


@pytest.mark.parametrize("kind", sorted(kinds.GATEWAY_KINDS | kinds.TUNNEL_KINDS | kinds.ROUTE_KINDS))
def test_grouped_kinds_are_known(kind):
    assert kind in all_kinds()
    assert callable(MAPPERS[kind])
