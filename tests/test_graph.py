import pytest

from vpn_mesh.errors import DependencyNotReadyError
from vpn_mesh.graph import DependencyGraph, Step


def noop(inputs):
    return None


def build(*edges):
    graph = DependencyGraph()
    for key, depends_on in edges:
        graph.add(Step(key, noop, tuple(depends_on)))
    return graph


def test_order_respects_dependencies_and_insertion():
    graph = build(
        ("gateway:aws", []),
        ("gateway:google", []),
        ("aws-google:tunnels", ["gateway:aws", "gateway:google"]),
        ("aws-google:routes", ["aws-google:tunnels"]),
    )

    keys = [step.key for step in graph.order()]

    assert keys == ["gateway:aws", "gateway:google", "aws-google:tunnels", "aws-google:routes"]


def test_duplicate_step():
    graph = build(("gateway:aws", []))

    with pytest.raises(DependencyNotReadyError, match="twice"):
        graph.add(Step("gateway:aws", noop))


def test_unknown_dependency():
    graph = build(("aws-google:tunnels", ["gateway:aws"]))

    with pytest.raises(DependencyNotReadyError, match="undefined"):
        graph.validate()


def test_cycle():
    graph = build(("a", ["b"]), ("b", ["a"]))

    with pytest.raises(DependencyNotReadyError, match="cycle"):
        graph.validate()


def test_descendants():
    graph = build(
        ("gateway:google", []),
        ("aws-google:tunnels", ["gateway:google"]),
        ("aws-google:routes", ["aws-google:tunnels"]),
        ("gateway:azure", []),
    )

    assert graph.descendants("gateway:google") == {"aws-google:tunnels", "aws-google:routes"}
    assert graph.descendants("gateway:azure") == set()
