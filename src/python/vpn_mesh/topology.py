"""Topology selection."""

from .models import Topology

# Environment that runs the cheaper single-tunnel, static-route mesh
DEVELOPMENT_ENVIRONMENT = "dev"


def select_topology(environment: str) -> Topology:
    """Pick the connectivity mode for the whole mesh.

    Args:
        environment: Environment indicator (e.g., "dev", "prod")

    Returns:
        Topology.SINGLE_TUNNEL for the development environment,
        Topology.HIGH_AVAILABILITY for anything else
    """
    if environment == DEVELOPMENT_ENVIRONMENT:
        return Topology.SINGLE_TUNNEL
    return Topology.HIGH_AVAILABILITY
