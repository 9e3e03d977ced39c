"""Per-provider builders, selected by provider and topology."""

from ..models import Gateway, Provider
from .aws import AwsConnectionBuilder, AwsGatewayFactory
from .azure import azure_gateway_factory, azure_tunnel_builder
from .google import google_gateway_factory, google_tunnel_builder


def create_gateway_factory(provider: Provider, config, engine):
    """Return the gateway factory for ``provider`` under the configured topology."""
    if provider is Provider.AWS:
        return AwsGatewayFactory(config, engine)
    if provider is Provider.GOOGLE:
        return google_gateway_factory(config, engine)
    if provider is Provider.AZURE:
        return azure_gateway_factory(config, engine)
    raise ValueError(f"Unknown provider: {provider}")


def create_tunnel_builder(provider: Provider, config, engine, gateway: Gateway):
    """Return the builder that creates ``provider``'s side of a link.

    AWS builds VPN connections rather than tunnels, so it has its own
    :class:`AwsConnectionBuilder`; this covers Google and Azure.
    """
    if provider is Provider.GOOGLE:
        return google_tunnel_builder(config, engine, gateway)
    if provider is Provider.AZURE:
        return azure_tunnel_builder(config, engine, gateway)
    raise ValueError(f"{provider.value} has no tunnel builder")


__all__ = [
    "AwsConnectionBuilder",
    "AwsGatewayFactory",
    "create_gateway_factory",
    "create_tunnel_builder",
]
