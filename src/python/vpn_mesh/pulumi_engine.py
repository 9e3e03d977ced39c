"""Provisioning engine backed by a running Pulumi program."""

import logging
from typing import Optional

import pulumi
import pulumi_aws as aws
import pulumi_azure as azure
import pulumi_gcp as gcp

from .config import MeshConfig
from .engine import ProvisioningEngine, ResourceHandle, ResourceRequest
from .errors import ProviderRejectionError
from .mappers import MAPPERS
from .models import Provider

LOG = logging.getLogger(__name__)


class PulumiEngine(ProvisioningEngine):
    """Registers mesh resources with the Pulumi engine.

    Must be used inside a Pulumi program.  Attribute values in the returned
    handles are ``pulumi.Output`` objects; requests that the cloud provider
    rejects fail when the stack is applied, not at registration time.
    """

    def __init__(self, config: MeshConfig) -> None:
        self.config = config
        self._providers: dict[str, pulumi.ProviderResource] = {}
        self._handles: dict[str, ResourceHandle] = {}

    def create(self, request: ResourceRequest) -> ResourceHandle:
        existing = self._handles.get(request.name)
        if existing is not None:
            if existing.kind != request.kind:
                raise ProviderRejectionError(
                    request.kind, request.name, "a different resource with this name already exists"
                )
            return existing

        mapper = MAPPERS.get(request.kind)
        if mapper is None:
            raise ProviderRejectionError(request.kind, request.name, "unsupported resource kind")

        opts = pulumi.ResourceOptions(
            provider=self._provider(request.provider),
            depends_on=[handle.resource for handle in request.depends_on if handle.resource is not None],
        )
        resource, attributes = mapper(request.name, dict(request.properties), opts)
        handle = ResourceHandle(kind=request.kind, name=request.name, attributes=attributes, resource=resource)
        self._handles[request.name] = handle
        LOG.debug("Registered %s '%s'", request.kind, request.name)
        return handle

    def get(self, name: str) -> Optional[ResourceHandle]:
        return self._handles.get(name)

    def _provider(self, prefix: str) -> Optional[pulumi.ProviderResource]:
        if prefix not in self._providers:
            self._providers[prefix] = self._create_provider(prefix)
        return self._providers[prefix]

    def _create_provider(self, prefix: str) -> pulumi.ProviderResource:
        """Explicit provider per cloud, configured from the mesh networks."""
        if prefix == "aws":
            return aws.Provider(
                "vpn-mesh-aws",
                region=self._region(Provider.AWS),
            )
        if prefix == "gcp":
            return gcp.Provider(
                "vpn-mesh-gcp",
                project=self.config.google.project,
                region=self._region(Provider.GOOGLE),
            )
        if prefix == "azure":
            return azure.Provider(
                "vpn-mesh-azure",
                features=azure.ProviderFeaturesArgs(),
            )
        raise ValueError(f"Unknown provider prefix: {prefix}")

    def _region(self, provider: Provider) -> Optional[str]:
        network = self.config.networks.get(provider)
        return network.region if network else None
