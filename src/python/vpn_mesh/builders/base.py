"""Shared plumbing for provider builders."""

import logging
from typing import Any, Iterable, Mapping

from ..config import MeshConfig
from ..engine import ProvisioningEngine, ResourceHandle, ResourceRequest

LOG = logging.getLogger(__name__)


class Builder:
    """Base class holding the config and engine every builder needs."""

    def __init__(self, config: MeshConfig, engine: ProvisioningEngine) -> None:
        self.config = config
        self.engine = engine

    @property
    def topology(self):
        return self.config.topology

    def _create(
        self,
        kind: str,
        name: str,
        properties: Mapping[str, Any],
        depends_on: Iterable[ResourceHandle] = (),
    ) -> ResourceHandle:
        """Submit one resource request to the engine."""
        request = ResourceRequest(
            kind=kind,
            name=name,
            properties={k: v for k, v in properties.items() if v is not None},
            depends_on=tuple(depends_on),
        )
        LOG.debug("Requesting %s '%s'", kind, name)
        return self.engine.create(request)
