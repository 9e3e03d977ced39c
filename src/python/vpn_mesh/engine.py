"""Provisioning engine boundary.

The mesh never talks to a cloud API directly.  Every resource is described as
a :class:`ResourceRequest` and handed to a :class:`ProvisioningEngine`, which
returns a :class:`ResourceHandle` holding the realized attribute values (IDs,
addresses, generated keys).  Attribute values are opaque to the mesh: the
in-memory engine returns plain strings, the Pulumi engine returns
``pulumi.Output`` values.
"""

from __future__ import annotations

import hashlib
import ipaddress
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from . import kinds
from .errors import ProviderRejectionError

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceHandle:
    """A realized resource and its attribute values."""

    kind: str
    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    resource: Any = field(default=None, compare=False, repr=False)

    def __getitem__(self, attribute: str) -> Any:
        try:
            return self.attributes[attribute]
        except KeyError:
            raise KeyError(f"{self.kind} '{self.name}' has no attribute '{attribute}'") from None

    def get(self, attribute: str, default: Any = None) -> Any:
        return self.attributes.get(attribute, default)


@dataclass(frozen=True)
class ResourceRequest:
    """Description of a resource to create."""

    kind: str
    name: str
    properties: Mapping[str, Any] = field(default_factory=dict)
    depends_on: tuple[ResourceHandle, ...] = ()

    @property
    def provider(self) -> str:
        return self.kind.split(":", 1)[0]


class ProvisioningEngine(ABC):
    """Creates resources and reports their realized attributes."""

    @abstractmethod
    def create(self, request: ResourceRequest) -> ResourceHandle:
        """Create the resource described by ``request``.

        Raises:
            ProviderRejectionError: If the request is rejected
        """


def _digest(*parts: str) -> bytes:
    return hashlib.sha256("/".join(parts).encode("utf-8")).digest()


def _public_address(*parts: str) -> str:
    """Stable address in the 198.18.0.0/15 benchmarking range."""
    digest = _digest(*parts)
    return f"198.{18 + digest[0] % 2}.{digest[1]}.{digest[2] % 254 + 1}"


def _inside_addresses(cidr: Optional[str], *parts: str) -> tuple[str, str]:
    """Return (vgw, cgw) inside addresses for a tunnel /30."""
    if cidr is None:
        digest = _digest(*parts)
        cidr = f"169.254.{digest[0] % 254 + 1}.{(digest[1] % 64) * 4}/30"
    hosts = list(ipaddress.ip_network(cidr).hosts())
    return str(hosts[0]), str(hosts[1])


class InMemoryEngine(ProvisioningEngine):
    """Deterministic offline engine.

    Records every create call in order, synthesizes stable attribute values
    from resource names, and returns the existing handle when an identical
    request is replayed so that re-running a mesh only creates what is
    missing.
    """

    def __init__(self, reject: Iterable[str] = (), reject_reason: str = "rejected by provider") -> None:
        self._reject = set(reject)
        self._reject_reason = reject_reason
        self._resources: dict[str, tuple[ResourceRequest, ResourceHandle]] = {}
        self.calls: list[ResourceRequest] = []

    def reject(self, name_or_kind: str) -> None:
        """Reject future requests whose name or kind matches ``name_or_kind``."""
        self._reject.add(name_or_kind)

    def allow(self, name_or_kind: str) -> None:
        self._reject.discard(name_or_kind)

    def create(self, request: ResourceRequest) -> ResourceHandle:
        existing = self._resources.get(request.name)
        if existing is not None:
            previous, handle = existing
            if previous.kind == request.kind and dict(previous.properties) == dict(request.properties):
                LOG.debug("Reusing %s '%s'", request.kind, request.name)
                return handle
            raise ProviderRejectionError(
                request.kind, request.name, "a different resource with this name already exists"
            )

        if request.name in self._reject or request.kind in self._reject:
            LOG.warning("Rejecting %s '%s'", request.kind, request.name)
            raise ProviderRejectionError(request.kind, request.name, self._reject_reason)

        for dependency in request.depends_on:
            if dependency.name not in self._resources:
                raise ProviderRejectionError(
                    request.kind,
                    request.name,
                    f"depends on unknown resource '{dependency.name}'",
                )

        handle = ResourceHandle(
            kind=request.kind,
            name=request.name,
            attributes=self._synthesize(request),
        )
        self._resources[request.name] = (request, handle)
        self.calls.append(request)
        LOG.debug("Created %s '%s'", request.kind, request.name)
        return handle

    def get(self, name: str) -> Optional[ResourceHandle]:
        entry = self._resources.get(name)
        return entry[1] if entry else None

    def calls_of(self, *kind: str) -> list[ResourceRequest]:
        return [call for call in self.calls if call.kind in kind]

    def index_of(self, name: str) -> int:
        for index, call in enumerate(self.calls):
            if call.name == name:
                return index
        raise KeyError(name)

    def _synthesize(self, request: ResourceRequest) -> dict[str, Any]:
        props = request.properties
        name = request.name
        attributes: dict[str, Any] = {
            "id": f"{request.kind}/{name}",
            "name": props.get("name", name),
        }

        if request.kind == kinds.GCP_ADDRESS:
            attributes["address"] = _public_address(name)
        elif request.kind == kinds.GCP_VPN_GATEWAY:
            attributes["self_link"] = f"projects/mesh/regions/default/targetVpnGateways/{attributes['name']}"
        elif request.kind == kinds.GCP_HA_VPN_GATEWAY:
            attributes["interface_addresses"] = [_public_address(name, str(i)) for i in range(2)]
        elif request.kind == kinds.AZURE_PUBLIC_IP:
            attributes["ip_address"] = _public_address(name)
        elif request.kind == kinds.AWS_LOG_GROUP:
            attributes["arn"] = f"arn:aws:logs:mesh:000000000000:log-group:{attributes['name']}"
        elif request.kind == kinds.AWS_VPN_CONNECTION:
            for tunnel in (1, 2):
                vgw, cgw = _inside_addresses(props.get(f"tunnel{tunnel}_inside_cidr"), name, str(tunnel))
                attributes[f"tunnel{tunnel}_address"] = _public_address(name, str(tunnel))
                attributes[f"tunnel{tunnel}_preshared_key"] = _digest(name, "psk", str(tunnel)).hex()[:32]
                attributes[f"tunnel{tunnel}_vgw_inside_address"] = vgw
                attributes[f"tunnel{tunnel}_cgw_inside_address"] = cgw

        return attributes
