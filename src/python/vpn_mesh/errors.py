"""Exceptions raised while building the VPN mesh."""


class MeshError(Exception):
    """Base class for mesh provisioning errors."""

    pass


class ConfigurationError(MeshError):
    """Raised when a required input is missing or invalid."""

    pass


class InterfaceCountError(ConfigurationError):
    """Raised when a gateway exposes fewer interfaces than its peer requires."""

    pass


class DependencyNotReadyError(MeshError):
    """Raised when a component runs before its upstream output exists.

    This is a sequencing defect, not a condition to retry.
    """

    pass


class ProviderRejectionError(MeshError):
    """Raised when the provisioning engine rejects a resource request."""

    def __init__(self, kind: str, name: str, reason: str):
        super().__init__(f"{kind} '{name}' was rejected: {reason}")
        self.kind = kind
        self.name = name
        self.reason = reason
