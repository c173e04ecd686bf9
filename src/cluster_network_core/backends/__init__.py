"""Default-network backends and their registry."""
from typing import Optional

from .base import NetworkBackend, HostMTURequiredError
from .openshift_sdn import OpenShiftSDNBackend
from .ovn_kubernetes import OVNKubernetesBackend

__all__ = [
    "NetworkBackend",
    "HostMTURequiredError",
    "OpenShiftSDNBackend",
    "OVNKubernetesBackend",
    "UnsupportedBackendError",
    "BackendRegistry",
    "BACKEND_TYPES",
    "default_registry",
]

# Backend type registry
BACKEND_TYPES = {
    "OVNKubernetes": OVNKubernetesBackend,
    "OpenShiftSDN": OpenShiftSDNBackend,
}


class UnsupportedBackendError(ValueError):
    """The default network type has no registered backend."""

    def __init__(self, network_type: str, known: list[str]):
        self.network_type = network_type
        self.known = known
        super().__init__(
            f"unsupported default network type {network_type!r}, "
            f"supported types: {', '.join(known)}"
        )


class BackendRegistry:
    """Maps a default network type to its backend capabilities."""

    def __init__(self, backends: Optional[dict[str, NetworkBackend]] = None):
        if backends is None:
            backends = {name: cls() for name, cls in BACKEND_TYPES.items()}
        self._backends = dict(backends)

    def resolve(self, network_type: str) -> NetworkBackend:
        """
        Look up the backend for a network type.

        Raises:
            UnsupportedBackendError: If the type is not registered
        """
        backend = self._backends.get(network_type)
        if backend is None:
            raise UnsupportedBackendError(network_type, self.types())
        return backend

    def get(self, network_type: str) -> Optional[NetworkBackend]:
        """Like resolve(), but None for unknown types."""
        return self._backends.get(network_type)

    def types(self) -> list[str]:
        return sorted(self._backends)

    def __contains__(self, network_type: str) -> bool:
        return network_type in self._backends


def default_registry() -> BackendRegistry:
    """A registry with every built-in backend."""
    return BackendRegistry()
