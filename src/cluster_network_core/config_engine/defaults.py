"""Fill unset configuration fields.

``fill_defaults`` never mutates its arguments: it deep-copies ``next`` and
returns the defaulted copy. Fields that must not silently change after
install (MTU, fixed ports, internal subnets) are taken from ``previous``
when ``next`` leaves them unset, and are computed fresh only when there is
no previous value for the same backend.
"""
import copy
import logging
from typing import Optional

from ..backends import BackendRegistry, default_registry
from ..config.schema import KubeProxyConfig, NetworkSpec
from ..utils.ippool import parse_cidr
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)

DEFAULT_LOG_LEVEL = "Normal"


class ConfigDefaulter:
    """Compute the applied configuration from user intent."""

    def __init__(self, registry: Optional[BackendRegistry] = None):
        self.registry = registry or default_registry()

    @timed("fill_defaults")
    def fill_defaults(
        self,
        next: NetworkSpec,
        previous: Optional[NetworkSpec] = None,
        host_mtu: Optional[int] = None,
    ) -> NetworkSpec:
        """
        Return a defaulted copy of ``next``.

        Args:
            next: Desired configuration (left untouched)
            previous: Last applied configuration, None on first install
            host_mtu: Probed host MTU, only needed when an MTU must be computed

        Returns:
            New NetworkSpec with every default filled

        Raises:
            UnsupportedBackendError: If the network type is unknown
            HostMTURequiredError: If an MTU must be computed and host_mtu is None
        """
        spec = copy.deepcopy(next)
        backend = self.registry.resolve(spec.network_type)

        if spec.disable_multi_network is None:
            spec.disable_multi_network = False
        if spec.use_multi_network_policy is None:
            spec.use_multi_network_policy = False
        if not spec.log_level:
            spec.log_level = DEFAULT_LOG_LEVEL

        if spec.deploy_kube_proxy is None:
            spec.deploy_kube_proxy = not backend.provides_service_proxy
        if spec.deploy_kube_proxy:
            self._fill_kube_proxy(spec)

        backend.fill_defaults(spec, previous, host_mtu)
        return spec

    def _fill_kube_proxy(self, spec: NetworkSpec) -> None:
        """Bind kube-proxy to the wildcard address of the primary family."""
        if spec.kube_proxy_config is None:
            spec.kube_proxy_config = KubeProxyConfig()
        if spec.kube_proxy_config.bind_address:
            return

        bind_address = "0.0.0.0"
        if spec.cluster_network:
            try:
                if parse_cidr(spec.cluster_network[0].cidr).version == 6:
                    bind_address = "::"
            except ValueError:
                logger.debug(
                    f"Unparseable clusterNetwork {spec.cluster_network[0].cidr}, "
                    f"binding kube-proxy to IPv4"
                )
        spec.kube_proxy_config.bind_address = bind_address


def fill_defaults(
    next: NetworkSpec,
    previous: Optional[NetworkSpec] = None,
    host_mtu: Optional[int] = None,
    registry: Optional[BackendRegistry] = None,
) -> NetworkSpec:
    """Return a defaulted copy of ``next`` using the given (or built-in) backends."""
    return ConfigDefaulter(registry).fill_defaults(next, previous, host_mtu)


def need_mtu_probe(previous: Optional[NetworkSpec], next: NetworkSpec,
                   registry: Optional[BackendRegistry] = None) -> bool:
    """True if defaulting ``next`` will need a probed host MTU."""
    backend = (registry or default_registry()).get(next.network_type)
    if backend is None:
        return False
    if backend.mtu(next) is not None:
        return False
    if previous is not None and previous.network_type == next.network_type:
        return backend.mtu(previous) is None
    return True
