"""Base abstraction for default-network backends."""
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..config.schema import NetworkSpec
from ..utils.ippool import parse_cidr

logger = logging.getLogger(__name__)

MIN_MTU_IPV4 = 576
MIN_MTU_IPV6 = 1280
MAX_MTU = 65536


class HostMTURequiredError(ValueError):
    """MTU has to be computed but no host MTU was probed."""

    def __init__(self, network_type: str):
        self.network_type = network_type
        super().__init__(
            f"{network_type}: MTU is unset and no previous value exists; "
            f"a probed host MTU is required to compute it"
        )


def cluster_families(spec: NetworkSpec) -> set[int]:
    """IP versions present among the parseable ClusterNetwork entries."""
    families = set()
    for entry in spec.cluster_network:
        try:
            families.add(parse_cidr(entry.cidr).version)
        except ValueError:
            continue
    return families


def cluster_has_ipv6(spec: NetworkSpec) -> bool:
    return 6 in cluster_families(spec)


def valid_port(port: int) -> bool:
    return 1 <= port <= 65535


class NetworkBackend(ABC):
    """Capabilities of one default-network backend.

    Backends are stateless; the registry holds one instance per type.
    ``fill_defaults`` receives a private copy of the spec owned by the
    defaulter and fills it in place.
    """

    network_type: str = ""
    # Backend partitions the cluster network into per-node subnets
    uses_host_prefix: bool = True
    # Existing ClusterNetwork entries may be widened after install
    supports_cluster_network_expansion: bool = False
    # Backend runs its own service proxy, kube-proxy is not deployed
    provides_service_proxy: bool = True
    # Backend honours kube_proxy_config options
    accepts_kube_proxy_config: bool = False

    @abstractmethod
    def validate(self, spec: NetworkSpec) -> list[str]:
        """Backend-specific validation errors."""
        pass

    @abstractmethod
    def fill_defaults(
        self,
        spec: NetworkSpec,
        previous: Optional[NetworkSpec],
        host_mtu: Optional[int],
    ) -> None:
        """Fill unset backend fields, preferring values from ``previous``.

        Raises:
            HostMTURequiredError: If the MTU must be computed without a host MTU
        """
        pass

    @abstractmethod
    def is_change_safe(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        """Errors for unsafe backend changes between two defaulted specs."""
        pass

    @abstractmethod
    def mtu(self, spec: NetworkSpec) -> Optional[int]:
        """Configured pod-network MTU."""
        pass

    @abstractmethod
    def encap_overhead(self, spec: NetworkSpec) -> int:
        """Bytes of encapsulation added to each pod packet."""
        pass

    @abstractmethod
    def defaults_applied(self, spec: NetworkSpec) -> bool:
        """True if ``spec`` has been through ``fill_defaults``."""
        pass

    def min_mtu(self, spec: NetworkSpec) -> int:
        return MIN_MTU_IPV6 if cluster_has_ipv6(spec) else MIN_MTU_IPV4

    def max_mtu(self, spec: NetworkSpec) -> int:
        return MAX_MTU

    def check_mtu_change(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        """
        Check an MTU change against the migration directive.

        Without ``migration.mtu`` the MTU must not change. With it, the
        network ``from`` value must match the applied MTU, both target
        values must be in range, and the machine MTU must leave room for
        the encapsulation overhead.
        """
        errors: list[str] = []
        prev_mtu = self.mtu(prev)
        next_mtu = self.mtu(next)

        migration = next.migration.mtu if next.migration else None
        prev_migration = prev.migration.mtu if prev.migration else None
        if migration is None:
            # Clearing a finished migration commits its network target
            completes_migration = (
                prev_migration is not None
                and prev_migration.network is not None
                and prev_migration.network.to_mtu == next_mtu
            )
            if prev_mtu != next_mtu and not completes_migration:
                errors.append(
                    f"cannot change {self.network_type} MTU without migration"
                )
            return errors

        network = migration.network
        machine = migration.machine
        if (
            network is None or machine is None
            or network.from_mtu is None or network.to_mtu is None
            or machine.to_mtu is None
        ):
            errors.append(
                "invalid Migration.MTU, at least one of the required fields is missing"
            )
            return errors

        # From only has to match while it is being introduced or changed
        prev_from = (
            prev_migration.network.from_mtu
            if prev_migration and prev_migration.network else None
        )
        if prev_from != network.from_mtu and network.from_mtu != prev_mtu:
            errors.append(
                f"invalid Migration.MTU.Network.From({network.from_mtu}) "
                f"not equal to the currently applied MTU({prev_mtu})"
            )

        min_mtu = self.min_mtu(next)
        max_mtu = self.max_mtu(next)
        if not min_mtu <= network.to_mtu <= max_mtu:
            errors.append(
                f"invalid Migration.MTU.Network.To({network.to_mtu}), "
                f"has to be in range: {min_mtu}-{max_mtu}"
            )
        if not min_mtu <= machine.to_mtu <= max_mtu:
            errors.append(
                f"invalid Migration.MTU.Machine.To({machine.to_mtu}), "
                f"has to be in range: {min_mtu}-{max_mtu}"
            )

        required = network.to_mtu + self.encap_overhead(next)
        if machine.to_mtu < required:
            errors.append(
                f"invalid Migration.MTU.Machine.To({machine.to_mtu}), "
                f"has to be at least {required}"
            )

        return errors

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.network_type})"
