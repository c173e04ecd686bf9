"""Change-safety checks between the applied and the desired configuration.

Rules are evaluated jointly over (previous, next); every violated rule is
reported. Both specs must already be defaulted.
"""
import logging
from typing import Optional

from ..backends import BackendRegistry, default_registry
from ..config.schema import ClusterNetworkEntry, NetworkSpec
from ..config.settings import OperatorSettings
from ..utils.ippool import parse_cidr
from ..utils.logging_config import timed
from .schema import DefaultsNotAppliedError, UnsafeChangeError

logger = logging.getLogger(__name__)


def _family(cidr: str) -> Optional[int]:
    try:
        return parse_cidr(cidr).version
    except ValueError:
        return None


def _sort_key(entry: ClusterNetworkEntry) -> tuple:
    try:
        network = parse_cidr(entry.cidr)
    except ValueError:
        return (0, 0, entry.cidr)
    return (network.version, int(network.network_address), entry.cidr)


class ChangeSafetyChecker:
    """Decide whether moving from one applied configuration to another is permitted."""

    def __init__(
        self,
        registry: Optional[BackendRegistry] = None,
        settings: Optional[OperatorSettings] = None,
    ):
        self.registry = registry or default_registry()
        self.settings = settings or OperatorSettings()

    @timed("is_change_safe")
    def is_change_safe(
        self,
        prev: Optional[NetworkSpec],
        next: NetworkSpec,
        platform_type: Optional[str] = None,
    ) -> Optional[UnsafeChangeError]:
        """
        Check a configuration transition.

        Args:
            prev: Last applied (defaulted) configuration, None on first install
            next: Desired (defaulted) configuration
            platform_type: Platform from the bootstrap snapshot

        Returns:
            None if the change is permitted, otherwise an UnsafeChangeError
            listing every violation

        Raises:
            DefaultsNotAppliedError: If either spec was not defaulted
        """
        if prev is None:
            return None

        self._require_defaults(prev, "previous")
        self._require_defaults(next, "next")

        if prev == next:
            return None

        errors: list[str] = []
        errors.extend(self._check_network_change(prev, next, platform_type))
        errors.extend(self._check_default_network(prev, next))
        errors.extend(self._check_migration(prev, next))

        if prev.disable_multi_network != next.disable_multi_network:
            errors.append("cannot change DisableMultiNetwork")

        if not errors:
            return None

        logger.info(f"Unsafe configuration change: {errors}")
        return UnsafeChangeError(errors)

    def _require_defaults(self, spec: NetworkSpec, which: str) -> None:
        missing = (
            spec.disable_multi_network is None
            or spec.use_multi_network_policy is None
            or spec.deploy_kube_proxy is None
        )
        backend = self.registry.get(spec.network_type)
        if missing or (backend is not None and not backend.defaults_applied(spec)):
            raise DefaultsNotAppliedError(
                f"{which} configuration must be defaulted before checking change safety"
            )

    # --- Address space ---

    def _check_network_change(
        self,
        prev: NetworkSpec,
        next: NetworkSpec,
        platform_type: Optional[str],
    ) -> list[str]:
        service_same = prev.service_network == next.service_network
        cluster_same = prev.cluster_network == next.cluster_network
        if service_same and cluster_same:
            return []

        if prev.migration is not None:
            if not service_same:
                return ["cannot change ServiceNetwork during migration"]
            return []

        if service_same:
            return self._check_cluster_network_change(prev, next)

        if len(next.service_network) == len(prev.service_network) + 1:
            return self._check_dual_stack_conversion(prev, next, platform_type, to_dual=True)
        if len(next.service_network) == len(prev.service_network) - 1:
            return self._check_dual_stack_conversion(prev, next, platform_type, to_dual=False)
        return ["unsupported change to ServiceNetwork"]

    def _check_dual_stack_conversion(
        self,
        prev: NetworkSpec,
        next: NetworkSpec,
        platform_type: Optional[str],
        to_dual: bool,
    ) -> list[str]:
        """Single-stack to dual-stack or back; the primary family never changes."""
        errors: list[str] = []
        direction = "to" if to_dual else "from"

        if platform_type not in self.settings.dual_stack_conversion_platforms:
            errors.append(
                f"{platform_type or 'unknown platform'} does not allow "
                f"conversion {direction} dual-stack cluster"
            )

        if not prev.service_network or not next.service_network or \
                next.service_network[0] != prev.service_network[0]:
            errors.append(
                "cannot change primary ServiceNetwork when migrating to/from dual-stack"
            )

        if to_dual:
            original_family = _family(prev.service_network[0]) if prev.service_network else None
            shared = next.cluster_network[:len(prev.cluster_network)]
            if shared != prev.cluster_network:
                errors.append(
                    "cannot change primary ClusterNetwork when migrating to/from dual-stack"
                )
            for entry in next.cluster_network[len(prev.cluster_network):]:
                if _family(entry.cidr) == original_family:
                    errors.append(
                        "cannot add additional ClusterNetwork values of original IP family "
                        "when migrating to dual stack"
                    )
                    break
        else:
            primary_family = _family(next.service_network[0]) if next.service_network else None
            kept = [e for e in prev.cluster_network if _family(e.cidr) == primary_family]
            if next.cluster_network != kept:
                errors.append(
                    "cannot change primary ClusterNetwork when migrating to/from dual-stack"
                )

        return errors

    def _check_cluster_network_change(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        """Existing ClusterNetwork entries may only be widened."""
        if len(prev.cluster_network) != len(next.cluster_network):
            return ["adding/removing clusterNetwork entries of the same type is not supported"]

        backend = self.registry.get(next.network_type)
        if backend is None or not backend.supports_cluster_network_expansion:
            return [
                f"network type is {next.network_type}. changing clusterNetwork entries "
                f"is only supported for OVNKubernetes"
            ]

        errors: list[str] = []
        prev_sorted = sorted(prev.cluster_network, key=_sort_key)
        next_sorted = sorted(next.cluster_network, key=_sort_key)
        for before, after in zip(prev_sorted, next_sorted):
            if before.host_prefix != after.host_prefix:
                errors.append("modifying a clusterNetwork's hostPrefix value is unsupported")
            try:
                before_net = parse_cidr(before.cidr)
                after_net = parse_cidr(after.cidr)
            except ValueError:
                continue  # rejected by validation
            if before_net.network_address != after_net.network_address:
                errors.append(
                    "modifying IP network value for clusterNetwork CIDR is unsupported"
                )
            if before_net.prefixlen < after_net.prefixlen:
                errors.append(
                    "reducing IP range with a larger CIDR mask for clusterNetwork CIDR "
                    "is unsupported"
                )
        return errors

    # --- Default network and migration ---

    def _check_default_network(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        if prev.network_type != next.network_type:
            if prev.migration is None or not prev.migration.network_type:
                return ["cannot change default network type when not doing migration"]
            if prev.migration.network_type != next.network_type:
                return ["can only change default network type to the target migration network type"]
            return []

        backend = self.registry.get(next.network_type)
        if backend is None:
            return []
        return backend.is_change_safe(prev, next)

    def _check_migration(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        """A started migration keeps its target and mode until it is cleared."""
        if prev.migration is None or next.migration is None:
            return []
        errors: list[str] = []
        if prev.migration.network_type != next.migration.network_type:
            errors.append("cannot change migration network type after migration is started")
        if prev.migration.mode != next.migration.mode:
            errors.append("cannot change migration mode after migration is started")
        return errors


def is_change_safe(
    prev: Optional[NetworkSpec],
    next: NetworkSpec,
    platform_type: Optional[str] = None,
    registry: Optional[BackendRegistry] = None,
    settings: Optional[OperatorSettings] = None,
) -> Optional[UnsafeChangeError]:
    """Module-level shortcut for ChangeSafetyChecker.is_change_safe."""
    return ChangeSafetyChecker(registry, settings).is_change_safe(prev, next, platform_type)
