"""Semantic validation of proposed network configurations.

Catches conflicting address ranges and unsupported settings before any
change is accepted. Every violation is collected, not just the first.
"""
import ipaddress
import json
import logging
import re
from typing import Optional

from ..backends import BackendRegistry, UnsupportedBackendError, default_registry
from ..config.schema import (
    AdditionalNetworkDefinition,
    AdditionalNetworkType,
    IPAMConfig,
    IPAMType,
    KubeProxyConfig,
    MacvlanMode,
    MigrationMode,
    NetworkSpec,
    StaticIPAMConfig,
)
from ..config.settings import OperatorSettings
from ..utils.ippool import IPPool, OverlapError, parse_cidr
from ..utils.logging_config import timed
from .schema import ValidationResult

logger = logging.getLogger(__name__)

# Go-style durations as accepted by kube-proxy ("30s", "1m30s", "250ms")
DURATION_PATTERN = re.compile(r"^(\d+(\.\d+)?(ns|us|µs|ms|s|m|h))+$")

# kube-proxy flags whose values are fixed by the monitoring stack
FIXED_PROXY_ARGUMENTS = {
    "metrics-port": "9101",
    "healthz-port": "10256",
}

# Bind addresses the defaulter itself fills in
WILDCARD_BIND_ADDRESSES = ("0.0.0.0", "::")


class ConfigValidator:
    """Validate a network configuration for semantic errors."""

    def __init__(
        self,
        registry: Optional[BackendRegistry] = None,
        settings: Optional[OperatorSettings] = None,
    ):
        """
        Initialize validator.

        Args:
            registry: Backend registry (defaults to the built-in backends)
            settings: Operator settings, for the dual-stack platform list
        """
        self.registry = registry or default_registry()
        self.settings = settings or OperatorSettings()

    @timed("validate")
    def validate(self, spec: NetworkSpec, platform_type: Optional[str] = None) -> ValidationResult:
        """
        Validate a network configuration.

        Performs checks:
        - ServiceNetwork and ClusterNetwork counts, syntax and families
        - Pairwise non-overlap of all address blocks
        - hostPrefix bounds
        - Dual-stack platform support
        - Migration directive
        - Additional networks
        - kube-proxy options
        - Backend-specific rules

        Args:
            spec: The configuration to validate
            platform_type: Platform from the bootstrap snapshot; None skips
                the dual-stack platform check

        Returns:
            ValidationResult with valid flag, errors, and warnings
        """
        errors: list[str] = []
        warnings: list[str] = []

        backend = None
        try:
            backend = self.registry.resolve(spec.network_type)
        except UnsupportedBackendError as e:
            errors.append(str(e))

        self._validate_ip_pools(spec, backend, errors)
        self._validate_dual_stack_platform(spec, platform_type, errors, warnings)
        self._validate_migration(spec, errors)
        self._validate_multi_network(spec, errors, warnings)
        self._validate_additional_networks(spec, errors)
        self._validate_kube_proxy(spec, backend, errors)

        if backend is not None:
            errors.extend(backend.validate(spec))

        if errors:
            logger.info(f"Configuration rejected with {len(errors)} error(s)")
            for error in errors:
                logger.debug(f"  validation error: {error}")

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )

    def _validate_ip_pools(
        self,
        spec: NetworkSpec,
        backend,
        errors: list[str],
    ) -> None:
        """Check network counts, families, hostPrefix bounds and overlaps."""
        pool = IPPool()
        service_v4 = service_v6 = False
        cluster_v4 = cluster_v6 = False

        for cidr in spec.service_network:
            try:
                network = parse_cidr(cidr)
            except ValueError:
                errors.append(f"could not parse spec.serviceNetwork {cidr}")
                continue
            if network.version == 4:
                service_v4 = True
            else:
                service_v6 = True
            try:
                pool.add(network)
            except OverlapError as e:
                errors.append(
                    f"Whole or subset of ServiceNetwork CIDR {cidr} is already in use: {e}"
                )

        if len(spec.service_network) == 0:
            errors.append("spec.serviceNetwork must have at least 1 entry")
        elif len(spec.service_network) == 2 and not (service_v4 and service_v6):
            errors.append("spec.serviceNetwork must contain at most one IPv4 and one IPv6 network")
        elif len(spec.service_network) > 2:
            errors.append("spec.serviceNetwork must contain at most one IPv4 and one IPv6 network")

        uses_host_prefix = backend is not None and backend.uses_host_prefix
        for entry in spec.cluster_network:
            try:
                network = parse_cidr(entry.cidr)
            except ValueError:
                errors.append(f"could not parse spec.clusterNetwork {entry.cidr}")
                continue
            if network.version == 4:
                cluster_v4 = True
            else:
                cluster_v6 = True

            if uses_host_prefix or entry.host_prefix != 0:
                if entry.host_prefix < network.prefixlen:
                    errors.append(
                        f"hostPrefix {entry.host_prefix} is larger than its cidr {entry.cidr}"
                    )
                if entry.host_prefix > network.max_prefixlen - 2:
                    errors.append(
                        f"hostPrefix {entry.host_prefix} is too small, "
                        f"must be a /{network.max_prefixlen - 2} or larger"
                    )

            try:
                pool.add(network)
            except OverlapError as e:
                errors.append(
                    f"Whole or subset of ClusterNetwork CIDR {entry.cidr} is already in use: {e}"
                )

        if len(spec.cluster_network) < 1:
            errors.append("spec.clusterNetwork must have at least 1 entry")

        if not errors and (cluster_v4 != service_v4 or cluster_v6 != service_v6):
            errors.append(
                "spec.clusterNetwork and spec.serviceNetwork must either both be IPv4-only, "
                "both be IPv6-only, or both be dual-stack"
            )

    def _validate_dual_stack_platform(
        self,
        spec: NetworkSpec,
        platform_type: Optional[str],
        errors: list[str],
        warnings: list[str],
    ) -> None:
        """Dual-stack is only supported on some platforms.

        None means no bootstrap snapshot was given and the check is skipped.
        An empty platform from a snapshot is not a supported platform.
        """
        if not is_dual_stack(spec):
            return
        if platform_type is None:
            warnings.append("platform type unknown, dual-stack platform support not checked")
            return
        if platform_type not in self.settings.dual_stack_platforms:
            platform = platform_type or "unknown platform"
            errors.append(f"{platform} does not allow dual-stack cluster")

    def _validate_migration(self, spec: NetworkSpec, errors: list[str]) -> None:
        """Check the migration directive, if any."""
        migration = spec.migration
        if migration is None:
            return

        if migration.network_type and migration.network_type not in self.registry:
            errors.append(
                f"network type migration to {migration.network_type} is not supported"
            )

        valid_modes = {"", MigrationMode.LIVE.value, MigrationMode.OFFLINE.value}
        if migration.mode not in valid_modes:
            errors.append(f"invalid migration mode {migration.mode!r}")

        if migration.mode == MigrationMode.LIVE and not migration.network_type:
            errors.append("live migration mode requires migration.network_type")

    def _validate_multi_network(
        self,
        spec: NetworkSpec,
        errors: list[str],
        warnings: list[str],
    ) -> None:
        """Additional networks need the multi-network plugin."""
        if not spec.disable_multi_network:
            return
        if spec.additional_networks:
            errors.append("additional networks cannot be specified without deploying Multus")
        if spec.use_multi_network_policy:
            warnings.append("use_multi_network_policy has no effect when multi-network is disabled")

    def _validate_additional_networks(self, spec: NetworkSpec, errors: list[str]) -> None:
        """Check each additional network definition by its type."""
        for network in spec.additional_networks:
            if network.type == AdditionalNetworkType.RAW:
                errors.extend(_raw_network_errors(network))
            elif network.type == AdditionalNetworkType.SIMPLE_MACVLAN:
                errors.extend(_macvlan_network_errors(network))
            else:
                errors.append(f"unknown or unsupported NetworkType: {network.type}")

    def _validate_kube_proxy(
        self,
        spec: NetworkSpec,
        backend,
        errors: list[str],
    ) -> None:
        """Check kube-proxy options when they are set."""
        conf = spec.kube_proxy_config
        if conf is None:
            return

        if backend is not None and not backend.accepts_kube_proxy_config:
            if not is_empty_kube_proxy_config(conf):
                errors.append(
                    f"network type {spec.network_type!r} does not allow specifying "
                    f"kube-proxy options"
                )
            return

        if conf.bind_address:
            try:
                ipaddress.ip_address(conf.bind_address)
            except ValueError:
                errors.append(f"invalid BindAddress {conf.bind_address}")

        if conf.iptables_sync_period and not is_duration(conf.iptables_sync_period):
            errors.append(
                f"IptablesSyncPeriod is not a valid duration ({conf.iptables_sync_period})"
            )

        for name in sorted(FIXED_PROXY_ARGUMENTS):
            required = FIXED_PROXY_ARGUMENTS[name]
            values = conf.proxy_arguments.get(name)
            if values is not None and values != [required]:
                errors.append(f"kube-proxy --{name} must be {required}")


def is_empty_kube_proxy_config(conf: KubeProxyConfig) -> bool:
    """True if nothing beyond a wildcard bind address is set."""
    if conf.iptables_sync_period or conf.proxy_arguments:
        return False
    return not conf.bind_address or conf.bind_address in WILDCARD_BIND_ADDRESSES


def _raw_network_errors(network: AdditionalNetworkDefinition) -> list[str]:
    errors = []
    if not network.name:
        errors.append("Additional Network Name cannot be nil")
    try:
        parsed = json.loads(network.raw_cni_config)
    except ValueError:
        parsed = None
    if not isinstance(parsed, dict):
        errors.append(f"Failed to parse RawCNIConfig of additional network {network.name!r}")
    return errors


def _macvlan_network_errors(network: AdditionalNetworkDefinition) -> list[str]:
    errors = []
    if not network.name:
        errors.append("Additional Network Name cannot be nil")

    macvlan = network.simple_macvlan_config
    if macvlan is None:
        return errors
    if macvlan.ipam_config is not None:
        errors.extend(_ipam_errors(macvlan.ipam_config))
    if macvlan.mode and macvlan.mode not in {m.value for m in MacvlanMode}:
        errors.append(f"invalid Macvlan mode: {macvlan.mode}")
    return errors


def _ipam_errors(ipam: IPAMConfig) -> list[str]:
    if ipam.type == IPAMType.DHCP:
        return []
    if ipam.type != IPAMType.STATIC:
        return [f"invalid IPAM type: {ipam.type}"]

    errors = []
    static = ipam.static_ipam_config or StaticIPAMConfig()
    for address in static.addresses:
        try:
            parse_cidr(address.address)
        except ValueError:
            errors.append(f"invalid static address: {address.address}")
        if address.gateway and not _is_ip(address.gateway):
            errors.append(f"invalid gateway: {address.gateway}")
    for route in static.routes:
        try:
            parse_cidr(route.destination)
        except ValueError:
            errors.append(f"invalid route destination: {route.destination}")
        if route.gateway and not _is_ip(route.gateway):
            errors.append(f"invalid gateway: {route.gateway}")
    return errors


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def is_duration(value: str) -> bool:
    return value == "0" or DURATION_PATTERN.match(value) is not None


def is_dual_stack(spec: NetworkSpec) -> bool:
    """True if either network carries both address families."""
    for cidrs in (spec.service_network, [e.cidr for e in spec.cluster_network]):
        families = set()
        for cidr in cidrs:
            try:
                families.add(parse_cidr(cidr).version)
            except ValueError:
                continue
        if families == {4, 6}:
            return True
    return False
