"""OVN-Kubernetes backend rules."""
import logging
from typing import Optional

from ..config.schema import (
    NetworkSpec,
    OVNKubernetesConfig,
    PolicyAuditConfig,
    IPsecMode,
    OVN_KUBERNETES,
)
from ..utils.ippool import IPPool, OverlapError, parse_cidr
from .base import (
    NetworkBackend,
    HostMTURequiredError,
    MAX_MTU,
    cluster_families,
    valid_port,
)

logger = logging.getLogger(__name__)

GENEVE_OVERHEAD = 100
IPSEC_OVERHEAD = 46  # Transport mode, AES-GCM
DEFAULT_GENEVE_PORT = 6081

# Policy audit defaults
DEFAULT_AUDIT_RATE_LIMIT = 20
DEFAULT_AUDIT_MAX_FILE_SIZE = 50
DEFAULT_AUDIT_MAX_LOG_FILES = 5
DEFAULT_AUDIT_DESTINATION = "null"
DEFAULT_AUDIT_SYSLOG_FACILITY = "local0"

# Internal subnets: field -> (family, default, display name, needs per-node capacity)
INTERNAL_SUBNETS = {
    "v4_internal_join_subnet": (4, "100.64.0.0/16", "JoinSubnet", True),
    "v6_internal_join_subnet": (6, "fd98::/64", "JoinSubnet", True),
    "v4_internal_transit_switch_subnet": (4, "100.88.0.0/16", "TransitSwitchSubnet", True),
    "v6_internal_transit_switch_subnet": (6, "fd97::/64", "TransitSwitchSubnet", True),
    "v4_internal_masquerade_subnet": (4, "169.254.0.0/17", "MasqueradeSubnet", False),
    "v6_internal_masquerade_subnet": (6, "fd69::/112", "MasqueradeSubnet", False),
}

# IPs reserved in every per-node internal subnet: network, broadcast, gateway
RESERVED_SUBNET_ADDRESSES = 3


def _ovn_config(spec: Optional[NetworkSpec]) -> Optional[OVNKubernetesConfig]:
    if spec is None or spec.default_network.type != OVN_KUBERNETES:
        return None
    return spec.default_network.ovn_kubernetes_config


def max_nodes(spec: NetworkSpec, family: int) -> int:
    """Maximum node count the ClusterNetwork entries of one family can serve."""
    total = 0
    for entry in spec.cluster_network:
        try:
            network = parse_cidr(entry.cidr)
        except ValueError:
            continue
        if network.version != family or entry.host_prefix < network.prefixlen:
            continue
        total += 1 << (entry.host_prefix - network.prefixlen)
    return total


class OVNKubernetesBackend(NetworkBackend):
    """Geneve overlay with optional IPsec and hybrid overlay."""

    network_type = OVN_KUBERNETES
    uses_host_prefix = True
    supports_cluster_network_expansion = True
    provides_service_proxy = True
    accepts_kube_proxy_config = False

    def mtu(self, spec: NetworkSpec) -> Optional[int]:
        conf = _ovn_config(spec)
        return conf.mtu if conf else None

    def encap_overhead(self, spec: NetworkSpec) -> int:
        conf = _ovn_config(spec)
        overhead = GENEVE_OVERHEAD
        if conf is not None and conf.ipsec_mode == IPsecMode.FULL:
            overhead += IPSEC_OVERHEAD
        return overhead

    def defaults_applied(self, spec: NetworkSpec) -> bool:
        conf = _ovn_config(spec)
        return conf is not None and conf.mtu is not None and conf.geneve_port is not None

    # --- Validation ---

    def validate(self, spec: NetworkSpec) -> list[str]:
        errors: list[str] = []
        conf = spec.default_network.ovn_kubernetes_config
        if conf is None:
            return errors

        min_mtu = self.min_mtu(spec)
        if conf.mtu is not None and not min_mtu <= conf.mtu <= MAX_MTU:
            errors.append(f"invalid MTU {conf.mtu}")

        if conf.geneve_port is not None and not valid_port(conf.geneve_port):
            errors.append(f"invalid GenevePort {conf.geneve_port}")

        if conf.ipsec_config is not None and conf.ipsec_config.mode:
            valid_modes = {m.value for m in IPsecMode}
            if conf.ipsec_config.mode not in valid_modes:
                errors.append(
                    f"invalid IPsec mode {conf.ipsec_config.mode!r}, "
                    f"must be one of {sorted(valid_modes)}"
                )

        hybrid = conf.hybrid_overlay_config
        if hybrid is not None:
            for entry in hybrid.hybrid_cluster_network:
                try:
                    parse_cidr(entry.cidr)
                except ValueError:
                    errors.append(f"could not parse hybridClusterNetwork {entry.cidr}")
            port = hybrid.hybrid_overlay_vxlan_port
            if port is not None and not valid_port(port):
                errors.append(f"invalid HybridOverlayVXLANPort {port}")

        audit = conf.policy_audit_config
        if audit is not None:
            for name in ("rate_limit", "max_file_size", "max_log_files"):
                value = getattr(audit, name)
                if value is not None and value < 0:
                    errors.append(f"policy audit {name} must not be negative, got {value}")

        errors.extend(self._validate_internal_subnets(spec, conf))
        return errors

    def _validate_internal_subnets(
        self,
        spec: NetworkSpec,
        conf: OVNKubernetesConfig,
    ) -> list[str]:
        """Internal subnets must match a cluster family, fit every node and not overlap."""
        errors: list[str] = []
        families: set[int] = set()
        pool = IPPool()

        for cidr in [e.cidr for e in spec.cluster_network] + list(spec.service_network):
            try:
                network = parse_cidr(cidr)
            except ValueError:
                continue  # reported by the generic pool checks
            families.add(network.version)
            try:
                pool.add(network)
            except OverlapError:
                continue  # also reported by the generic pool checks

        for field_name in sorted(INTERNAL_SUBNETS):
            family, _default, display, check_size = INTERNAL_SUBNETS[field_name]
            subnet = getattr(conf, field_name)
            if not subnet:
                continue

            try:
                network = parse_cidr(subnet)
            except ValueError as e:
                errors.append(f"{display} {subnet} is invalid: {e}")
                continue

            if network.version != family:
                errors.append(f"{field_name} {subnet} is not an IPv{family} subnet")
                continue

            if family not in families:
                errors.append(
                    f"{display} {subnet} and ClusterNetwork must have matching IP families"
                )

            if check_size:
                capacity = 1 << (network.max_prefixlen - network.prefixlen)
                if max_nodes(spec, family) >= capacity - RESERVED_SUBNET_ADDRESSES:
                    errors.append(
                        f"{display} {subnet} is not large enough for the maximum "
                        f"number of nodes which can be supported by ClusterNetwork"
                    )

            try:
                pool.add(network)
            except OverlapError as e:
                errors.append(
                    f"Whole or subset of {display} CIDR {subnet} is already in use: {e}"
                )

        return errors

    # --- Defaults ---

    def fill_defaults(
        self,
        spec: NetworkSpec,
        previous: Optional[NetworkSpec],
        host_mtu: Optional[int],
    ) -> None:
        if spec.default_network.ovn_kubernetes_config is None:
            spec.default_network.ovn_kubernetes_config = OVNKubernetesConfig()
        conf = spec.default_network.ovn_kubernetes_config
        prev = _ovn_config(previous)

        if conf.mtu is None:
            if prev is not None and prev.mtu is not None:
                conf.mtu = prev.mtu
            else:
                if host_mtu is None:
                    raise HostMTURequiredError(self.network_type)
                conf.mtu = host_mtu - self.encap_overhead(spec)
                logger.info(
                    f"Computed {self.network_type} MTU {conf.mtu} from host MTU {host_mtu}"
                )

        if conf.geneve_port is None:
            if prev is not None and prev.geneve_port is not None:
                conf.geneve_port = prev.geneve_port
            else:
                conf.geneve_port = DEFAULT_GENEVE_PORT

        if conf.policy_audit_config is None:
            conf.policy_audit_config = PolicyAuditConfig()
        audit = conf.policy_audit_config
        if audit.rate_limit is None:
            audit.rate_limit = DEFAULT_AUDIT_RATE_LIMIT
        if audit.max_file_size is None:
            audit.max_file_size = DEFAULT_AUDIT_MAX_FILE_SIZE
        if audit.max_log_files is None:
            audit.max_log_files = DEFAULT_AUDIT_MAX_LOG_FILES
        if audit.destination is None:
            audit.destination = DEFAULT_AUDIT_DESTINATION
        if audit.syslog_facility is None:
            audit.syslog_facility = DEFAULT_AUDIT_SYSLOG_FACILITY

        families = cluster_families(spec)
        for field_name, (family, default, _display, _size) in INTERNAL_SUBNETS.items():
            if getattr(conf, field_name) or family not in families:
                continue
            prev_value = getattr(prev, field_name) if prev is not None else None
            setattr(conf, field_name, prev_value or default)

    # --- Change safety ---

    def is_change_safe(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        errors: list[str] = []
        pn = _ovn_config(prev) or OVNKubernetesConfig()
        nn = _ovn_config(next) or OVNKubernetesConfig()

        errors.extend(self.check_mtu_change(prev, next))

        if pn.geneve_port != nn.geneve_port:
            errors.append("cannot change ovn-kubernetes genevePort")

        if pn.hybrid_overlay_config is None and nn.hybrid_overlay_config is not None:
            errors.append("cannot start a hybrid overlay network after install time")
        if pn.hybrid_overlay_config is not None and pn.hybrid_overlay_config != nn.hybrid_overlay_config:
            errors.append("cannot edit a running hybrid overlay network")

        if (
            pn.ipsec_config is not None
            and nn.ipsec_config is not None
            and pn.ipsec_config != nn.ipsec_config
        ):
            errors.append("cannot edit IPsec configuration at runtime")

        next_families = cluster_families(next)
        for field_name in sorted(INTERNAL_SUBNETS):
            family = INTERNAL_SUBNETS[field_name][0]
            before = getattr(pn, field_name)
            after = getattr(nn, field_name)
            # Dropping a family drops its internal subnets with it
            if after is None and family not in next_families:
                continue
            if before and before != after:
                errors.append(
                    f"cannot change ovn-kubernetes {field_name} from {before} to {after}"
                )

        return errors
