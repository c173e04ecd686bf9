"""OpenShift SDN backend rules."""
import logging
from typing import Optional

from ..config.schema import (
    NetworkSpec,
    OpenShiftSDNConfig,
    SDNMode,
    OPENSHIFT_SDN,
)
from .base import (
    NetworkBackend,
    HostMTURequiredError,
    MIN_MTU_IPV4,
    MAX_MTU,
    cluster_families,
    valid_port,
)

logger = logging.getLogger(__name__)

VXLAN_OVERHEAD = 50
DEFAULT_VXLAN_PORT = 4789


def _sdn_config(spec: Optional[NetworkSpec]) -> Optional[OpenShiftSDNConfig]:
    if spec is None or spec.default_network.type != OPENSHIFT_SDN:
        return None
    return spec.default_network.openshift_sdn_config


class OpenShiftSDNBackend(NetworkBackend):
    """VXLAN overlay, IPv4 single-stack only."""

    network_type = OPENSHIFT_SDN
    uses_host_prefix = True
    supports_cluster_network_expansion = False
    provides_service_proxy = True
    # The SDN node process embeds the service proxy
    accepts_kube_proxy_config = True

    def mtu(self, spec: NetworkSpec) -> Optional[int]:
        conf = _sdn_config(spec)
        return conf.mtu if conf else None

    def encap_overhead(self, spec: NetworkSpec) -> int:
        return VXLAN_OVERHEAD

    def min_mtu(self, spec: NetworkSpec) -> int:
        return MIN_MTU_IPV4

    def defaults_applied(self, spec: NetworkSpec) -> bool:
        conf = _sdn_config(spec)
        return (
            conf is not None
            and conf.mtu is not None
            and conf.vxlan_port is not None
            and conf.mode is not None
        )

    def validate(self, spec: NetworkSpec) -> list[str]:
        errors: list[str] = []

        if len(spec.service_network) != 1:
            errors.append("spec.serviceNetwork must have exactly 1 entry for OpenShiftSDN")

        if 6 in cluster_families(spec):
            errors.append("OpenShiftSDN does not support IPv6 in spec.clusterNetwork")

        conf = spec.default_network.openshift_sdn_config
        if conf is None:
            return errors

        if conf.mode:
            valid_modes = {m.value for m in SDNMode}
            if conf.mode not in valid_modes:
                errors.append(
                    f"invalid openshift-sdn mode {conf.mode!r}, "
                    f"must be one of {sorted(valid_modes)}"
                )

        if conf.vxlan_port is not None and not valid_port(conf.vxlan_port):
            errors.append(f"invalid VXLANPort {conf.vxlan_port}")

        if conf.mtu is not None and not MIN_MTU_IPV4 <= conf.mtu <= MAX_MTU:
            errors.append(f"invalid MTU {conf.mtu}")

        if conf.enable_unidling:
            proxy_mode = ""
            if spec.kube_proxy_config is not None:
                modes = spec.kube_proxy_config.proxy_arguments.get("proxy-mode", [])
                proxy_mode = modes[0] if modes else ""
            if proxy_mode not in ("", "iptables"):
                errors.append(f"invalid unidling configuration with proxy mode {proxy_mode}")

        return errors

    def fill_defaults(
        self,
        spec: NetworkSpec,
        previous: Optional[NetworkSpec],
        host_mtu: Optional[int],
    ) -> None:
        if spec.default_network.openshift_sdn_config is None:
            spec.default_network.openshift_sdn_config = OpenShiftSDNConfig()
        conf = spec.default_network.openshift_sdn_config
        prev = _sdn_config(previous)

        if conf.mode is None:
            conf.mode = prev.mode if prev is not None and prev.mode else SDNMode.NETWORK_POLICY.value

        if conf.vxlan_port is None:
            if prev is not None and prev.vxlan_port is not None:
                conf.vxlan_port = prev.vxlan_port
            else:
                conf.vxlan_port = DEFAULT_VXLAN_PORT

        if conf.mtu is None:
            if prev is not None and prev.mtu is not None:
                conf.mtu = prev.mtu
            else:
                if host_mtu is None:
                    raise HostMTURequiredError(self.network_type)
                conf.mtu = host_mtu - VXLAN_OVERHEAD
                logger.info(
                    f"Computed {self.network_type} MTU {conf.mtu} from host MTU {host_mtu}"
                )

        if conf.enable_unidling is None:
            conf.enable_unidling = True

        if conf.use_external_openvswitch is None:
            conf.use_external_openvswitch = False

    def is_change_safe(self, prev: NetworkSpec, next: NetworkSpec) -> list[str]:
        errors: list[str] = []
        pn = _sdn_config(prev) or OpenShiftSDNConfig()
        nn = _sdn_config(next) or OpenShiftSDNConfig()

        if pn.mode != nn.mode:
            errors.append("cannot change openshift-sdn mode")

        if pn.vxlan_port != nn.vxlan_port:
            errors.append("cannot change openshift-sdn vxlanPort")

        errors.extend(self.check_mtu_change(prev, next))

        return errors
