"""Schema definitions for the cluster network configuration.

Desired and previously-applied configurations share the same shape. Fields
left as None are "unset" and are filled by the defaulter.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional


# Network (backend) type names
OVN_KUBERNETES = "OVNKubernetes"
OPENSHIFT_SDN = "OpenShiftSDN"


class IPsecMode(str, Enum):
    """Host-level encryption mode."""
    DISABLED = "Disabled"
    EXTERNAL = "External"   # North-south traffic only
    FULL = "Full"           # East-west and north-south


class SDNMode(str, Enum):
    """OpenShift SDN isolation mode."""
    SUBNET = "Subnet"
    MULTITENANT = "Multitenant"
    NETWORK_POLICY = "NetworkPolicy"


class MigrationMode(str, Enum):
    """How a backend-type migration is carried out. Unset means offline."""
    OFFLINE = "Offline"
    LIVE = "Live"


@dataclass
class ClusterNetworkEntry:
    """One pod address block plus its per-node subnet size."""
    cidr: str
    host_prefix: int = 0


@dataclass
class IPsecConfig:
    """IPsec settings. An empty mode means Full (legacy configs)."""
    mode: str = ""


@dataclass
class HybridOverlayConfig:
    """Hybrid overlay for non-Linux nodes."""
    hybrid_cluster_network: list[ClusterNetworkEntry] = field(default_factory=list)
    hybrid_overlay_vxlan_port: Optional[int] = None


@dataclass
class PolicyAuditConfig:
    """Network policy ACL audit logging."""
    rate_limit: Optional[int] = None
    max_file_size: Optional[int] = None
    max_log_files: Optional[int] = None
    destination: Optional[str] = None
    syslog_facility: Optional[str] = None


@dataclass
class OVNKubernetesConfig:
    """OVN-Kubernetes backend configuration."""
    mtu: Optional[int] = None
    geneve_port: Optional[int] = None
    hybrid_overlay_config: Optional[HybridOverlayConfig] = None
    ipsec_config: Optional[IPsecConfig] = None
    policy_audit_config: Optional[PolicyAuditConfig] = None
    routing_via_host: Optional[bool] = None
    v4_internal_join_subnet: Optional[str] = None
    v6_internal_join_subnet: Optional[str] = None
    v4_internal_transit_switch_subnet: Optional[str] = None
    v6_internal_transit_switch_subnet: Optional[str] = None
    v4_internal_masquerade_subnet: Optional[str] = None
    v6_internal_masquerade_subnet: Optional[str] = None

    @property
    def ipsec_mode(self) -> IPsecMode:
        """Effective IPsec mode."""
        if self.ipsec_config is None:
            return IPsecMode.DISABLED
        if not self.ipsec_config.mode:
            return IPsecMode.FULL
        return IPsecMode(self.ipsec_config.mode)


@dataclass
class OpenShiftSDNConfig:
    """OpenShift SDN backend configuration."""
    mode: Optional[str] = None
    vxlan_port: Optional[int] = None
    mtu: Optional[int] = None
    enable_unidling: Optional[bool] = None
    use_external_openvswitch: Optional[bool] = None


@dataclass
class DefaultNetwork:
    """The cluster's default (pod) network."""
    type: str
    ovn_kubernetes_config: Optional[OVNKubernetesConfig] = None
    openshift_sdn_config: Optional[OpenShiftSDNConfig] = None


@dataclass
class KubeProxyConfig:
    """Options for the standalone kube-proxy."""
    bind_address: Optional[str] = None
    iptables_sync_period: Optional[str] = None
    proxy_arguments: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class MTUMigrationValues:
    """MTU values for one side (network or machine) of an MTU migration."""
    from_mtu: Optional[int] = None
    to_mtu: Optional[int] = None


@dataclass
class MTUMigration:
    """Requested MTU change for the pod network and the host interfaces."""
    network: Optional[MTUMigrationValues] = None
    machine: Optional[MTUMigrationValues] = None


@dataclass
class NetworkMigration:
    """An in-progress multi-step transition.

    ``network_type`` is the backend the cluster is migrating to.
    """
    network_type: str = ""
    mtu: Optional[MTUMigration] = None
    mode: str = ""


class AdditionalNetworkType(str, Enum):
    """Kinds of secondary network attached through the multi-network plugin."""
    RAW = "Raw"
    SIMPLE_MACVLAN = "SimpleMacvlan"


class MacvlanMode(str, Enum):
    BRIDGE = "Bridge"
    PRIVATE = "Private"
    VEPA = "VEPA"
    PASSTHRU = "Passthru"


class IPAMType(str, Enum):
    DHCP = "DHCP"
    STATIC = "Static"


@dataclass
class StaticIPAMAddress:
    address: str
    gateway: Optional[str] = None


@dataclass
class StaticIPAMRoute:
    destination: str
    gateway: Optional[str] = None


@dataclass
class StaticIPAMDNS:
    nameservers: list[str] = field(default_factory=list)
    domain: str = ""
    search: list[str] = field(default_factory=list)


@dataclass
class StaticIPAMConfig:
    """Fixed addresses and routes for a macvlan interface."""
    addresses: list[StaticIPAMAddress] = field(default_factory=list)
    routes: list[StaticIPAMRoute] = field(default_factory=list)
    dns: Optional[StaticIPAMDNS] = None


@dataclass
class IPAMConfig:
    type: str = ""
    static_ipam_config: Optional[StaticIPAMConfig] = None


@dataclass
class SimpleMacvlanConfig:
    """Macvlan interface settings. An unset IPAM config means DHCP."""
    master: str = ""
    ipam_config: Optional[IPAMConfig] = None
    mode: str = ""
    mtu: Optional[int] = None


@dataclass
class AdditionalNetworkDefinition:
    """A secondary network made available to pods.

    Raw networks carry their CNI config verbatim as a JSON document.
    """
    type: str
    name: str = ""
    namespace: str = ""
    raw_cni_config: str = ""
    simple_macvlan_config: Optional[SimpleMacvlanConfig] = None


@dataclass
class NetworkSpec:
    """Complete network configuration for a cluster."""
    cluster_network: list[ClusterNetworkEntry] = field(default_factory=list)
    service_network: list[str] = field(default_factory=list)
    default_network: DefaultNetwork = field(default_factory=lambda: DefaultNetwork(type=""))
    migration: Optional[NetworkMigration] = None
    disable_multi_network: Optional[bool] = None
    use_multi_network_policy: Optional[bool] = None
    deploy_kube_proxy: Optional[bool] = None
    kube_proxy_config: Optional[KubeProxyConfig] = None
    log_level: str = ""
    additional_networks: list[AdditionalNetworkDefinition] = field(default_factory=list)

    @property
    def network_type(self) -> str:
        return self.default_network.type

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict (the parser accepts this shape back)."""
        return asdict(self)
