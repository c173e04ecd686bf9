"""Parser for network configuration.

Converts dict/YAML input to strongly-typed NetworkSpec objects. Keys may be
given in snake_case or in the camelCase used by the cluster API.
"""
import json
import logging
import re
from enum import Enum
from typing import Any, Optional

from ..backends import BACKEND_TYPES
from ..config.schema import (
    AdditionalNetworkDefinition,
    AdditionalNetworkType,
    ClusterNetworkEntry,
    DefaultNetwork,
    HybridOverlayConfig,
    IPAMConfig,
    IPAMType,
    IPsecConfig,
    KubeProxyConfig,
    MacvlanMode,
    MTUMigration,
    MTUMigrationValues,
    NetworkMigration,
    NetworkSpec,
    OpenShiftSDNConfig,
    OVNKubernetesConfig,
    PolicyAuditConfig,
    SimpleMacvlanConfig,
    StaticIPAMAddress,
    StaticIPAMConfig,
    StaticIPAMDNS,
    StaticIPAMRoute,
)

logger = logging.getLogger(__name__)

CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")

# Keys that do not survive the generic camelCase conversion
KEY_ALIASES = {
    "openshiftSDNConfig": "openshift_sdn_config",
    "ovnKubernetesConfig": "ovn_kubernetes_config",
    "hybridOverlayVXLANPort": "hybrid_overlay_vxlan_port",
    "vxlanPort": "vxlan_port",
    "mtu": "mtu",
    "from": "from_mtu",
    "to": "to_mtu",
    "networkType": "network_type",
    "cidr": "cidr",
    "rawCNIConfig": "raw_cni_config",
    "staticIPAMConfig": "static_ipam_config",
}


class ParseError(Exception):
    """Error parsing network configuration."""
    pass


def normalize_key(key: str) -> str:
    """Map an input key to the dataclass field name."""
    if key in KEY_ALIASES:
        return KEY_ALIASES[key]
    return CAMEL_BOUNDARY.sub("_", key).lower()


def normalize_keys(data: Any, name: str = "config") -> dict[str, Any]:
    """Normalize the keys of one mapping level (values untouched)."""
    if not isinstance(data, dict):
        raise ParseError(f"{name} must be a mapping, got {type(data).__name__}")
    return {normalize_key(str(k)): v for k, v in data.items()}


def canonical_name(value: str, choices: type[Enum]) -> str:
    """Fix the case of a known enum value."""
    for choice in choices:
        if value != choice.value and value.lower() == choice.value.lower():
            logger.warning(f"Value {value!r} is deprecated, use {choice.value!r}")
            return choice.value
    return value


class ConfigParser:
    """Parse NetworkSpec from dict/YAML format."""

    def __init__(self, known_types: Optional[list[str]] = None):
        self.known_types = known_types if known_types is not None else list(BACKEND_TYPES)

    def parse(self, config: dict[str, Any]) -> NetworkSpec:
        """
        Parse a configuration dict into a NetworkSpec object.

        Accepts either the bare spec or a wrapper with a ``spec`` key.

        Args:
            config: Dict with cluster_network, service_network, default_network, etc.

        Returns:
            NetworkSpec object

        Raises:
            ParseError: If the config is malformed
        """
        if not isinstance(config, dict):
            raise ParseError(f"Network config must be a mapping, got {type(config).__name__}")
        if "spec" in config and isinstance(config["spec"], dict):
            config = config["spec"]
        config = normalize_keys(config)

        cluster_network = self._parse_cluster_network(
            config.get("cluster_network") or [], "cluster_network"
        )

        service_network = config.get("service_network") or []
        if isinstance(service_network, str):
            service_network = [service_network]
        if not isinstance(service_network, list):
            raise ParseError("service_network must be a list of CIDRs")

        if "default_network" not in config:
            raise ParseError("Missing required field: default_network")
        default_network = self._parse_default_network(config["default_network"])

        migration = None
        if config.get("migration") is not None:
            migration = self._parse_migration(config["migration"])

        kube_proxy_config = None
        if config.get("kube_proxy_config") is not None:
            kube_proxy_config = self._parse_kube_proxy(config["kube_proxy_config"])

        additional_networks = self._parse_additional_networks(
            config.get("additional_networks") or []
        )

        return NetworkSpec(
            cluster_network=cluster_network,
            service_network=[str(s) for s in service_network],
            default_network=default_network,
            migration=migration,
            disable_multi_network=self._optional_bool(config, "disable_multi_network"),
            use_multi_network_policy=self._optional_bool(config, "use_multi_network_policy"),
            deploy_kube_proxy=self._optional_bool(config, "deploy_kube_proxy"),
            kube_proxy_config=kube_proxy_config,
            log_level=str(config.get("log_level") or ""),
            additional_networks=additional_networks,
        )

    def canonical_type(self, network_type: str) -> str:
        """Fix the case of a known network type name."""
        for known in self.known_types:
            if network_type != known and network_type.lower() == known.lower():
                logger.warning(
                    f"Network type {network_type!r} is deprecated, use {known!r}"
                )
                return known
        return network_type

    def _parse_cluster_network(self, entries: Any, name: str) -> list[ClusterNetworkEntry]:
        """Parse ClusterNetwork entries."""
        if not isinstance(entries, list):
            raise ParseError(f"{name} must be a list")

        result = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ParseError(f"{name}[{i}] must be a mapping with cidr and host_prefix")
            entry = normalize_keys(entry)
            if not entry.get("cidr"):
                raise ParseError(f"{name}[{i}] is missing cidr")
            host_prefix = self._optional_int(entry, "host_prefix", f"{name}[{i}].host_prefix")
            result.append(ClusterNetworkEntry(
                cidr=str(entry["cidr"]),
                host_prefix=host_prefix or 0,
            ))
        return result

    def _parse_default_network(self, data: Any) -> DefaultNetwork:
        """Parse the default network and its backend config."""
        if not isinstance(data, dict):
            raise ParseError("default_network must be a mapping")
        data = normalize_keys(data)

        network_type = data.get("type")
        if not network_type:
            raise ParseError("Missing required field: default_network.type")

        ovn = None
        if data.get("ovn_kubernetes_config") is not None:
            ovn = self._parse_ovn(data["ovn_kubernetes_config"])

        sdn = None
        if data.get("openshift_sdn_config") is not None:
            sdn = self._parse_sdn(data["openshift_sdn_config"])

        return DefaultNetwork(
            type=self.canonical_type(str(network_type)),
            ovn_kubernetes_config=ovn,
            openshift_sdn_config=sdn,
        )

    def _parse_ovn(self, data: Any) -> OVNKubernetesConfig:
        if not isinstance(data, dict):
            raise ParseError("ovn_kubernetes_config must be a mapping")
        data = normalize_keys(data)
        prefix = "ovn_kubernetes_config"

        hybrid = None
        if data.get("hybrid_overlay_config") is not None:
            raw = normalize_keys(data["hybrid_overlay_config"], "hybrid_overlay_config")
            hybrid = HybridOverlayConfig(
                hybrid_cluster_network=self._parse_cluster_network(
                    raw.get("hybrid_cluster_network") or [], "hybrid_cluster_network"
                ),
                hybrid_overlay_vxlan_port=self._optional_int(
                    raw, "hybrid_overlay_vxlan_port", f"{prefix}.hybrid_overlay_vxlan_port"
                ),
            )

        ipsec = None
        if data.get("ipsec_config") is not None:
            raw = data["ipsec_config"]
            raw = normalize_keys(raw) if isinstance(raw, dict) else {}
            ipsec = IPsecConfig(mode=str(raw.get("mode") or ""))

        audit = None
        if data.get("policy_audit_config") is not None:
            raw = normalize_keys(data["policy_audit_config"], "policy_audit_config")
            audit = PolicyAuditConfig(
                rate_limit=self._optional_int(raw, "rate_limit", "policy_audit_config.rate_limit"),
                max_file_size=self._optional_int(
                    raw, "max_file_size", "policy_audit_config.max_file_size"
                ),
                max_log_files=self._optional_int(
                    raw, "max_log_files", "policy_audit_config.max_log_files"
                ),
                destination=raw.get("destination"),
                syslog_facility=raw.get("syslog_facility"),
            )

        return OVNKubernetesConfig(
            mtu=self._optional_int(data, "mtu", f"{prefix}.mtu"),
            geneve_port=self._optional_int(data, "geneve_port", f"{prefix}.geneve_port"),
            hybrid_overlay_config=hybrid,
            ipsec_config=ipsec,
            policy_audit_config=audit,
            routing_via_host=self._optional_bool(data, "routing_via_host"),
            v4_internal_join_subnet=data.get("v4_internal_join_subnet"),
            v6_internal_join_subnet=data.get("v6_internal_join_subnet"),
            v4_internal_transit_switch_subnet=data.get("v4_internal_transit_switch_subnet"),
            v6_internal_transit_switch_subnet=data.get("v6_internal_transit_switch_subnet"),
            v4_internal_masquerade_subnet=data.get("v4_internal_masquerade_subnet"),
            v6_internal_masquerade_subnet=data.get("v6_internal_masquerade_subnet"),
        )

    def _parse_sdn(self, data: Any) -> OpenShiftSDNConfig:
        if not isinstance(data, dict):
            raise ParseError("openshift_sdn_config must be a mapping")
        data = normalize_keys(data)
        return OpenShiftSDNConfig(
            mode=data.get("mode"),
            vxlan_port=self._optional_int(data, "vxlan_port", "openshift_sdn_config.vxlan_port"),
            mtu=self._optional_int(data, "mtu", "openshift_sdn_config.mtu"),
            enable_unidling=self._optional_bool(data, "enable_unidling"),
            use_external_openvswitch=self._optional_bool(data, "use_external_openvswitch"),
        )

    def _parse_migration(self, data: Any) -> NetworkMigration:
        if not isinstance(data, dict):
            raise ParseError("migration must be a mapping")
        data = normalize_keys(data)

        mtu = None
        if data.get("mtu") is not None:
            raw = normalize_keys(data["mtu"], "migration.mtu")
            mtu = MTUMigration(
                network=self._parse_mtu_values(raw.get("network"), "migration.mtu.network"),
                machine=self._parse_mtu_values(raw.get("machine"), "migration.mtu.machine"),
            )

        return NetworkMigration(
            network_type=self.canonical_type(str(data.get("network_type") or "")),
            mtu=mtu,
            mode=str(data.get("mode") or ""),
        )

    def _parse_mtu_values(self, data: Any, name: str) -> Optional[MTUMigrationValues]:
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ParseError(f"{name} must be a mapping with from/to")
        data = normalize_keys(data)
        return MTUMigrationValues(
            from_mtu=self._optional_int(data, "from_mtu", f"{name}.from"),
            to_mtu=self._optional_int(data, "to_mtu", f"{name}.to"),
        )

    def _parse_kube_proxy(self, data: Any) -> KubeProxyConfig:
        if not isinstance(data, dict):
            raise ParseError("kube_proxy_config must be a mapping")
        data = normalize_keys(data)

        # Argument names are kube-proxy flags, keep them as written
        arguments = {}
        for name, values in (data.get("proxy_arguments") or {}).items():
            if isinstance(values, (str, int)):
                values = [values]
            arguments[str(name)] = [str(v) for v in values]

        sync_period = data.get("iptables_sync_period")
        return KubeProxyConfig(
            bind_address=data.get("bind_address"),
            iptables_sync_period=str(sync_period) if sync_period is not None else None,
            proxy_arguments=arguments,
        )

    def _parse_additional_networks(self, entries: Any) -> list[AdditionalNetworkDefinition]:
        if not isinstance(entries, list):
            raise ParseError("additional_networks must be a list")

        result = []
        for i, entry in enumerate(entries):
            name = f"additional_networks[{i}]"
            data = normalize_keys(entry, name)
            if not data.get("type"):
                raise ParseError(f"Missing required field: {name}.type")

            # Raw CNI config may be written inline as YAML
            raw_cni_config = data.get("raw_cni_config") or ""
            if isinstance(raw_cni_config, dict):
                raw_cni_config = json.dumps(raw_cni_config)

            macvlan = None
            if data.get("simple_macvlan_config") is not None:
                macvlan = self._parse_macvlan(data["simple_macvlan_config"], name)

            result.append(AdditionalNetworkDefinition(
                type=canonical_name(str(data["type"]), AdditionalNetworkType),
                name=str(data.get("name") or ""),
                namespace=str(data.get("namespace") or ""),
                raw_cni_config=str(raw_cni_config),
                simple_macvlan_config=macvlan,
            ))
        return result

    def _parse_macvlan(self, data: Any, name: str) -> SimpleMacvlanConfig:
        data = normalize_keys(data, f"{name}.simple_macvlan_config")

        ipam = None
        if data.get("ipam_config") is not None:
            raw = normalize_keys(data["ipam_config"], f"{name}.ipam_config")
            static = None
            if raw.get("static_ipam_config") is not None:
                static = self._parse_static_ipam(raw["static_ipam_config"], name)
            ipam = IPAMConfig(
                type=canonical_name(str(raw.get("type") or ""), IPAMType),
                static_ipam_config=static,
            )

        return SimpleMacvlanConfig(
            master=str(data.get("master") or ""),
            ipam_config=ipam,
            mode=canonical_name(str(data.get("mode") or ""), MacvlanMode),
            mtu=self._optional_int(data, "mtu", f"{name}.simple_macvlan_config.mtu"),
        )

    def _parse_static_ipam(self, data: Any, name: str) -> StaticIPAMConfig:
        data = normalize_keys(data, f"{name}.static_ipam_config")

        addresses = []
        for raw in data.get("addresses") or []:
            raw = normalize_keys(raw, f"{name}.static_ipam_config.addresses")
            addresses.append(StaticIPAMAddress(
                address=str(raw.get("address") or ""),
                gateway=raw.get("gateway"),
            ))

        routes = []
        for raw in data.get("routes") or []:
            raw = normalize_keys(raw, f"{name}.static_ipam_config.routes")
            routes.append(StaticIPAMRoute(
                destination=str(raw.get("destination") or ""),
                gateway=raw.get("gateway"),
            ))

        dns = None
        if data.get("dns") is not None:
            raw = normalize_keys(data["dns"], f"{name}.static_ipam_config.dns")
            dns = StaticIPAMDNS(
                nameservers=[str(s) for s in raw.get("nameservers") or []],
                domain=str(raw.get("domain") or ""),
                search=[str(s) for s in raw.get("search") or []],
            )

        return StaticIPAMConfig(addresses=addresses, routes=routes, dns=dns)

    def _optional_int(self, data: dict, key: str, name: str) -> Optional[int]:
        """Read an optional integer field, accepting numeric strings."""
        value = data.get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            raise ParseError(f"{name} must be an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ParseError(f"{name} must be an integer, got {value!r}")

    def _optional_bool(self, data: dict, key: str) -> Optional[bool]:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, bool):
            raise ParseError(f"{key} must be true or false, got {value!r}")
        return value
