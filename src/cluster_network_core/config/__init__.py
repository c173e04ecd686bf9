"""Configuration schema and operator settings."""
from .schema import (
    NetworkSpec,
    ClusterNetworkEntry,
    DefaultNetwork,
    OVNKubernetesConfig,
    OpenShiftSDNConfig,
    KubeProxyConfig,
    NetworkMigration,
    MTUMigration,
    MTUMigrationValues,
    IPsecConfig,
    IPsecMode,
    OVN_KUBERNETES,
    OPENSHIFT_SDN,
)
from .settings import OperatorSettings

__all__ = [
    "NetworkSpec",
    "ClusterNetworkEntry",
    "DefaultNetwork",
    "OVNKubernetesConfig",
    "OpenShiftSDNConfig",
    "KubeProxyConfig",
    "NetworkMigration",
    "MTUMigration",
    "MTUMigrationValues",
    "IPsecConfig",
    "IPsecMode",
    "OVN_KUBERNETES",
    "OPENSHIFT_SDN",
    "OperatorSettings",
]
