"""Tests for the backend registry and backend capabilities."""
import pytest
from cluster_network_core.backends import (
    BackendRegistry,
    OpenShiftSDNBackend,
    OVNKubernetesBackend,
    UnsupportedBackendError,
    default_registry,
)
from cluster_network_core.backends.ovn_kubernetes import max_nodes
from cluster_network_core.config.schema import (
    ClusterNetworkEntry,
    DefaultNetwork,
    IPsecConfig,
    NetworkSpec,
    OVNKubernetesConfig,
)


class TestBackendRegistry:
    """Tests for BackendRegistry."""

    def test_builtin_types(self):
        registry = default_registry()
        assert registry.types() == ["OVNKubernetes", "OpenShiftSDN"]
        assert "OVNKubernetes" in registry
        assert isinstance(registry.resolve("OpenShiftSDN"), OpenShiftSDNBackend)

    def test_unknown_type(self):
        registry = default_registry()
        assert registry.get("Calico") is None
        with pytest.raises(UnsupportedBackendError) as exc:
            registry.resolve("Calico")
        assert exc.value.network_type == "Calico"
        assert isinstance(exc.value, ValueError)

    def test_custom_registry(self):
        registry = BackendRegistry({"OVNKubernetes": OVNKubernetesBackend()})
        assert registry.types() == ["OVNKubernetes"]
        assert "OpenShiftSDN" not in registry


class TestBackendCapabilities:
    """Tests for per-backend properties."""

    def test_capabilities(self):
        ovn = OVNKubernetesBackend()
        sdn = OpenShiftSDNBackend()
        assert ovn.supports_cluster_network_expansion
        assert not sdn.supports_cluster_network_expansion
        assert ovn.provides_service_proxy
        assert sdn.provides_service_proxy
        assert sdn.accepts_kube_proxy_config
        assert not ovn.accepts_kube_proxy_config

    def test_ovn_overhead(self):
        spec = NetworkSpec(default_network=DefaultNetwork(
            type="OVNKubernetes",
            ovn_kubernetes_config=OVNKubernetesConfig(ipsec_config=IPsecConfig()),
        ))
        assert OVNKubernetesBackend().encap_overhead(spec) == 146

    def test_max_nodes(self):
        spec = NetworkSpec(cluster_network=[
            ClusterNetworkEntry("10.128.0.0/14", 23),
            ClusterNetworkEntry("10.132.0.0/14", 23),
            ClusterNetworkEntry("fd01::/48", 64),
        ])
        assert max_nodes(spec, 4) == 1024
        assert max_nodes(spec, 6) == 65536
