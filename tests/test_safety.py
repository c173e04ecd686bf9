"""Tests for the ChangeSafetyChecker."""
import copy

import pytest
from cluster_network_core.config.schema import (
    ClusterNetworkEntry,
    DefaultNetwork,
    HybridOverlayConfig,
    IPsecConfig,
    MTUMigration,
    MTUMigrationValues,
    NetworkMigration,
    NetworkSpec,
    OVNKubernetesConfig,
)
from cluster_network_core.config_engine import (
    ChangeSafetyChecker,
    ConfigDefaulter,
    DefaultsNotAppliedError,
    UnsafeChangeError,
)
from cluster_network_core.config_engine.safety import is_change_safe


V4_CLUSTER = [ClusterNetworkEntry("10.128.0.0/14", 23)]
V6_CLUSTER = [ClusterNetworkEntry("fd01::/48", 64)]


def make_spec(network_type="OVNKubernetes", cluster=None, service=None, ovn=None, migration=None):
    return NetworkSpec(
        cluster_network=cluster or list(V4_CLUSTER),
        service_network=service or ["172.30.0.0/16"],
        default_network=DefaultNetwork(type=network_type, ovn_kubernetes_config=ovn),
        migration=migration,
    )


def applied(spec, previous=None):
    return ConfigDefaulter().fill_defaults(spec, previous, host_mtu=1500)


def mtu_migration(from_mtu, to_mtu, machine_to):
    return NetworkMigration(mtu=MTUMigration(
        network=MTUMigrationValues(from_mtu=from_mtu, to_mtu=to_mtu),
        machine=MTUMigrationValues(to_mtu=machine_to),
    ))


@pytest.fixture
def checker():
    return ChangeSafetyChecker()


@pytest.fixture
def base():
    return applied(make_spec())


def errors_of(result):
    assert isinstance(result, UnsafeChangeError)
    return result.errors


class TestGeneralRules:
    """Tests for reflexivity and preconditions."""

    def test_first_install(self, checker, base):
        assert checker.is_change_safe(None, base) is None

    @pytest.mark.parametrize("network_type", ["OVNKubernetes", "OpenShiftSDN"])
    def test_reflexive(self, checker, network_type):
        spec = applied(make_spec(network_type))
        assert checker.is_change_safe(spec, copy.deepcopy(spec)) is None

    def test_requires_defaults(self, checker, base):
        with pytest.raises(DefaultsNotAppliedError):
            checker.is_change_safe(make_spec(), base)
        with pytest.raises(DefaultsNotAppliedError):
            checker.is_change_safe(base, make_spec())

    def test_error_message_lists_all(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.disable_multi_network = True
        nxt.default_network.ovn_kubernetes_config.geneve_port = 6082
        result = checker.is_change_safe(base, nxt)
        assert len(result.errors) == 2
        assert str(result).startswith("invalid configuration: [")
        assert "cannot change DisableMultiNetwork" in str(result)

    def test_module_function(self, base):
        nxt = copy.deepcopy(base)
        nxt.disable_multi_network = True
        assert is_change_safe(base, nxt) is not None


class TestNetworkTypeChange:
    """Tests for backend type changes and migrations."""

    def test_type_change_without_migration(self, checker):
        """Switching backends outside a migration is the only error reported."""
        prev = applied(make_spec("OpenShiftSDN"))
        nxt = applied(make_spec("OVNKubernetes"), prev)
        result = checker.is_change_safe(prev, nxt)
        assert errors_of(result) == [
            "cannot change default network type when not doing migration"
        ]

    def test_type_change_to_migration_target(self, checker):
        migration = NetworkMigration(network_type="OVNKubernetes")
        prev = applied(make_spec("OpenShiftSDN", migration=migration))
        nxt = applied(make_spec("OVNKubernetes", migration=copy.deepcopy(migration)), prev)
        assert checker.is_change_safe(prev, nxt) is None

    def test_type_change_back(self, checker):
        migration = NetworkMigration(network_type="OpenShiftSDN")
        prev = applied(make_spec("OVNKubernetes", migration=migration))
        nxt = applied(make_spec("OpenShiftSDN", migration=copy.deepcopy(migration)), prev)
        assert checker.is_change_safe(prev, nxt) is None

    def test_type_change_away_from_target(self, checker):
        prev = applied(make_spec("OVNKubernetes", migration=NetworkMigration(network_type="OVNKubernetes")))
        nxt = applied(make_spec("OpenShiftSDN", migration=NetworkMigration(network_type="OVNKubernetes")), prev)
        assert errors_of(checker.is_change_safe(prev, nxt)) == [
            "can only change default network type to the target migration network type"
        ]

    def test_migration_target_immutable(self, checker):
        prev = applied(make_spec(migration=NetworkMigration(network_type="OpenShiftSDN")))
        nxt = copy.deepcopy(prev)
        nxt.migration.network_type = "OVNKubernetes"
        assert "cannot change migration network type after migration is started" in \
            errors_of(checker.is_change_safe(prev, nxt))

    def test_migration_mode_immutable(self, checker):
        prev = applied(make_spec(migration=NetworkMigration(network_type="OpenShiftSDN", mode="Live")))
        nxt = copy.deepcopy(prev)
        nxt.migration.mode = "Offline"
        assert "cannot change migration mode after migration is started" in \
            errors_of(checker.is_change_safe(prev, nxt))

    def test_service_network_frozen_during_migration(self, checker):
        prev = applied(make_spec(migration=NetworkMigration(network_type="OpenShiftSDN")))
        nxt = copy.deepcopy(prev)
        nxt.service_network = ["172.31.0.0/16"]
        assert "cannot change ServiceNetwork during migration" in \
            errors_of(checker.is_change_safe(prev, nxt))

    def test_service_network_frozen_during_mtu_migration(self, checker, base):
        """An MTU-only migration freezes the service network too."""
        prev = copy.deepcopy(base)
        prev.migration = mtu_migration(1400, 9000, 9100)
        nxt = applied(make_spec(
            cluster=V4_CLUSTER + V6_CLUSTER,
            service=["172.30.0.0/16", "fd02::/112"],
        ), prev)
        nxt.migration = copy.deepcopy(prev.migration)
        assert "cannot change ServiceNetwork during migration" in \
            errors_of(checker.is_change_safe(prev, nxt, "BareMetal"))


class TestMTUChange:
    """Tests for MTU changes and MTU migrations."""

    def test_mtu_change_without_migration(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.default_network.ovn_kubernetes_config.mtu = 1300
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "cannot change OVNKubernetes MTU without migration"
        ]

    def test_valid_mtu_migration(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.migration = mtu_migration(1400, 9000, 9100)
        assert checker.is_change_safe(base, nxt) is None

    def test_machine_mtu_too_small(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.migration = mtu_migration(1400, 9000, 9050)
        assert "invalid Migration.MTU.Machine.To(9050), has to be at least 9100" in \
            errors_of(checker.is_change_safe(base, nxt))

    def test_from_must_match_applied(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.migration = mtu_migration(1500, 9000, 9100)
        assert (
            "invalid Migration.MTU.Network.From(1500) not equal to the currently "
            "applied MTU(1400)"
        ) in errors_of(checker.is_change_safe(base, nxt))

    def test_target_out_of_range(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.migration = mtu_migration(1400, 100, 9100)
        assert "invalid Migration.MTU.Network.To(100), has to be in range: 576-65536" in \
            errors_of(checker.is_change_safe(base, nxt))

    def test_missing_fields(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.migration = NetworkMigration(mtu=MTUMigration(
            network=MTUMigrationValues(from_mtu=1400, to_mtu=9000),
        ))
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "invalid Migration.MTU, at least one of the required fields is missing"
        ]

    def test_migration_completion(self, checker, base):
        """Dropping the migration while committing its target MTU is allowed."""
        prev = copy.deepcopy(base)
        prev.migration = mtu_migration(1400, 9000, 9100)
        nxt = copy.deepcopy(base)
        nxt.default_network.ovn_kubernetes_config.mtu = 9000
        assert checker.is_change_safe(prev, nxt) is None


class TestAddressSpaceChange:
    """Tests for ServiceNetwork and ClusterNetwork changes."""

    def test_widen_cluster_network(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.cluster_network = [ClusterNetworkEntry("10.128.0.0/13", 23)]
        assert checker.is_change_safe(base, nxt) is None

    def test_narrow_cluster_network(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.cluster_network = [ClusterNetworkEntry("10.128.0.0/15", 23)]
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "reducing IP range with a larger CIDR mask for clusterNetwork CIDR is unsupported"
        ]

    def test_move_cluster_network(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.cluster_network = [ClusterNetworkEntry("10.132.0.0/14", 23)]
        assert "modifying IP network value for clusterNetwork CIDR is unsupported" in \
            errors_of(checker.is_change_safe(base, nxt))

    def test_host_prefix_change(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.cluster_network = [ClusterNetworkEntry("10.128.0.0/14", 24)]
        assert "modifying a clusterNetwork's hostPrefix value is unsupported" in \
            errors_of(checker.is_change_safe(base, nxt))

    def test_add_cluster_network_same_family(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.cluster_network.append(ClusterNetworkEntry("10.200.0.0/16", 23))
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "adding/removing clusterNetwork entries of the same type is not supported"
        ]

    def test_cluster_network_expansion_ovn_only(self, checker):
        prev = applied(make_spec("OpenShiftSDN"))
        nxt = copy.deepcopy(prev)
        nxt.cluster_network = [ClusterNetworkEntry("10.128.0.0/13", 23)]
        assert errors_of(checker.is_change_safe(prev, nxt)) == [
            "network type is OpenShiftSDN. changing clusterNetwork entries "
            "is only supported for OVNKubernetes"
        ]

    def test_unsupported_service_change(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.service_network = ["172.31.0.0/16"]
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "unsupported change to ServiceNetwork"
        ]


class TestDualStackConversion:
    """Tests for single-stack to dual-stack conversion and back."""

    @pytest.fixture
    def dual(self, base):
        spec = make_spec(
            cluster=V4_CLUSTER + V6_CLUSTER,
            service=["172.30.0.0/16", "fd02::/112"],
        )
        return applied(spec, base)

    def test_convert_to_dual_stack(self, checker, base, dual):
        assert checker.is_change_safe(base, dual, "BareMetal") is None

    def test_convert_on_unsupported_platform(self, checker, base, dual):
        assert errors_of(checker.is_change_safe(base, dual, "AWS")) == [
            "AWS does not allow conversion to dual-stack cluster"
        ]

    def test_convert_on_unknown_platform(self, checker, base, dual):
        assert errors_of(checker.is_change_safe(base, dual, None)) == [
            "unknown platform does not allow conversion to dual-stack cluster"
        ]

    def test_primary_service_network_fixed(self, checker, base):
        nxt = applied(make_spec(
            cluster=V4_CLUSTER + V6_CLUSTER,
            service=["fd02::/112", "172.30.0.0/16"],
        ), base)
        assert "cannot change primary ServiceNetwork when migrating to/from dual-stack" in \
            errors_of(checker.is_change_safe(base, nxt, "BareMetal"))

    def test_no_extra_original_family(self, checker, base):
        nxt = applied(make_spec(
            cluster=V4_CLUSTER + [ClusterNetworkEntry("10.200.0.0/16", 23)] + V6_CLUSTER,
            service=["172.30.0.0/16", "fd02::/112"],
        ), base)
        assert (
            "cannot add additional ClusterNetwork values of original IP family "
            "when migrating to dual stack"
        ) in errors_of(checker.is_change_safe(base, nxt, "BareMetal"))

    def test_convert_back_to_single_stack(self, checker, base, dual):
        """The dropped family takes its internal subnets with it."""
        single = applied(make_spec(), dual)
        assert checker.is_change_safe(dual, single, "BareMetal") is None

    def test_convert_back_keeps_primary(self, checker, dual):
        nxt = applied(make_spec(
            cluster=V4_CLUSTER,
            service=["fd02::/112"],
        ), dual)
        result = errors_of(checker.is_change_safe(dual, nxt, "BareMetal"))
        assert "cannot change primary ServiceNetwork when migrating to/from dual-stack" in result


class TestOVNKubernetesChange:
    """Tests for OVN-Kubernetes specific rules."""

    def test_geneve_port(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.default_network.ovn_kubernetes_config.geneve_port = 6082
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "cannot change ovn-kubernetes genevePort"
        ]

    def test_start_hybrid_overlay(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.default_network.ovn_kubernetes_config.hybrid_overlay_config = HybridOverlayConfig()
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "cannot start a hybrid overlay network after install time"
        ]

    def test_edit_hybrid_overlay(self, checker):
        prev = applied(make_spec(ovn=OVNKubernetesConfig(
            hybrid_overlay_config=HybridOverlayConfig(
                hybrid_cluster_network=[ClusterNetworkEntry("10.132.0.0/14", 23)],
            ),
        )))
        nxt = copy.deepcopy(prev)
        nxt.default_network.ovn_kubernetes_config.hybrid_overlay_config.hybrid_overlay_vxlan_port = 9898
        assert errors_of(checker.is_change_safe(prev, nxt)) == [
            "cannot edit a running hybrid overlay network"
        ]

    def test_enable_and_disable_ipsec(self, checker, base):
        enabled = copy.deepcopy(base)
        enabled.default_network.ovn_kubernetes_config.ipsec_config = IPsecConfig(mode="Full")
        assert checker.is_change_safe(base, enabled) is None
        assert checker.is_change_safe(enabled, base) is None

    def test_edit_ipsec(self, checker, base):
        prev = copy.deepcopy(base)
        prev.default_network.ovn_kubernetes_config.ipsec_config = IPsecConfig(mode="Full")
        nxt = copy.deepcopy(base)
        nxt.default_network.ovn_kubernetes_config.ipsec_config = IPsecConfig(mode="External")
        assert errors_of(checker.is_change_safe(prev, nxt)) == [
            "cannot edit IPsec configuration at runtime"
        ]

    def test_internal_subnet_change(self, checker, base):
        nxt = copy.deepcopy(base)
        nxt.default_network.ovn_kubernetes_config.v4_internal_join_subnet = "100.65.0.0/16"
        assert errors_of(checker.is_change_safe(base, nxt)) == [
            "cannot change ovn-kubernetes v4_internal_join_subnet "
            "from 100.64.0.0/16 to 100.65.0.0/16"
        ]
