"""Tests for the network configuration parser."""
import pytest
from cluster_network_core.config.schema import IPsecMode
from cluster_network_core.config_engine import ConfigParser, ParseError
from cluster_network_core.config_engine.parser import normalize_key


class TestNormalizeKey:
    """Tests for camelCase to field-name mapping."""

    @pytest.mark.parametrize("key,expected", [
        ("clusterNetwork", "cluster_network"),
        ("hostPrefix", "host_prefix"),
        ("v4InternalJoinSubnet", "v4_internal_join_subnet"),
        ("hybridOverlayVXLANPort", "hybrid_overlay_vxlan_port"),
        ("openshiftSDNConfig", "openshift_sdn_config"),
        ("from", "from_mtu"),
        ("service_network", "service_network"),
    ])
    def test_normalize(self, key, expected):
        assert normalize_key(key) == expected


class TestConfigParser:
    """Tests for ConfigParser."""

    @pytest.fixture
    def parser(self):
        return ConfigParser()

    def test_parse_camel_case(self, parser):
        """Cluster API style input is accepted."""
        spec = parser.parse({
            "spec": {
                "clusterNetwork": [{"cidr": "10.128.0.0/14", "hostPrefix": 23}],
                "serviceNetwork": ["172.30.0.0/16"],
                "defaultNetwork": {
                    "type": "OVNKubernetes",
                    "ovnKubernetesConfig": {
                        "mtu": 1400,
                        "genevePort": "6081",
                        "ipsecConfig": {},
                        "v4InternalJoinSubnet": "100.65.0.0/16",
                        "policyAuditConfig": {"rateLimit": 10, "syslogFacility": "local1"},
                    },
                },
                "disableMultiNetwork": False,
                "logLevel": "Debug",
            }
        })
        assert spec.network_type == "OVNKubernetes"
        assert spec.cluster_network[0].host_prefix == 23
        ovn = spec.default_network.ovn_kubernetes_config
        assert ovn.mtu == 1400
        assert ovn.geneve_port == 6081
        assert ovn.ipsec_mode == IPsecMode.FULL
        assert ovn.v4_internal_join_subnet == "100.65.0.0/16"
        assert ovn.policy_audit_config.rate_limit == 10
        assert ovn.policy_audit_config.syslog_facility == "local1"
        assert spec.disable_multi_network is False
        assert spec.use_multi_network_policy is None
        assert spec.log_level == "Debug"

    def test_parse_snake_case(self, parser):
        spec = parser.parse({
            "cluster_network": [{"cidr": "10.128.0.0/14", "host_prefix": 23}],
            "service_network": "172.30.0.0/16",
            "default_network": {
                "type": "OpenShiftSDN",
                "openshift_sdn_config": {"mode": "Multitenant", "vxlan_port": 4790},
            },
        })
        assert spec.service_network == ["172.30.0.0/16"]
        sdn = spec.default_network.openshift_sdn_config
        assert sdn.mode == "Multitenant"
        assert sdn.vxlan_port == 4790
        assert sdn.mtu is None

    def test_parse_migration(self, parser):
        spec = parser.parse({
            "serviceNetwork": ["172.30.0.0/16"],
            "defaultNetwork": {"type": "OpenShiftSDN"},
            "migration": {
                "networkType": "OVNKubernetes",
                "mode": "Live",
                "mtu": {
                    "network": {"from": 1450, "to": 9000},
                    "machine": {"to": 9100},
                },
            },
        })
        migration = spec.migration
        assert migration.network_type == "OVNKubernetes"
        assert migration.mode == "Live"
        assert migration.mtu.network.from_mtu == 1450
        assert migration.mtu.network.to_mtu == 9000
        assert migration.mtu.machine.from_mtu is None
        assert migration.mtu.machine.to_mtu == 9100

    def test_parse_kube_proxy(self, parser):
        spec = parser.parse({
            "serviceNetwork": ["172.30.0.0/16"],
            "defaultNetwork": {"type": "OpenShiftSDN"},
            "kubeProxyConfig": {
                "bindAddress": "0.0.0.0",
                "iptablesSyncPeriod": "30s",
                "proxyArguments": {"proxy-mode": "iptables", "metrics-port": [9101]},
            },
        })
        conf = spec.kube_proxy_config
        assert conf.bind_address == "0.0.0.0"
        assert conf.iptables_sync_period == "30s"
        assert conf.proxy_arguments == {"proxy-mode": ["iptables"], "metrics-port": ["9101"]}

    def test_parse_additional_networks(self, parser):
        spec = parser.parse({
            "defaultNetwork": {"type": "OVNKubernetes"},
            "additionalNetworks": [
                {
                    "type": "raw",
                    "name": "storage",
                    "namespace": "default",
                    "rawCNIConfig": '{"cniVersion": "0.3.1", "type": "bridge"}',
                },
                {
                    "type": "SimpleMacvlan",
                    "name": "mv",
                    "simpleMacvlanConfig": {
                        "master": "eth1",
                        "mode": "vepa",
                        "mtu": "9000",
                        "ipamConfig": {
                            "type": "static",
                            "staticIPAMConfig": {
                                "addresses": [{"address": "192.168.1.10/24", "gateway": "192.168.1.1"}],
                                "routes": [{"destination": "10.0.0.0/8"}],
                                "dns": {"nameservers": ["192.168.1.1"], "domain": "example.com"},
                            },
                        },
                    },
                },
            ],
        })
        raw, macvlan = spec.additional_networks
        assert raw.type == "Raw"
        assert raw.raw_cni_config == '{"cniVersion": "0.3.1", "type": "bridge"}'

        assert macvlan.type == "SimpleMacvlan"
        conf = macvlan.simple_macvlan_config
        assert conf.mode == "VEPA"
        assert conf.mtu == 9000
        assert conf.ipam_config.type == "Static"
        static = conf.ipam_config.static_ipam_config
        assert static.addresses[0].gateway == "192.168.1.1"
        assert static.routes[0].gateway is None
        assert static.dns.domain == "example.com"
        assert parser.parse(spec.to_dict()) == spec

    def test_inline_raw_cni_config(self, parser):
        """A raw CNI config written as YAML is stored as JSON text."""
        spec = parser.parse({
            "default_network": {"type": "OVNKubernetes"},
            "additional_networks": [
                {"type": "Raw", "name": "br", "raw_cni_config": {"type": "bridge"}},
            ],
        })
        assert spec.additional_networks[0].raw_cni_config == '{"type": "bridge"}'

    def test_type_case_fixed(self, parser):
        spec = parser.parse({"default_network": {"type": "ovnkubernetes"}})
        assert spec.network_type == "OVNKubernetes"

    def test_unknown_type_kept(self, parser):
        """Unknown types are left for the validator to reject."""
        spec = parser.parse({"default_network": {"type": "Calico"}})
        assert spec.network_type == "Calico"

    def test_round_trip_dict(self, parser):
        spec = parser.parse({
            "cluster_network": [{"cidr": "10.128.0.0/14", "host_prefix": 23}],
            "service_network": ["172.30.0.0/16"],
            "default_network": {"type": "OVNKubernetes", "ovn_kubernetes_config": {"mtu": 1400}},
        })
        assert parser.parse(spec.to_dict()) == spec

    @pytest.mark.parametrize("config", [
        [],
        {"service_network": ["172.30.0.0/16"]},
        {"default_network": {}},
        {"default_network": "OVNKubernetes"},
        {"default_network": {"type": "OVNKubernetes"}, "cluster_network": "10.0.0.0/8"},
        {"default_network": {"type": "OVNKubernetes"}, "cluster_network": [{"host_prefix": 23}]},
        {"default_network": {"type": "OVNKubernetes"},
         "cluster_network": [{"cidr": "10.0.0.0/8", "host_prefix": "big"}]},
        {"default_network": {"type": "OVNKubernetes", "ovn_kubernetes_config": {"mtu": True}}},
        {"default_network": {"type": "OVNKubernetes"}, "disable_multi_network": "yes"},
        {"default_network": {"type": "OVNKubernetes"}, "migration": "OVNKubernetes"},
        {"default_network": {"type": "OVNKubernetes"}, "additional_networks": {"name": "x"}},
        {"default_network": {"type": "OVNKubernetes"}, "additional_networks": [{"name": "x"}]},
        {"default_network": {"type": "OVNKubernetes"}, "additional_networks": ["Raw"]},
    ])
    def test_malformed(self, parser, config):
        with pytest.raises(ParseError):
            parser.parse(config)
