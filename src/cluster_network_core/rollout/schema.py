"""Schema definitions for rollout orchestration.

Unit status is re-read from the live cluster on every pass by an external
bootstrap step; nothing here is cached between passes.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .progress import (
    HungRolloutPolicy,
    WorkloadCounts,
    centralized_progressing,
    per_node_progressing,
)


# Annotations understood by the apply layer
CREATE_ONLY_ANNOTATION = "networkoperator.openshift.io/create-only"
CREATE_WAIT_ANNOTATION = "networkoperator.openshift.io/create-wait"
ROLLOUT_HUNG_ANNOTATION = "networkoperator.openshift.io/rollout-hung"
IP_FAMILY_MODE_ANNOTATION = "networkoperator.openshift.io/ip-family-mode"
CLUSTER_NETWORK_CIDR_ANNOTATION = "networkoperator.openshift.io/cluster-network-cidr"
RELEASE_VERSION_ANNOTATION = "release.openshift.io/version"

# Unit names used as keys in RolloutDecision.unit_annotations
NODE_UNIT = "node"
CONTROL_PLANE_UNIT = "control-plane"
IPSEC_HOST_UNIT = "ipsec-host"
IPSEC_CONTAINERIZED_UNIT = "ipsec-containerized"
IPSEC_LEGACY_UNIT = "ipsec"


class UnitKind(str, Enum):
    """How a rollout unit is deployed."""
    PER_NODE = "per-node"        # one member per worker node
    CENTRALIZED = "centralized"  # replicated control-plane process


class IPFamilyMode(str, Enum):
    """IP family mode stamped on rendered units."""
    SINGLE_STACK = "single-stack"
    DUAL_STACK = "dual-stack"


@dataclass
class RolloutUnitStatus:
    """Live status of one rollout unit."""
    kind: UnitKind
    namespace: str
    name: str
    version: str = ""
    ip_family_mode: str = ""
    cluster_network_cidrs: str = ""
    progressing: bool = False
    hung: bool = False

    @classmethod
    def from_workload(
        cls,
        kind: UnitKind,
        namespace: str,
        name: str,
        counts: WorkloadCounts,
        annotations: Optional[dict[str, str]] = None,
        hung_policy: Optional[HungRolloutPolicy] = None,
    ) -> "RolloutUnitStatus":
        """Build a status from workload counters and object annotations.

        The hung allowance only applies to per-node units.
        """
        annotations = annotations or {}
        hung = ROLLOUT_HUNG_ANNOTATION in annotations
        if kind == UnitKind.PER_NODE:
            progressing = per_node_progressing(counts, hung=hung, policy=hung_policy)
        else:
            progressing = centralized_progressing(counts)

        return cls(
            kind=kind,
            namespace=namespace,
            name=name,
            version=annotations.get(RELEASE_VERSION_ANNOTATION, ""),
            ip_family_mode=annotations.get(IP_FAMILY_MODE_ANNOTATION, ""),
            cluster_network_cidrs=annotations.get(CLUSTER_NETWORK_CIDR_ANNOTATION, ""),
            progressing=progressing,
            hung=hung,
        )


@dataclass
class IPsecRolloutStatus:
    """Encryption rollout state."""
    legacy_upgrade: bool = False  # the pre-split single unit still exists
    active: bool = False          # encryption is currently enabled in the backend


@dataclass
class BootstrapSnapshot:
    """Cluster facts gathered outside the core for one reconcile pass."""
    platform_type: str = ""
    node_status: Optional[RolloutUnitStatus] = None
    control_plane_status: Optional[RolloutUnitStatus] = None
    prewarm_status: Optional[RolloutUnitStatus] = None
    ipsec_status: Optional[IPsecRolloutStatus] = None
    release_version: str = ""
    host_mtu: Optional[int] = None
    machine_config_active: bool = False
    hosted_control_plane: bool = False


@dataclass
class RolloutDecision:
    """What the apply layer may do this pass."""
    update_node: bool
    update_control_plane: bool
    render_prewarm: bool = False
    annotations: dict[str, str] = field(default_factory=dict)
    unit_annotations: dict[str, dict[str, str]] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)
    fail_open: bool = False

    @property
    def flags(self) -> tuple[bool, bool, bool]:
        return (self.update_node, self.update_control_plane, self.render_prewarm)

    @property
    def holding(self) -> bool:
        """True while any unit is held back or a prewarm pass is pending."""
        return not self.update_node or not self.update_control_plane or self.render_prewarm

    def annotations_for(self, unit: str) -> dict[str, str]:
        """Full annotation set to stamp on a rendered unit."""
        merged = dict(self.annotations)
        merged.update(self.unit_annotations.get(unit, {}))
        return merged

    def to_dict(self) -> dict[str, Any]:
        return {
            "update_node": self.update_node,
            "update_control_plane": self.update_control_plane,
            "render_prewarm": self.render_prewarm,
            "annotations": dict(self.annotations),
            "unit_annotations": {k: dict(v) for k, v in self.unit_annotations.items()},
            "reasons": list(self.reasons),
            "fail_open": self.fail_open,
        }
