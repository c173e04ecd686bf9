"""Staged rollout of the per-node and control-plane units.

Each pass decides, from live unit status only, whether the per-node unit
and the control-plane unit may be updated and whether an image prewarm
unit has to be rendered first. Stages run in order and a stage only runs
when the previous one left both units free to update:

1. Fresh install: no live status, update everything.
2. IP-family conversion: control plane first, nodes once it has settled.
3. Version skew: nodes lead upgrades, the control plane leads downgrades.
4. Prewarm: hold the node update until the new image is on every node.

Unreadable versions fail open (update both), so a pass never deadlocks on
a bad annotation. Such passes are flagged in the decision and logged.
"""
import logging
from typing import Optional

from ..config.schema import NetworkSpec
from ..config.settings import OperatorSettings
from ..utils.logging_config import timed_section_sync
from ..utils.version import VersionChange, compare_versions
from .schema import (
    CLUSTER_NETWORK_CIDR_ANNOTATION,
    CONTROL_PLANE_UNIT,
    CREATE_ONLY_ANNOTATION,
    IP_FAMILY_MODE_ANNOTATION,
    NODE_UNIT,
    RELEASE_VERSION_ANNOTATION,
    BootstrapSnapshot,
    IPFamilyMode,
    RolloutDecision,
    RolloutUnitStatus,
)

logger = logging.getLogger(__name__)


def desired_ip_family_mode(spec: NetworkSpec) -> IPFamilyMode:
    """Dual-stack when the service network carries two CIDRs."""
    if len(spec.service_network) > 1:
        return IPFamilyMode.DUAL_STACK
    return IPFamilyMode.SINGLE_STACK


def desired_cluster_cidrs(spec: NetworkSpec) -> str:
    return ",".join(entry.cidr for entry in spec.cluster_network)


class RolloutOrchestrator:
    """Decide which rollout units may update on this pass."""

    def __init__(self, settings: Optional[OperatorSettings] = None):
        self.settings = settings or OperatorSettings()

    def decide(self, spec: NetworkSpec, snapshot: BootstrapSnapshot) -> RolloutDecision:
        """
        Compute the rollout decision for one pass.

        Args:
            spec: Applied (defaulted) configuration
            snapshot: Live cluster facts for this pass

        Returns:
            RolloutDecision with update flags, prewarm flag and annotations
        """
        release = snapshot.release_version or self.settings.release_version
        mode = desired_ip_family_mode(spec)
        decision = RolloutDecision(update_node=True, update_control_plane=True)
        decision.annotations = {
            IP_FAMILY_MODE_ANNOTATION: mode.value,
            CLUSTER_NETWORK_CIDR_ANNOTATION: desired_cluster_cidrs(spec),
        }
        if release:
            decision.annotations[RELEASE_VERSION_ANNOTATION] = release

        node = snapshot.node_status
        control_plane = snapshot.control_plane_status

        with timed_section_sync("rollout_decide", spec.network_type, release=release or "N/A"):
            if node is None or control_plane is None:
                decision.reasons.append("fresh install, rolling out all units")
                return decision

            update_node, update_cp = self._ip_family_stage(node, control_plane, mode, decision)
            if update_node and update_cp:
                update_node, update_cp = self._version_stage(
                    node, control_plane, release, decision
                )

            render_prewarm = False
            if update_node and not decision.fail_open:
                update_node, render_prewarm = self._prewarm_stage(
                    node, snapshot.prewarm_status, release, decision
                )

        decision.update_node = update_node
        decision.update_control_plane = update_cp
        decision.render_prewarm = render_prewarm

        # Held units are rendered but not mutated
        if not update_node:
            decision.unit_annotations[NODE_UNIT] = {CREATE_ONLY_ANNOTATION: "true"}
        if not update_cp:
            decision.unit_annotations[CONTROL_PLANE_UNIT] = {CREATE_ONLY_ANNOTATION: "true"}

        logger.debug(
            f"Rollout decision: node={update_node} control_plane={update_cp} "
            f"prewarm={render_prewarm} reasons={decision.reasons}"
        )
        return decision

    def _ip_family_stage(
        self,
        node: RolloutUnitStatus,
        control_plane: RolloutUnitStatus,
        mode: IPFamilyMode,
        decision: RolloutDecision,
    ) -> tuple[bool, bool]:
        """Convert the control plane before the nodes."""
        # Units rendered before family tracking carry no mode
        if not node.ip_family_mode or not control_plane.ip_family_mode:
            return True, True

        if node.ip_family_mode == mode and control_plane.ip_family_mode == mode:
            return True, True

        if control_plane.ip_family_mode != mode:
            logger.info(f"IP family mode change detected to {mode.value}, updating control plane")
            decision.reasons.append(f"IP family change to {mode.value}: control plane first")
            return False, True

        if control_plane.progressing:
            decision.reasons.append(
                "IP family change: waiting for control plane to finish rolling out"
            )
            return False, True

        logger.info("IP family change: control plane has finished rolling out, updating nodes")
        decision.reasons.append("IP family change: control plane done, updating nodes")
        return True, True

    def _version_stage(
        self,
        node: RolloutUnitStatus,
        control_plane: RolloutUnitStatus,
        release: str,
        decision: RolloutDecision,
    ) -> tuple[bool, bool]:
        """Order node and control-plane updates across a version change."""
        if node.version == release and control_plane.version == release:
            return True, True

        node_delta = compare_versions(node.version, release)
        cp_delta = compare_versions(control_plane.version, release)

        if VersionChange.UNKNOWN in (node_delta, cp_delta):
            logger.warning(
                f"Could not determine version change (node={node.version!r}, "
                f"control_plane={control_plane.version!r}, release={release!r}), "
                f"updating all units"
            )
            decision.fail_open = True
            decision.reasons.append("unknown version delta, updating all units")
            return True, True

        if node_delta == VersionChange.UPGRADE and cp_delta == VersionChange.UPGRADE:
            logger.info(f"Upgrading node unit to {release} before control plane")
            decision.reasons.append("upgrade: node first")
            return True, False

        if cp_delta == VersionChange.UPGRADE and node_delta == VersionChange.SAME:
            if node.progressing:
                decision.reasons.append("upgrade: waiting for node rollout before control plane")
                return True, False
            decision.reasons.append("upgrade: node done, updating control plane")
            return True, True

        if node_delta == VersionChange.DOWNGRADE and cp_delta == VersionChange.DOWNGRADE:
            logger.info(f"Downgrading control plane to {release} before node unit")
            decision.reasons.append("downgrade: control plane first")
            return False, True

        if node_delta == VersionChange.DOWNGRADE and cp_delta == VersionChange.SAME:
            if control_plane.progressing:
                decision.reasons.append(
                    "downgrade: waiting for control plane rollout before node"
                )
                return False, True
            decision.reasons.append("downgrade: control plane done, updating node")
            return True, True

        logger.warning(
            f"Inconsistent versions (node={node.version}, control_plane={control_plane.version}, "
            f"release={release}), updating all units"
        )
        decision.reasons.append("inconsistent version skew, updating all units")
        return True, True

    def _prewarm_stage(
        self,
        node: RolloutUnitStatus,
        prewarm: Optional[RolloutUnitStatus],
        release: str,
        decision: RolloutDecision,
    ) -> tuple[bool, bool]:
        """Hold the node update until the new image is pulled everywhere.

        Returns:
            (update_node, render_prewarm)
        """
        if node.version == release:
            return True, False

        if prewarm is None:
            decision.reasons.append(f"prewarming images for {release} before node update")
            return False, True

        if prewarm.version != release:
            decision.reasons.append(
                f"prewarm unit at {prewarm.version or 'unknown'}, updating it to {release}"
            )
            return False, True

        if prewarm.progressing:
            decision.reasons.append("waiting for prewarm unit to finish")
            return False, True

        decision.reasons.append("prewarm done, updating node")
        return True, False
