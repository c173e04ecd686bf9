"""Host-level encryption (IPsec) rollout planning.

Encryption needs a machine-level capability (the IPsec packages and
services on every host) before the host-level unit can run. Clusters
upgraded from the single-unit layout keep running both the host and the
containerized unit until the split is complete; hosted control planes only
ever use the containerized unit.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config.schema import IPsecMode
from .schema import (
    CREATE_ONLY_ANNOTATION,
    CREATE_WAIT_ANNOTATION,
    IPSEC_CONTAINERIZED_UNIT,
    IPSEC_HOST_UNIT,
    IPSEC_LEGACY_UNIT,
    IPsecRolloutStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class IPsecRenderPlan:
    """Which encryption pieces to render this pass."""
    render_host_unit: bool = False
    render_containerized_unit: bool = False
    render_machine_config: bool = False
    enable_in_backend: bool = False
    unit_annotations: dict[str, dict[str, str]] = field(default_factory=dict)

    @property
    def renders_any_unit(self) -> bool:
        return self.render_host_unit or self.render_containerized_unit

    def to_dict(self) -> dict:
        return {
            "render_host_unit": self.render_host_unit,
            "render_containerized_unit": self.render_containerized_unit,
            "render_machine_config": self.render_machine_config,
            "enable_in_backend": self.enable_in_backend,
            "unit_annotations": {k: dict(v) for k, v in self.unit_annotations.items()},
        }


def plan_ipsec_rollout(
    mode: IPsecMode,
    status: Optional[IPsecRolloutStatus] = None,
    machine_config_active: bool = False,
    hosted_control_plane: bool = False,
) -> IPsecRenderPlan:
    """
    Plan the encryption rollout for one pass.

    Args:
        mode: Desired IPsec mode
        status: Current encryption rollout state, None if never deployed
        machine_config_active: The machine-level IPsec capability is active on every host
        hosted_control_plane: The control plane runs outside the cluster

    Returns:
        IPsecRenderPlan for the apply layer
    """
    status = status or IPsecRolloutStatus()
    legacy_upgrade = status.legacy_upgrade
    plan = IPsecRenderPlan()

    # Keep the units while encryption is still active, even if being disabled
    render_units = status.active or mode == IPsecMode.FULL

    plan.render_host_unit = (render_units and not hosted_control_plane) or legacy_upgrade
    plan.render_containerized_unit = (render_units and hosted_control_plane) or legacy_upgrade

    # Both External and Full need the host capability; hosted clusters use the container
    plan.render_machine_config = (
        (mode != IPsecMode.DISABLED or render_units) and not hosted_control_plane
    )

    capability_ready = machine_config_active or hosted_control_plane or legacy_upgrade
    plan.enable_in_backend = (
        plan.renders_any_unit and mode == IPsecMode.FULL and capability_ready
    )

    if legacy_upgrade:
        # Split units and the legacy placeholder wait until the legacy unit is replaced
        for unit in (IPSEC_HOST_UNIT, IPSEC_CONTAINERIZED_UNIT, IPSEC_LEGACY_UNIT):
            plan.unit_annotations[unit] = {CREATE_WAIT_ANNOTATION: "true"}
        logger.info("IPsec legacy upgrade in progress, rendering legacy placeholder unit")
    elif status.active and not plan.enable_in_backend:
        # Leave existing units alone until encryption is off in the backend
        for unit in (IPSEC_HOST_UNIT, IPSEC_CONTAINERIZED_UNIT):
            plan.unit_annotations[unit] = {CREATE_WAIT_ANNOTATION: "true"}
        logger.info("IPsec is being disabled, holding IPsec units as create-wait")
    elif plan.render_host_unit and not machine_config_active:
        # Capability activation in flight: create the unit but do not mutate it
        plan.unit_annotations[IPSEC_HOST_UNIT] = {CREATE_ONLY_ANNOTATION: "true"}
        logger.info("IPsec machine config not active yet, host unit is create-only")

    return plan
