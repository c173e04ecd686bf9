"""Rollout orchestration for the networking components."""
from .progress import HungRolloutPolicy, WorkloadCounts
from .schema import (
    UnitKind,
    IPFamilyMode,
    RolloutUnitStatus,
    IPsecRolloutStatus,
    BootstrapSnapshot,
    RolloutDecision,
)
from .ipsec import IPsecRenderPlan, plan_ipsec_rollout

__all__ = [
    "HungRolloutPolicy",
    "WorkloadCounts",
    "UnitKind",
    "IPFamilyMode",
    "RolloutUnitStatus",
    "IPsecRolloutStatus",
    "BootstrapSnapshot",
    "RolloutDecision",
    "IPsecRenderPlan",
    "plan_ipsec_rollout",
]
