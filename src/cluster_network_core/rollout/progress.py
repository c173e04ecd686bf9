"""Rollout progress computation.

A unit is "progressing" while some of its members have not converged to the
desired revision. Per-node units can get stuck on a handful of broken nodes
forever; when such a unit is explicitly marked hung and only a small share of
it is behind, it is treated as done so the rest of the rollout can proceed.
"""
import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class HungRolloutPolicy:
    """How many stragglers a hung per-node unit may leave behind."""
    enabled: bool = True
    max_behind_fraction: float = 0.1
    min_behind: int = 1

    def allowance(self, desired: int) -> int:
        """Number of not-yet-updated members tolerated for a hung unit."""
        return max(self.min_behind, math.floor(desired * self.max_behind_fraction))


@dataclass
class WorkloadCounts:
    """Raw status counters of a rollout unit's workload.

    For per-node units ``desired`` is the number of scheduled nodes, for
    centralized units it is the replica count.
    """
    desired: int = 0
    updated: int = 0
    available: int = 0
    unavailable: int = 0
    generation: int = 0
    observed_generation: int = 0

    @property
    def generation_stale(self) -> bool:
        return self.generation > self.observed_generation


def per_node_progressing(
    counts: WorkloadCounts,
    hung: bool = False,
    policy: Optional[HungRolloutPolicy] = None,
) -> bool:
    """
    Decide whether a per-node unit is still rolling out.

    Args:
        counts: Current workload counters
        hung: Whether the unit carries the rollout-hung marker
        policy: Hung tolerance; None disables the allowance

    Returns:
        True while the unit has unconverged members
    """
    progressing = (
        counts.updated < counts.desired
        or counts.unavailable > 0
        or counts.available == 0
        or counts.generation_stale
    )
    if not progressing or not hung or policy is None or not policy.enabled:
        return progressing

    behind = counts.desired - counts.updated
    if behind <= policy.allowance(counts.desired):
        return False
    return progressing


def centralized_progressing(counts: WorkloadCounts) -> bool:
    """Decide whether a centralized (replicated) unit is still rolling out."""
    return (
        counts.updated < counts.desired
        or counts.available < counts.desired
        or counts.generation_stale
    )
