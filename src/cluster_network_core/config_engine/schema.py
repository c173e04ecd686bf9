"""Result types for the Config Engine."""
from dataclasses import dataclass, field
from typing import Optional

from ..config.schema import NetworkSpec
from ..rollout.ipsec import IPsecRenderPlan
from ..rollout.schema import RolloutDecision


@dataclass
class ValidationResult:
    """Result of config validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class UnsafeChangeError(Exception):
    """A configuration transition that must not be applied.

    Carries every violated rule, not just the first.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("invalid configuration: [" + ", ".join(self.errors) + "]")


class DefaultsNotAppliedError(Exception):
    """Change-safety was asked to compare specs that were never defaulted."""
    pass


@dataclass
class ReconcileResult:
    """Outcome of one pass through the pipeline."""
    validation: ValidationResult
    applied: Optional[NetworkSpec] = None
    safety_error: Optional[UnsafeChangeError] = None
    decision: Optional[RolloutDecision] = None
    ipsec_plan: Optional[IPsecRenderPlan] = None

    @property
    def accepted(self) -> bool:
        return self.validation.valid and self.safety_error is None and self.applied is not None

    @property
    def errors(self) -> list[str]:
        if not self.validation.valid:
            return list(self.validation.errors)
        if self.safety_error is not None:
            return list(self.safety_error.errors)
        return []
