"""Config Engine - validation, defaulting and change-safety for network configuration.

Flow:
1. Parse: dict/YAML → NetworkSpec
2. Validate: semantic checks, every error collected
3. Default: fill unset fields, previous values win for immutable ones
4. Safety: compare against the applied configuration
5. Orchestrate: decide which rollout units may update
"""
from .schema import (
    ValidationResult,
    UnsafeChangeError,
    DefaultsNotAppliedError,
    ReconcileResult,
)
from .parser import ConfigParser, ParseError
from .validator import ConfigValidator
from .defaults import ConfigDefaulter, fill_defaults, need_mtu_probe
from .safety import ChangeSafetyChecker, is_change_safe
from .engine import NetworkPipeline

__all__ = [
    "ValidationResult",
    "UnsafeChangeError",
    "DefaultsNotAppliedError",
    "ReconcileResult",
    "ConfigParser",
    "ParseError",
    "ConfigValidator",
    "ConfigDefaulter",
    "fill_defaults",
    "need_mtu_probe",
    "ChangeSafetyChecker",
    "is_change_safe",
    "NetworkPipeline",
]
