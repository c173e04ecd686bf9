"""Reconcile pipeline: Validate → Default → Safety-Check → Orchestrate.

One call to ``reconcile`` is one pass. The pipeline holds no state between
passes; the caller persists ``result.applied`` and hands it back as
``previous`` on the next pass.
"""
import logging
from typing import Any, Optional, Union

from ..backends import BackendRegistry, UnsupportedBackendError, default_registry
from ..config.schema import OVN_KUBERNETES, NetworkSpec
from ..config.settings import OperatorSettings
from ..rollout.ipsec import plan_ipsec_rollout
from ..rollout.orchestrator import RolloutOrchestrator
from ..rollout.schema import BootstrapSnapshot
from ..utils.audit_log import record_decision
from .defaults import ConfigDefaulter
from .parser import ConfigParser, ParseError
from .safety import ChangeSafetyChecker
from .schema import ReconcileResult, ValidationResult
from .validator import ConfigValidator

logger = logging.getLogger(__name__)


class NetworkPipeline:
    """Run the configuration gates and the rollout decision for one pass."""

    def __init__(
        self,
        settings: Optional[OperatorSettings] = None,
        registry: Optional[BackendRegistry] = None,
    ):
        self.settings = settings or OperatorSettings()
        self.registry = registry or default_registry()
        self.parser = ConfigParser(known_types=self.registry.types())
        self.validator = ConfigValidator(self.registry, self.settings)
        self.defaulter = ConfigDefaulter(self.registry)
        self.safety = ChangeSafetyChecker(self.registry, self.settings)
        self.orchestrator = RolloutOrchestrator(self.settings)

    def reconcile(
        self,
        desired: Union[NetworkSpec, dict[str, Any]],
        previous: Optional[NetworkSpec],
        snapshot: BootstrapSnapshot,
    ) -> ReconcileResult:
        """
        Run one reconcile pass.

        Args:
            desired: Desired configuration (spec or raw dict)
            previous: Last applied configuration, None on first install
            snapshot: Live cluster facts

        Returns:
            ReconcileResult; ``accepted`` is False if the change was rejected,
            in which case the previously applied configuration stays in force
        """
        if isinstance(desired, dict):
            try:
                desired = self.parser.parse(desired)
            except ParseError as e:
                logger.warning(f"Rejecting malformed network config: {e}")
                result = ReconcileResult(validation=ValidationResult(valid=False, errors=[str(e)]))
                self._audit_rejection("", "parse", result.errors, snapshot)
                return result

        network_type = desired.network_type
        validation = self.validator.validate(desired, snapshot.platform_type)
        result = ReconcileResult(validation=validation)
        if not validation.valid:
            self._audit_rejection(network_type, "validate", validation.errors, snapshot)
            return result

        try:
            applied = self.defaulter.fill_defaults(desired, previous, snapshot.host_mtu)
        except UnsupportedBackendError as e:
            # Registry changed between validation and defaulting
            result.validation = ValidationResult(valid=False, errors=[str(e)])
            self._audit_rejection(network_type, "validate", result.errors, snapshot)
            return result

        safety_error = self.safety.is_change_safe(previous, applied, snapshot.platform_type)
        if safety_error is not None:
            result.safety_error = safety_error
            self._audit_rejection(network_type, "safety", safety_error.errors, snapshot)
            return result

        result.applied = applied
        result.decision = self.orchestrator.decide(applied, snapshot)

        ovn = applied.default_network.ovn_kubernetes_config
        if applied.network_type == OVN_KUBERNETES and ovn is not None:
            result.ipsec_plan = plan_ipsec_rollout(
                ovn.ipsec_mode,
                snapshot.ipsec_status,
                machine_config_active=snapshot.machine_config_active,
                hosted_control_plane=snapshot.hosted_control_plane,
            )

        decision = result.decision
        record_decision(
            network_type=network_type,
            stage="rollout",
            accepted=True,
            release_version=snapshot.release_version or self.settings.release_version,
            update_node=decision.update_node,
            update_control_plane=decision.update_control_plane,
            render_prewarm=decision.render_prewarm,
            fail_open=decision.fail_open,
            reasons=decision.reasons,
        )
        return result

    def _audit_rejection(
        self,
        network_type: str,
        stage: str,
        errors: list[str],
        snapshot: BootstrapSnapshot,
    ) -> None:
        record_decision(
            network_type=network_type,
            stage=stage,
            accepted=False,
            errors=errors,
            release_version=snapshot.release_version or self.settings.release_version,
        )
