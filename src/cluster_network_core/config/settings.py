"""Operator settings.

Environment variables:
- RELEASE_VERSION: Target release version for the rollout units
- CLUSTER_NETWORK_HUNG_TOLERANCE: Fraction of a per-node unit that may lag
  behind while the unit is marked hung (default: 0.1)
- CLUSTER_NETWORK_HUNG_MIN_BEHIND: Lower bound on that allowance (default: 1)
- CLUSTER_NETWORK_ALLOW_HUNG: Set to "0" to never treat hung units as done
- CLUSTER_NETWORK_DUAL_STACK_PLATFORMS: Comma-separated platform types that
  may be installed dual-stack (replaces the default list)
- CLUSTER_NETWORK_DUAL_STACK_CONVERSION_PLATFORMS: Comma-separated platform
  types that may convert between single and dual-stack after install
"""
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ..rollout.progress import HungRolloutPolicy

logger = logging.getLogger(__name__)

DEFAULT_HUNG_TOLERANCE = 0.1
DEFAULT_HUNG_MIN_BEHIND = 1

# Platforms that support dual-stack at install time
DEFAULT_DUAL_STACK_PLATFORMS = [
    "BareMetal",
    "None",
    "VSphere",
    "OpenStack",
    "KubeVirt",
]

# Platforms that support converting an installed cluster to/from dual-stack
DEFAULT_DUAL_STACK_CONVERSION_PLATFORMS = [
    "BareMetal",
    "None",
    "VSphere",
]


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class OperatorSettings:
    """Tunables for one operator process, passed explicitly to the pipeline."""
    release_version: str = ""
    hung_tolerance: float = DEFAULT_HUNG_TOLERANCE
    hung_min_behind: int = DEFAULT_HUNG_MIN_BEHIND
    allow_hung: bool = True
    dual_stack_platforms: list[str] = field(
        default_factory=lambda: DEFAULT_DUAL_STACK_PLATFORMS.copy()
    )
    dual_stack_conversion_platforms: list[str] = field(
        default_factory=lambda: DEFAULT_DUAL_STACK_CONVERSION_PLATFORMS.copy()
    )

    @property
    def hung_policy(self) -> HungRolloutPolicy:
        return HungRolloutPolicy(
            enabled=self.allow_hung,
            max_behind_fraction=self.hung_tolerance,
            min_behind=self.hung_min_behind,
        )

    @classmethod
    def from_env(cls) -> "OperatorSettings":
        """Load settings from environment variables."""
        settings = cls(
            release_version=os.environ.get("RELEASE_VERSION", ""),
            hung_tolerance=float(
                os.environ.get("CLUSTER_NETWORK_HUNG_TOLERANCE", str(DEFAULT_HUNG_TOLERANCE))
            ),
            hung_min_behind=int(
                os.environ.get("CLUSTER_NETWORK_HUNG_MIN_BEHIND", str(DEFAULT_HUNG_MIN_BEHIND))
            ),
            allow_hung=os.environ.get("CLUSTER_NETWORK_ALLOW_HUNG", "1") != "0",
        )

        platforms = os.environ.get("CLUSTER_NETWORK_DUAL_STACK_PLATFORMS", "")
        if platforms:
            settings.dual_stack_platforms = _split_list(platforms)

        conversion = os.environ.get("CLUSTER_NETWORK_DUAL_STACK_CONVERSION_PLATFORMS", "")
        if conversion:
            settings.dual_stack_conversion_platforms = _split_list(conversion)

        settings.check()
        return settings

    @classmethod
    def from_file(cls, path: Path) -> "OperatorSettings":
        """Load settings from a YAML file, falling back to defaults."""
        if not path.exists():
            logger.warning(f"Settings file not found: {path}")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        hung = data.get("hung_rollout", {})
        dual_stack = data.get("dual_stack", {})

        settings = cls(
            release_version=str(data.get("release_version", "")),
            hung_tolerance=float(hung.get("tolerance", DEFAULT_HUNG_TOLERANCE)),
            hung_min_behind=int(hung.get("min_behind", DEFAULT_HUNG_MIN_BEHIND)),
            allow_hung=bool(hung.get("enabled", True)),
            dual_stack_platforms=list(
                dual_stack.get("platforms", DEFAULT_DUAL_STACK_PLATFORMS)
            ),
            dual_stack_conversion_platforms=list(
                dual_stack.get("conversion_platforms", DEFAULT_DUAL_STACK_CONVERSION_PLATFORMS)
            ),
        )
        settings.check()
        return settings

    def check(self) -> None:
        """Reject settings that would make the hung allowance meaningless.

        Raises:
            ValueError: If the tolerance is outside [0, 1] or the minimum is negative
        """
        if not 0.0 <= self.hung_tolerance <= 1.0:
            raise ValueError(
                f"hung rollout tolerance must be between 0 and 1, got {self.hung_tolerance}"
            )
        if self.hung_min_behind < 0:
            raise ValueError(
                f"hung rollout minimum must not be negative, got {self.hung_min_behind}"
            )
