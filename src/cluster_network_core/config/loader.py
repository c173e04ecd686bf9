"""Load network configurations and bootstrap snapshots from YAML files.

A snapshot file looks like:

```yaml
platform_type: BareMetal
release_version: "4.14.0"
host_mtu: 1500
ipsec_status:
  legacy_upgrade: false
  active: false
node_status:
  namespace: openshift-ovn-kubernetes
  name: ovnkube-node
  version: "4.13.0"
  ip_family_mode: single-stack
  workload:            # or "progressing: true|false"
    desired: 6
    updated: 6
    available: 6
  annotations:
    networkoperator.openshift.io/rollout-hung: ""
```
"""
import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from ..config_engine.parser import ConfigParser, ParseError
from ..rollout.progress import HungRolloutPolicy, WorkloadCounts
from ..rollout.schema import (
    BootstrapSnapshot,
    IPsecRolloutStatus,
    RolloutUnitStatus,
    UnitKind,
)
from .schema import NetworkSpec

logger = logging.getLogger(__name__)

DEFAULT_UNIT_KINDS = {
    "node_status": UnitKind.PER_NODE,
    "control_plane_status": UnitKind.CENTRALIZED,
    "prewarm_status": UnitKind.PER_NODE,
}


def _read_yaml(path: Path) -> Any:
    with open(path) as f:
        return yaml.safe_load(f)


def load_network_spec(path: Path, parser: Optional[ConfigParser] = None) -> Optional[NetworkSpec]:
    """
    Load a NetworkSpec from a YAML file.

    Returns:
        The parsed spec, or None if the file is empty

    Raises:
        ParseError: If the file is not valid YAML or not a valid spec
    """
    try:
        data = _read_yaml(path)
    except yaml.YAMLError as e:
        raise ParseError(f"{path}: invalid YAML: {e}")

    if data is None:
        logger.info(f"Network config {path} is empty")
        return None

    return (parser or ConfigParser()).parse(data)


def load_bootstrap_snapshot(
    path: Path,
    hung_policy: Optional[HungRolloutPolicy] = None,
) -> BootstrapSnapshot:
    """Load a BootstrapSnapshot from a YAML file.

    Raises:
        ParseError: If the file is not valid YAML or not a valid snapshot
    """
    try:
        data = _read_yaml(path)
    except yaml.YAMLError as e:
        raise ParseError(f"{path}: invalid YAML: {e}")

    return parse_bootstrap_snapshot(data or {}, hung_policy)


def parse_bootstrap_snapshot(
    data: dict[str, Any],
    hung_policy: Optional[HungRolloutPolicy] = None,
) -> BootstrapSnapshot:
    """Build a BootstrapSnapshot from a plain dict."""
    if not isinstance(data, dict):
        raise ParseError("bootstrap snapshot must be a mapping")

    units = {}
    for key, default_kind in DEFAULT_UNIT_KINDS.items():
        raw = data.get(key)
        units[key] = _parse_unit(raw, key, default_kind, hung_policy) if raw else None

    ipsec_status = None
    if data.get("ipsec_status") is not None:
        raw = data["ipsec_status"]
        if not isinstance(raw, dict):
            raise ParseError("ipsec_status must be a mapping")
        ipsec_status = IPsecRolloutStatus(
            legacy_upgrade=bool(raw.get("legacy_upgrade", False)),
            active=bool(raw.get("active", False)),
        )

    host_mtu = data.get("host_mtu")
    if host_mtu is not None:
        try:
            host_mtu = int(host_mtu)
        except (TypeError, ValueError):
            raise ParseError(f"host_mtu must be an integer, got {host_mtu!r}")

    return BootstrapSnapshot(
        platform_type=str(data.get("platform_type") or ""),
        node_status=units["node_status"],
        control_plane_status=units["control_plane_status"],
        prewarm_status=units["prewarm_status"],
        ipsec_status=ipsec_status,
        release_version=str(data.get("release_version") or ""),
        host_mtu=host_mtu,
        machine_config_active=bool(data.get("machine_config_active", False)),
        hosted_control_plane=bool(data.get("hosted_control_plane", False)),
    )


def _parse_unit(
    raw: Any,
    key: str,
    default_kind: UnitKind,
    hung_policy: Optional[HungRolloutPolicy],
) -> RolloutUnitStatus:
    """Parse one unit, computing progress from workload counts when given."""
    if not isinstance(raw, dict):
        raise ParseError(f"{key} must be a mapping")

    try:
        kind = UnitKind(raw.get("kind", default_kind.value))
    except ValueError:
        raise ParseError(f"{key}.kind must be one of {[k.value for k in UnitKind]}")

    namespace = str(raw.get("namespace", ""))
    name = str(raw.get("name", ""))

    if "workload" in raw:
        try:
            counts = WorkloadCounts(**{k: int(v) for k, v in (raw["workload"] or {}).items()})
        except (AttributeError, TypeError, ValueError) as e:
            raise ParseError(f"{key}.workload is invalid: {e}")
        status = RolloutUnitStatus.from_workload(
            kind,
            namespace,
            name,
            counts,
            annotations=raw.get("annotations") or {},
            hung_policy=hung_policy,
        )
        # Explicit fields override what the annotations say
        for field_name in ("version", "ip_family_mode", "cluster_network_cidrs"):
            if raw.get(field_name):
                setattr(status, field_name, str(raw[field_name]))
        return status

    return RolloutUnitStatus(
        kind=kind,
        namespace=namespace,
        name=name,
        version=str(raw.get("version") or ""),
        ip_family_mode=str(raw.get("ip_family_mode") or ""),
        cluster_network_cidrs=str(raw.get("cluster_network_cidrs") or ""),
        progressing=bool(raw.get("progressing", False)),
        hung=bool(raw.get("hung", False)),
    )
