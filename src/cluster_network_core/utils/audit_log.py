"""Audit logging for reconcile decisions.

Every reconcile pass that rejects a change or produces a rollout decision is
written as one JSON line to a dedicated audit logger, so that fail-open
decisions on unreadable versions and rejected configuration changes can be
traced after the fact.
"""
import json
import logging
import os
from datetime import datetime, timezone
from dataclasses import dataclass, asdict, field
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Create dedicated audit logger
audit_logger = logging.getLogger("cluster_network_core.audit")


def setup_audit_logging(log_dir: Optional[str] = None) -> None:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.cluster-network-core/
    """
    if log_dir is None:
        log_dir = os.path.expanduser("~/.cluster-network-core")

    Path(log_dir).mkdir(parents=True, exist_ok=True)

    audit_file = os.path.join(log_dir, "audit.log")

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
    )

    # Use JSON format for machine-readability
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)

    # Don't propagate to root logger
    audit_logger.propagate = False


@dataclass
class DecisionRecord:
    """Record of one reconcile pass."""
    timestamp: str
    network_type: str
    stage: str  # validate, safety, rollout
    accepted: bool
    release_version: str = ""
    errors: list[str] = field(default_factory=list)
    update_node: Optional[bool] = None
    update_control_plane: Optional[bool] = None
    render_prewarm: Optional[bool] = None
    fail_open: bool = False
    reasons: list[str] = field(default_factory=list)

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "DecisionRecord":
        """Parse from JSON string."""
        data = json.loads(json_str)
        return cls(**data)


def record_decision(
    network_type: str,
    stage: str,
    accepted: bool,
    errors: Optional[list[str]] = None,
    release_version: str = "",
    update_node: Optional[bool] = None,
    update_control_plane: Optional[bool] = None,
    render_prewarm: Optional[bool] = None,
    fail_open: bool = False,
    reasons: Optional[list[str]] = None,
) -> DecisionRecord:
    """Write a decision to the audit log.

    Returns:
        The DecisionRecord that was logged
    """
    record = DecisionRecord(
        timestamp=datetime.now(timezone.utc).isoformat(),
        network_type=network_type,
        stage=stage,
        accepted=accepted,
        release_version=release_version,
        errors=list(errors or []),
        update_node=update_node,
        update_control_plane=update_control_plane,
        render_prewarm=render_prewarm,
        fail_open=fail_open,
        reasons=list(reasons or []),
    )

    audit_logger.info(record.to_json())

    return record


def get_recent_decisions(
    log_file: Optional[str] = None,
    stage: Optional[str] = None,
    fail_open_only: bool = False,
    limit: int = 100,
) -> list[DecisionRecord]:
    """Read recent decisions from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.cluster-network-core/audit.log
        stage: Filter by pipeline stage
        fail_open_only: Only return passes that degraded to "update everything"
        limit: Maximum number of records to return

    Returns:
        List of DecisionRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.expanduser("~/.cluster-network-core/audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = DecisionRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if stage and record.stage != stage:
                continue
            if fail_open_only and not record.fail_open:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
