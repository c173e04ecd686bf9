#!/usr/bin/env python3
"""Command-line runner for the reconcile pipeline.

Usage:
    cluster-network-core validate DESIRED [--platform TYPE]
    cluster-network-core reconcile DESIRED [--previous APPLIED] [--snapshot SNAPSHOT]

Environment variables:
    RELEASE_VERSION                   Target release when the snapshot has none
    CLUSTER_NETWORK_LOG_LEVEL=DEBUG   Console log level
"""
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import yaml

from .config.loader import load_bootstrap_snapshot, load_network_spec
from .config.settings import OperatorSettings
from .config_engine import (
    ConfigValidator,
    DefaultsNotAppliedError,
    NetworkPipeline,
    ParseError,
)
from .rollout.schema import BootstrapSnapshot
from .utils.audit_log import audit_logger, setup_audit_logging
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def load_settings(path: Optional[Path]) -> OperatorSettings:
    if path is not None:
        return OperatorSettings.from_file(path)
    return OperatorSettings.from_env()


def cmd_validate(args: argparse.Namespace, settings: OperatorSettings) -> int:
    spec = load_network_spec(args.desired)
    if spec is None:
        logger.error(f"Network config is empty: {args.desired}")
        return 1

    result = ConfigValidator(settings=settings).validate(spec, args.platform)
    print(yaml.safe_dump({
        "valid": result.valid,
        "errors": result.errors,
        "warnings": result.warnings,
    }, sort_keys=False), end="")
    return 0 if result.valid else 2


def cmd_reconcile(args: argparse.Namespace, settings: OperatorSettings) -> int:
    desired = load_network_spec(args.desired)
    if desired is None:
        logger.error(f"Network config is empty: {args.desired}")
        return 1

    previous = load_network_spec(args.previous) if args.previous else None
    if args.snapshot:
        snapshot = load_bootstrap_snapshot(args.snapshot, settings.hung_policy)
    else:
        snapshot = BootstrapSnapshot()

    result = NetworkPipeline(settings).reconcile(desired, previous, snapshot)

    output = {
        "accepted": result.accepted,
        "errors": result.errors,
        "warnings": result.validation.warnings,
    }
    if result.applied is not None:
        output["applied"] = result.applied.to_dict()
    if result.decision is not None:
        output["rollout"] = result.decision.to_dict()
    if result.ipsec_plan is not None:
        output["ipsec"] = result.ipsec_plan.to_dict()

    print(yaml.safe_dump(output, sort_keys=False), end="")
    return 0 if result.accepted else 2


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Validate network configuration changes and plan component rollouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Check a proposed configuration
    cluster-network-core validate network.yaml --platform BareMetal

    # Full pass against the applied configuration and live status
    cluster-network-core reconcile network.yaml --previous applied.yaml --snapshot snapshot.yaml

Exit codes:
    0  accepted, 1  usage or input error, 2  change rejected
""",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="Operator settings YAML (default: from environment)",
    )
    parser.add_argument(
        "--audit-dir",
        type=str,
        help="Write the decision audit log to this directory",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Validate a network config")
    validate_parser.add_argument("desired", type=Path, help="Desired network config YAML")
    validate_parser.add_argument("--platform", type=str, help="Platform type (e.g. BareMetal)")

    reconcile_parser = subparsers.add_parser("reconcile", help="Run one reconcile pass")
    reconcile_parser.add_argument("desired", type=Path, help="Desired network config YAML")
    reconcile_parser.add_argument("--previous", type=Path, help="Applied network config YAML")
    reconcile_parser.add_argument("--snapshot", type=Path, help="Bootstrap snapshot YAML")

    args = parser.parse_args()

    if args.verbose:
        os.environ["CLUSTER_NETWORK_LOG_LEVEL"] = "DEBUG"
    setup_logging(console_only=True)
    if args.audit_dir:
        setup_audit_logging(args.audit_dir)
    else:
        audit_logger.propagate = False

    for path in (getattr(args, "desired", None), getattr(args, "previous", None),
                 getattr(args, "snapshot", None)):
        if path is not None and not path.exists():
            logger.error(f"File not found: {path}")
            return 1

    try:
        settings = load_settings(args.settings)
        if args.command == "validate":
            return cmd_validate(args, settings)
        return cmd_reconcile(args, settings)
    except ParseError as e:
        logger.error(f"Invalid input: {e}")
        return 1
    except DefaultsNotAppliedError as e:
        logger.error(f"--previous must be an applied (defaulted) config: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Cannot reconcile: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
