"""Utility modules for the network operator core."""
from .ippool import IPPool, OverlapError, parse_cidr, nets_overlap
from .version import VersionChange, compare_versions
from .logging_config import setup_logging, timed, timed_section_sync
from .audit_log import DecisionRecord, record_decision, setup_audit_logging

__all__ = [
    "IPPool",
    "OverlapError",
    "parse_cidr",
    "nets_overlap",
    "VersionChange",
    "compare_versions",
    "setup_logging",
    "timed",
    "timed_section_sync",
    "DecisionRecord",
    "record_decision",
    "setup_audit_logging",
]
