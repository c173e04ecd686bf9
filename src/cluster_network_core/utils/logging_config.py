"""Logging configuration for the network operator core.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Stage timing for the reconcile pipeline (validate, default, safety, rollout)

Environment Variables:
    CLUSTER_NETWORK_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    CLUSTER_NETWORK_LOG_FILE: Path to log file (default: ~/.cluster-network-core/operator.log)
    CLUSTER_NETWORK_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    CLUSTER_NETWORK_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from cluster_network_core.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("validate")
    def validate(self, spec):
        ...

    with timed_section_sync("orchestrate", unit="ovnkube-node"):
        ...
"""
import functools
import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Callable, Any

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("cluster_network_core.perf")
main_logger = logging.getLogger("cluster_network_core")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("CLUSTER_NETWORK_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".cluster-network-core" / "operator.log"
    path_str = os.environ.get("CLUSTER_NETWORK_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging(console_only: bool = False) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects CLUSTER_NETWORK_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for stage timings

    Args:
        console_only: Skip the rotating file handlers (one-shot CLI runs)
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("CLUSTER_NETWORK_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("CLUSTER_NETWORK_LOG_BACKUPS", "5"))

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-40s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    main_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    main_logger.addHandler(console_handler)

    # Perf records go to their own handlers only
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.propagate = False
    perf_logger.addHandler(console_handler)

    if console_only:
        main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, console only")
        return

    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)
    main_logger.addHandler(file_handler)

    perf_log_file = log_file.parent / "operator-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)
    perf_logger.addHandler(perf_handler)

    main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def timed(operation: str, network_type: Optional[str] = None):
    """Decorator to log execution time of a pipeline stage.

    Args:
        operation: Name of the stage (e.g., "validate", "fill_defaults")
        network_type: Optional backend name (can also be inferred from self.network_type)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            net_type = network_type
            if net_type is None and args and hasattr(args[0], "network_type"):
                net_type = args[0].network_type

            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000  # ms
                perf_logger.info(
                    f"{operation:20s} | {net_type or 'N/A':15s} | {elapsed:8.2f}ms | OK"
                )
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(
                    f"{operation:20s} | {net_type or 'N/A':15s} | {elapsed:8.2f}ms | FAIL: {e}"
                )
                raise

        return wrapper

    return decorator


@contextmanager
def timed_section_sync(operation: str, network_type: Optional[str] = None, **extra):
    """Sync context manager for timing code sections."""
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {network_type or 'N/A':15s} | {elapsed:8.2f}ms | OK"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {network_type or 'N/A':15s} | {elapsed:8.2f}ms | FAIL: {e}"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
