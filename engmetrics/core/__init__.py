"""
Core Infrastructure - Logging, Configuration, Run Tracking

Usage:
    from engmetrics.core import get_config, get_logger

    logger = get_logger(__name__)
    config = get_config()
    storage_config = config.get_storage_config()
"""

from engmetrics.core.logging_config import get_logger, log_with_context, setup_logging
from engmetrics.core.run_metrics import RunMetricsTracker, get_current_tracker, track_run_performance
from engmetrics.secure_config import ConfigurationError, SecureConfig, get_config

__all__ = [
    # Logging
    "get_logger",
    "log_with_context",
    "setup_logging",
    # Run tracking
    "RunMetricsTracker",
    "get_current_tracker",
    "track_run_performance",
    # Configuration
    "ConfigurationError",
    "SecureConfig",
    "get_config",
]
