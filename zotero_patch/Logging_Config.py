# Logging_Config.py
# Description: Loguru sink configuration for zotero_patch
#
# Imports
import os
import sys
from typing import Optional
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from .Metrics.metrics_logger import METRIC_LEVEL
#
########################################################################################################################
#
# Functions:

CONSOLE_FORMAT = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def _ensure_log_dir_exists(file_path: str) -> str:
    """Ensure the directory for the log file exists."""
    expanded_path = os.path.expanduser(file_path)
    log_dir = os.path.dirname(expanded_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return expanded_path


def _is_metric(record) -> bool:
    return record["level"].name == METRIC_LEVEL


def setup_logger(
    log_level: str = "INFO",
    app_log_path: Optional[str] = None,
    metrics_log_path: Optional[str] = None,
):
    """
    Sets up Loguru sinks: console (stderr), an optional rotating application
    log and an optional JSON metrics log.

    Metrics are logged at the custom METRIC level and only reach the metrics
    sink; the console and application log never show them.

    Returns:
        The configured logger instance.
    """
    logger.remove()
    logger.enable("zotero_patch")

    logger.add(
        sys.stderr,
        level=log_level.upper(),
        format=CONSOLE_FORMAT,
        filter=lambda record: not _is_metric(record),
    )

    if app_log_path:
        path = _ensure_log_dir_exists(app_log_path)
        logger.add(
            path,
            level=log_level.upper(),
            format=FILE_FORMAT,
            filter=lambda record: not _is_metric(record),
            rotation="10 MB",
            retention="7 days",
            enqueue=True,
            backtrace=True,
            diagnose=False,    # records carry the API token in client locals
        )
        logger.debug(f"Application logs will be written to: {path}")

    if metrics_log_path:
        path = _ensure_log_dir_exists(metrics_log_path)
        logger.add(
            path,
            level=METRIC_LEVEL,
            filter=_is_metric,
            serialize=True,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )
        logger.debug(f"JSON metrics logs will be written to: {path}")

    return logger

#
# End of Logging_Config.py
########################################################################################################################
