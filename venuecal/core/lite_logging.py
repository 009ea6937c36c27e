"""
Central logging configuration for venuecal.

Expansion and aggregation run on every calendar navigation, so their debug
diagnostics are kept out of the default output and only switched on for
troubleshooting.
"""

import logging
import os
from typing import Optional

# Module loggers whose level follows the debug switch
VENUECAL_MODULES = [
    "venuecal",
    "venuecal.core.timezone_utils",
    "venuecal.calendar.lite_rrule_codec",
    "venuecal.calendar.lite_occurrence_expander",
    "venuecal.domain.calendar_aggregator",
    "venuecal.domain.event_commands",
    "venuecal.domain.event_store",
]

# Third-party loggers that are noisy at DEBUG
SUPPRESSED_LOGGERS = [
    "asyncio",
    "dateutil",
]


_LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    log_level: Optional[str] = None,
) -> None:
    """
    Configure logging levels for venuecal modules.

    Args:
        debug_mode: Whether to enable debug logging for venuecal modules
        force_debug: Override debug mode setting (None to use env var detection)
        log_level: Configured level name; raises the venuecal module loggers to it
            when it is stricter than INFO

    Environment Variables:
        VENUECAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        VENUECAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("VENUECAL_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("VENUECAL_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if not final_debug and log_level and log_level.upper() in _LEVEL_NAMES:
        root_level = getattr(logging, log_level.upper())
    if env_log_level in _LEVEL_NAMES:
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a plain handler if none exist (keep the colorlog setup from __init__.py)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s - %(name)s - %(message)s")
        )
        root_logger.addHandler(handler)

    logger_config: dict[str, int] = {name: logging.WARNING for name in SUPPRESSED_LOGGERS}

    # Module loggers propagate to the root handlers regardless of the root level
    module_level = logging.DEBUG if final_debug else max(logging.INFO, root_level)
    for module in VENUECAL_MODULES:
        logger_config[module] = module_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for venuecal modules.")
    else:
        root_logger.info("Production logging configuration applied.")

