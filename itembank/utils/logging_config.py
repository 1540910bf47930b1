"""Centralized logging configuration for the CLI and API entry points.

Library modules only create module loggers; handlers and format are
installed once here by whichever entry point runs first.
"""

from __future__ import annotations

import logging

# Default format used by the CLI and the API server
DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(verbose: bool = False, level: int | None = None) -> None:
    """Configure logging with consistent format.

    Args:
        verbose: If True, sets level to DEBUG. Overrides `level` parameter.
        level: Explicit logging level. Defaults to INFO if not specified.

    Example:
        >>> setup_logging()  # INFO level
        >>> setup_logging(verbose=True)  # DEBUG level
        >>> setup_logging(level=logging.WARNING)  # WARNING level
    """
    if verbose:
        effective_level = logging.DEBUG
    elif level is not None:
        effective_level = level
    else:
        effective_level = logging.INFO

    logging.basicConfig(
        level=effective_level,
        format=DEFAULT_LOG_FORMAT,
    )

