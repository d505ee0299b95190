"""
Logging configuration for epmaquant.

Every module logs through ``get_logger``, so all output sits under the
``epmaquant`` logger:

- ``epmaquant.quant.estimator``: configuration (INFO), non-convergence (WARNING)
- ``epmaquant.quant.iteration``: per-step estimates and mismatch (DEBUG)
- ``epmaquant.quant.selection``: TransitionSet choices (DEBUG, WARNING)
- ``epmaquant.quant.correction``: per-line correction failures (WARNING)
- ``epmaquant.quant.standards``: standard registration (INFO)

``setup_logging`` configures only this hierarchy; the root logger of the host
application is left alone.
"""

import logging
import sys
from typing import Any, Dict, Mapping, Optional, Union

PACKAGE_LOGGER = "epmaquant"
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
DEFAULT_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Union[str, int]) -> int:
    """
    Convert a level name or number to a logging level.

    Raises
    ------
    ValueError
        If the name is not one of VALID_LOG_LEVELS
    """
    if isinstance(level, int):
        return level
    name = str(level).upper()
    if name not in VALID_LOG_LEVELS:
        raise ValueError(f"Invalid logging level: {level}. Must be one of: {VALID_LOG_LEVELS}")
    return getattr(logging, name)


def setup_logging(
    level: Union[str, int] = "INFO",
    format_string: Optional[str] = None,
    stream: Optional[object] = None,
    levels: Optional[Mapping[str, Union[str, int]]] = None,
) -> logging.Logger:
    """
    Configure logging for epmaquant.

    Installs one stream handler on the ``epmaquant`` logger. Calling again
    replaces that handler rather than adding another.

    Parameters
    ----------
    level : str or int
        Level of the package logger: 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'
    format_string : str, optional
        Custom format string. If None, uses default format.
    stream : file-like object, optional
        Stream to write logs to. If None, uses sys.stderr.
    levels : Mapping[str, str or int], optional
        Per-subsystem levels keyed by name relative to the package, e.g.
        ``{"quant.iteration": "DEBUG"}`` to trace the iteration alone

    Returns
    -------
    logging.Logger
        The configured package logger
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        if getattr(handler, "_epmaquant_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT))
    handler._epmaquant_handler = True
    package_logger.addHandler(handler)
    package_logger.setLevel(resolve_level(level))

    for name, sub_level in (levels or {}).items():
        get_logger(name).setLevel(resolve_level(sub_level))
    return package_logger


def setup_logging_from_config(
    config: Mapping[str, Any], stream: Optional[object] = None
) -> logging.Logger:
    """
    Configure logging from the ``logging`` section of a configuration.

    Recognized keys: ``level``, ``format`` and ``levels`` (per-subsystem
    levels, see ``setup_logging``). A missing section gives the defaults.
    """
    section: Dict[str, Any] = dict(config.get("logging") or {})
    return setup_logging(
        level=section.get("level", "INFO"),
        format_string=section.get("format"),
        stream=stream,
        levels=section.get("levels"),
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Parameters
    ----------
    name : str
        Logger name relative to the package (e.g. 'quant.estimator')

    Returns
    -------
    logging.Logger
        Logger instance
    """
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
