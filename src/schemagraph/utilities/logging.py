"""Namespaced loggers and the rich stderr handler used by the CLI."""

import logging
from typing import Optional, Union, get_args

from rich.console import Console
from rich.logging import RichHandler

from schemagraph.settings import LogLevel, settings

_LOG_NAMESPACE = "schemagraph"
_LEVEL_NAMES = get_args(LogLevel)


class _SchemaGraphHandler(RichHandler):
    """Marker subclass so reconfiguration only replaces our own handler."""


def get_logger(name: str) -> logging.Logger:
    """Logger for ``schemagraph.<name>``."""
    return logging.getLogger(f"{_LOG_NAMESPACE}.{name}")


def resolve_level(level: Union[str, int]) -> int:
    """
    Turn a level name (any case) or number into a logging level.

    Raises:
        ValueError: If ``level`` is not one of the standard level names.
    """
    if isinstance(level, int):
        return level
    name = level.upper()
    if name not in _LEVEL_NAMES:
        raise ValueError(f"Invalid log level: {level}")
    return getattr(logging, name)


def configure_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Send ``schemagraph.*`` records to stderr through rich.

    ``level`` defaults to ``settings.log_level`` (``SCHEMAGRAPH_LOG_LEVEL``).
    Calling this again swaps the handler instead of stacking a second one.
    """
    resolved = resolve_level(settings.log_level if level is None else level)
    logger = logging.getLogger(_LOG_NAMESPACE)
    for handler in [h for h in logger.handlers if isinstance(h, _SchemaGraphHandler)]:
        logger.removeHandler(handler)

    handler = _SchemaGraphHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_path=False,
        # messages carry user file paths and JSON previews
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(resolved)
    return logger
