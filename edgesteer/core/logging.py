"""Loguru setup driven by ``EdgeSteerSettings``.

A single stderr sink is installed. Records at or above ``log_level`` always
pass; DEBUG records pass only for the modules named in ``debug_scopes``.
Short scope names resolve inside ``edgesteer.core`` (``prober`` and
``core.prober`` both mean ``edgesteer.core.prober``).
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import Any

from loguru import logger

from .config import EdgeSteerSettings

PACKAGE = "edgesteer"

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def scope_prefix(scope: str) -> str:
    """Module-name prefix a debug scope selects."""
    scope = scope.strip()
    if scope == PACKAGE or scope.startswith(f"{PACKAGE}."):
        return scope
    if scope.startswith(("core.", "cli.", "datastructures.")):
        return f"{PACKAGE}.{scope}"
    return f"{PACKAGE}.core.{scope}"


def _scoped_filter(
    threshold: int, prefixes: tuple[str, ...]
) -> Callable[[dict[str, Any]], bool]:
    def _filter(record: dict[str, Any]) -> bool:
        if record["level"].no >= threshold:
            return True
        name = record["name"] or ""
        return any(
            name == prefix or name.startswith(f"{prefix}.") for prefix in prefixes
        )

    return _filter


def configure_logging(
    settings: EdgeSteerSettings,
    *,
    verbose: bool = False,
    colorize: bool = False,
) -> int:
    """Replace loguru's handlers with one stderr sink; return its handler id.

    ``verbose`` lowers the threshold to DEBUG for every module.
    """
    logger.remove()
    level = "DEBUG" if verbose else settings.log_level
    prefixes = tuple(
        scope_prefix(scope) for scope in settings.debug_scopes if scope.strip()
    )

    if not prefixes or verbose:
        return logger.add(
            sys.stderr, level=level, format=LOG_FORMAT, colorize=colorize
        )

    return logger.add(
        sys.stderr,
        level="DEBUG",
        format=LOG_FORMAT,
        colorize=colorize,
        filter=_scoped_filter(logger.level(level).no, prefixes),
    )
