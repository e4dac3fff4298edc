"""Exemption Wizard Utilities - Common helper functions.

This module provides helpers shared by the state machine, the Azure CLI
backend and the renderer.
"""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Tuple

from exemption_wizard.config import (
    DEFAULT_EXPIRATION_DAYS,
    EXPIRATION_DATE_FORMAT,
    LOG_DATE_FORMAT,
    LOG_FILE,
    LOG_FORMAT,
    LOG_LEVEL,
)

_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def setup_logging(log_file: Optional[Path] = None, verbose: bool = False) -> Path:
    """Route the package logger to a file.

    The TUI owns the terminal, so nothing is written to stderr while it runs.

    Args:
        log_file: Destination file (defaults to LOG_FILE)
        verbose: Log at DEBUG instead of the configured level

    Returns:
        Path of the log file in use
    """
    path = Path(log_file) if log_file else LOG_FILE
    path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("exemption_wizard")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else LOG_LEVEL)
    logger.propagate = False
    return path


def default_expiration(today: Optional[date] = None) -> str:
    """Pre-filled expiration date, DEFAULT_EXPIRATION_DAYS from today."""
    start = today or date.today()
    return (start + timedelta(days=DEFAULT_EXPIRATION_DAYS)).strftime(EXPIRATION_DATE_FORMAT)


def parse_expiration_date(value: str) -> Optional[date]:
    """Parse a strict YYYY-MM-DD calendar date.

    Returns:
        The date, or None when the text is malformed or names no real day
        (e.g. 2024-02-30)
    """
    if not _DATE_PATTERN.fullmatch(value):
        return None
    try:
        return datetime.strptime(value, EXPIRATION_DATE_FORMAT).date()
    except ValueError:
        return None


def parse_policy_id(resource_id: str) -> Tuple[str, str, str]:
    """Split a policy (set) definition id into its addressing parts.

    Args:
        resource_id: e.g. /providers/Microsoft.Management/managementGroups/mg/
            providers/Microsoft.Authorization/policySetDefinitions/name

    Returns:
        (name, subscription, management_group); missing parts are ""
    """
    name = subscription = management_group = ""
    parts = resource_id.split("/")
    for i, part in enumerate(parts):
        if i + 1 >= len(parts):
            break
        lowered = part.lower()
        if lowered == "subscriptions":
            subscription = parts[i + 1]
        elif lowered == "managementgroups":
            management_group = parts[i + 1]
        elif lowered in ("policysetdefinitions", "policydefinitions"):
            name = parts[i + 1]
    return name, subscription, management_group


def visible_range(cursor: int, total: int, limit: int) -> Tuple[int, int]:
    """Window of at most `limit` rows around the cursor.

    Returns:
        (start, end) with end exclusive
    """
    if limit <= 0 or total <= limit:
        return 0, total
    start = max(cursor - limit // 2, 0)
    end = start + limit
    if end > total:
        end = total
        start = end - limit
    return start, end
