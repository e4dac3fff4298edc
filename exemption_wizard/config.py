"""Exemption Wizard Configuration - Constants, paths, and environment overrides.

This module centralizes all configuration settings used across the
exemption_wizard modules. Values read from the environment are resolved once
at import time.
"""
from __future__ import annotations

import os
from pathlib import Path

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def env_int(name: str, default: int) -> int:
    """Integer from the environment; unset or malformed values give default."""
    value = os.environ.get(name, "").strip()
    try:
        return int(value) if value else default
    except ValueError:
        return default


def env_log_level(name: str, default: str = "INFO") -> str:
    """Logging level name from the environment; unknown names give default."""
    value = os.environ.get(name, "").strip().upper()
    return value if value in LOG_LEVELS else default


# =============================================================================
# Azure CLI
# =============================================================================

# Executable used for every backend call
AZ_BINARY = os.environ.get("EXEMPTION_AZ_BINARY", "az")

# api-version for the policyAssignments REST listing
ASSIGNMENTS_API_VERSION = "2021-06-01"

# Category passed to `az policy exemption create`
EXEMPTION_CATEGORY = "Waiver"

# =============================================================================
# Wizard Behaviour
# =============================================================================

# Pre-filled offset for the expiration date step
DEFAULT_EXPIRATION_DAYS = env_int("EXEMPTION_DEFAULT_EXPIRATION_DAYS", 30)
EXPIRATION_DATE_FORMAT = "%Y-%m-%d"

# Text field limits (characters)
TICKET_CHAR_LIMIT = 128
USERS_CHAR_LIMIT = 256
EXPIRATION_CHAR_LIMIT = 10

# Label of the synthetic scope prepended to the resource group list
ENTIRE_SUBSCRIPTION_LABEL = "Entire Subscription"

# =============================================================================
# TUI Settings
# =============================================================================

MAX_VISIBLE_ROWS = 15
POLL_INTERVAL = 0.1  # seconds between completion-event drains

# =============================================================================
# Logging
# =============================================================================

LOG_DIR = Path(os.environ.get("EXEMPTION_LOG_DIR", str(Path.home() / ".azure-exemption")))
LOG_FILE = LOG_DIR / "wizard.log"
LOG_LEVEL = env_log_level("EXEMPTION_LOG_LEVEL")
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

__all__ = [
    "AZ_BINARY",
    "ASSIGNMENTS_API_VERSION",
    "EXEMPTION_CATEGORY",
    "DEFAULT_EXPIRATION_DAYS",
    "EXPIRATION_DATE_FORMAT",
    "TICKET_CHAR_LIMIT",
    "USERS_CHAR_LIMIT",
    "EXPIRATION_CHAR_LIMIT",
    "ENTIRE_SUBSCRIPTION_LABEL",
    "MAX_VISIBLE_ROWS",
    "POLL_INTERVAL",
    "LOG_DIR",
    "LOG_FILE",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_DATE_FORMAT",
    "LOG_LEVELS",
    "env_int",
    "env_log_level",
]
