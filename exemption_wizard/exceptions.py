"""Exceptions raised by the exemption wizard and its Azure CLI backend."""
from __future__ import annotations

from typing import Optional


class ExemptionError(RuntimeError):
    """Base exception for the exemption wizard."""
    pass


class AzureCLIError(ExemptionError):
    """
    Raised when an `az` invocation fails or returns unusable output.

    Attributes:
        stderr: Trimmed standard error of the failed command, if any.
        returncode: Exit status, or None when the command never ran.
    """
    def __init__(self, message: str, stderr: str = "", returncode: Optional[int] = None):
        super().__init__(message)
        self.stderr = stderr
        self.returncode = returncode


class AzureLoginError(ExemptionError):
    """Raised when no Azure CLI session exists and `az login` fails."""
    pass


class NoSubscriptionsError(ExemptionError):
    """The signed-in account can see no subscriptions."""
    pass


class NoAssignmentsError(ExemptionError):
    """The chosen subscription has no policy assignments."""
    pass
