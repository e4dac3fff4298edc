"""Azure Policy Exemption Wizard - terminal wizard for creating policy exemptions.

Modules:
    config - Constants and environment overrides
    models - Pydantic models for Azure resources
    events - Operations, user-input and completion events
    state - Step enum and WizardState
    machine - The transition function
    gateway - Background execution of backend operations
    session - Cooperative event loop
    azure_cli - Azure CLI backend
    tui - Textual app and Rich rendering
    cli - Command-line interface
"""
from exemption_wizard.exceptions import (
    AzureCLIError,
    AzureLoginError,
    ExemptionError,
)
from exemption_wizard.machine import initial_operation, update
from exemption_wizard.models import (
    PolicyAssignment,
    PolicyDefinitionRef,
    ResourceGroup,
    Subscription,
)
from exemption_wizard.session import WizardSession
from exemption_wizard.state import Step, WizardState

__all__ = [
    # Exceptions
    "AzureCLIError",
    "AzureLoginError",
    "ExemptionError",
    # Machine
    "initial_operation",
    "update",
    # Models
    "PolicyAssignment",
    "PolicyDefinitionRef",
    "ResourceGroup",
    "Subscription",
    # Session
    "WizardSession",
    "Step",
    "WizardState",
]

__version__ = "1.0.0"
