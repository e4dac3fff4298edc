"""Exemption Wizard Events - Closed unions of operations and events.

Three families flow through the wizard:

    Operation        requested by the state machine, executed by the gateway
    UserEvent        produced by the keybinding layer
    CompletionEvent  produced by the gateway, one per scheduled Operation

Every family is a plain Union of frozen dataclasses. Adding a member means
extending the Union and every isinstance dispatch that matches on it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from exemption_wizard.models import (
    PolicyAssignment,
    PolicyDefinitionRef,
    ResourceGroup,
    Subscription,
)

# =============================================================================
# Operations
# =============================================================================


@dataclass(frozen=True)
class ListSubscriptions:
    pass


@dataclass(frozen=True)
class ListAssignments:
    subscription: Subscription


@dataclass(frozen=True)
class ListDefinitions:
    assignment: PolicyAssignment


@dataclass(frozen=True)
class ListResourceGroups:
    subscription: Subscription


@dataclass(frozen=True)
class CreateExemption:
    """Final commit. reference_ids is empty for a full-assignment exemption."""
    scope: str
    assignment: PolicyAssignment
    reference_ids: Tuple[str, ...]
    ticket: str
    requesters: str
    expiration_date: str = ""


Operation = Union[
    ListSubscriptions,
    ListAssignments,
    ListDefinitions,
    ListResourceGroups,
    CreateExemption,
]

# =============================================================================
# User Input
# =============================================================================


@dataclass(frozen=True)
class Navigate:
    delta: int  # -1 up, +1 down


@dataclass(frozen=True)
class Toggle:
    pass


@dataclass(frozen=True)
class Submit:
    pass


@dataclass(frozen=True)
class TextInput:
    text: str


@dataclass(frozen=True)
class Backspace:
    pass


@dataclass(frozen=True)
class ClearText:
    pass


@dataclass(frozen=True)
class Quit:
    pass


UserEvent = Union[Navigate, Toggle, Submit, TextInput, Backspace, ClearText, Quit]

# =============================================================================
# Completion Events
# =============================================================================


class _Completion:
    """Exactly one of payload / error is set."""

    def _check_outcome(self, payload: object, error: Optional[BaseException]) -> None:
        if (payload is None) == (error is None):
            raise ValueError(
                f"{type(self).__name__} needs exactly one of a payload or an error"
            )


@dataclass(frozen=True)
class SubscriptionsLoaded(_Completion):
    subscriptions: Optional[Tuple[Subscription, ...]] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        self._check_outcome(self.subscriptions, self.error)


@dataclass(frozen=True)
class AssignmentsLoaded(_Completion):
    assignments: Optional[Tuple[PolicyAssignment, ...]] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        self._check_outcome(self.assignments, self.error)


@dataclass(frozen=True)
class DefinitionsLoaded(_Completion):
    definitions: Optional[Tuple[PolicyDefinitionRef, ...]] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        self._check_outcome(self.definitions, self.error)


@dataclass(frozen=True)
class ResourceGroupsLoaded(_Completion):
    resource_groups: Optional[Tuple[ResourceGroup, ...]] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        self._check_outcome(self.resource_groups, self.error)


@dataclass(frozen=True)
class ExemptionCreated(_Completion):
    output: Optional[str] = None
    error: Optional[BaseException] = None

    def __post_init__(self):
        self._check_outcome(self.output, self.error)


CompletionEvent = Union[
    SubscriptionsLoaded,
    AssignmentsLoaded,
    DefinitionsLoaded,
    ResourceGroupsLoaded,
    ExemptionCreated,
]

Event = Union[UserEvent, CompletionEvent]

USER_EVENTS = (Navigate, Toggle, Submit, TextInput, Backspace, ClearText, Quit)
COMPLETION_EVENTS = (
    SubscriptionsLoaded,
    AssignmentsLoaded,
    DefinitionsLoaded,
    ResourceGroupsLoaded,
    ExemptionCreated,
)
