"""Exemption Wizard State - Step enum and the WizardState aggregate.

WizardState is created once per run, mutated in place by machine.update()
and read (never written) by the renderer.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from exemption_wizard.models import (
    PolicyAssignment,
    PolicyDefinitionRef,
    ResourceGroup,
    Subscription,
)

NO_SELECTION = -1


class Step(str, Enum):
    """Wizard steps, in the order they are visited."""
    LOADING_SUBSCRIPTIONS = "loading_subscriptions"
    SELECT_SUBSCRIPTION = "select_subscription"
    LOADING_ASSIGNMENTS = "loading_assignments"
    SELECT_ASSIGNMENT = "select_assignment"
    LOADING_DEFINITIONS = "loading_definitions"
    ASSIGNMENT_SCOPE = "assignment_scope"
    SELECT_DEFINITIONS = "select_definitions"
    LOADING_RESOURCE_GROUPS = "loading_resource_groups"
    SELECT_RESOURCE_GROUP = "select_resource_group"
    TICKET = "ticket"
    USERS = "users"
    EXPIRATION_CHOICE = "expiration_choice"
    EXPIRATION_DATE = "expiration_date"
    CONFIRM = "confirm"
    CREATING = "creating"
    DONE = "done"
    ERROR = "error"


LOADING_STEPS = frozenset({
    Step.LOADING_SUBSCRIPTIONS,
    Step.LOADING_ASSIGNMENTS,
    Step.LOADING_DEFINITIONS,
    Step.LOADING_RESOURCE_GROUPS,
    Step.CREATING,
})

TEXT_STEPS = frozenset({Step.TICKET, Step.USERS, Step.EXPIRATION_DATE})

FINAL_STEPS = frozenset({Step.DONE, Step.ERROR})

# Fixed two-option menus
ASSIGNMENT_SCOPE_OPTIONS = ("Exempt entire assignment", "Exempt specific definitions")
EXPIRATION_OPTIONS = ("Unlimited (No expiration)", "Set expiration date")


@dataclass
class WizardState:
    step: Step = Step.LOADING_SUBSCRIPTIONS
    status: str = ""
    error: Optional[BaseException] = None
    quitting: bool = False

    subscriptions: List[Subscription] = field(default_factory=list)
    assignments: List[PolicyAssignment] = field(default_factory=list)
    definitions: List[PolicyDefinitionRef] = field(default_factory=list)
    resource_groups: List[ResourceGroup] = field(default_factory=list)

    cursor: int = 0
    selected_subscription: int = NO_SELECTION
    selected_assignment: int = NO_SELECTION
    selected_resource_group: int = NO_SELECTION
    selected_reference_ids: Set[str] = field(default_factory=set)
    partial: bool = False

    # Text being edited; committed on a valid Submit
    ticket_input: str = ""
    users_input: str = ""
    expiration_input: str = ""

    ticket: str = ""
    requesters: str = ""
    expiration_date: str = ""

    create_output: str = ""

    @property
    def is_loading(self) -> bool:
        return self.step in LOADING_STEPS

    @property
    def is_text_step(self) -> bool:
        return self.step in TEXT_STEPS

    @property
    def is_finished(self) -> bool:
        return self.step in FINAL_STEPS

    def current_subscription(self) -> Optional[Subscription]:
        """Selected subscription, falling back to the first one loaded."""
        if 0 <= self.selected_subscription < len(self.subscriptions):
            return self.subscriptions[self.selected_subscription]
        if not self.subscriptions:
            return None
        return self.subscriptions[0]

    def current_assignment(self) -> Optional[PolicyAssignment]:
        """Selected assignment, falling back to the first one loaded."""
        if 0 <= self.selected_assignment < len(self.assignments):
            return self.assignments[self.selected_assignment]
        if not self.assignments:
            return None
        return self.assignments[0]

    def selected_scope(self) -> Optional[ResourceGroup]:
        if 0 <= self.selected_resource_group < len(self.resource_groups):
            return self.resource_groups[self.selected_resource_group]
        return None

    def selected_definitions(self) -> List[PolicyDefinitionRef]:
        """Chosen definition refs, in list order."""
        return [ref for ref in self.definitions if ref.reference_id in self.selected_reference_ids]

    def current_list_length(self) -> int:
        """Length of the list the cursor currently moves over (0 when none)."""
        if self.step == Step.SELECT_SUBSCRIPTION:
            return len(self.subscriptions)
        if self.step == Step.SELECT_ASSIGNMENT:
            return len(self.assignments)
        if self.step == Step.SELECT_DEFINITIONS:
            return len(self.definitions)
        if self.step == Step.SELECT_RESOURCE_GROUP:
            return len(self.resource_groups)
        if self.step == Step.ASSIGNMENT_SCOPE:
            return len(ASSIGNMENT_SCOPE_OPTIONS)
        if self.step == Step.EXPIRATION_CHOICE:
            return len(EXPIRATION_OPTIONS)
        return 0
