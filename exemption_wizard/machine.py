"""Exemption Wizard State Machine - the transition function.

update(state, event) applies exactly one event to the WizardState and returns
the operation to schedule next, if any:

    LoadingSubscriptions -> SelectSubscription -> LoadingAssignments
    -> SelectAssignment -> LoadingDefinitions -> [AssignmentScope]
    -> [SelectDefinitions] -> LoadingResourceGroups -> SelectResourceGroup
    -> Ticket -> Users -> ExpirationChoice -> [ExpirationDate] -> Confirm
    -> Creating -> Done | Error

Backend failures end the wizard in Step.ERROR. Validation failures keep the
current step and only change the status line.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Tuple

from exemption_wizard.config import (
    EXPIRATION_CHAR_LIMIT,
    TICKET_CHAR_LIMIT,
    USERS_CHAR_LIMIT,
)
from exemption_wizard.events import (
    USER_EVENTS,
    AssignmentsLoaded,
    Backspace,
    ClearText,
    CompletionEvent,
    CreateExemption,
    DefinitionsLoaded,
    Event,
    ExemptionCreated,
    ListAssignments,
    ListDefinitions,
    ListResourceGroups,
    ListSubscriptions,
    Navigate,
    Operation,
    Quit,
    ResourceGroupsLoaded,
    Submit,
    SubscriptionsLoaded,
    TextInput,
    Toggle,
    UserEvent,
)
from exemption_wizard.exceptions import NoAssignmentsError, NoSubscriptionsError
from exemption_wizard.models import ResourceGroup
from exemption_wizard.state import NO_SELECTION, Step, WizardState
from exemption_wizard.utils import default_expiration, parse_expiration_date

logger = logging.getLogger(__name__)

Transition = Tuple[WizardState, Optional[Operation]]


# =============================================================================
# Status Lines
# =============================================================================

STATUS_SELECT_SUBSCRIPTION = "Use ↑/↓ to highlight a subscription and press Enter to continue."
STATUS_SELECT_ASSIGNMENT = "Use ↑/↓ to highlight an assignment and press Enter to continue."
STATUS_ASSIGNMENT_SCOPE = "Exempt entire assignment or select specific definitions?"
STATUS_SELECT_DEFINITIONS = "Select definitions to exempt (space to toggle, Enter to continue)."
STATUS_NO_DEFINITION_SELECTED = "Select at least one definition or choose full assignment."
STATUS_LOADING_RESOURCE_GROUPS = "Loading resource groups..."
STATUS_SELECT_RESOURCE_GROUP = "Select the scope for the exemption (Subscription or Resource Group)."
STATUS_TICKET = "Provide the tracking ticket number linked to this exemption:"
STATUS_TICKET_REQUIRED = "A ticket number is required."
STATUS_USERS = "Who is requesting this exemption? Provide one or more names."
STATUS_USERS_REQUIRED = "At least one requester name is required."
STATUS_EXPIRATION_CHOICE = "Set an expiration date for this exemption?"
STATUS_EXPIRATION_DATE = "Enter expiration date (YYYY-MM-DD):"
STATUS_EXPIRATION_REQUIRED = "Expiration date is required."
STATUS_EXPIRATION_INVALID = "Invalid date format. Please use YYYY-MM-DD."
STATUS_CONFIRM = "Review the summary and press Enter to create the exemption."
STATUS_MISSING_INFORMATION = "Missing information. Use q to abort."
STATUS_CREATING = "Creating Azure Policy exemption..."
STATUS_DONE = "Exemption created successfully. Press q to exit."

# Editable buffer and its limit, per text step
_TEXT_FIELDS: Dict[Step, Tuple[str, int]] = {
    Step.TICKET: ("ticket_input", TICKET_CHAR_LIMIT),
    Step.USERS: ("users_input", USERS_CHAR_LIMIT),
    Step.EXPIRATION_DATE: ("expiration_input", EXPIRATION_CHAR_LIMIT),
}


def initial_operation() -> Operation:
    """Operation to schedule for a freshly created WizardState."""
    return ListSubscriptions()


def update(state: WizardState, event: Event) -> Transition:
    """Apply one event to the wizard.

    Args:
        state: The aggregate, mutated in place
        event: A user-input or completion event

    Returns:
        (state, operation) where operation is None or the single operation
        the caller must schedule

    Raises:
        TypeError: event is not a member of the Event union
    """
    if isinstance(event, Quit):
        state.quitting = True
        return state, None
    if isinstance(event, USER_EVENTS):
        return state, _handle_input(state, event)
    if isinstance(event, SubscriptionsLoaded):
        return state, _on_subscriptions_loaded(state, event)
    if isinstance(event, AssignmentsLoaded):
        return state, _on_assignments_loaded(state, event)
    if isinstance(event, DefinitionsLoaded):
        return state, _on_definitions_loaded(state, event)
    if isinstance(event, ResourceGroupsLoaded):
        return state, _on_resource_groups_loaded(state, event)
    if isinstance(event, ExemptionCreated):
        return state, _on_exemption_created(state, event)
    raise TypeError(f"Unsupported wizard event: {event!r}")


# =============================================================================
# Helpers
# =============================================================================


def _enter(state: WizardState, step: Step, status: str = "") -> None:
    logger.debug("step %s -> %s", state.step.value, step.value)
    state.step = step
    state.status = status


def _fail(state: WizardState, error: BaseException) -> None:
    logger.error("wizard failed in %s: %s", state.step.value, error)
    _enter(state, Step.ERROR)
    state.error = error


def _is_stale(state: WizardState, event: CompletionEvent, expected: Step) -> bool:
    if state.step == expected:
        return False
    logger.debug("ignoring %s received in step %s", type(event).__name__, state.step.value)
    return True


def _move_cursor(state: WizardState, delta: int) -> None:
    length = state.current_list_length()
    if length == 0:
        return
    state.cursor = max(0, min(length - 1, state.cursor + delta))


def _start_resource_groups(state: WizardState) -> Operation:
    _enter(state, Step.LOADING_RESOURCE_GROUPS, STATUS_LOADING_RESOURCE_GROUPS)
    return ListResourceGroups(subscription=state.current_subscription())


# =============================================================================
# Completion Events
# =============================================================================


def _on_subscriptions_loaded(state: WizardState, event: SubscriptionsLoaded) -> None:
    if _is_stale(state, event, Step.LOADING_SUBSCRIPTIONS):
        return None
    if event.error is not None:
        _fail(state, event.error)
        return None
    if not event.subscriptions:
        _fail(state, NoSubscriptionsError("no subscriptions returned by Azure CLI"))
        return None
    state.subscriptions = list(event.subscriptions)
    state.cursor = 0
    state.selected_subscription = NO_SELECTION
    _enter(state, Step.SELECT_SUBSCRIPTION, STATUS_SELECT_SUBSCRIPTION)
    return None


def _on_assignments_loaded(state: WizardState, event: AssignmentsLoaded) -> None:
    if _is_stale(state, event, Step.LOADING_ASSIGNMENTS):
        return None
    if event.error is not None:
        _fail(state, event.error)
        return None
    if not event.assignments:
        sub = state.current_subscription()
        _fail(state, NoAssignmentsError(
            f"no policy assignments were returned for subscription {sub.name} ({sub.short_id})"
        ))
        return None
    state.assignments = list(event.assignments)
    state.selected_assignment = NO_SELECTION
    state.definitions = []
    state.selected_reference_ids = set()
    state.partial = False
    state.cursor = 0
    _enter(state, Step.SELECT_ASSIGNMENT, STATUS_SELECT_ASSIGNMENT)
    return None


def _on_definitions_loaded(state: WizardState, event: DefinitionsLoaded) -> Optional[Operation]:
    if _is_stale(state, event, Step.LOADING_DEFINITIONS):
        return None
    if event.error is not None:
        _fail(state, event.error)
        return None
    state.definitions = list(event.definitions)
    state.selected_reference_ids = set()
    state.partial = False
    if len(state.definitions) > 1:
        state.cursor = 0
        _enter(state, Step.ASSIGNMENT_SCOPE, STATUS_ASSIGNMENT_SCOPE)
        return None
    return _start_resource_groups(state)


def _on_resource_groups_loaded(state: WizardState, event: ResourceGroupsLoaded) -> None:
    if _is_stale(state, event, Step.LOADING_RESOURCE_GROUPS):
        return None
    if event.error is not None:
        _fail(state, event.error)
        return None
    entire = ResourceGroup.entire_subscription(state.current_subscription())
    state.resource_groups = [entire, *event.resource_groups]
    state.selected_resource_group = NO_SELECTION
    state.cursor = 0
    _enter(state, Step.SELECT_RESOURCE_GROUP, STATUS_SELECT_RESOURCE_GROUP)
    return None


def _on_exemption_created(state: WizardState, event: ExemptionCreated) -> None:
    if _is_stale(state, event, Step.CREATING):
        return None
    if event.error is not None:
        _fail(state, event.error)
        return None
    state.create_output = event.output
    _enter(state, Step.DONE, STATUS_DONE)
    return None


# =============================================================================
# User Input
# =============================================================================


def _handle_input(state: WizardState, event: UserEvent) -> Optional[Operation]:
    if state.is_text_step:
        return _handle_text_input(state, event)
    if isinstance(event, Navigate):
        _move_cursor(state, event.delta)
    elif isinstance(event, Toggle):
        if state.step == Step.SELECT_DEFINITIONS:
            _toggle_definition(state)
    elif isinstance(event, Submit):
        handler = _SUBMIT_HANDLERS.get(state.step)
        if handler is not None:
            return handler(state)
    return None


def _handle_text_input(state: WizardState, event: UserEvent) -> Optional[Operation]:
    attr, limit = _TEXT_FIELDS[state.step]
    value = getattr(state, attr)
    if isinstance(event, TextInput):
        typed = "".join(ch for ch in event.text if ch.isprintable())
        setattr(state, attr, (value + typed)[:limit])
    elif isinstance(event, Backspace):
        setattr(state, attr, value[:-1])
    elif isinstance(event, ClearText):
        setattr(state, attr, "")
    elif isinstance(event, Submit):
        return _SUBMIT_HANDLERS[state.step](state)
    return None


def _toggle_definition(state: WizardState) -> None:
    if not state.definitions:
        return
    ref = state.definitions[state.cursor].reference_id
    if ref in state.selected_reference_ids:
        state.selected_reference_ids.discard(ref)
    else:
        state.selected_reference_ids.add(ref)


def _submit_subscription(state: WizardState) -> Optional[Operation]:
    if not state.subscriptions:
        return None
    state.selected_subscription = state.cursor
    sub = state.current_subscription()
    _enter(state, Step.LOADING_ASSIGNMENTS, f"Fetching policy assignments for {sub.name}...")
    return ListAssignments(subscription=sub)


def _submit_assignment(state: WizardState) -> Optional[Operation]:
    if not state.assignments:
        return None
    state.selected_assignment = state.cursor
    assignment = state.current_assignment()
    _enter(state, Step.LOADING_DEFINITIONS, f"Fetching assignment details for {assignment.display_label}...")
    return ListDefinitions(assignment=assignment)


def _submit_assignment_scope(state: WizardState) -> Optional[Operation]:
    if state.cursor == 0:
        state.partial = False
        state.selected_reference_ids = set()
        return _start_resource_groups(state)
    state.partial = True
    state.cursor = 0
    _enter(state, Step.SELECT_DEFINITIONS, STATUS_SELECT_DEFINITIONS)
    return None


def _submit_definitions(state: WizardState) -> Optional[Operation]:
    if not state.definitions:
        return None
    if not state.selected_reference_ids:
        state.status = STATUS_NO_DEFINITION_SELECTED
        return None
    return _start_resource_groups(state)


def _submit_resource_group(state: WizardState) -> Optional[Operation]:
    if not state.resource_groups:
        return None
    state.selected_resource_group = state.cursor
    state.ticket_input = ""
    _enter(state, Step.TICKET, STATUS_TICKET)
    return None


def _submit_ticket(state: WizardState) -> Optional[Operation]:
    value = state.ticket_input.strip()
    if not value:
        state.status = STATUS_TICKET_REQUIRED
        return None
    state.ticket = value
    state.users_input = ""
    _enter(state, Step.USERS, STATUS_USERS)
    return None


def _submit_users(state: WizardState) -> Optional[Operation]:
    value = state.users_input.strip()
    if not value:
        state.status = STATUS_USERS_REQUIRED
        return None
    state.requesters = value
    state.cursor = 0
    _enter(state, Step.EXPIRATION_CHOICE, STATUS_EXPIRATION_CHOICE)
    return None


def _submit_expiration_choice(state: WizardState) -> Optional[Operation]:
    if state.cursor == 0:
        state.expiration_date = ""
        _enter(state, Step.CONFIRM, STATUS_CONFIRM)
        return None
    state.expiration_input = default_expiration()
    _enter(state, Step.EXPIRATION_DATE, STATUS_EXPIRATION_DATE)
    return None


def _submit_expiration_date(state: WizardState) -> Optional[Operation]:
    value = state.expiration_input.strip()
    if not value:
        state.status = STATUS_EXPIRATION_REQUIRED
        return None
    if parse_expiration_date(value) is None:
        state.status = STATUS_EXPIRATION_INVALID
        return None
    state.expiration_date = value
    _enter(state, Step.CONFIRM, STATUS_CONFIRM)
    return None


def _submit_confirm(state: WizardState) -> Optional[Operation]:
    scope = state.selected_scope()
    missing = (
        state.selected_subscription == NO_SELECTION
        or state.selected_assignment == NO_SELECTION
        or scope is None
        or not state.ticket
        or not state.requesters
    )
    if missing:
        state.status = STATUS_MISSING_INFORMATION
        return None
    _enter(state, Step.CREATING, STATUS_CREATING)
    return CreateExemption(
        scope=scope.id,
        assignment=state.current_assignment(),
        reference_ids=tuple(sorted(state.selected_reference_ids)),
        ticket=state.ticket,
        requesters=state.requesters,
        expiration_date=state.expiration_date,
    )


_SUBMIT_HANDLERS: Dict[Step, Callable[[WizardState], Optional[Operation]]] = {
    Step.SELECT_SUBSCRIPTION: _submit_subscription,
    Step.SELECT_ASSIGNMENT: _submit_assignment,
    Step.ASSIGNMENT_SCOPE: _submit_assignment_scope,
    Step.SELECT_DEFINITIONS: _submit_definitions,
    Step.SELECT_RESOURCE_GROUP: _submit_resource_group,
    Step.TICKET: _submit_ticket,
    Step.USERS: _submit_users,
    Step.EXPIRATION_CHOICE: _submit_expiration_choice,
    Step.EXPIRATION_DATE: _submit_expiration_date,
    Step.CONFIRM: _submit_confirm,
}
