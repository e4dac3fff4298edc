"""Exemption Wizard TUI - Textual app and Rich rendering.

render_state() turns a WizardState snapshot into a Rich renderable and
key_to_event() maps key presses onto wizard events. ExemptionWizardApp wires
both to a WizardSession.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Optional

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import Footer, Static

from exemption_wizard.config import MAX_VISIBLE_ROWS, POLL_INTERVAL
from exemption_wizard.events import (
    Backspace,
    ClearText,
    Event,
    Navigate,
    Quit,
    Submit,
    TextInput,
    Toggle,
)
from exemption_wizard.session import WizardSession
from exemption_wizard.state import (
    ASSIGNMENT_SCOPE_OPTIONS,
    EXPIRATION_OPTIONS,
    TEXT_STEPS,
    Step,
    WizardState,
)
from exemption_wizard.utils import visible_range

TITLE = "Azure Policy Exemption CLI"
SELECTED_STYLE = "bold #ff5faf"
HELP_STYLE = "dim"

# =============================================================================
# Key Bindings
# =============================================================================


def key_to_event(key: str, character: Optional[str], step: Step) -> Optional[Event]:
    """Translate a key press into a wizard event for the given step.

    In text steps every printable character is text, so `q`, `j` and `k`
    only act as commands on the list and menu steps.
    """
    if key == "ctrl+c":
        return Quit()
    if step in TEXT_STEPS:
        if key == "enter":
            return Submit()
        if key == "backspace":
            return Backspace()
        if key == "ctrl+u":
            return ClearText()
        if character and character.isprintable():
            return TextInput(character)
        return None
    if key == "q":
        return Quit()
    if key in ("up", "k"):
        return Navigate(-1)
    if key in ("down", "j"):
        return Navigate(1)
    if key == "space":
        return Toggle()
    if key == "enter":
        return Submit()
    return None


# =============================================================================
# Rendering
# =============================================================================


def _option_lines(out: Text, options, cursor: int) -> None:
    for i, option in enumerate(options):
        pointer = ">" if i == cursor else " "
        out.append(f"{pointer} {option}\n", style=SELECTED_STYLE if i == cursor else "")


def _list_lines(out: Text, labels: List[str], checked: List[bool], cursor: int) -> None:
    start, end = visible_range(cursor, len(labels), MAX_VISIBLE_ROWS)
    for i in range(start, end):
        pointer = ">" if i == cursor else " "
        marker = "x" if checked[i] else " "
        out.append(f"{pointer} [{marker}] {labels[i]}\n", style=SELECTED_STYLE if i == cursor else "")
    out.append(f"\nShowing {start + 1}-{end} of {len(labels)}\n")


def _text_field(out: Text, prompt: str, value: str, placeholder: str) -> None:
    out.append(prompt, style="bold")
    if value:
        out.append(value)
        out.append(" ", style="reverse")
    else:
        out.append(" ", style="reverse")
        out.append(placeholder, style=HELP_STYLE)
    out.append("\n")


def _selected_definition_lines(state: WizardState, out: Text, bullet: str) -> None:
    for ref in state.selected_definitions():
        out.append(f"{bullet}{ref.display_name} ({ref.reference_id})\n")


def _render_loading_subscriptions(state: WizardState, out: Text) -> None:
    out.append("Retrieving subscriptions via Azure CLI...\n")


def _render_select_subscription(state: WizardState, out: Text) -> None:
    out.append("Select the subscription for the exemption:\n\n")
    _list_lines(
        out,
        [f"{sub.name} ({sub.short_id})" for sub in state.subscriptions],
        [i == state.selected_subscription for i in range(len(state.subscriptions))],
        state.cursor,
    )
    out.append("↑/↓ to move, Enter to select.\n", style=HELP_STYLE)


def _render_loading_assignments(state: WizardState, out: Text) -> None:
    out.append("Loading policy assignments for the selected subscription...\n")


def _render_select_assignment(state: WizardState, out: Text) -> None:
    sub = state.current_subscription()
    out.append(f"Policy assignments for subscription {sub.name} ({sub.short_id}):\n\n")
    _list_lines(
        out,
        [f"{a.display_label} ({a.short_id})" for a in state.assignments],
        [i == state.selected_assignment for i in range(len(state.assignments))],
        state.cursor,
    )
    out.append("↑/↓ to move, Enter to select.\n", style=HELP_STYLE)


def _render_loading_definitions(state: WizardState, out: Text) -> None:
    out.append("Loading assignment details...\n")


def _render_assignment_scope(state: WizardState, out: Text) -> None:
    out.append("This assignment contains multiple policy definitions.\n\n")
    _option_lines(out, ASSIGNMENT_SCOPE_OPTIONS, state.cursor)
    out.append("\n↑/↓ to move, Enter to choose.\n", style=HELP_STYLE)


def _render_select_definitions(state: WizardState, out: Text) -> None:
    out.append("Select the policy definitions to exempt:\n\n")
    _list_lines(
        out,
        [f"{ref.display_name} ({ref.reference_id})" for ref in state.definitions],
        [ref.reference_id in state.selected_reference_ids for ref in state.definitions],
        state.cursor,
    )
    out.append("↑/↓ to move, Space to toggle, Enter to continue.\n", style=HELP_STYLE)


def _render_loading_resource_groups(state: WizardState, out: Text) -> None:
    out.append("Loading resource groups...\n")


def _render_select_resource_group(state: WizardState, out: Text) -> None:
    out.append("Select the scope for the exemption:\n\n")
    _list_lines(
        out,
        [rg.name for rg in state.resource_groups],
        [i == state.selected_resource_group for i in range(len(state.resource_groups))],
        state.cursor,
    )
    out.append("↑/↓ to move, Enter to select.\n", style=HELP_STYLE)


def _render_ticket(state: WizardState, out: Text) -> None:
    out.append(f"Assignment selected: {state.current_assignment().display_label}\n\n")
    if state.partial and state.selected_reference_ids:
        out.append("Definitions selected:\n")
        _selected_definition_lines(state, out, "• ")
        out.append("\n")
    out.append("Provide the tracking ticket number linked to this exemption:\n\n")
    _text_field(out, "Ticket> ", state.ticket_input, "e.g. INC123456")


def _render_users(state: WizardState, out: Text) -> None:
    out.append(f"Ticket: {state.ticket}\nAssignment: {state.current_assignment().display_label}\n\n")
    out.append("Who is requesting this exemption? (comma separated)\n\n")
    _text_field(out, "Users> ", state.users_input, "Comma-separated requester names")


def _render_expiration_choice(state: WizardState, out: Text) -> None:
    out.append("Do you want to set an expiration date?\n\n")
    _option_lines(out, EXPIRATION_OPTIONS, state.cursor)
    out.append("\n↑/↓ to move, Enter to choose.\n", style=HELP_STYLE)


def _render_expiration_date(state: WizardState, out: Text) -> None:
    out.append("Enter the expiration date (YYYY-MM-DD):\n\n")
    _text_field(out, "Expires on> ", state.expiration_input, "YYYY-MM-DD")


def _render_confirm(state: WizardState, out: Text) -> None:
    sub = state.current_subscription()
    scope = state.selected_scope()
    out.append(f"Subscription: {sub.name} ({sub.short_id})\n")
    out.append(f"Scope: {scope.name if scope else '-'}\n")
    out.append(f"Assignment: {state.current_assignment().display_label}\n")
    if state.partial and state.selected_reference_ids:
        out.append("Definitions:\n")
        _selected_definition_lines(state, out, "  ")
    else:
        out.append("Definitions: Entire assignment\n")
    out.append(f"Ticket: {state.ticket}\n")
    out.append(f"Requesters: {state.requesters}\n")
    out.append(f"Expires on: {state.expiration_date or 'Unlimited'}\n")
    out.append("\nPress Enter to create the exemption or q to abort.\n", style=HELP_STYLE)


def _render_creating(state: WizardState, out: Text) -> None:
    out.append("Creating policy exemption via Azure CLI...\n")


def _render_done(state: WizardState, out: Text) -> None:
    out.append("Azure CLI response:\n\n")
    out.append((state.create_output or "No output returned.").rstrip("\n") + "\n")
    out.append("\nPress q to exit.\n", style=HELP_STYLE)


def _render_error(state: WizardState, out: Text) -> None:
    out.append(f"Error: {state.error}\n", style="bold red")
    out.append("\nPress q to exit.\n", style=HELP_STYLE)


_RENDERERS: Dict[Step, Callable[[WizardState, Text], None]] = {
    Step.LOADING_SUBSCRIPTIONS: _render_loading_subscriptions,
    Step.SELECT_SUBSCRIPTION: _render_select_subscription,
    Step.LOADING_ASSIGNMENTS: _render_loading_assignments,
    Step.SELECT_ASSIGNMENT: _render_select_assignment,
    Step.LOADING_DEFINITIONS: _render_loading_definitions,
    Step.ASSIGNMENT_SCOPE: _render_assignment_scope,
    Step.SELECT_DEFINITIONS: _render_select_definitions,
    Step.LOADING_RESOURCE_GROUPS: _render_loading_resource_groups,
    Step.SELECT_RESOURCE_GROUP: _render_select_resource_group,
    Step.TICKET: _render_ticket,
    Step.USERS: _render_users,
    Step.EXPIRATION_CHOICE: _render_expiration_choice,
    Step.EXPIRATION_DATE: _render_expiration_date,
    Step.CONFIRM: _render_confirm,
    Step.CREATING: _render_creating,
    Step.DONE: _render_done,
    Step.ERROR: _render_error,
}


def render_state(state: WizardState) -> Text:
    """Render the current step followed by the status line."""
    out = Text()
    out.append(f"{TITLE}\n\n", style="bold")
    _RENDERERS[state.step](state, out)
    if state.status:
        out.append(f"\n{state.status}\n", style="italic")
    return out


# =============================================================================
# Textual App
# =============================================================================


class ExemptionWizardApp(App[WizardState]):
    """Textual host for a WizardSession."""

    CSS = """
    Screen {
        background: $background;
    }

    #wizard-body {
        padding: 1 2;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit_wizard", "Quit", priority=True),
        Binding("ctrl+q", "quit_wizard", "Quit", show=False, priority=True),
    ]

    def __init__(self, session: WizardSession, **kwargs):
        super().__init__(**kwargs)
        self.session = session

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static(id="wizard-body")
        yield Footer()

    def on_mount(self) -> None:
        self.session.start()
        self._refresh_body()
        self.set_interval(POLL_INTERVAL, self._poll_completions)

    def on_key(self, event: events.Key) -> None:
        wizard_event = key_to_event(event.key, event.character, self.session.state.step)
        if wizard_event is None:
            return
        event.stop()
        event.prevent_default()
        self._dispatch(wizard_event)

    def action_quit_wizard(self) -> None:
        self._dispatch(Quit())

    def _poll_completions(self) -> None:
        if self.session.drain():
            self._refresh_body()

    def _dispatch(self, wizard_event: Event) -> None:
        self.session.dispatch(wizard_event)
        self._refresh_body()

    def _refresh_body(self) -> None:
        state = self.session.state
        if state.quitting:
            self.exit(state)
            return
        self.query_one("#wizard-body", Static).update(render_state(state))


def run_tui(session: WizardSession) -> WizardState:
    """Run the wizard until the user quits and return the final state."""
    app = ExemptionWizardApp(session)
    result = app.run()
    return result or session.state
