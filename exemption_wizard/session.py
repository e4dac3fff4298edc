"""Exemption Wizard Session - the cooperative event loop.

WizardSession owns the WizardState and the gateway. Each event is processed
to completion, including scheduling its follow-up operation, before the next
one is taken.
"""
from __future__ import annotations

import logging
from typing import Optional

from exemption_wizard.events import Event, Operation
from exemption_wizard.gateway import ExemptionBackend, OperationGateway
from exemption_wizard.machine import initial_operation, update
from exemption_wizard.state import WizardState

logger = logging.getLogger(__name__)


class WizardSession:
    """One run of the wizard against one backend."""

    def __init__(self, backend: ExemptionBackend, gateway: Optional[OperationGateway] = None):
        self.state = WizardState()
        self.gateway = gateway or OperationGateway(backend)
        self.in_flight = 0
        self.started = False

    def start(self) -> None:
        """Schedule the first fetch. Calling twice is a no-op."""
        if self.started:
            return
        self.started = True
        self._schedule(initial_operation())

    def dispatch(self, event: Event) -> Optional[Operation]:
        """Apply one event and schedule the operation it produced, if any."""
        _, operation = update(self.state, event)
        if operation is not None:
            self._schedule(operation)
        return operation

    def pump(self, timeout: Optional[float] = None) -> bool:
        """Wait for one completion event and dispatch it.

        Returns:
            True if an event was processed, False on timeout
        """
        event = self.gateway.next_event(timeout=timeout)
        if event is None:
            return False
        self._complete(event)
        return True

    def drain(self) -> int:
        """Dispatch every completion event already queued; returns the count."""
        events = self.gateway.drain()
        for event in events:
            self._complete(event)
        return len(events)

    def run_until_idle(self, timeout: float = 10.0) -> WizardState:
        """Pump until no operation is in flight (headless use)."""
        while self.in_flight:
            if not self.pump(timeout=timeout):
                raise TimeoutError(f"no completion event within {timeout}s")
        return self.state

    def close(self) -> None:
        self.gateway.shutdown(wait=False)

    def _complete(self, event: Event) -> None:
        self.in_flight -= 1
        self.dispatch(event)

    def _schedule(self, operation: Operation) -> None:
        if self.in_flight:
            raise RuntimeError(
                f"cannot schedule {type(operation).__name__} while another operation is in flight"
            )
        self.in_flight += 1
        self.gateway.schedule(operation)
