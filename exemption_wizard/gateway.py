"""Exemption Wizard Gateway - runs backend operations off the interactive loop.

The gateway turns an Operation into exactly one CompletionEvent. Work runs on a
single daemon worker thread; results are queued for the interactive loop, which
is the only consumer and the only code that touches WizardState. A call still
running when the wizard quits never holds up interpreter exit.
"""
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import List, Optional, Protocol, Sequence, Tuple

from exemption_wizard.events import (
    AssignmentsLoaded,
    CompletionEvent,
    CreateExemption,
    DefinitionsLoaded,
    ExemptionCreated,
    ListAssignments,
    ListDefinitions,
    ListResourceGroups,
    ListSubscriptions,
    Operation,
    ResourceGroupsLoaded,
    SubscriptionsLoaded,
)
from exemption_wizard.models import (
    PolicyAssignment,
    PolicyDefinitionRef,
    ResourceGroup,
    Subscription,
)

logger = logging.getLogger(__name__)


class ExemptionBackend(Protocol):
    """The remote calls the wizard depends on."""

    def list_subscriptions(self) -> Sequence[Subscription]: ...

    def list_assignments(self, subscription_id: str) -> Sequence[PolicyAssignment]: ...

    def list_assignment_definitions(self, assignment: PolicyAssignment) -> Sequence[PolicyDefinitionRef]: ...

    def list_resource_groups(self, subscription_id: str) -> Sequence[ResourceGroup]: ...

    def create_exemption(
        self,
        scope: str,
        assignment: PolicyAssignment,
        reference_ids: Sequence[str],
        ticket: str,
        requesters: str,
        expiration_date: str = "",
    ) -> str: ...


class OperationGateway:
    """Single daemon worker that reports each operation as a completion event."""

    def __init__(self, backend: ExemptionBackend):
        self.backend = backend
        self.events: "queue.Queue[CompletionEvent]" = queue.Queue()
        self._requests: "queue.Queue[Optional[Tuple[Operation, Future]]]" = queue.Queue()
        self._closed = False
        self._worker = threading.Thread(target=self._work, name="exemption-op", daemon=True)
        self._worker.start()

    def schedule(self, operation: Operation) -> "Future[CompletionEvent]":
        """Run operation in the background; its event lands on self.events.

        Raises:
            RuntimeError: the gateway has been shut down
        """
        if self._closed:
            raise RuntimeError("cannot schedule on a gateway that has been shut down")
        logger.info("scheduling %s", type(operation).__name__)
        future: "Future[CompletionEvent]" = Future()
        self._requests.put((operation, future))
        return future

    def next_event(self, timeout: Optional[float] = None) -> Optional[CompletionEvent]:
        """Block until a completion event is available (None on timeout)."""
        try:
            return self.events.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[CompletionEvent]:
        """All queued completion events, without blocking."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained

    def shutdown(self, wait: bool = False) -> None:
        """Stop the worker once queued operations are done.

        In-flight work is never cancelled; its event is simply not consumed.
        With wait=False this returns at once and the daemon worker does not
        keep the process alive.
        """
        if not self._closed:
            self._closed = True
            self._requests.put(None)
        if wait:
            self._worker.join()

    def __enter__(self) -> "OperationGateway":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def _work(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                return
            operation, future = request
            if not future.set_running_or_notify_cancel():
                continue
            event = self._execute(operation)
            self.events.put(event)
            future.set_result(event)

    def _execute(self, operation: Operation) -> CompletionEvent:
        try:
            return self._call_backend(operation)
        except Exception as e:
            logger.exception("%s failed", type(operation).__name__)
            return _failure_event(operation, e)

    def _call_backend(self, operation: Operation) -> CompletionEvent:
        if isinstance(operation, ListSubscriptions):
            return SubscriptionsLoaded(subscriptions=tuple(self.backend.list_subscriptions() or ()))
        if isinstance(operation, ListAssignments):
            assignments = self.backend.list_assignments(operation.subscription.short_id)
            return AssignmentsLoaded(assignments=tuple(assignments or ()))
        if isinstance(operation, ListDefinitions):
            definitions = self.backend.list_assignment_definitions(operation.assignment)
            return DefinitionsLoaded(definitions=tuple(definitions or ()))
        if isinstance(operation, ListResourceGroups):
            groups = self.backend.list_resource_groups(operation.subscription.short_id)
            return ResourceGroupsLoaded(resource_groups=tuple(groups or ()))
        if isinstance(operation, CreateExemption):
            output = self.backend.create_exemption(
                operation.scope,
                operation.assignment,
                list(operation.reference_ids),
                operation.ticket,
                operation.requesters,
                operation.expiration_date,
            )
            return ExemptionCreated(output=output or "")
        raise TypeError(f"Unsupported operation: {operation!r}")


def _failure_event(operation: Operation, error: BaseException) -> CompletionEvent:
    if isinstance(operation, ListSubscriptions):
        return SubscriptionsLoaded(error=error)
    if isinstance(operation, ListAssignments):
        return AssignmentsLoaded(error=error)
    if isinstance(operation, ListDefinitions):
        return DefinitionsLoaded(error=error)
    if isinstance(operation, ListResourceGroups):
        return ResourceGroupsLoaded(error=error)
    if isinstance(operation, CreateExemption):
        return ExemptionCreated(error=error)
    raise TypeError(f"Unsupported operation: {operation!r}")
