"""
Pytest configuration and shared fixtures for exemption_wizard tests.
"""
import threading

import pytest

from exemption_wizard.models import (
    PolicyAssignment,
    PolicyDefinitionRef,
    ResourceGroup,
    Subscription,
)


class FakeBackend:
    """In-memory ExemptionBackend recording every call."""

    def __init__(
        self,
        subscriptions=None,
        assignments=None,
        definitions=None,
        resource_groups=None,
        create_output='{"name": "INC1"}',
        errors=None,
    ):
        self.subscriptions = subscriptions if subscriptions is not None else [make_subscription()]
        self.assignments = assignments if assignments is not None else [make_assignment()]
        self.definitions = definitions if definitions is not None else []
        self.resource_groups = resource_groups if resource_groups is not None else [make_resource_group()]
        self.create_output = create_output
        self.errors = errors or {}
        self.calls = []
        self.threads = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        self.threads.append(threading.current_thread().name)
        if name in self.errors:
            raise self.errors[name]

    def list_subscriptions(self):
        self._record("list_subscriptions")
        return self.subscriptions

    def list_assignments(self, subscription_id):
        self._record("list_assignments", subscription_id)
        return self.assignments

    def list_assignment_definitions(self, assignment):
        self._record("list_assignment_definitions", assignment)
        return self.definitions

    def list_resource_groups(self, subscription_id):
        self._record("list_resource_groups", subscription_id)
        return self.resource_groups

    def create_exemption(self, scope, assignment, reference_ids, ticket, requesters, expiration_date=""):
        self._record("create_exemption", scope, assignment, reference_ids, ticket, requesters, expiration_date)
        return self.create_output


def make_subscription(sub_id="/subscriptions/a", name="Prod"):
    return Subscription(id=sub_id, name=name)


def make_assignment(name="require-tags", display_name="Require tags", definition_id=None):
    return PolicyAssignment(
        id=f"/subscriptions/a/providers/Microsoft.Authorization/policyAssignments/{name}",
        name=name,
        display_name=display_name,
        scope="/subscriptions/a",
        policy_definition_id=definition_id
        or "/providers/Microsoft.Authorization/policyDefinitions/require-tag",
    )


def make_definition(ref_id, display_name=None):
    return PolicyDefinitionRef(
        policy_definition_id=f"/providers/Microsoft.Authorization/policyDefinitions/{ref_id}",
        reference_id=ref_id,
        display_name=display_name or ref_id.title(),
    )


def make_resource_group(name="rg-app"):
    return ResourceGroup(id=f"/subscriptions/a/resourceGroups/{name}", name=name)


@pytest.fixture
def backend():
    return FakeBackend()
