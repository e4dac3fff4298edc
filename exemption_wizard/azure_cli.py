"""Azure CLI backend for the exemption wizard.

Every call shells out to `az` with JSON output and validates the result into
pydantic models. Lists come back sorted case-insensitively by their label.

Usage:
    client = AzureCLI()
    client.ensure_login()
    subs = client.list_subscriptions()
"""
from __future__ import annotations

import json
import logging
import shlex
import shutil
import subprocess
from contextlib import contextmanager
from datetime import datetime, time, timezone
from typing import Any, Iterator, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError
from rich.console import Console

from exemption_wizard.config import ASSIGNMENTS_API_VERSION, AZ_BINARY, EXEMPTION_CATEGORY
from exemption_wizard.exceptions import AzureCLIError, AzureLoginError
from exemption_wizard.models import (
    PolicyAssignment,
    PolicyDefinitionRef,
    ResourceGroup,
    Subscription,
)
from exemption_wizard.utils import parse_expiration_date, parse_policy_id

logger = logging.getLogger(__name__)
console = Console()

M = TypeVar("M", bound=BaseModel)

NAME_ID_QUERY = "[].{name:name,id:id}"
ASSIGNMENTS_QUERY = (
    "{value:value[].{id:id,name:name,displayName:properties.displayName,"
    "scope:properties.scope,policyDefinitionId:properties.policyDefinitionId},"
    "nextLink:nextLink}"
)


@contextmanager
def _failure_context(action: str) -> Iterator[None]:
    try:
        yield
    except AzureCLIError as e:
        raise AzureCLIError(f"failed to {action}: {e}", stderr=e.stderr, returncode=e.returncode) from e


def _parse_models(model: Type[M], data: Any, what: str) -> List[M]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise AzureCLIError(f"unable to parse {what} data: expected a JSON list")
    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        raise AzureCLIError(f"unable to parse {what} data: {e}") from e


class AzureCLI:
    """ExemptionBackend implementation driving the `az` executable."""

    def __init__(self, az_path: str = AZ_BINARY, timeout: Optional[float] = None):
        self.az_path = az_path
        self.timeout = timeout

    # =========================================================================
    # Session
    # =========================================================================

    def ensure_login(self) -> None:
        """Make sure an Azure CLI session exists, running `az login` if not.

        Raises:
            AzureLoginError: az is not installed or the login failed
        """
        if shutil.which(self.az_path) is None:
            raise AzureLoginError(f"azure CLI ({self.az_path}) not found in PATH")
        try:
            self._run("account", "show")
            return
        except AzureCLIError as e:
            logger.info("no active Azure CLI session (%s)", e)

        console.print("No active Azure CLI session detected. Launching 'az login'...")
        result = subprocess.run([self.az_path, "login"])
        if result.returncode != 0:
            raise AzureLoginError(f"az login failed with exit status {result.returncode}")

    # =========================================================================
    # Listing
    # =========================================================================

    def list_subscriptions(self) -> List[Subscription]:
        with _failure_context("list subscriptions"):
            data = self._run_json("account", "list", "--query", NAME_ID_QUERY, "-o", "json")
            subs = _parse_models(Subscription, data, "subscription")
        return sorted(subs, key=lambda s: s.name.lower())

    def list_resource_groups(self, subscription_id: str) -> List[ResourceGroup]:
        with _failure_context("list resource groups"):
            data = self._run_json(
                "group", "list",
                "--subscription", subscription_id,
                "--query", NAME_ID_QUERY,
                "-o", "json",
            )
            groups = _parse_models(ResourceGroup, data, "resource group")
        return sorted(groups, key=lambda g: g.name.lower())

    def list_assignments(self, subscription_id: str) -> List[PolicyAssignment]:
        """All policy assignments visible in a subscription, following nextLink."""
        assignments: List[PolicyAssignment] = []
        uri = (
            f"/subscriptions/{subscription_id}/providers/Microsoft.Authorization/"
            f"policyAssignments?api-version={ASSIGNMENTS_API_VERSION}"
        )
        seen = set()
        with _failure_context("list policy assignments"):
            while uri and uri not in seen:
                seen.add(uri)
                page = self._run_json(
                    "rest",
                    "--method", "get",
                    "--uri", uri,
                    "--subscription", subscription_id,
                    "--query", ASSIGNMENTS_QUERY,
                    "-o", "json",
                )
                if not isinstance(page, dict):
                    raise AzureCLIError("unable to parse assignment data: expected a JSON object")
                assignments.extend(_parse_models(PolicyAssignment, page.get("value"), "assignment"))
                uri = page.get("nextLink") or ""
        logger.info("loaded %d policy assignments for %s", len(assignments), subscription_id)
        return sorted(assignments, key=lambda a: a.display_label.lower())

    def list_assignment_definitions(self, assignment: PolicyAssignment) -> List[PolicyDefinitionRef]:
        """Members of the assignment's policy set; empty for a single definition."""
        if not assignment.policy_definition_id or not assignment.is_policy_set:
            return []

        name, subscription, management_group = parse_policy_id(assignment.policy_definition_id)
        if not name:
            raise AzureCLIError(
                f"could not parse policy set name from ID: {assignment.policy_definition_id}"
            )

        args = ["policy", "set-definition", "show", "--name", name]
        args += self._definition_scope_args(subscription, management_group)
        args += ["--query", "{policyDefinitions:policyDefinitions}", "-o", "json"]

        with _failure_context(f"load policy set definition (ID: '{assignment.policy_definition_id}')"):
            data = self._run_json(*args)

        members = data.get("policyDefinitions") if isinstance(data, dict) else None
        refs = []
        for member in members or []:
            definition_id = member.get("policyDefinitionId", "") or ""
            refs.append(PolicyDefinitionRef(
                policy_definition_id=definition_id,
                reference_id=member.get("policyDefinitionReferenceId", "") or "",
                display_name=self._policy_display_name(definition_id) or definition_id,
            ))
        return sorted(refs, key=lambda r: r.display_name.lower())

    # =========================================================================
    # Create
    # =========================================================================

    def create_exemption(
        self,
        scope: str,
        assignment: PolicyAssignment,
        reference_ids: Sequence[str],
        ticket: str,
        requesters: str,
        expiration_date: str = "",
    ) -> str:
        """Create a Waiver exemption and return az's raw JSON output."""
        created_at = datetime.now().astimezone().isoformat(timespec="seconds")
        args = [
            "policy", "exemption", "create",
            "--name", ticket,
            "--scope", scope,
            "--policy-assignment", assignment.id,
            "--display-name", f"{scope}/{assignment.display_name} {ticket}",
            "--description", f"Ticket {ticket} raised by {requesters} on {created_at}",
            "--exemption-category", EXEMPTION_CATEGORY,
            "-o", "json",
        ]
        if expiration_date:
            args += ["--expires-on", expires_on(expiration_date)]
        if reference_ids:
            args += ["--policy-definition-reference-ids", *reference_ids]

        with _failure_context("create policy exemption"):
            output = self._run(*args)
        logger.info("created exemption %s at %s", ticket, scope)
        return output

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _definition_scope_args(subscription: str, management_group: str) -> List[str]:
        if management_group:
            return ["--management-group", management_group]
        if subscription:
            return ["--subscription", subscription]
        return []

    def _policy_display_name(self, definition_id: str) -> str:
        """Display name of a policy definition; "" when it cannot be resolved."""
        if not definition_id:
            return ""
        name, subscription, management_group = parse_policy_id(definition_id)
        if not name:
            return ""
        args = ["policy", "definition", "show", "--name", name]
        args += self._definition_scope_args(subscription, management_group)
        args += ["--query", "{displayName:displayName,name:name}", "-o", "json"]
        try:
            data = self._run_json(*args)
        except AzureCLIError as e:
            logger.debug("display name lookup failed for %s: %s", definition_id, e)
            return ""
        if not isinstance(data, dict):
            return ""
        return data.get("displayName") or data.get("name") or ""

    def _run_json(self, *args: str) -> Any:
        output = self._run(*args)
        try:
            return json.loads(output) if output.strip() else None
        except json.JSONDecodeError as e:
            raise AzureCLIError(f"unable to parse az output as JSON: {e}") from e

    def _run(self, *args: str) -> str:
        cmd = [self.az_path, *args]
        logger.debug("running %s", shlex.join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise AzureCLIError(f"azure CLI ({self.az_path}) not found: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise AzureCLIError(f"az {args[0]} timed out after {self.timeout}s") from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            message = f"az {' '.join(args[:2])} exited with status {result.returncode}"
            if stderr:
                message = f"{message}: {stderr}"
            raise AzureCLIError(message, stderr=stderr, returncode=result.returncode)
        return result.stdout or ""


def expires_on(expiration_date: str) -> str:
    """End of the given day in UTC, RFC 3339 (2024-06-15 -> 2024-06-15T23:59:59Z).

    Raises:
        ValueError: expiration_date is not a YYYY-MM-DD calendar date
    """
    day = parse_expiration_date(expiration_date)
    if day is None:
        raise ValueError(f"invalid expiration date: {expiration_date!r}")
    moment = datetime.combine(day, time(23, 59, 59), tzinfo=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")
