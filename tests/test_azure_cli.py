"""Tests for the Azure CLI backend (subprocess calls are mocked)."""

import json
import subprocess
import sys
from unittest.mock import patch

import pytest

from exemption_wizard.azure_cli import AzureCLI, expires_on
from exemption_wizard.exceptions import AzureCLIError, AzureLoginError

from conftest import make_assignment

SET_ID = "/providers/Microsoft.Management/managementGroups/mg-root/providers/Microsoft.Authorization/policySetDefinitions/baseline"


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=["az"], returncode=returncode, stdout=stdout, stderr=stderr)


def as_json(data):
    return completed(json.dumps(data))


class TestRun:
    """Tests for the az invocation wrapper."""

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_nonzero_exit_includes_stderr(self, mock_run):
        mock_run.return_value = completed(returncode=2, stderr="ERROR: Please run 'az login'.\n")

        with pytest.raises(AzureCLIError) as exc_info:
            AzureCLI().list_subscriptions()

        error = exc_info.value
        assert "failed to list subscriptions" in str(error)
        assert "Please run 'az login'." in str(error)
        assert error.returncode == 2
        assert error.stderr == "ERROR: Please run 'az login'."

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_missing_binary(self, mock_run):
        mock_run.side_effect = FileNotFoundError("az")

        with pytest.raises(AzureCLIError, match="not found"):
            AzureCLI().list_subscriptions()

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_bad_json(self, mock_run):
        mock_run.return_value = completed("not json")

        with pytest.raises(AzureCLIError, match="unable to parse"):
            AzureCLI().list_subscriptions()

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_uses_configured_binary(self, mock_run):
        mock_run.return_value = as_json([])

        AzureCLI(az_path="/opt/az/bin/az").list_resource_groups("a")

        cmd = mock_run.call_args[0][0]
        assert cmd[0] == "/opt/az/bin/az"
        assert cmd[1:3] == ["group", "list"]
        assert cmd[cmd.index("--subscription") + 1] == "a"

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_output_decoded_leniently(self, mock_run):
        mock_run.return_value = as_json([])

        AzureCLI().list_subscriptions()

        kwargs = mock_run.call_args[1]
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["errors"] == "replace"

    def test_undecodable_output_does_not_raise(self):
        """Test that non-UTF-8 bytes from the child process are replaced, not fatal."""
        cli = AzureCLI(az_path=sys.executable)

        output = cli._run("-c", "import sys; sys.stdout.buffer.write(b\"ok \\xff\\xfe\")")

        assert output.startswith("ok ")
        assert "\ufffd" in output


class TestListing:
    """Tests for the list calls."""

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_subscriptions_sorted_case_insensitive(self, mock_run):
        mock_run.return_value = as_json([
            {"name": "prod", "id": "/subscriptions/2"},
            {"name": "Dev", "id": "/subscriptions/1"},
        ])

        subs = AzureCLI().list_subscriptions()

        assert [s.name for s in subs] == ["Dev", "prod"]
        assert subs[0].short_id == "1"

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_assignments_follow_next_link(self, mock_run):
        """Test pagination and null display names."""
        mock_run.side_effect = [
            as_json({
                "value": [{"id": "/x/b", "name": "b", "displayName": "Beta", "scope": "/s", "policyDefinitionId": "/d"}],
                "nextLink": "https://management.azure.com/page2",
            }),
            as_json({
                "value": [{"id": "/x/a", "name": "alpha", "displayName": None, "scope": "/s", "policyDefinitionId": "/d"}],
                "nextLink": None,
            }),
        ]

        assignments = AzureCLI().list_assignments("sub-1")

        assert [a.display_label for a in assignments] == ["alpha", "Beta"]
        assert mock_run.call_count == 2
        first_cmd = mock_run.call_args_list[0][0][0]
        assert "/subscriptions/sub-1/providers/Microsoft.Authorization/policyAssignments?api-version=2021-06-01" in first_cmd
        second_cmd = mock_run.call_args_list[1][0][0]
        assert second_cmd[second_cmd.index("--uri") + 1] == "https://management.azure.com/page2"

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_single_definition_assignment_has_no_members(self, mock_run):
        assignments = AzureCLI().list_assignment_definitions(make_assignment())

        assert assignments == []
        mock_run.assert_not_called()

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_policy_set_members_resolved(self, mock_run):
        """Test set lookup by management group and display name resolution."""
        assignment = make_assignment(definition_id=SET_ID)
        mock_run.side_effect = [
            as_json({"policyDefinitions": [
                {"policyDefinitionId": "/providers/Microsoft.Authorization/policyDefinitions/zeta",
                 "policyDefinitionReferenceId": "zeta-ref"},
                {"policyDefinitionId": "/providers/Microsoft.Authorization/policyDefinitions/alpha",
                 "policyDefinitionReferenceId": "alpha-ref"},
            ]}),
            as_json({"displayName": "Zeta rule", "name": "zeta"}),
            completed(returncode=1, stderr="not found"),
        ]

        refs = AzureCLI().list_assignment_definitions(assignment)

        set_cmd = mock_run.call_args_list[0][0][0]
        assert set_cmd[1:4] == ["policy", "set-definition", "show"]
        assert set_cmd[set_cmd.index("--name") + 1] == "baseline"
        assert set_cmd[set_cmd.index("--management-group") + 1] == "mg-root"
        assert [r.reference_id for r in refs] == ["alpha-ref", "zeta-ref"]
        assert refs[0].display_name == "/providers/Microsoft.Authorization/policyDefinitions/alpha"
        assert refs[1].display_name == "Zeta rule"

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_policy_set_lookup_failure(self, mock_run):
        mock_run.return_value = completed(returncode=1, stderr="AuthorizationFailed")

        with pytest.raises(AzureCLIError, match="failed to load policy set definition"):
            AzureCLI().list_assignment_definitions(make_assignment(definition_id=SET_ID))


class TestCreateExemption:
    """Tests for the create call."""

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_full_assignment_no_expiry(self, mock_run):
        mock_run.return_value = completed('{"name": "INC1"}\n')
        assignment = make_assignment()

        output = AzureCLI().create_exemption("/subscriptions/a", assignment, [], "INC1", "alice")

        assert output == '{"name": "INC1"}\n'
        cmd = mock_run.call_args[0][0]
        assert cmd[1:4] == ["policy", "exemption", "create"]
        assert cmd[cmd.index("--name") + 1] == "INC1"
        assert cmd[cmd.index("--scope") + 1] == "/subscriptions/a"
        assert cmd[cmd.index("--policy-assignment") + 1] == assignment.id
        assert cmd[cmd.index("--display-name") + 1] == "/subscriptions/a/Require tags INC1"
        assert cmd[cmd.index("--exemption-category") + 1] == "Waiver"
        assert cmd[cmd.index("--description") + 1].startswith("Ticket INC1 raised by alice on ")
        assert "--expires-on" not in cmd
        assert "--policy-definition-reference-ids" not in cmd

    @patch("exemption_wizard.azure_cli.subprocess.run")
    def test_partial_with_expiry(self, mock_run):
        mock_run.return_value = completed("{}")

        AzureCLI().create_exemption(
            "/subscriptions/a/resourceGroups/rg", make_assignment(), ["r1", "r2"], "INC2", "bob", "2024-06-15"
        )

        cmd = mock_run.call_args[0][0]
        assert cmd[cmd.index("--expires-on") + 1] == "2024-06-15T23:59:59Z"
        refs_at = cmd.index("--policy-definition-reference-ids")
        assert cmd[refs_at + 1:] == ["r1", "r2"]

    def test_expires_on_rejects_bad_date(self):
        with pytest.raises(ValueError):
            expires_on("2024-02-30")


class TestEnsureLogin:
    """Tests for the login bootstrap."""

    @patch("exemption_wizard.azure_cli.shutil.which", return_value=None)
    def test_az_not_installed(self, _mock_which):
        with pytest.raises(AzureLoginError, match="not found in PATH"):
            AzureCLI().ensure_login()

    @patch("exemption_wizard.azure_cli.subprocess.run")
    @patch("exemption_wizard.azure_cli.shutil.which", return_value="/usr/bin/az")
    def test_existing_session(self, _mock_which, mock_run):
        mock_run.return_value = completed("{}")

        AzureCLI().ensure_login()

        assert mock_run.call_count == 1
        assert mock_run.call_args[0][0] == ["az", "account", "show"]

    @patch("exemption_wizard.azure_cli.subprocess.run")
    @patch("exemption_wizard.azure_cli.shutil.which", return_value="/usr/bin/az")
    def test_runs_login_when_needed(self, _mock_which, mock_run):
        mock_run.side_effect = [completed(returncode=1, stderr="Please run 'az login'"), completed()]

        AzureCLI().ensure_login()

        assert mock_run.call_args_list[1][0][0] == ["az", "login"]

    @patch("exemption_wizard.azure_cli.subprocess.run")
    @patch("exemption_wizard.azure_cli.shutil.which", return_value="/usr/bin/az")
    def test_login_failure(self, _mock_which, mock_run):
        mock_run.side_effect = [completed(returncode=1), completed(returncode=1)]

        with pytest.raises(AzureLoginError):
            AzureCLI().ensure_login()

