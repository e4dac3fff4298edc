"""Exemption Wizard CLI - Command-line entry point.

Usage:
    azure-exemption
    azure-exemption --verbose --log-file /tmp/exemption.log
    azure-exemption --az-path /opt/az/bin/az --skip-login
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from exemption_wizard.azure_cli import AzureCLI
from exemption_wizard.config import AZ_BINARY
from exemption_wizard.exceptions import AzureLoginError
from exemption_wizard.session import WizardSession
from exemption_wizard.state import Step, WizardState
from exemption_wizard.tui import run_tui
from exemption_wizard.utils import setup_logging

console = Console()
logger = logging.getLogger(__name__)

app_cli = typer.Typer(
    help="Azure Policy Exemption wizard - create a policy exemption step by step",
    add_completion=False,
)


def report(state: WizardState) -> int:
    """Print the outcome once the terminal is restored; returns the exit code."""
    if state.step == Step.DONE:
        console.print("[green]Exemption created.[/green]")
        if state.create_output:
            console.print(state.create_output.rstrip(), markup=False, highlight=False)
        return 0
    if state.step == Step.ERROR:
        console.print(f"[red]Error:[/red] {state.error}", highlight=False)
        return 1
    console.print("[yellow]Aborted - no exemption was created.[/yellow]")
    return 0


@app_cli.command()
def main(
    az_path: str = typer.Option(AZ_BINARY, "--az-path", help="Azure CLI executable"),
    skip_login: bool = typer.Option(False, "--skip-login", help="Do not check for an az session first"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Write logs here instead of the default"),
):
    """Walk through subscription, assignment and scope selection, then create the exemption."""
    log_path = setup_logging(log_file=log_file, verbose=verbose)
    logger.info("starting exemption wizard (az=%s)", az_path)

    client = AzureCLI(az_path=az_path)
    if not skip_login:
        try:
            client.ensure_login()
        except AzureLoginError as e:
            logger.error("login failed: %s", e)
            console.print(f"[red]Azure login failed:[/red] {e}")
            raise typer.Exit(code=1)

    session = WizardSession(client)
    try:
        state = run_tui(session)
    finally:
        session.close()

    logger.info("wizard finished in step %s", state.step.value)
    if verbose:
        console.print(f"[dim]Log written to {log_path}[/dim]")
    raise typer.Exit(code=report(state))


if __name__ == "__main__":
    app_cli()
