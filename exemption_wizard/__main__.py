from exemption_wizard.cli import app_cli

app_cli()
