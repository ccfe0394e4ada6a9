"""OneDrive API CLI entry point.

Sign in, list folders, track changes and upload files over Microsoft Graph.
"""

from __future__ import annotations

import logging

import typer

from onedrive_api.commands.auth_cmd import app as auth_app
from onedrive_api.commands.items_cmd import app as items_app
from onedrive_api.commands.upload_cmd import app as upload_app

app = typer.Typer(
    name="onedrive-api",
    help="Command-line client for OneDrive over Microsoft Graph.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")
app.add_typer(items_app, name="items")
app.add_typer(upload_app, name="upload")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """OneDrive API CLI: sign in, list, track changes and upload."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
