"""CLI commands for authentication management."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from onedrive_api.auth import AuthManager
from onedrive_api.config import get_config
from onedrive_api.errors import OneDriveError
from onedrive_api.utils.errors import handle_error
from onedrive_api.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Sign in and manage tokens.")


@app.command()
def url(
    implicit: Annotated[bool, typer.Option("--implicit", help="Build a token-flow URL instead of a code-flow URL")] = False,
) -> None:
    """Print the browser URL that starts the sign-in."""
    auth = AuthManager(get_config())
    try:
        flow = auth.flow
        typer.echo(flow.token_auth_url() if implicit else flow.code_auth_url())
    except ValueError as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        auth.close()


@app.command()
def login(
    code: Annotated[str, typer.Option("--code", "-c", help="Authorization code from the redirect URL")] = ...,
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Redeem an authorization code for tokens."""
    auth = AuthManager(get_config())
    try:
        console.print("Redeeming authorization code...", style="yellow")
        token = auth.login_with_code(code)
        status = auth.get_status()
        result = {
            "status": "authenticated",
            "scope": token.scope,
            "expires_at": str(status.expires_at),
            "refresh_token": token.refresh_token or "",
        }
        print_output(result, output, title="Authentication")
        if token.refresh_token:
            console.print("[dim]Store the refresh token as ONEDRIVE_REFRESH_TOKEN in your .env file.[/dim]")
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        auth.close()


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Force refresh the access token from the configured refresh token."""
    auth = AuthManager(get_config())
    try:
        console.print("Refreshing access token...", style="yellow")
        auth.get_access_token(force_refresh=True)
        status = auth.get_status()
        result = {
            "status": "refreshed",
            "expires_at": str(status.expires_at),
            "seconds_remaining": status.seconds_remaining,
            "refresh_token": auth.refresh_token or "",
        }
        print_output(result, output, title="Token Refresh")
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        auth.close()


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show configuration and current token status."""
    config = get_config()
    auth = AuthManager(config)

    token_status = auth.get_status()
    result = {
        "client_id": config.settings.client_id or "N/A",
        "tenant": config.settings.tenant,
        "credential": config.credential().kind,
        "has_refresh_token": auth.refresh_token is not None,
        "has_token": token_status.has_token,
        "is_expired": token_status.is_expired,
        "expires_at": str(token_status.expires_at) if token_status.expires_at else "N/A",
    }
    print_output(result, output, title="Token Status")
    auth.close()
