"""CLI commands for listing folders and tracking changes."""

from __future__ import annotations

from typing import Annotated

import typer
from rich.console import Console

from onedrive_api.auth import AuthManager
from onedrive_api.client import GraphClient
from onedrive_api.config import get_config
from onedrive_api.errors import OneDriveError, ResyncRequired
from onedrive_api.models.options import CollectionOption
from onedrive_api.services.drive import DriveService
from onedrive_api.utils.errors import handle_error
from onedrive_api.utils.locations import DriveLocation, ItemLocation
from onedrive_api.utils.output import OutputFormat, print_items, print_output
from onedrive_api.utils.state import StateStore

console = Console(stderr=True)
app = typer.Typer(name="items", help="List folders and track changes.")


def _build_service(verbose: bool = False) -> tuple[GraphClient, AuthManager, DriveService]:
    config = get_config()
    auth = AuthManager(config)
    client = GraphClient(
        auth.get_access_token,
        base_url=config.endpoints.graph_url,
        timeout=config.settings.timeout,
        verbose=verbose,
    )
    return client, auth, DriveService(client)


def _option(select: str | None, page_size: int | None) -> CollectionOption:
    fields = [s.strip() for s in select.split(",") if s.strip()] if select else []
    return CollectionOption(select=fields, page_size=page_size)


@app.command("ls")
def list_children(
    path: Annotated[str, typer.Argument(help="Absolute folder path, e.g. /Documents")] = "/",
    select: Annotated[str | None, typer.Option("--select", help="Comma-separated fields to return")] = None,
    page_size: Annotated[int | None, typer.Option("--page-size", help="Items per page")] = None,
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """List the children of a folder."""
    client, auth, service = _build_service(verbose)
    try:
        fetcher = service.list_children(ItemLocation.from_path(path), _option(select, page_size))
        items = service.fetch_all(fetcher)
        print_items(items, output, title=f"Children of {path}")
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
        auth.close()


@app.command("delta")
def track_changes(
    path: Annotated[str, typer.Argument(help="Absolute folder path to track")] = "/",
    full: Annotated[bool, typer.Option("--full", help="Ignore the stored delta link and enumerate everything")] = False,
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Show changes since the last run and store the new delta link."""
    config = get_config()
    store = StateStore(config.settings.state_dir)
    drive = DriveLocation.me().path
    client, auth, service = _build_service(verbose)
    try:
        folder = ItemLocation.from_path(path)
        cursor = None if full else store.get_delta_link(drive, path)
        if cursor:
            console.print("Resuming from stored delta link...", style="yellow")
        fetcher = service.track_changes(folder, cursor)
        items = service.fetch_all(fetcher)
        store.set_delta_link(drive, path, fetcher.delta_link)  # type: ignore[arg-type]
        console.print(f"{len(items)} change(s)")
        print_items(items, output, title=f"Changes under {path}")
    except ResyncRequired as e:
        store.clear_delta_link(drive, path)
        handle_error(e)
        raise typer.Exit(1)
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
        auth.close()


@app.command("latest")
def latest(
    path: Annotated[str, typer.Argument(help="Absolute folder path to track")] = "/",
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Store a delta link for the current state without listing anything."""
    config = get_config()
    store = StateStore(config.settings.state_dir)
    drive = DriveLocation.me().path
    client, auth, service = _build_service(verbose)
    try:
        delta_link = service.latest_delta_link(ItemLocation.from_path(path))
        store.set_delta_link(drive, path, delta_link)
        print_output({"path": path, "delta_link": delta_link}, output, title="Latest Delta Link")
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
        auth.close()
