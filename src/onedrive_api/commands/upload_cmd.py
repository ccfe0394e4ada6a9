"""CLI commands for resumable uploads."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, DownloadColumn, Progress, TransferSpeedColumn

from onedrive_api.auth import AuthManager
from onedrive_api.client import GraphClient
from onedrive_api.config import get_config
from onedrive_api.errors import OneDriveError, SessionExpired
from onedrive_api.models.items import ConflictBehavior
from onedrive_api.models.upload import UploadSession, UploadSessionMeta
from onedrive_api.services.upload import UploadService
from onedrive_api.utils.chunking import FRAGMENT_ALIGNMENT, is_aligned
from onedrive_api.utils.errors import handle_error
from onedrive_api.utils.locations import ItemLocation
from onedrive_api.utils.output import OutputFormat, human_size, print_output
from onedrive_api.utils.state import SessionRecord, StateStore

console = Console(stderr=True)
app = typer.Typer(name="upload", help="Upload files through resumable sessions.")


def _build_service(verbose: bool = False) -> tuple[GraphClient, AuthManager, UploadService]:
    config = get_config()
    auth = AuthManager(config)
    client = GraphClient(
        auth.get_access_token,
        base_url=config.endpoints.graph_url,
        timeout=config.settings.timeout,
        verbose=verbose,
    )
    return client, auth, UploadService(client)


@app.command("put")
def put(
    local: Annotated[Path, typer.Argument(help="Local file to upload", exists=True, dir_okay=False)],
    remote_dir: Annotated[str, typer.Argument(help="Absolute remote folder, e.g. /Backups")] = "/",
    chunk_size: Annotated[int | None, typer.Option("--chunk-size", help="Bytes per request")] = None,
    conflict: Annotated[ConflictBehavior, typer.Option("--conflict", help="fail, replace or rename")] = ConflictBehavior.FAIL,
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Upload a file, resuming a previous session for it when one is stored."""
    config = get_config()
    store = StateStore(config.settings.state_dir)
    size = chunk_size or config.settings.chunk_size
    if not is_aligned(size):
        console.print(
            f"[yellow]Chunk size {size} is not a multiple of {FRAGMENT_ALIGNMENT} bytes; "
            "the service may reject it.[/yellow]"
        )

    client, auth, service = _build_service(verbose)
    file_size = local.stat().st_size
    try:
        record = store.get_session(local)
        if record is not None and record.file_size == file_size:
            console.print(f"Resuming upload session for {local.name}...", style="yellow")
            session = service.resume(record.upload_url, file_size)
        else:
            session = service.create_session(
                ItemLocation.from_path(remote_dir), local.name, file_size, conflict
            )
            store.put_session(
                SessionRecord(
                    local_path=str(local),
                    upload_url=session.upload_url,
                    file_size=file_size,
                    remote_dir=remote_dir,
                    file_name=local.name,
                )
            )

        with Progress(
            "[progress.description]{task.description}",
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task(local.name, total=file_size, completed=file_size - session.bytes_remaining)
            with open(local, "rb") as stream:
                result = service.upload_stream(
                    session, stream, size, lambda n: progress.advance(task, n)
                )

        store.remove_session(local)
        item = result.item
        print_output(
            {"name": item.name, "id": item.id, "size": human_size(item.size)},
            output,
            title="Upload Complete",
        )
    except SessionExpired as e:
        store.remove_session(local)
        handle_error(e)
        raise typer.Exit(1)
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
        auth.close()


@app.command("status")
def status(
    upload_url: Annotated[str, typer.Argument(help="Upload session URL")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Show which byte ranges a session still expects."""
    client, auth, service = _build_service(verbose)
    try:
        meta = service.get_meta(upload_url)
        result = {
            "expires": str(meta.expiration_date_time) if meta.expiration_date_time else "N/A",
            "next_expected_ranges": ", ".join(str(r) for r in meta.next_expected_ranges) or "none",
        }
        print_output(result, output, title="Upload Session")
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
        auth.close()


@app.command("sessions")
def sessions(
    output: Annotated[OutputFormat, typer.Option("--output", "-o")] = OutputFormat.TABLE,
) -> None:
    """List stored upload sessions."""
    store = StateStore(get_config().settings.state_dir)
    rows = [
        {
            "local_path": r.local_path,
            "remote": f"{r.remote_dir.rstrip('/')}/{r.file_name}",
            "size": human_size(r.file_size),
            "created_at": r.created_at,
        }
        for r in store.list_sessions()
    ]
    print_output(rows, output, title="Upload Sessions")


@app.command("cancel")
def cancel(
    local: Annotated[Path, typer.Argument(help="Local file whose upload to cancel")],
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Delete the stored upload session for a local file."""
    store = StateStore(get_config().settings.state_dir)
    record = store.get_session(local)
    if record is None:
        console.print(f"[dim]No upload session stored for {local}.[/dim]")
        return

    client, auth, service = _build_service(verbose)
    try:
        session = UploadSession(
            meta=UploadSessionMeta(upload_url=record.upload_url),
            file_size=record.file_size,
        )
        service.delete(session)
        store.remove_session(local)
        console.print(f"Cancelled upload of {record.file_name}.")
    except (OneDriveError, ValueError) as e:
        handle_error(e)
        raise typer.Exit(1)
    finally:
        client.close()
        auth.close()
