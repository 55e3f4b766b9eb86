"""CLI for blobgallery."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .access import BlobAccess
from .config import StorageSettings, load_settings
from .errors import ConfigError, GalleryError, ListingFailed
from .gallery import PhotoGallery
from .storage_models import BlobKind, ListingDetails
from .utils import humanize_size


app = typer.Typer(help="""\
List and upload photos held in a cloud blob container (Azure Blob Storage,
or a local directory standing in for it).""")

console = Console()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_root: Path = typer.Option(
        Path("."), "--config", "-c", help="Directory containing .blobgallery/config.yaml"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Pick the config directory and logging level."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config_root


def require_settings(ctx: typer.Context) -> StorageSettings:
    """Load settings for the current command.

    Raises:
        typer.Exit: If configuration is invalid
    """
    try:
        return load_settings(ctx.obj)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def open_access(settings: StorageSettings) -> BlobAccess:
    """Build the facade, turning configuration errors into a clean exit."""
    try:
        return BlobAccess.from_settings(settings)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        console.print()
        console.print("[dim]Hint: set AZURE_STORAGE_CONNECTION_STRING, or use "
                      "BLOBGALLERY_PROVIDER=fs with BLOBGALLERY_ROOT[/dim]")
        raise typer.Exit(1)


def run(coro):
    """Run a coroutine, reporting typed failures and exiting 1."""
    try:
        return asyncio.run(coro)
    except ListingFailed as e:
        console.print(f"[red]✗[/red] {e}")
        if e.partial:
            console.print(f"[dim]{len(e.partial)} blob(s) were listed before the failure[/dim]")
        raise typer.Exit(1)
    except GalleryError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


@app.command("ls")
def list_command(
    ctx: typer.Context,
    container: Optional[str] = typer.Argument(None, help="Container (defaults to configured)"),
    prefix: str = typer.Option("", "--prefix", "-p", help="Only names starting with this"),
    page_size: Optional[int] = typer.Option(None, "--page-size", min=1, help="Blobs per request"),
    kind: Optional[BlobKind] = typer.Option(None, "--kind", help="Only blobs of this kind"),
    snapshots: bool = typer.Option(False, "--snapshots", help="Include snapshots"),
    metadata: bool = typer.Option(False, "--metadata", help="Request blob metadata"),
):
    """List blobs in a container."""
    settings = require_settings(ctx)
    container = container or settings.container
    include = ListingDetails(snapshots=snapshots, metadata=metadata)

    async def _list():
        async with open_access(settings) as access:
            return await access.list_blobs(
                container,
                prefix=prefix,
                page_size=page_size or settings.page_size,
                include=include,
                kind=kind,
            )

    refs = run(_list())
    if not refs:
        console.print(f"[yellow]No blobs in '{container}'[/yellow]")
        return

    table = Table(show_header=True, header_style="bold white", title=f"Container: {container}", title_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Locator", style="white")
    for ref in refs:
        table.add_row(ref.name, ref.locator)
    console.print(table)
    console.print(f"[dim]{len(refs)} blob(s)[/dim]")


@app.command()
def upload(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    container: Optional[str] = typer.Option(None, "--container", help="Container (defaults to configured)"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Blob name (defaults to file name)"),
):
    """Upload a file, overwriting any blob with the same name."""
    settings = require_settings(ctx)
    container = container or settings.container

    async def _upload():
        async with open_access(settings) as access:
            return await access.save_file(container, path, name)

    ref = run(_upload())
    size = path.stat().st_size
    console.print(f"[green]✓[/green] Uploaded {ref.name} ({humanize_size(size)})")
    console.print(f"  {ref.locator}")


@app.command()
def get(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Blob name"),
    dest: Path = typer.Argument(..., help="Where to write the bytes"),
    container: Optional[str] = typer.Option(None, "--container", help="Container (defaults to configured)"),
):
    """Download a blob to a local file."""
    settings = require_settings(ctx)
    container = container or settings.container

    async def _fetch():
        async with open_access(settings) as access:
            return await access.fetch_blob(container, name)

    data = run(_fetch())
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    console.print(f"[green]✓[/green] Wrote {dest} ({humanize_size(len(data))})")


@app.command()
def first(
    ctx: typer.Context,
    container: Optional[str] = typer.Option(None, "--container", help="Container (defaults to configured)"),
    prefix: str = typer.Option("", "--prefix", "-p", help="Only names starting with this"),
):
    """Show the photo a gallery page would display."""
    settings = require_settings(ctx)
    container = container or settings.container

    async def _load():
        async with open_access(settings) as access:
            gallery = PhotoGallery(access, container, prefix, settings.page_size)
            await gallery.on_appearing()
            return gallery

    gallery = run(_load())
    if gallery.error:
        console.print(f"[yellow]⚠[/yellow] {gallery.error}")
    if gallery.photo is None:
        console.print(f"[yellow]No photos in '{container}'[/yellow]")
        if gallery.error:
            raise typer.Exit(1)
        return
    console.print(f"[bold]{gallery.photo.title}[/bold]")
    console.print(f"  {gallery.photo.locator}")


@app.command("create-container")
def create_container(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name"),
):
    """Create a container if it does not exist."""
    settings = require_settings(ctx)

    async def _create():
        async with open_access(settings) as access:
            return await access.create_container(container)

    if run(_create()):
        console.print(f"[green]✓[/green] Created container '{container}'")
    else:
        console.print(f"[dim]Container '{container}' already exists[/dim]")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
