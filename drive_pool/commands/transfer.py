"""Upload and cat commands for files behind placeholders."""
import asyncio
import sys
import typer
from pathlib import Path
from typing import Optional
from drive_pool.commands.common import open_pool
from drive_pool.exceptions import DrivePoolError
from drive_pool.store import PlaceholderStore


def upload(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Local file to upload"),
    parent_id: Optional[str] = typer.Argument(None, help="Index folder ID (default: root)"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Name in the index tree")
):
    """Upload a file to a storage account and link it into the index tree."""
    asyncio.run(_upload(path, parent_id, name))


async def _upload(path: Path, parent_id: Optional[str], name: Optional[str]):
    pool, settings = open_pool()
    async with pool:
        store = PlaceholderStore(pool, chunk_size=settings.chunk_size)
        try:
            entry = await store.put_file(path, parent_id=parent_id, name=name)
        except DrivePoolError as e:
            typer.echo(f"✗ Failed to upload {path}: {e}", err=True)
            raise typer.Exit(1)
        typer.echo(f"✓ {entry.name} -> {entry.id} (on {pool.selected.name})")


def cat(
    entry_id: str = typer.Argument(..., help="ID of the file in the index account")
):
    """Write the content behind an index entry to stdout."""
    data = asyncio.run(_cat(entry_id))
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


async def _cat(entry_id: str) -> bytes:
    pool, _ = open_pool()
    async with pool:
        try:
            return await PlaceholderStore(pool).read(entry_id)
        except DrivePoolError as e:
            typer.echo(f"✗ Failed to read {entry_id}: {e}", err=True)
            raise typer.Exit(1)
