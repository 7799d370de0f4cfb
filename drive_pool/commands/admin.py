"""Administrative pass-through commands on the index account."""
import asyncio
import json
import typer
from typing import Optional
from drive_pool.commands.common import open_pool
from drive_pool.exceptions import DrivePoolError
from drive_pool.restore import untrash_tree
from drive_pool.store import PlaceholderStore


def _run(coro_fn, *args):
    """Run a coroutine against a freshly opened pool, exiting 1 on errors."""
    async def runner():
        pool, _ = open_pool()
        async with pool:
            try:
                return await coro_fn(pool, *args)
            except DrivePoolError as e:
                typer.echo(f"✗ {e}", err=True)
                raise typer.Exit(1)
    return asyncio.run(runner())


def shortcut(
    source_id: str = typer.Argument(..., help="ID of the file or folder to point at"),
    parent_id: str = typer.Argument(..., help="Folder ID to create the shortcut in"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Shortcut name (default: source name)")
):
    """Create a shortcut to a file or folder in the index tree."""
    entry = _run(_shortcut, source_id, parent_id, name)
    typer.echo(f"✓ Shortcut {entry.name} -> {entry.id}")


async def _shortcut(pool, source_id: str, parent_id: str, name: Optional[str]):
    index = await pool.index.resolve_session()
    source = await index.get_file(source_id)
    # Point at the target of an existing shortcut, never at the shortcut
    target_id = source.shortcut_target_id or source.id
    return await index.create_shortcut(target_id, name or source.name, parent_id)


def drives():
    """List the shared drives available to the index account as JSON."""
    result = _run(_drives)
    typer.echo(json.dumps(result, indent=4))


async def _drives(pool):
    index = await pool.index.resolve_session()
    return await index.list_drives()


def untrash(
    directory_id: str = typer.Argument(..., help="Folder ID to restore recursively")
):
    """Untrash files and folders below a folder, with their real objects."""
    result = _run(untrash_tree, directory_id)
    typer.echo(json.dumps(result.to_dict(), indent=4))
    if result.errors:
        raise typer.Exit(1)


def copyid(
    file_id: str = typer.Argument(..., help="ID of the entry to copy"),
    parent_id: str = typer.Argument(..., help="Destination folder ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Name of the copy")
):
    """Copy an entry by ID. Placeholders get their own copy of the real object."""
    entry = _run(_copyid, file_id, parent_id, name)
    typer.echo(f"✓ Copied {file_id} -> {entry.id} ({entry.name})")


async def _copyid(pool, file_id: str, parent_id: str, name: Optional[str]):
    return await PlaceholderStore(pool).copy(file_id, parent_id, name)


def export_formats():
    """Dump the export formats for debug purposes."""
    typer.echo(json.dumps(_run(_formats, "exportFormats"), indent=4))


def import_formats():
    """Dump the import formats for debug purposes."""
    typer.echo(json.dumps(_run(_formats, "importFormats"), indent=4))


async def _formats(pool, which: str):
    index = await pool.index.resolve_session()
    formats = await index.get_formats()
    return formats[which]
