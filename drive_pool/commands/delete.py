"""Delete command to remove index entries and the objects behind them."""
import asyncio
import json
import typer
from drive_pool.commands.common import open_pool
from drive_pool.deleter import CascadingDeleter
from drive_pool.exceptions import DrivePoolError


def delete(
    entry_id: str = typer.Argument(..., help="ID of the file or folder in the index account")
):
    """
    Delete an entry, its real object, and everything below it.

    Prints a JSON report. Exits with 1 when anything could not be deleted.
    """
    result = asyncio.run(_delete(entry_id))
    typer.echo(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        raise typer.Exit(1)


async def _delete(entry_id: str):
    pool, settings = open_pool()
    async with pool:
        deleter = CascadingDeleter(
            pool,
            concurrency=settings.delete_concurrency,
            use_trash=settings.use_trash
        )
        try:
            return await deleter.delete(entry_id)
        except DrivePoolError as e:
            typer.echo(f"✗ Failed to delete {entry_id}: {e}", err=True)
            raise typer.Exit(1)
