"""Helpers shared by commands."""
from typing import Tuple

import typer

from drive_pool.config import Settings, load_settings
from drive_pool.exceptions import DrivePoolError
from drive_pool.pool import AccountPool


def open_pool() -> Tuple[AccountPool, Settings]:
    """Load settings and the credential bundle, exiting with 1 on failure."""
    try:
        settings = load_settings()
        return AccountPool.from_settings(settings), settings
    except DrivePoolError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(1)
