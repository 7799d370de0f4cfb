"""Info command to show quota of every account."""
import asyncio
import typer
from drive_pool.commands.common import open_pool


def info():
    """Show storage quota of the index and storage accounts."""
    asyncio.run(_show_info())


async def _show_info():
    """Display account quota."""
    pool, _ = open_pool()

    async with pool:
        report = await pool.quota_report()

    for account, quota in report:
        role = "index" if account is pool.index else "storage"
        if isinstance(quota, Exception):
            typer.echo(f"{account.name} | {account.client_email} | {role} | ERROR: {quota}")
        else:
            typer.echo(f"{account.name} | {account.client_email} | {role} | {quota}")
