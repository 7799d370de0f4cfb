"""
Restore trashed entries of the index tree.

Placeholders that were trashed get their real object restored on the owning
storage account as well.
"""
import logging
from dataclasses import dataclass

from .drive_client import DriveClient
from .exceptions import DrivePoolError
from .models import DriveFile, EntryKind
from .pool import AccountPool

logger = logging.getLogger(__name__)


@dataclass
class UntrashResult:
    untrashed: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {"Untrashed": self.untrashed, "Errors": self.errors}


async def untrash_tree(pool: AccountPool, directory_id: str) -> UntrashResult:
    """Recursively untrash everything below ``directory_id``."""
    index = await pool.index.resolve_session()
    result = UntrashResult()
    await _untrash_children(pool, index, directory_id, result)
    return result


async def _untrash_children(
    pool: AccountPool,
    index: DriveClient,
    directory_id: str,
    result: UntrashResult
) -> None:
    try:
        children = [c async for c in index.list_children(directory_id, include_trashed=True)]
    except DrivePoolError as e:
        logger.error(f"Failed to list {directory_id}: {e}")
        result.errors += 1
        return

    for child in children:
        if child.trashed:
            try:
                await _untrash_entry(pool, index, child)
                result.untrashed += 1
            except DrivePoolError as e:
                logger.error(f"Failed to untrash {child.name} ({child.id}): {e}")
                result.errors += 1
                continue
        if child.is_folder:
            await _untrash_children(pool, index, child.id, result)


async def _untrash_entry(pool: AccountPool, index: DriveClient, entry: DriveFile) -> None:
    if EntryKind.of(entry) is EntryKind.PLACEHOLDER:
        real, _, drive = await pool.resolve_placeholder(entry)
        await drive.untrash_file(real.id)
    await index.untrash_file(entry.id)
    logger.info(f"Restored {entry.name}")
