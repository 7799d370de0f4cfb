"""
Cascading delete of index-tree entries.

Deleting a placeholder removes the real object from its storage account
first and the index entry second. Deleting a folder deletes every child
first. A failure on one child never stops its siblings.
"""
import asyncio
import logging
from typing import Optional

from .drive_client import DriveClient
from .exceptions import (
    DrivePoolError,
    NotFoundError,
    DeleteCancelledError,
)
from .models import DriveFile, DeleteResult, DeleteStatus, EntryKind
from .pool import AccountPool

logger = logging.getLogger(__name__)


class CascadingDeleter:
    """
    Deletes index entries together with the real objects they point to.

    Usage:
        >>> deleter = CascadingDeleter(pool)
        >>> result = await deleter.delete(entry_id)
        >>> await deleter.delete(other_id, raise_on_failure=True)

    Rules:
    - An entry that no longer exists is SKIPPED, which counts as success.
    - A placeholder whose annotation cannot be decoded, or whose owner is
      not in the pool, keeps its index entry so the real object stays
      discoverable.
    - A folder with a failed child is kept for the same reason.
    - Failing to remove the index entry after the real object is gone is
      reported but not undone.
    """

    def __init__(self, pool: AccountPool, concurrency: int = 4, use_trash: bool = False):
        """
        Args:
            pool: Account pool resolving owners of placeholders
            concurrency: Max remote calls in flight during a delete
            use_trash: Trash entries and objects instead of deleting them
        """
        self._pool = pool
        self._limit = asyncio.Semaphore(max(concurrency, 1))
        self._use_trash = use_trash

    async def delete(
        self,
        entry_id: str,
        cancel_event: Optional[asyncio.Event] = None,
        raise_on_failure: bool = False
    ) -> DeleteResult:
        """
        Delete an index entry by ID, recursing into folders.

        Args:
            entry_id: ID of the entry in the index account
            cancel_event: Once set, entries not yet started are reported as
                failed instead of deleted
            raise_on_failure: Raise instead of returning a PARTIAL_FAILURE result

        Returns:
            DeleteResult with status DELETED, PARTIAL_FAILURE or SKIPPED

        Raises:
            PartialFailureError: raise_on_failure is set and something could
                not be deleted; the result is attached
        """
        index = await self._pool.index.resolve_session()
        logger.debug(f"Fetching entry details, id {entry_id}")
        try:
            entry = await index.get_file(entry_id)
        except NotFoundError:
            logger.info(f"Entry {entry_id} already deleted")
            return DeleteResult(entry_id, status=DeleteStatus.SKIPPED)
        except DrivePoolError as e:
            result = DeleteResult(entry_id)
            result.fail(entry_id, e)
        else:
            result = await self._delete_entry(index, entry, cancel_event)

        if raise_on_failure:
            result.raise_for_failures()
        return result

    async def _call(self, cancel_event: Optional[asyncio.Event], entry_id: str, coro_fn, *args):
        """Run one remote call under the concurrency limit, unless cancelled."""
        async with self._limit:
            if cancel_event is not None and cancel_event.is_set():
                raise DeleteCancelledError(entry_id)
            return await coro_fn(*args)

    async def _remove(self, drive: DriveClient, file_id: str) -> None:
        if self._use_trash:
            await drive.trash_file(file_id)
        else:
            await drive.delete_file(file_id)

    async def _delete_entry(
        self,
        index: DriveClient,
        entry: DriveFile,
        cancel_event: Optional[asyncio.Event]
    ) -> DeleteResult:
        result = DeleteResult(entry.id, entry.name)
        kind = EntryKind.of(entry)

        if kind is EntryKind.DIRECTORY:
            cleared = await self._delete_children(index, entry, result, cancel_event)
        elif kind is EntryKind.PLACEHOLDER:
            cleared = await self._delete_real_object(entry, result, cancel_event)
        else:
            cleared = True

        if not cleared:
            logger.warning(f"Keeping {entry.name} ({entry.id}): {result.failed} failure(s) below it")
            return result

        logger.debug(f"Deleting {kind.value} {entry.name}")
        try:
            await self._call(cancel_event, entry.id, self._remove, index, entry.id)
        except NotFoundError:
            logger.debug(f"{entry.name} vanished before removal")
        except DrivePoolError as e:
            logger.error(f"Failed to remove index entry {entry.name} ({entry.id}): {e}")
            result.fail(entry.id, e)
            return result

        result.deleted += 1
        return result

    async def _delete_children(
        self,
        index: DriveClient,
        entry: DriveFile,
        result: DeleteResult,
        cancel_event: Optional[asyncio.Event]
    ) -> bool:
        try:
            children = await self._call(cancel_event, entry.id, _collect, index.list_children(entry.id))
        except DrivePoolError as e:
            logger.error(f"Failed to list {entry.name} ({entry.id}) for deletion: {e}")
            result.fail(entry.id, e)
            return False

        logger.debug(f"Deleting {len(children)} child(ren) of {entry.name}")
        outcomes = await asyncio.gather(
            *(self._delete_entry(index, child, cancel_event) for child in children)
        )
        for child_result in outcomes:
            result.absorb(child_result)

        return result.ok

    async def _delete_real_object(
        self,
        entry: DriveFile,
        result: DeleteResult,
        cancel_event: Optional[asyncio.Event]
    ) -> bool:
        try:
            real, owner, drive = await self._pool.resolve_placeholder(entry)

            logger.debug(f"Deleting object {real.name} ({real.id}) from account {owner.name}")
            try:
                await self._call(cancel_event, entry.id, self._remove, drive, real.id)
            except NotFoundError:
                logger.info(f"Object {real.id} already gone from {owner.name}")
            else:
                result.objects_deleted += 1
        except DrivePoolError as e:
            logger.error(f"Failed to delete object behind {entry.name} ({entry.id}): {e}")
            result.fail(entry.id, e)
            return False

        return True


async def _collect(iterator) -> list:
    return [item async for item in iterator]
