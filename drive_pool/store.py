"""
Write and read files through placeholders.

Writes go to a storage account picked by the pool; the index account gets a
shortcut whose description is the placeholder annotation. Reads follow the
annotation back to the storage account.
"""
import logging
import mimetypes
from pathlib import Path
from typing import Optional, Tuple

from . import placeholder
from .config import DEFAULT_CHUNK_SIZE
from .drive_client import DriveClient
from .identity import AccountIdentity
from .models import DriveFile, EntryKind
from .pool import AccountPool

logger = logging.getLogger(__name__)


class PlaceholderStore:
    """
    Usage:
        >>> store = PlaceholderStore(pool)
        >>> entry = await store.put_file(Path("video.mp4"), parent_id=folder_id)
        >>> data = await store.read(entry.id)
    """

    def __init__(self, pool: AccountPool, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self._pool = pool
        self._chunk_size = chunk_size

    async def _link(
        self,
        identity: AccountIdentity,
        real: DriveFile,
        parent_id: Optional[str]
    ) -> DriveFile:
        annotation = placeholder.encode(real, identity.name)
        index = await self._pool.index.resolve_session()
        entry = await index.create_shortcut(real.id, real.name, parent_id, description=annotation)
        logger.info(f"Stored {real.name} on {identity.name} as {real.id}, placeholder {entry.id}")
        return entry

    async def put_bytes(
        self,
        data: bytes,
        name: str,
        parent_id: Optional[str] = None,
        mime_type: str = "application/octet-stream"
    ) -> DriveFile:
        """
        Upload content to a storage account and link it into the index tree.

        Returns:
            The placeholder entry in the index account
        """
        identity = await self._pool.select_identity_for(len(data))
        drive = await identity.resolve_session()
        # The real object also records its owner, so it can be traced back
        real = await drive.upload_bytes(data, name, mime_type, description=identity.name)
        return await self._link(identity, real, parent_id)

    async def put_file(
        self,
        path: Path,
        parent_id: Optional[str] = None,
        name: Optional[str] = None,
        mime_type: Optional[str] = None
    ) -> DriveFile:
        """Upload a local file, chunked when larger than chunk_size."""
        path = Path(path)
        size = path.stat().st_size
        name = name or path.name
        mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        if size <= self._chunk_size:
            return await self.put_bytes(path.read_bytes(), name, parent_id, mime_type)

        identity = await self._pool.select_identity_for(size)
        drive = await identity.resolve_session()
        with open(path, "rb") as stream:
            real = await drive.upload_resumable(
                stream, size, name, mime_type,
                description=identity.name,
                chunk_size=self._chunk_size
            )
        return await self._link(identity, real, parent_id)

    async def resolve(self, entry_id: str) -> Tuple[DriveClient, str]:
        """
        Find the session and file ID holding an entry's bytes.

        Raises:
            NotFoundError: Entry does not exist
            MalformedPlaceholderError: Annotation cannot be decoded
            UnknownAccountError: Annotation names an account not in the pool
        """
        index = await self._pool.index.resolve_session()
        entry = await index.get_file(entry_id)
        if EntryKind.of(entry) is not EntryKind.PLACEHOLDER:
            return index, entry.id

        real, _, drive = await self._pool.resolve_placeholder(entry)
        return drive, real.id

    async def read(self, entry_id: str) -> bytes:
        """Download the content behind an index entry."""
        drive, file_id = await self.resolve(entry_id)
        return await drive.download(file_id)

    async def copy(
        self,
        entry_id: str,
        parent_id: Optional[str] = None,
        name: Optional[str] = None
    ) -> DriveFile:
        """
        Copy an entry by ID.

        Placeholders are copied server-side on their storage account and get
        a fresh placeholder, so the two copies never share a real object.
        """
        index = await self._pool.index.resolve_session()
        entry = await index.get_file(entry_id)
        if EntryKind.of(entry) is not EntryKind.PLACEHOLDER:
            return await index.copy_file(entry.id, name, parent_id)

        real, owner, drive = await self._pool.resolve_placeholder(entry)
        copied = await drive.copy_file(real.id, name or entry.name)
        return await self._link(owner, copied, parent_id)
