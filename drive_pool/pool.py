"""
Account Pool - one index account plus many storage accounts.

Features:
- Index account holds the visible tree, storage accounts hold the bytes
- Name lookup of storage accounts with an append-only cache
- First-fit storage account selection based on live quota
- Memoized selection, reused until reset_selection()
"""
import asyncio
import functools
import logging
from typing import Optional, List, Dict, Tuple, Union

from . import placeholder
from .bundle import load_identities
from .config import Settings
from .exceptions import (
    AuthError,
    ConfigError,
    DriveAPIError,
    CapacityExhaustedError,
    AccountConnectionError,
    MalformedPlaceholderError,
    UnknownAccountError,
)
from .drive_client import DriveClient
from .identity import AccountIdentity, SessionFactory, default_session_factory
from .models import DriveFile, RealObject, StorageQuota

logger = logging.getLogger(__name__)


class AccountPool:
    """
    Owns the index identity and the storage identities.

    Usage:
        >>> async with AccountPool.from_key_file("~/keys.json") as pool:
        ...     identity = await pool.select_identity_for(file_size)
        ...     drive = await identity.resolve_session()
        ...     await drive.upload_bytes(data, name)

    Selection is first-fit in bundle order. Once an account is chosen every
    later write goes to it, whatever its size, until reset_selection() is
    called. Quota is not re-checked on the fast path.
    """

    def __init__(
        self,
        index: AccountIdentity,
        storage: List[AccountIdentity],
        skip_unreachable: bool = False
    ):
        """
        Initialize account pool.

        Args:
            index: Identity holding the visible tree
            storage: Identities holding file bytes, in selection order
            skip_unreachable: Skip storage accounts whose quota query fails
                instead of aborting the selection

        Raises:
            ConfigError: Two storage identities share a name
        """
        self._index = index
        # The index account never stores bytes
        self._storage = [
            a for a in storage
            if a is not index and not (a.key and a.key == index.key)
        ]
        self._skip_unreachable = skip_unreachable

        # Annotations resolve owners by name, so names must be unique
        seen = set()
        for account in self._storage:
            if account.name in seen:
                raise ConfigError(f"Duplicate storage account name {account.name!r}")
            seen.add(account.name)

        self._by_name: Dict[str, AccountIdentity] = {}
        self._selected: Optional[AccountIdentity] = None
        self._select_lock = asyncio.Lock()

    @classmethod
    def from_key_file(
        cls,
        key_file: str,
        proxy: Optional[str] = None,
        impersonate: Optional[str] = None,
        session_factory: Optional[SessionFactory] = None,
        skip_unreachable: bool = False
    ) -> "AccountPool":
        """
        Build a pool from a credential bundle file.

        Args:
            key_file: Path to the bundle (shell variables are expanded)
            proxy: Proxy URL for Drive traffic
            impersonate: User to impersonate with every service account
            session_factory: Override how sessions are opened
            skip_unreachable: See __init__
        """
        if session_factory is None:
            session_factory = functools.partial(
                default_session_factory, proxy=proxy, subject=impersonate
            )
        index, storage = load_identities(key_file, session_factory)
        return cls(index, storage, skip_unreachable=skip_unreachable)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AccountPool":
        """Build a pool from loaded settings."""
        if not settings.key_file:
            raise ConfigError("No key file configured (set key_file or DRIVE_POOL_KEY_FILE)")
        return cls.from_key_file(
            settings.key_file,
            proxy=settings.proxy_url,
            impersonate=settings.impersonate,
            skip_unreachable=settings.skip_unreachable
        )

    @property
    def index(self) -> AccountIdentity:
        """Identity holding the visible tree."""
        return self._index

    @property
    def storage(self) -> List[AccountIdentity]:
        """Storage identities in selection order."""
        return list(self._storage)

    @property
    def selected(self) -> Optional[AccountIdentity]:
        """Currently memoized storage identity, if any."""
        return self._selected

    def identity_by_name(self, name: str) -> Optional[AccountIdentity]:
        """
        Find a storage identity by the name recorded in annotations.

        Returns:
            The identity, or None if no storage account has that name
        """
        account = self._by_name.get(name)
        if account is not None:
            return account

        for account in self._storage:
            if account.name == name:
                self._by_name[name] = account
                return account
        return None

    async def resolve_placeholder(
        self,
        entry: DriveFile
    ) -> Tuple[RealObject, AccountIdentity, DriveClient]:
        """
        Follow a placeholder entry to the account holding its bytes.

        Returns:
            The decoded real object, its owner, and the owner's session

        Raises:
            MalformedPlaceholderError: Annotation cannot be decoded
            UnknownAccountError: Annotation names an account not in the pool
            AuthError: The owner's session cannot be opened
        """
        real = placeholder.decode(entry.description)
        if real is None:
            raise MalformedPlaceholderError(entry.description or "", "empty annotation")
        owner = self.identity_by_name(real.owner)
        if owner is None:
            raise UnknownAccountError(real.owner)
        return real, owner, await owner.resolve_session()

    async def _query_quota(self, account: AccountIdentity) -> StorageQuota:
        try:
            drive = await account.resolve_session()
            return await drive.get_quota()
        except (AuthError, DriveAPIError) as e:
            raise AccountConnectionError(account.name, e) from e

    async def select_identity_for(self, size: int) -> AccountIdentity:
        """
        Get a storage identity with room for ``size`` bytes.

        Returns the memoized identity when one was already chosen.
        Otherwise scans storage accounts in order and picks the first
        whose free quota exceeds ``size``.

        Raises:
            CapacityExhaustedError: No storage account has room
            AccountConnectionError: A quota query failed (unless
                skip_unreachable is set)
        """
        if self._selected is not None:
            return self._selected

        async with self._select_lock:
            if self._selected is not None:
                return self._selected

            best_free = 0
            for account in self._storage:
                try:
                    quota = await self._query_quota(account)
                except AccountConnectionError as e:
                    if not self._skip_unreachable:
                        logger.error(f"Aborting account selection: {e}")
                        raise
                    logger.warning(f"Skipping unreachable account {account.name}: {e.original_error}")
                    continue

                logger.debug(f"{account.name}: {quota}")
                if quota.has_space_for(size):
                    logger.info(f"Selected storage account {account.name} ({quota})")
                    self._selected = account
                    return account
                if quota.free is not None:
                    best_free = max(best_free, quota.free)

            raise CapacityExhaustedError(size, best_free)

    def reset_selection(self) -> None:
        """Forget the memoized storage identity so the next write rescans."""
        if self._selected is not None:
            logger.info(f"Resetting storage account selection ({self._selected.name})")
        self._selected = None

    async def quota_report(self) -> List[Tuple[AccountIdentity, Union[StorageQuota, Exception]]]:
        """Live quota of every account, index first. Errors are reported, not raised."""
        report = []
        for account in [self._index] + self._storage:
            try:
                report.append((account, await self._query_quota(account)))
            except AccountConnectionError as e:
                logger.error(f"Failed to query quota for {account.name}: {e}")
                report.append((account, e))
        return report

    async def aclose(self) -> None:
        """Close every open session."""
        for account in [self._index] + self._storage:
            try:
                await account.aclose()
            except Exception as e:
                logger.warning(f"Failed to close session for {account.name}: {e}")

    async def __aenter__(self) -> "AccountPool":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args) -> None:
        """Async context manager exit."""
        await self.aclose()

    def __str__(self) -> str:
        lines = [f"AccountPool (index {self._index.name}, {len(self._storage)} storage accounts):"]
        for account in self._storage:
            marker = "*" if account is self._selected else " "
            lines.append(f" {marker} {account.name} <{account.client_email}>")
        return "\n".join(lines)
