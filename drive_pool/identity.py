"""
One service account and its lazily opened Drive session.
"""
import asyncio
import logging
from typing import Optional, Callable, Awaitable

from .drive_client import DriveClient
from .exceptions import AuthError, DriveAPIError
from .models import ServiceAccountCredentials

logger = logging.getLogger(__name__)

SessionFactory = Callable[["AccountIdentity"], Awaitable[DriveClient]]


async def default_session_factory(
    identity: "AccountIdentity",
    proxy: Optional[str] = None,
    subject: Optional[str] = None
) -> DriveClient:
    """Open a DriveClient and fetch the first token so bad keys fail here."""
    client = DriveClient.for_credentials(identity.credentials, proxy=proxy, subject=subject)
    try:
        await client.token_source.token()
    except AuthError:
        await client.close()
        raise
    return client


class AccountIdentity:
    """
    A service account in the pool.

    Attributes:
        key: Key of this account in the credential bundle
        name: Name written into placeholder annotations. Defaults to the
            bundle key, then the blob's own "key" field
        client_email: Account holder identity
        credentials: Parsed service account key
    """

    def __init__(
        self,
        credentials: ServiceAccountCredentials,
        key: str = "",
        session_factory: Optional[SessionFactory] = None,
        name: str = ""
    ):
        self.credentials = credentials
        self.key = key
        self.name = name or key or credentials.key
        self._session_factory = session_factory or default_session_factory
        self._session: Optional[DriveClient] = None
        self._lock = asyncio.Lock()

    @property
    def client_email(self) -> str:
        return self.credentials.client_email

    @property
    def has_session(self) -> bool:
        return self._session is not None

    async def resolve_session(self) -> DriveClient:
        """
        Get the Drive session for this account, creating it on first use.

        Concurrent first callers share one construction.

        Raises:
            AuthError: The key cannot authenticate
        """
        if self._session is not None:
            return self._session

        async with self._lock:
            if self._session is None:
                logger.debug(f"Opening Drive session for {self.name} ({self.client_email})")
                try:
                    self._session = await self._session_factory(self)
                except AuthError:
                    raise
                except DriveAPIError as e:
                    raise AuthError(f"Failed to open session for {self.name}: {e}") from e
        return self._session

    async def aclose(self) -> None:
        """Close the cached session, if any."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    def __repr__(self) -> str:
        return f"AccountIdentity(name={self.name!r}, client_email={self.client_email!r})"
