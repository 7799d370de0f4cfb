"""OAuth2 access tokens for service accounts, minted by google-auth."""
import asyncio
import logging
from typing import Optional, Sequence

import requests
from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .exceptions import AuthError
from .models import ServiceAccountCredentials

logger = logging.getLogger(__name__)

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"


class ServiceAccountTokenSource:
    """
    Hands out bearer tokens for one service account.

    google-auth signs the assertion and talks to the token endpoint; its
    blocking refresh runs in a worker thread.

    Usage:
        >>> source = ServiceAccountTokenSource(credentials)
        >>> token = await source.token()
    """

    def __init__(
        self,
        credentials: ServiceAccountCredentials,
        scopes: Sequence[str] = (DRIVE_SCOPE,),
        subject: Optional[str] = None,
        proxy: Optional[str] = None,
        request: Optional[Request] = None
    ):
        """
        Args:
            credentials: Parsed service account key
            scopes: OAuth scopes to request
            subject: User to impersonate (domain-wide delegation)
            proxy: Proxy for token requests
            request: google-auth transport, built from a requests session if omitted
        """
        self._credentials = credentials
        self._scopes = list(scopes)
        self._subject = subject
        self._google: Optional[service_account.Credentials] = None
        self._lock = asyncio.Lock()

        if request is None:
            session = requests.Session()
            if proxy:
                session.proxies.update({"http": proxy, "https": proxy})
            request = Request(session)
        self._request = request

    def _get_google_credentials(self) -> service_account.Credentials:
        """Load the key into google-auth once."""
        if self._google is None:
            try:
                self._google = service_account.Credentials.from_service_account_info(
                    self._credentials.to_info(),
                    scopes=self._scopes,
                    subject=self._subject
                )
            except (ValueError, TypeError) as e:
                raise AuthError(
                    f"Invalid private key for {self._credentials.client_email}: {e}"
                ) from e
        return self._google

    @property
    def valid(self) -> bool:
        return self._google is not None and self._google.valid

    async def token(self) -> str:
        """Return a valid access token, refreshing at most once concurrently."""
        google_creds = self._get_google_credentials()
        if google_creds.valid:
            return google_creds.token
        async with self._lock:
            if not google_creds.valid:
                await self._refresh(google_creds)
        return google_creds.token

    async def _refresh(self, google_creds: service_account.Credentials) -> None:
        email = self._credentials.client_email
        try:
            await asyncio.to_thread(google_creds.refresh, self._request)
        except google_exceptions.RefreshError as e:
            logger.error(f"Token request rejected for {email}: {e}")
            raise AuthError(f"Token request rejected for {email}: {e}") from e
        except google_exceptions.TransportError as e:
            logger.error(f"Token endpoint unreachable for {email}: {e}")
            raise AuthError(f"Token endpoint unreachable for {email}: {e}") from e
        logger.debug(f"Refreshed access token for {email}")
