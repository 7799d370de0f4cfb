"""REST client for the Google Drive v3 API."""
import json
import uuid
import logging
from typing import Optional, List, AsyncIterator, Dict, Any, BinaryIO, Tuple

import httpx
from google.auth.transport.requests import Request

from .auth import ServiceAccountTokenSource
from .exceptions import DriveAPIError, NotFoundError
from .models import (
    DriveFile,
    ServiceAccountCredentials,
    StorageQuota,
    SHORTCUT_MIME_TYPE,
)

logger = logging.getLogger(__name__)

API_URL = "https://www.googleapis.com/drive/v3"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3"

FILE_FIELDS = "id,name,mimeType,description,parents,size,trashed,shortcutDetails"
LIST_FIELDS = f"nextPageToken,files({FILE_FIELDS})"


class DriveClient:
    """
    Authenticated session for one Drive account.

    Every call sets ``supportsAllDrives`` so shared drives behave like
    My Drive. HTTP 404 raises NotFoundError; any other failure raises
    DriveAPIError.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        token_source: ServiceAccountTokenSource,
        list_chunk: int = 1000
    ):
        """
        Initialize Drive client.

        Args:
            http: HTTP client used for API calls
            token_source: Supplies bearer tokens
            list_chunk: Page size for listings (100-1000)
        """
        self.http = http
        self.token_source = token_source
        self.list_chunk = list_chunk

    @classmethod
    def for_credentials(
        cls,
        credentials: ServiceAccountCredentials,
        proxy: Optional[str] = None,
        subject: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
        token_request: Optional[Request] = None
    ) -> "DriveClient":
        """
        Build a client with its own connection pool for one service account.

        Args:
            credentials: Parsed service account key
            proxy: Proxy for API and token traffic
            subject: User to impersonate
            transport: httpx transport for API calls
            timeout: Per-request timeout in seconds
            token_request: google-auth transport for token refreshes
        """
        http = httpx.AsyncClient(proxy=proxy, transport=transport, timeout=timeout)
        token_source = ServiceAccountTokenSource(
            credentials, subject=subject, proxy=proxy, request=token_request
        )
        return cls(http, token_source)

    async def _request(
        self,
        method: str,
        url: str,
        file_id: str = "",
        allow_status: Tuple[int, ...] = (),
        **kwargs
    ) -> httpx.Response:
        token = await self.token_source.token()
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self.http.request(method, url, headers=headers, **kwargs)
            if response.status_code in allow_status:
                return response
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise NotFoundError(file_id or url) from e
            logger.error(f"Drive API error {method} {url}: {status}")
            raise DriveAPIError(_error_message(e.response), status) from e
        except httpx.HTTPError as e:
            logger.error(f"Drive API transport error {method} {url}: {e}")
            raise DriveAPIError(str(e)) from e

    async def get_file(self, file_id: str, fields: str = FILE_FIELDS) -> DriveFile:
        """Get metadata of a single file or folder."""
        response = await self._request(
            "GET", f"{API_URL}/files/{file_id}", file_id=file_id,
            params={"fields": fields, "supportsAllDrives": "true"}
        )
        return DriveFile.from_api(response.json())

    async def list_files(self, query: str, fields: str = LIST_FIELDS) -> AsyncIterator[DriveFile]:
        """Iterate every file matching a Drive search query, across pages."""
        params = {
            "q": query,
            "fields": fields,
            "pageSize": self.list_chunk,
            "supportsAllDrives": "true",
            "includeItemsFromAllDrives": "true",
        }
        while True:
            response = await self._request("GET", f"{API_URL}/files", params=params)
            data = response.json()
            for item in data.get("files", []):
                yield DriveFile.from_api(item)
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

    async def list_children(
        self,
        parent_id: str,
        query: Optional[str] = None,
        include_trashed: bool = False
    ) -> AsyncIterator[DriveFile]:
        """
        Iterate the direct children of a folder.

        Args:
            parent_id: Folder ID
            query: Extra search clause ANDed with the parent filter
            include_trashed: Also list trashed children
        """
        clauses = [f"'{parent_id}' in parents"]
        if not include_trashed:
            clauses.append("trashed=false")
        if query:
            clauses.append(f"({query})")
        async for item in self.list_files(" and ".join(clauses)):
            yield item

    async def delete_file(self, file_id: str) -> None:
        """Permanently delete a file, skipping the trash."""
        await self._request(
            "DELETE", f"{API_URL}/files/{file_id}", file_id=file_id,
            params={"supportsAllDrives": "true"}
        )

    async def update_file(self, file_id: str, metadata: Dict[str, Any]) -> DriveFile:
        response = await self._request(
            "PATCH", f"{API_URL}/files/{file_id}", file_id=file_id,
            params={"fields": FILE_FIELDS, "supportsAllDrives": "true"},
            json=metadata
        )
        return DriveFile.from_api(response.json())

    async def trash_file(self, file_id: str) -> DriveFile:
        return await self.update_file(file_id, {"trashed": True})

    async def untrash_file(self, file_id: str) -> DriveFile:
        return await self.update_file(file_id, {"trashed": False})

    async def get_quota(self) -> StorageQuota:
        """Query live storage usage of this account."""
        response = await self._request(
            "GET", f"{API_URL}/about", params={"fields": "storageQuota"}
        )
        return StorageQuota.from_api(response.json())

    async def get_formats(self) -> Dict[str, Dict[str, List[str]]]:
        """Export and import format tables of this account."""
        response = await self._request(
            "GET", f"{API_URL}/about", params={"fields": "exportFormats,importFormats"}
        )
        data = response.json()
        return {
            "exportFormats": data.get("exportFormats", {}),
            "importFormats": data.get("importFormats", {}),
        }

    async def create_file(self, metadata: Dict[str, Any]) -> DriveFile:
        """Create a metadata-only file (folder, shortcut)."""
        response = await self._request(
            "POST", f"{API_URL}/files",
            params={"fields": FILE_FIELDS, "supportsAllDrives": "true"},
            json=metadata
        )
        return DriveFile.from_api(response.json())

    async def create_shortcut(
        self,
        target_id: str,
        name: str,
        parent_id: Optional[str] = None,
        description: str = ""
    ) -> DriveFile:
        """
        Create a shortcut pointing at ``target_id``.

        Args:
            target_id: File the shortcut points to
            name: Shortcut name
            parent_id: Folder to create the shortcut in
            description: Annotation stored on the shortcut
        """
        metadata: Dict[str, Any] = {
            "name": name,
            "mimeType": SHORTCUT_MIME_TYPE,
            "shortcutDetails": {"targetId": target_id},
        }
        if parent_id:
            metadata["parents"] = [parent_id]
        if description:
            metadata["description"] = description
        return await self.create_file(metadata)

    async def upload_bytes(
        self,
        data: bytes,
        name: str,
        mime_type: str = "application/octet-stream",
        parent_id: Optional[str] = None,
        description: str = ""
    ) -> DriveFile:
        """Upload file content in a single multipart request."""
        metadata: Dict[str, Any] = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]
        if description:
            metadata["description"] = description

        boundary = uuid.uuid4().hex
        body = b"".join([
            f"--{boundary}\r\n".encode(),
            b"Content-Type: application/json; charset=UTF-8\r\n\r\n",
            json.dumps(metadata).encode(),
            f"\r\n--{boundary}\r\n".encode(),
            f"Content-Type: {mime_type}\r\n\r\n".encode(),
            data,
            f"\r\n--{boundary}--\r\n".encode(),
        ])
        response = await self._request(
            "POST", f"{UPLOAD_URL}/files",
            params={"uploadType": "multipart", "fields": FILE_FIELDS, "supportsAllDrives": "true"},
            headers={"Content-Type": f"multipart/related; boundary={boundary}"},
            content=body
        )
        return DriveFile.from_api(response.json())

    async def upload_resumable(
        self,
        stream: BinaryIO,
        size: int,
        name: str,
        mime_type: str = "application/octet-stream",
        parent_id: Optional[str] = None,
        description: str = "",
        chunk_size: int = 8 * 1024 * 1024
    ) -> DriveFile:
        """
        Upload file content in chunks through a resumable session.

        Args:
            stream: Binary file object positioned at the start of the content
            size: Total content length in bytes
            chunk_size: Bytes sent per request (multiple of 256 KiB)
        """
        metadata: Dict[str, Any] = {"name": name, "mimeType": mime_type}
        if parent_id:
            metadata["parents"] = [parent_id]
        if description:
            metadata["description"] = description

        response = await self._request(
            "POST", f"{UPLOAD_URL}/files",
            params={"uploadType": "resumable", "supportsAllDrives": "true"},
            headers={"X-Upload-Content-Type": mime_type, "X-Upload-Content-Length": str(size)},
            json=metadata
        )
        session_url = response.headers["Location"]

        start = stream.tell()
        offset = 0
        while True:
            stream.seek(start + offset)
            chunk = stream.read(chunk_size)
            end = offset + len(chunk) - 1
            content_range = f"bytes {offset}-{end}/{size}" if chunk else f"bytes */{size}"
            response = await self._request(
                "PUT", session_url,
                headers={"Content-Range": content_range},
                content=chunk,
                allow_status=(308,)
            )
            if response.status_code != 308:
                result = response.json()
                break

            # The server may keep only part of a chunk; resume after what it has
            committed = _committed_bytes(response)
            logger.debug(f"Uploaded {committed}/{size} bytes of {name}")
            if not chunk or committed <= offset:
                raise DriveAPIError(f"Upload of {name} stalled at {committed}/{size} bytes")
            offset = committed

        # The upload endpoint only returns id/name/mimeType by default
        return await self.get_file(result["id"])

    async def download(self, file_id: str) -> bytes:
        """Download the content of a file."""
        response = await self._request(
            "GET", f"{API_URL}/files/{file_id}", file_id=file_id,
            params={"alt": "media", "supportsAllDrives": "true"}
        )
        return response.content

    async def copy_file(
        self,
        file_id: str,
        name: Optional[str] = None,
        parent_id: Optional[str] = None
    ) -> DriveFile:
        """Server-side copy of a file."""
        metadata: Dict[str, Any] = {}
        if name:
            metadata["name"] = name
        if parent_id:
            metadata["parents"] = [parent_id]
        response = await self._request(
            "POST", f"{API_URL}/files/{file_id}/copy", file_id=file_id,
            params={"fields": FILE_FIELDS, "supportsAllDrives": "true"},
            json=metadata
        )
        return DriveFile.from_api(response.json())

    async def list_drives(self) -> List[dict]:
        """List the shared drives visible to this account."""
        drives = []
        params = {"pageSize": 100, "fields": "nextPageToken,drives(id,name,kind)"}
        while True:
            response = await self._request("GET", f"{API_URL}/drives", params=params)
            data = response.json()
            drives.extend(data.get("drives", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                return drives
            params["pageToken"] = page_token

    async def close(self):
        """Close the HTTP client."""
        await self.http.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args):
        """Async context manager exit."""
        await self.close()


def _committed_bytes(response: httpx.Response) -> int:
    """Bytes the upload session has stored, from a 308 ``Range: bytes=0-N`` header."""
    header = response.headers.get("Range")
    if not header:
        return 0
    try:
        return int(header.rsplit("-", 1)[1]) + 1
    except (IndexError, ValueError):
        raise DriveAPIError(f"Unexpected Range header from upload session: {header!r}") from None


def _error_message(response: httpx.Response) -> str:
    """Pull the message out of a Drive error body."""
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text or response.reason_phrase
