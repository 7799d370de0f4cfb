"""
Models for the drive-pool account manager.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Tuple, Any

from .exceptions import ConfigError, PartialFailureError

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
SHORTCUT_MIME_TYPE = "application/vnd.google-apps.shortcut"
DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass(frozen=True)
class ServiceAccountCredentials:
    """
    Parsed service account key.

    Attributes:
        client_email: Account holder identity
        private_key: PEM encoded RSA private key
        key: Optional name the key carries for itself
        token_uri: OAuth2 token endpoint
        raw: The original key document
    """
    client_email: str
    private_key: str
    key: str = ""
    private_key_id: str = ""
    project_id: str = ""
    client_id: str = ""
    token_uri: str = DEFAULT_TOKEN_URI
    raw: bytes = field(default=b"", repr=False)

    @classmethod
    def parse(cls, blob: Any) -> "ServiceAccountCredentials":
        """
        Validate a raw key document.

        Args:
            blob: JSON bytes/str, or an already decoded mapping

        Raises:
            ConfigError: Not JSON, not an object, or required fields missing
        """
        if isinstance(blob, (bytes, str)):
            raw = blob.encode() if isinstance(blob, str) else blob
            try:
                data = json.loads(raw)
            except ValueError as e:
                raise ConfigError(f"Service account key is not valid JSON: {e}") from e
        else:
            data = blob
            raw = json.dumps(blob).encode()

        if not isinstance(data, dict):
            raise ConfigError("Service account key must be a JSON object")

        missing = [k for k in ("client_email", "private_key") if not data.get(k)]
        if missing:
            raise ConfigError(f"Service account key is missing: {', '.join(missing)}")

        return cls(
            client_email=data["client_email"],
            private_key=data["private_key"],
            key=data.get("key") or "",
            private_key_id=data.get("private_key_id") or "",
            project_id=data.get("project_id") or "",
            client_id=data.get("client_id") or "",
            token_uri=data.get("token_uri") or DEFAULT_TOKEN_URI,
            raw=raw,
        )

    def to_info(self) -> dict:
        """Key document in the shape google-auth's from_service_account_info takes."""
        return {
            "type": "service_account",
            "client_email": self.client_email,
            "private_key": self.private_key,
            "private_key_id": self.private_key_id,
            "project_id": self.project_id,
            "client_id": self.client_id,
            "token_uri": self.token_uri,
        }


@dataclass
class StorageQuota:
    """Storage quota of one account. A limit of None means unlimited."""
    limit: Optional[int]
    usage: int = 0

    @classmethod
    def from_api(cls, data: dict) -> "StorageQuota":
        quota = data.get("storageQuota", data)
        limit = quota.get("limit")
        return cls(
            limit=int(limit) if limit is not None else None,
            usage=int(quota.get("usage", 0)),
        )

    @property
    def free(self) -> Optional[int]:
        if self.limit is None:
            return None
        return max(self.limit - self.usage, 0)

    @property
    def free_gb(self) -> float:
        return (self.free or 0) / (1024 ** 3)

    @property
    def usage_gb(self) -> float:
        return self.usage / (1024 ** 3)

    @property
    def usage_percent(self) -> float:
        if not self.limit:
            return 0.0
        return (self.usage / self.limit) * 100

    def has_space_for(self, size: int) -> bool:
        """True when ``size`` bytes fit strictly below the remaining quota."""
        if self.limit is None:
            return True
        return size < self.limit - self.usage

    def __str__(self) -> str:
        if self.limit is None:
            return f"{self.usage_gb:.1f} GB used / unlimited"
        return (
            f"{self.free_gb:.1f} GB free / {self.limit / (1024 ** 3):.1f} GB total "
            f"({self.usage_percent:.1f}% used)"
        )


@dataclass
class DriveFile:
    """A file or folder as returned by the Drive API."""
    id: str
    name: str = ""
    mime_type: str = ""
    description: str = ""
    parents: List[str] = field(default_factory=list)
    size: Optional[int] = None
    shortcut_target_id: str = ""
    trashed: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "DriveFile":
        size = data.get("size")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            mime_type=data.get("mimeType", ""),
            description=data.get("description") or "",
            parents=list(data.get("parents") or []),
            size=int(size) if size is not None else None,
            shortcut_target_id=(data.get("shortcutDetails") or {}).get("targetId", ""),
            trashed=bool(data.get("trashed", False)),
        )

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE


@dataclass(frozen=True)
class RealObject:
    """Where the bytes behind a placeholder live."""
    id: str
    owner: str
    name: str = ""
    mime_type: str = ""


class EntryKind(Enum):
    """What an index-tree entry is, decided once per entry."""
    DIRECTORY = "directory"
    BARE_OBJECT = "bare_object"
    PLACEHOLDER = "placeholder"

    @classmethod
    def of(cls, entry: DriveFile) -> "EntryKind":
        if entry.is_folder:
            return cls.DIRECTORY
        if not entry.description:
            return cls.BARE_OBJECT
        return cls.PLACEHOLDER


class DeleteStatus(Enum):
    DELETED = "deleted"
    PARTIAL_FAILURE = "partial_failure"
    SKIPPED = "skipped"


@dataclass
class DeleteResult:
    """
    Outcome of a cascading delete.

    ``deleted`` counts index entries removed (the entry itself and every
    descendant). ``objects_deleted`` counts real objects removed from
    storage accounts. ``failed`` counts entries that could not be fully
    removed.
    """
    entry_id: str
    name: str = ""
    status: DeleteStatus = DeleteStatus.DELETED
    deleted: int = 0
    objects_deleted: int = 0
    failed: int = 0
    errors: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is not DeleteStatus.PARTIAL_FAILURE

    def fail(self, entry_id: str, error: Exception) -> None:
        self.failed += 1
        self.errors.append((entry_id, error))
        self.status = DeleteStatus.PARTIAL_FAILURE

    def absorb(self, child: "DeleteResult") -> None:
        """Fold a child's counts into this result."""
        self.deleted += child.deleted
        self.objects_deleted += child.objects_deleted
        self.failed += child.failed
        self.errors.extend(child.errors)
        if not child.ok:
            self.status = DeleteStatus.PARTIAL_FAILURE

    def raise_for_failures(self) -> None:
        if not self.ok:
            raise PartialFailureError(self)

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "name": self.name,
            "status": self.status.value,
            "deleted": self.deleted,
            "objects_deleted": self.objects_deleted,
            "failed": self.failed,
            "errors": [f"{entry_id}: {error}" for entry_id, error in self.errors],
        }
