"""
Drive Pool - one virtual Drive spread across many service accounts.

One account (the index account) holds the visible tree. Every other
account only stores file bytes:
- Credential bundle loading and partitioning
- Storage account selection based on free quota
- Placeholder shortcuts pointing into storage accounts
- Cascading delete of placeholders and the objects behind them

Usage:
    >>> from drive_pool import AccountPool, CascadingDeleter, PlaceholderStore
    >>>
    >>> async with AccountPool.from_key_file("~/.config/drive-pool/keys.json") as pool:
    ...     store = PlaceholderStore(pool)
    ...     entry = await store.put_file(Path("video.mp4"), parent_id=folder_id)
    ...
    ...     result = await CascadingDeleter(pool).delete(folder_id)
    ...     result.raise_for_failures()

Credential bundle:
    {
        "indexStoreKey": "index",
        "serviceAccounts": {"index": {...}, "sa-01": {...}, "sa-02": {...}}
    }
"""
from .pool import AccountPool
from .identity import AccountIdentity
from .bundle import CredentialBundle, load_bundle, load_identities
from .deleter import CascadingDeleter
from .store import PlaceholderStore
from .drive_client import DriveClient
from .config import Settings, load_settings, save_settings
from .models import (
    ServiceAccountCredentials,
    StorageQuota,
    DriveFile,
    RealObject,
    EntryKind,
    DeleteResult,
    DeleteStatus,
)
from . import placeholder
from .exceptions import (
    DrivePoolError,
    ConfigError,
    AuthError,
    CapacityExhaustedError,
    UnknownAccountError,
    DecodeError,
    MalformedPlaceholderError,
    DriveAPIError,
    NotFoundError,
    AccountConnectionError,
    DeleteCancelledError,
    PartialFailureError,
)

__version__ = "0.1.0"

__all__ = [
    # Main
    "AccountPool",
    "AccountIdentity",
    "CascadingDeleter",
    "PlaceholderStore",
    "DriveClient",
    "placeholder",
    # Config
    "CredentialBundle",
    "load_bundle",
    "load_identities",
    "Settings",
    "load_settings",
    "save_settings",
    # Models
    "ServiceAccountCredentials",
    "StorageQuota",
    "DriveFile",
    "RealObject",
    "EntryKind",
    "DeleteResult",
    "DeleteStatus",
    # Exceptions
    "DrivePoolError",
    "ConfigError",
    "AuthError",
    "CapacityExhaustedError",
    "UnknownAccountError",
    "DecodeError",
    "MalformedPlaceholderError",
    "DriveAPIError",
    "NotFoundError",
    "AccountConnectionError",
    "DeleteCancelledError",
    "PartialFailureError",
]
