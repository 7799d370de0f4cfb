"""
Credential bundle loading.

A bundle is a single JSON file holding every service account key plus the
key of the account that stores the visible tree::

    {
        "indexStoreKey": "index",
        "serviceAccounts": {
            "index": {...service account key...},
            "sa-01": {...},
            "sa-02": {...}
        }
    }
"""
import json
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .config import expand_path
from .exceptions import ConfigError
from .identity import AccountIdentity, SessionFactory
from .models import ServiceAccountCredentials

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CredentialBundle:
    """Parsed bundle: the index key and every key's raw credential blob."""
    index_key: str
    accounts: Dict[str, bytes]

    @property
    def storage_keys(self) -> List[str]:
        return [k for k in self.accounts if k != self.index_key]


def parse_bundle(data: bytes) -> CredentialBundle:
    """
    Parse bundle JSON.

    Raises:
        ConfigError: Malformed JSON or missing/inconsistent keys
    """
    try:
        doc = json.loads(data)
    except ValueError as e:
        raise ConfigError(f"Error parsing master key file: {e}") from e

    if not isinstance(doc, dict):
        raise ConfigError("Master key file must contain a JSON object")

    index_key = doc.get("indexStoreKey")
    accounts = doc.get("serviceAccounts")
    if not index_key or not isinstance(index_key, str):
        raise ConfigError("Master key file has no indexStoreKey")
    if not isinstance(accounts, dict) or not accounts:
        raise ConfigError("Master key file has no serviceAccounts")
    if index_key not in accounts:
        raise ConfigError(f"indexStoreKey {index_key!r} is not in serviceAccounts")

    return CredentialBundle(
        index_key=index_key,
        accounts={k: json.dumps(v).encode() for k, v in accounts.items()},
    )


def load_bundle(path: str) -> CredentialBundle:
    """Read and parse a bundle file. No network calls."""
    if not path:
        raise ConfigError(f"Invalid master key file path: {path!r}")

    key_file = expand_path(path)
    try:
        data = key_file.read_bytes()
    except OSError as e:
        raise ConfigError(f"Error opening master key file {key_file}: {e}") from e

    return parse_bundle(data)


def build_identities(
    bundle: CredentialBundle,
    session_factory: Optional[SessionFactory] = None
) -> Tuple[AccountIdentity, List[AccountIdentity]]:
    """
    Split a bundle into the index identity and the storage identities.

    Raises:
        ConfigError: A blob is not a valid service account key
    """
    try:
        index_creds = ServiceAccountCredentials.parse(bundle.accounts[bundle.index_key])
    except ConfigError as e:
        raise ConfigError(f"Error parsing index service account credentials: {e}") from e

    # Storage accounts are always named by bundle key; only the index,
    # which never appears in annotations, may name itself
    index = AccountIdentity(
        index_creds,
        key=bundle.index_key,
        session_factory=session_factory,
        name=index_creds.key or bundle.index_key
    )

    storage = []
    for key in bundle.storage_keys:
        try:
            creds = ServiceAccountCredentials.parse(bundle.accounts[key])
        except ConfigError as e:
            raise ConfigError(f"Error parsing service account {key!r}: {e}") from e
        storage.append(AccountIdentity(creds, key=key, session_factory=session_factory))

    logger.info(f"Loaded index account {index.name} and {len(storage)} storage account(s)")
    return index, storage


def load_identities(
    path: str,
    session_factory: Optional[SessionFactory] = None
) -> Tuple[AccountIdentity, List[AccountIdentity]]:
    """Load a bundle file and build its identities."""
    return build_identities(load_bundle(path), session_factory)
