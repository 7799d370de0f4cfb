import itertools
import json
from collections import Counter
from urllib.parse import parse_qs

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from drive_pool import placeholder
from drive_pool.exceptions import NotFoundError
from drive_pool.identity import AccountIdentity
from drive_pool.models import (
    DriveFile,
    ServiceAccountCredentials,
    StorageQuota,
    FOLDER_MIME_TYPE,
    SHORTCUT_MIME_TYPE,
)
from drive_pool.pool import AccountPool

_ids = itertools.count(1)


class FakeDrive:
    """In-memory stand-in for one account's DriveClient."""

    def __init__(self, name, limit=None, usage=0):
        self.name = name
        self.files = {}
        self.contents = {}
        self.quota = StorageQuota(limit, usage)
        self.quota_error = None
        self.quota_calls = 0
        self.fail_delete = {}
        self.fail_list = {}
        self.deleted = []
        self.trashed = []
        self.untrashed = []
        self.closed = False

    def add(self, name, mime_type="text/plain", description="", parent=None, trashed=False, target=""):
        file_id = f"{self.name}-{next(_ids)}"
        self.files[file_id] = DriveFile(
            id=file_id,
            name=name,
            mime_type=mime_type,
            description=description,
            parents=[parent] if parent else [],
            shortcut_target_id=target,
            trashed=trashed,
        )
        return self.files[file_id]

    def folder(self, name, parent=None):
        return self.add(name, FOLDER_MIME_TYPE, parent=parent)

    async def get_file(self, file_id, fields=None):
        if file_id not in self.files:
            raise NotFoundError(file_id)
        return self.files[file_id]

    async def list_children(self, parent_id, query=None, include_trashed=False):
        if parent_id in self.fail_list:
            raise self.fail_list[parent_id]
        for f in list(self.files.values()):
            if parent_id in f.parents and (include_trashed or not f.trashed):
                yield f

    async def delete_file(self, file_id):
        if file_id in self.fail_delete:
            raise self.fail_delete[file_id]
        if file_id not in self.files:
            raise NotFoundError(file_id)
        del self.files[file_id]
        self.deleted.append(file_id)

    async def trash_file(self, file_id):
        if file_id not in self.files:
            raise NotFoundError(file_id)
        self.files[file_id].trashed = True
        self.trashed.append(file_id)
        return self.files[file_id]

    async def untrash_file(self, file_id):
        if file_id not in self.files:
            raise NotFoundError(file_id)
        self.files[file_id].trashed = False
        self.untrashed.append(file_id)
        return self.files[file_id]

    async def get_quota(self):
        self.quota_calls += 1
        if self.quota_error is not None:
            raise self.quota_error
        return self.quota

    async def upload_bytes(self, data, name, mime_type="application/octet-stream", parent_id=None, description=""):
        f = self.add(name, mime_type, description=description, parent=parent_id)
        self.contents[f.id] = data
        self.quota.usage += len(data)
        return f

    async def create_shortcut(self, target_id, name, parent_id=None, description=""):
        return self.add(name, SHORTCUT_MIME_TYPE, description=description, parent=parent_id, target=target_id)

    async def download(self, file_id):
        if file_id not in self.files:
            raise NotFoundError(file_id)
        return self.contents.get(file_id, b"")

    async def copy_file(self, file_id, name=None, parent_id=None):
        source = await self.get_file(file_id)
        f = self.add(name or source.name, source.mime_type, description=source.description, parent=parent_id)
        self.contents[f.id] = self.contents.get(file_id, b"")
        return f

    async def close(self):
        self.closed = True


class FakeCloud:
    """A set of FakeDrives, one per account name, plus a session factory."""

    def __init__(self):
        self.drives = {}
        self.auth_errors = {}
        self.opened = Counter()

    async def open_session(self, identity):
        self.opened[identity.name] += 1
        if identity.name in self.auth_errors:
            raise self.auth_errors[identity.name]
        return self.drives[identity.name]

    def identity(self, name, limit=None, usage=0):
        self.drives[name] = FakeDrive(name, limit, usage)
        return AccountIdentity(make_credentials(name), key=name, session_factory=self.open_session)

    def pool(self, storage, index="index", **kwargs):
        """
        Build a pool. ``storage`` maps account name to (limit, usage).
        """
        index_identity = self.identity(index)
        storage_identities = [
            self.identity(name, limit, usage) for name, (limit, usage) in storage.items()
        ]
        return AccountPool(index_identity, storage_identities, **kwargs)

    def place(self, owner, name, parent=None, index="index", mime_type="video/mp4"):
        """Create a real object on ``owner`` and its placeholder in the index."""
        real = self.drives[owner].add(name, mime_type)
        annotation = placeholder.encode(real, owner)
        entry = self.drives[index].add(
            name, SHORTCUT_MIME_TYPE, description=annotation, parent=parent, target=real.id
        )
        return entry, real


class FakeTokenResponse:
    def __init__(self, status, payload):
        self.status = status
        self.headers = {"content-type": "application/json"}
        self.data = json.dumps(payload).encode()


class FakeTokenEndpoint:
    """google-auth transport answering token requests; records form bodies."""

    def __init__(self):
        self.requests = []
        self.status = 200
        self.error = None

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        if self.error is not None:
            raise self.error
        form = parse_qs(body.decode() if isinstance(body, bytes) else body)
        self.requests.append((url, form))
        if self.status != 200:
            return FakeTokenResponse(self.status, {"error": "invalid_grant", "error_description": "bad key"})
        return FakeTokenResponse(200, {"access_token": f"tok-{len(self.requests)}", "expires_in": 3600})


def make_credentials(name, **extra):
    return ServiceAccountCredentials(
        client_email=f"{name}@pool-test.iam.gserviceaccount.com",
        private_key="unused",
        **extra
    )


@pytest.fixture
def cloud():
    return FakeCloud()


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_pem(rsa_key):
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def key_blob(rsa_pem):
    def make(email, **extra):
        blob = {
            "type": "service_account",
            "client_email": email,
            "private_key": rsa_pem,
            "token_uri": "https://oauth2.example.test/token",
        }
        blob.update(extra)
        return blob
    return make


@pytest.fixture
def bundle_file(tmp_path, key_blob):
    def write(accounts, index_key="index", name="keys.json"):
        path = tmp_path / name
        path.write_text(json.dumps({
            "indexStoreKey": index_key,
            "serviceAccounts": {
                key: key_blob(f"{key}@pool-test.iam.gserviceaccount.com") for key in accounts
            },
        }))
        return path
    return write


@pytest.fixture
def token_endpoint():
    return FakeTokenEndpoint()
