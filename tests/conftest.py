"""
Shared test fixtures.

``FakeBackend`` is a scriptable stand-in for the vault backend: tests can
hold decrypt and probe calls open with events to exercise cancellation and
coalescing.
"""
import asyncio

import pytest
import pytest_asyncio

from keykeeper_client.backend import AbstractBackend, MemoryBackend
from keykeeper_client.exceptions import AuthenticationError, RecordValidationError
from keykeeper_client.models import KeyRecordRequest, VaultKeyRecord

MASTER_PASSWORD = "correct horse battery staple"


class FakeBackend(AbstractBackend):
    """In-memory backend with call counters and hooks."""

    def __init__(self, password: str = MASTER_PASSWORD, plaintext: str = "sk_live_abcdef1234567890"):
        self.password = password
        self.plaintext = plaintext
        self.records: list[VaultKeyRecord] = []
        self.requests: list[KeyRecordRequest] = []
        self.associations: list[tuple[str, str, str]] = []
        self.decrypt_calls: list[tuple[str, str]] = []
        self.status_calls: list[str] = []
        self.statuses: dict[str, str] = {}
        self.decrypt_gate: asyncio.Event | None = None
        self.status_gate: asyncio.Event | None = None
        self.status_error: Exception | None = None
        self.reject_names: set[str] = set()

    async def parse_and_register_env_file(self, file_path):
        return {
            "path": file_path,
            "project_path": "/work/remote-project",
            "file_name": file_path.rsplit("/", 1)[-1],
            "keys": [
                {"name": "API_KEY", "value": "sk_remote_1234567890abcdef", "is_secret": False},
                {"name": "DEBUG", "value": "true", "is_secret": True},
            ],
        }

    async def associate_project_with_env(self, project_path, env_path, file_name):
        self.associations.append((project_path, env_path, file_name))

    async def decrypt_api_key(self, key_id, master_password):
        self.decrypt_calls.append((key_id, master_password))
        if self.decrypt_gate is not None:
            await self.decrypt_gate.wait()
        if master_password != self.password:
            raise AuthenticationError()
        return self.plaintext

    async def get_project_editor_status(self, project_path):
        self.status_calls.append(project_path)
        if self.status_gate is not None:
            await self.status_gate.wait()
        if self.status_error is not None:
            raise self.status_error
        return self.statuses.get(project_path, "unknown")

    async def create_api_key_record(self, request):
        if request.name in self.reject_names:
            raise RecordValidationError(f"Key {request.name} rejected")
        self.requests.append(request)
        record = VaultKeyRecord(**request.model_dump(exclude={"value"}))
        self.records.append(record)
        return record

    async def list_api_keys(self):
        return list(self.records)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def memory_backend():
    """Memory backend with cheap key derivation for fast tests."""
    return MemoryBackend(MASTER_PASSWORD, iterations=1_000)


@pytest.fixture
def encrypted_record():
    return VaultKeyRecord(id="key_1", name="STRIPE_KEY", service="Stripe")


@pytest.fixture
def plain_record():
    return VaultKeyRecord(
        id="key_2", name="LEGACY_TOKEN", stored_value="ghp_1234567890abcdefghij"
    )


@pytest.fixture
def project(tmp_path):
    """A project directory with a marker file and a nested env file."""
    root = tmp_path / "webapp"
    (root / "config").mkdir(parents=True)
    (root / "package.json").write_text("{}")
    (root / ".env").write_text(
        "API_KEY=sk_live_abcdef1234567890\n# comment\nDEBUG=true\n"
    )
    (root / "config" / "config.env.production").write_text(
        "STRIPE_SECRET='sk_prod_9876543210fedcba'\nLOG_LEVEL=info\n"
    )
    return root


@pytest_asyncio.fixture
async def unlocked_memory_backend(memory_backend):
    yield memory_backend
    memory_backend.lock()
