"""
Tests for the in-memory vault backend and its sealing helpers.
"""
import pytest

from keykeeper_client.backend import crypto
from keykeeper_client.exceptions import (
    AuthenticationError,
    BackendError,
    RecordValidationError,
    VaultLockedError,
)
from keykeeper_client.models import KeyRecordRequest

from .conftest import MASTER_PASSWORD


def _request(name="OPENAI_API_KEY", value="sk-proj-abcdefghijklmnop1234"):
    return KeyRecordRequest(name=name, value=value, service="OpenAI")


class TestSealing:

    def test_seal_and_open(self):
        sealed = crypto.seal("s3cret-value", "pw", iterations=1_000)
        assert b"s3cret-value" not in sealed
        assert crypto.open_sealed(sealed, "pw", iterations=1_000) == "s3cret-value"

    def test_wrong_password(self):
        sealed = crypto.seal("s3cret-value", "pw", iterations=1_000)
        with pytest.raises(crypto.SealError):
            crypto.open_sealed(sealed, "other", iterations=1_000)

    def test_truncated_value(self):
        with pytest.raises(crypto.SealError):
            crypto.open_sealed(b"short", "pw")

    def test_salt_is_random(self):
        assert crypto.seal("v", "pw", 1_000) != crypto.seal("v", "pw", 1_000)


class TestKeys:

    @pytest.mark.asyncio
    async def test_created_record_is_encrypted(self, memory_backend):
        record = await memory_backend.create_api_key_record(_request())
        assert record.is_encrypted
        assert record.id.startswith("key_")
        assert "sk-proj" not in repr(record)
        assert await memory_backend.list_api_keys() == [record]

    @pytest.mark.asyncio
    async def test_decrypt_round_trip(self, memory_backend):
        record = await memory_backend.create_api_key_record(_request())
        value = await memory_backend.decrypt_api_key(record.id, MASTER_PASSWORD)
        assert value == "sk-proj-abcdefghijklmnop1234"

    @pytest.mark.asyncio
    async def test_decrypt_wrong_password(self, memory_backend):
        record = await memory_backend.create_api_key_record(_request())
        with pytest.raises(AuthenticationError, match="master password"):
            await memory_backend.decrypt_api_key(record.id, "wrong")

    @pytest.mark.asyncio
    async def test_decrypt_unknown_key(self, memory_backend):
        with pytest.raises(BackendError, match="not found"):
            await memory_backend.decrypt_api_key("key_missing", MASTER_PASSWORD)

    @pytest.mark.asyncio
    async def test_empty_value_rejected(self, memory_backend):
        with pytest.raises(RecordValidationError):
            await memory_backend.create_api_key_record(_request(value=""))

    def test_empty_master_password(self):
        from keykeeper_client.backend import MemoryBackend
        with pytest.raises(ValueError):
            MemoryBackend("")


class TestLocking:

    @pytest.mark.asyncio
    async def test_locked_vault_refuses_writes(self, memory_backend):
        memory_backend.lock()
        assert not memory_backend.is_unlocked
        with pytest.raises(VaultLockedError):
            await memory_backend.create_api_key_record(_request())
        with pytest.raises(VaultLockedError):
            await memory_backend.list_api_keys()

    @pytest.mark.asyncio
    async def test_unlock(self, memory_backend):
        memory_backend.lock()
        await memory_backend.unlock(MASTER_PASSWORD)
        assert memory_backend.is_unlocked

    @pytest.mark.asyncio
    async def test_unlock_wrong_password(self, memory_backend):
        memory_backend.lock()
        with pytest.raises(AuthenticationError):
            await memory_backend.unlock("wrong")
        assert not memory_backend.is_unlocked


class TestEnvFiles:

    @pytest.mark.asyncio
    async def test_parse_and_register(self, memory_backend, project):
        result = await memory_backend.parse_and_register_env_file(str(project / ".env"))
        assert result["project_path"] == str(project)
        assert result["file_name"] == ".env"
        keys = {item["name"]: item for item in result["keys"]}
        assert keys["API_KEY"]["is_secret"] is True
        assert keys["DEBUG"]["is_secret"] is False

    @pytest.mark.asyncio
    async def test_association_upsert(self, memory_backend):
        await memory_backend.associate_project_with_env("/work/app", "/work/app/.env", ".env")
        first = memory_backend.associations[0]
        await memory_backend.associate_project_with_env("/work/app", "/work/app/.env", ".env")
        await memory_backend.associate_project_with_env(
            "/work/app", "/work/app/.env.local", ".env.local"
        )
        associations = memory_backend.associations
        assert len(associations) == 2
        assert associations[0].id != first.id

    @pytest.mark.asyncio
    async def test_editor_status(self, memory_backend):
        assert await memory_backend.get_project_editor_status("/work/app") == "unknown"
        memory_backend.set_editor_status("/work/app", "OPEN")
        assert await memory_backend.get_project_editor_status("/work/app") == "open"

    @pytest.mark.asyncio
    async def test_context_manager(self, memory_backend):
        async with memory_backend as backend:
            assert backend is memory_backend
