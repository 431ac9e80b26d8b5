"""
Tests for the HTTP backend against a local aiohttp application.
"""
import orjson
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp import test_utils

from keykeeper_client.backend import HttpBackend
from keykeeper_client.exceptions import (
    AuthenticationError,
    BackendError,
    BackendUnavailableError,
    RecordValidationError,
    VaultLockedError,
)
from keykeeper_client.models import KeyRecordRequest

from .conftest import MASTER_PASSWORD


def _json(data, status=200):
    return web.Response(
        body=orjson.dumps(data), status=status, content_type="application/json"
    )


class VaultApp:
    """Minimal local API mirroring the desktop app's routes."""

    def __init__(self):
        self.received = []
        self.locked = False
        self.keys = []
        self.list_body = None

    def build(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/api/env/parse", self.parse)
        app.router.add_post("/api/env/associate", self.associate)
        app.router.add_post("/api/keys/{key_id}/decrypt", self.decrypt)
        app.router.add_get("/api/vscode/status", self.status)
        app.router.add_post("/api/keys", self.create)
        app.router.add_get("/api/keys", self.list)
        return app

    async def parse(self, request):
        body = await request.json()
        self.received.append(("parse", body))
        return _json({"data": {
            "path": body["filePath"],
            "project_path": "/work/app",
            "file_name": ".env",
            "keys": [{"name": "API_KEY", "value": "sk_live_abc", "is_secret": True}],
        }})

    async def associate(self, request):
        self.received.append(("associate", await request.json()))
        if self.locked:
            return _json({"error": "vault_locked", "message": "Vault is locked"}, status=423)
        return _json({"status": "ok"})

    async def decrypt(self, request):
        body = await request.json()
        if body["masterPassword"] == "proxy":
            return web.Response(body=b"<html>Unauthorized</html>", status=401)
        if body["masterPassword"] != MASTER_PASSWORD:
            return _json({"error": "invalid_password", "message": "Invalid master password"}, 401)
        if request.match_info["key_id"] == "key_missing":
            return _json({"error": "not_found", "message": "API key not found"}, 404)
        return _json({"data": {"key": "sk_live_decrypted_123456"}})

    async def status(self, request):
        project = request.query.get("projectPath", "")
        if project == "/broken":
            return web.Response(body=b"<html>", status=200)
        return _json({"data": {"status": "open" if project == "/work/app" else "closed"}})

    async def create(self, request):
        body = await request.json()
        self.received.append(("create", body))
        if body["name"] == "BAD":
            return _json({"status": "error", "error": "validation_error", "message": "bad name"})
        if body["name"] == "EMPTY":
            return _json({"data": None}, status=201)
        if body["name"] == "NAMELESS":
            return _json({"data": {"id": "key_9", "key": "[ENCRYPTED]"}}, status=201)
        record = {key: value for key, value in body.items() if key != "key"}
        record.update({"id": f"key_{len(self.keys) + 1}", "key": "[ENCRYPTED]"})
        self.keys.append(record)
        return _json({"data": record}, status=201)

    async def list(self, request):
        if self.list_body is not None:
            return _json(self.list_body)
        return _json(self.keys)


@pytest.fixture
def vault_app():
    return VaultApp()


@pytest_asyncio.fixture
async def backend(vault_app):
    server = test_utils.TestServer(vault_app.build())
    await server.start_server()
    client = HttpBackend(str(server.make_url("")))
    yield client
    await client.close()
    await server.close()


class TestRoutes:

    @pytest.mark.asyncio
    async def test_parse_unwraps_envelope(self, backend, vault_app):
        result = await backend.parse_and_register_env_file("/work/app/.env")
        assert result["project_path"] == "/work/app"
        assert vault_app.received == [("parse", {"filePath": "/work/app/.env"})]

    @pytest.mark.asyncio
    async def test_associate_payload(self, backend, vault_app):
        await backend.associate_project_with_env("/work/app", "/work/app/.env", ".env")
        assert vault_app.received[-1] == (
            "associate",
            {"projectPath": "/work/app", "envPath": "/work/app/.env", "fileName": ".env"},
        )

    @pytest.mark.asyncio
    async def test_decrypt(self, backend):
        assert await backend.decrypt_api_key("key_1", MASTER_PASSWORD) == "sk_live_decrypted_123456"

    @pytest.mark.asyncio
    async def test_editor_status(self, backend):
        assert await backend.get_project_editor_status("/work/app") == "open"
        assert await backend.get_project_editor_status("/elsewhere") == "closed"

    @pytest.mark.asyncio
    async def test_create_and_list(self, backend, vault_app):
        request = KeyRecordRequest(
            name="STRIPE_SECRET",
            value="sk_prod_9876543210fedcba",
            source_type="env_file",
            project_path="/work/app",
            tags=["imported"],
        )
        record = await backend.create_api_key_record(request)
        assert record.id == "key_1"
        assert record.is_encrypted
        sent = vault_app.received[-1][1]
        assert sent["key"] == "sk_prod_9876543210fedcba"
        assert "value" not in sent
        assert sent["source_type"] == "env_file"

        records = await backend.list_api_keys()
        assert [r.name for r in records] == ["STRIPE_SECRET"]
        assert records[0].is_encrypted


class TestErrorMapping:

    @pytest.mark.asyncio
    async def test_wrong_password(self, backend):
        with pytest.raises(AuthenticationError, match="Invalid master password"):
            await backend.decrypt_api_key("key_1", "wrong")

    @pytest.mark.asyncio
    async def test_not_found(self, backend):
        with pytest.raises(BackendError, match="not found"):
            await backend.decrypt_api_key("key_missing", MASTER_PASSWORD)

    @pytest.mark.asyncio
    async def test_vault_locked(self, backend, vault_app):
        vault_app.locked = True
        with pytest.raises(VaultLockedError):
            await backend.associate_project_with_env("/work/app", "/work/app/.env", ".env")

    @pytest.mark.asyncio
    async def test_error_status_in_body(self, backend):
        with pytest.raises(RecordValidationError, match="bad name"):
            await backend.create_api_key_record(KeyRecordRequest(name="BAD", value="x"))

    @pytest.mark.asyncio
    async def test_malformed_body(self, backend):
        with pytest.raises(BackendError, match="Malformed"):
            await backend.get_project_editor_status("/broken")

    @pytest.mark.asyncio
    async def test_unreachable_vault(self, unused_tcp_port):
        async with HttpBackend(f"http://127.0.0.1:{unused_tcp_port}", timeout=2) as client:
            with pytest.raises(BackendUnavailableError, match="Cannot connect"):
                await client.list_api_keys()

    @pytest.mark.asyncio
    async def test_status_code_wins_over_undecodable_body(self, backend):
        with pytest.raises(AuthenticationError):
            await backend.decrypt_api_key("key_1", "proxy")


class TestMalformedPayloads:
    """Unexpected response shapes surface as BackendError."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["EMPTY", "NAMELESS"])
    async def test_unusable_created_record(self, backend, name):
        with pytest.raises(BackendError, match="Malformed key record"):
            await backend.create_api_key_record(KeyRecordRequest(name=name, value="x"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,message", [
        ({"data": "nope"}, "Malformed key list"),
        ([None], "Malformed key record"),
        ([{"id": "key_1"}], "Malformed key record"),
    ])
    async def test_unusable_key_list(self, backend, vault_app, body, message):
        vault_app.list_body = body
        with pytest.raises(BackendError, match=message):
            await backend.list_api_keys()

    @pytest.mark.asyncio
    async def test_empty_key_list(self, backend, vault_app):
        vault_app.list_body = {"data": None}
        assert await backend.list_api_keys() == []
