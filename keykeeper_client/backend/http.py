"""
HTTP Backend: talks to the KeyKeeper desktop app's local API.

Routes (relative to ``KEYKEEPER_URL``, default ``http://localhost:27182``):

    POST /api/env/parse              parse_and_register_env_file
    POST /api/env/associate          associate_project_with_env
    POST /api/keys/{id}/decrypt      decrypt_api_key
    GET  /api/vscode/status          get_project_editor_status
    POST /api/keys                   create_api_key_record
    GET  /api/keys                   list_api_keys

Error responses carry ``{"error": <code>, "message": <text>}`` and are
mapped onto client exceptions; transport failures become
``BackendUnavailableError``.
"""
import asyncio
import logging
from typing import Any, Optional

import orjson
import aiohttp
from pydantic import ValidationError

from .. import conf
from ..exceptions import (
    AuthenticationError,
    BackendError,
    BackendUnavailableError,
    RecordValidationError,
    VaultLockedError,
)
from ..models import KeyRecordRequest, VaultKeyRecord
from .abstract import AbstractBackend

logger = logging.getLogger("keykeeper.backend")

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


def _raise_for_error(status: int, body: dict) -> None:
    """Raise the client exception matching an error response."""
    error_code = body.get("error", "")
    message = body.get("message", "")
    if error_code == "vault_locked":
        raise VaultLockedError()
    if status in (401, 403) or error_code in ("invalid_password", "authentication_failed"):
        raise AuthenticationError(message)
    if status in (400, 422) or error_code == "validation_error":
        raise RecordValidationError(message or "The vault rejected the request")
    if status == 404:
        raise BackendError(message or "Not found")
    raise BackendError(message or f"Vault error: {error_code or status}")


def _record_from(item: Any) -> VaultKeyRecord:
    """Build a record from the API shape, where the value travels as ``key``."""
    if not isinstance(item, dict):
        raise BackendError("Malformed key record response from vault")
    data = dict(item)
    data["stored_value"] = data.pop("key", data.get("stored_value", conf.ENCRYPTED_SENTINEL))
    try:
        return VaultKeyRecord.model_validate(data)
    except ValidationError as err:
        logger.warning("Vault returned an invalid key record: %d error(s)", err.error_count())
        raise BackendError("Malformed key record response from vault") from None


class HttpBackend(AbstractBackend):
    """aiohttp client for the local vault API.

    The underlying ``ClientSession`` is created on first use; call
    :meth:`close` (or use ``async with``) to release it.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: float = conf.HTTP_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._url = (url or conf.KEYKEEPER_URL).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def url(self) -> str:
        return self._url

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        session = self._get_session()
        data = orjson.dumps(payload) if payload is not None else None
        try:
            async with session.request(
                method,
                f"{self._url}{path}",
                data=data,
                params=params,
                headers=_JSON_HEADERS,
            ) as response:
                raw = await response.read()
                status = response.status
        except aiohttp.ClientError as err:
            raise BackendUnavailableError(err.__class__.__name__) from err
        except asyncio.TimeoutError as err:
            raise BackendUnavailableError("request timed out") from err

        try:
            body = orjson.loads(raw) if raw else None
        except orjson.JSONDecodeError:
            if status >= 400:
                _raise_for_error(status, {})
            raise BackendError(f"Malformed response from vault (HTTP {status})") from None
        if status >= 400:
            _raise_for_error(status, body if isinstance(body, dict) else {})
        if isinstance(body, dict) and body.get("status") == "error":
            _raise_for_error(status, body)
        return body

    @staticmethod
    def _data(body: Any) -> Any:
        """Unwrap ``{"data": ...}`` envelopes."""
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    async def parse_and_register_env_file(self, file_path: str) -> dict[str, Any]:
        body = await self._request("POST", "/api/env/parse", {"filePath": file_path})
        return self._data(body)

    async def associate_project_with_env(
        self, project_path: str, env_path: str, file_name: str
    ) -> None:
        await self._request(
            "POST",
            "/api/env/associate",
            {"projectPath": project_path, "envPath": env_path, "fileName": file_name},
        )

    async def decrypt_api_key(self, key_id: str, master_password: str) -> str:
        body = await self._request(
            "POST", f"/api/keys/{key_id}/decrypt", {"masterPassword": master_password}
        )
        data = self._data(body)
        if isinstance(data, dict):
            data = data.get("key")
        if not isinstance(data, str):
            raise BackendError("Malformed decrypt response from vault")
        return data

    async def get_project_editor_status(self, project_path: str) -> str:
        body = await self._request(
            "GET", "/api/vscode/status", params={"projectPath": project_path}
        )
        data = self._data(body)
        if isinstance(data, dict):
            data = data.get("status")
        return data or "unknown"

    async def create_api_key_record(self, request: KeyRecordRequest) -> VaultKeyRecord:
        payload = request.model_dump(mode="json", exclude={"value"})
        payload["key"] = request.value
        body = await self._request("POST", "/api/keys", payload)
        record = _record_from(self._data(body))
        logger.debug("Created key %s via %s", record.id, self._url)
        return record

    async def list_api_keys(self) -> list[VaultKeyRecord]:
        body = await self._request("GET", "/api/keys")
        items = self._data(body)
        if items is None:
            return []
        if not isinstance(items, list):
            raise BackendError("Malformed key list response from vault")
        return [_record_from(item) for item in items]
