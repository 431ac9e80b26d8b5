"""
Memory Backend: an in-process vault for offline use and tests.

Every stored value is sealed with the master password and exposed only as
the ``[ENCRYPTED]`` sentinel; ``decrypt_api_key`` is the single way back to
plaintext. Project/env associations and editor statuses are kept in plain
dicts.
"""
import uuid
import asyncio
import logging
from typing import Any, Optional
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from ..conf import ENCRYPTED_SENTINEL
from ..exceptions import (
    AuthenticationError,
    BackendError,
    RecordValidationError,
    VaultLockedError,
)
from ..ingest.classifier import classify
from ..ingest.sources import LocalEnvSource
from ..models import EditorStatus, KeyRecordRequest, VaultKeyRecord
from .abstract import AbstractBackend
from .crypto import ITERATIONS, SealError, open_sealed, seal

logger = logging.getLogger("keykeeper.backend")

_CHECK_VALUE = "keykeeper-vault-check"


class ProjectEnvAssociation(BaseModel):
    """Link between a project directory and one of its env files."""

    id: str = Field(default_factory=lambda: f"env_assoc_{uuid.uuid4().hex[:12]}")
    project_path: str
    env_file_path: str
    env_file_name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    is_active: bool = True


class MemoryBackend(AbstractBackend):
    """Vault backend held entirely in memory.

    Args:
        master_password: password sealing every stored value.
        iterations: PBKDF2 iterations; lower only in tests.
    """

    def __init__(self, master_password: str, iterations: int = ITERATIONS):
        if not master_password:
            raise ValueError("master_password cannot be empty")
        self._iterations = iterations
        self._check = seal(_CHECK_VALUE, master_password, iterations)
        self._password: Optional[str] = master_password
        self._records: dict[str, VaultKeyRecord] = {}
        self._sealed: dict[str, bytes] = {}
        self._associations: list[ProjectEnvAssociation] = []
        self._editor_status: dict[str, EditorStatus] = {}
        self._source = LocalEnvSource()

    # ------------------------------------------------------------------
    # Lock state
    # ------------------------------------------------------------------

    @property
    def is_unlocked(self) -> bool:
        return self._password is not None

    def lock(self) -> None:
        self._password = None
        logger.info("Memory vault locked")

    async def unlock(self, master_password: str) -> None:
        try:
            await asyncio.to_thread(open_sealed, self._check, master_password, self._iterations)
        except SealError:
            raise AuthenticationError("Invalid master password") from None
        self._password = master_password
        logger.info("Memory vault unlocked")

    def _require_unlocked(self) -> str:
        if self._password is None:
            raise VaultLockedError()
        return self._password

    # ------------------------------------------------------------------
    # Editor integration
    # ------------------------------------------------------------------

    def set_editor_status(self, project_path: str, status: Any) -> None:
        self._editor_status[project_path] = EditorStatus.parse(status)

    async def get_project_editor_status(self, project_path: str) -> str:
        return self._editor_status.get(project_path, EditorStatus.UNKNOWN).value

    # ------------------------------------------------------------------
    # Env files
    # ------------------------------------------------------------------

    @property
    def associations(self) -> list[ProjectEnvAssociation]:
        return list(self._associations)

    async def parse_and_register_env_file(self, file_path: str) -> dict[str, Any]:
        snapshot = await self._source.load(file_path)
        logger.info("Parsed env file %s for project %s", snapshot.file_name, snapshot.project_path)
        return {
            "path": snapshot.path,
            "project_path": snapshot.project_path,
            "file_name": snapshot.file_name,
            "keys": [
                {"name": name, "value": value, "is_secret": classify(name, value)}
                for name, value in snapshot.pairs
            ],
        }

    async def associate_project_with_env(
        self, project_path: str, env_path: str, file_name: str
    ) -> None:
        self._require_unlocked()
        association = ProjectEnvAssociation(
            project_path=project_path, env_file_path=env_path, env_file_name=file_name
        )
        for index, existing in enumerate(self._associations):
            if existing.project_path == project_path and existing.env_file_path == env_path:
                self._associations[index] = association
                break
        else:
            self._associations.append(association)
        logger.info("Associated project %s with env file %s", project_path, env_path)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    async def create_api_key_record(self, request: KeyRecordRequest) -> VaultKeyRecord:
        password = self._require_unlocked()
        if not request.value:
            raise RecordValidationError(f"Key {request.name} has an empty value")
        sealed = await asyncio.to_thread(seal, request.value, password, self._iterations)
        record = VaultKeyRecord(
            id=f"key_{uuid.uuid4().hex}",
            stored_value=ENCRYPTED_SENTINEL,
            **request.model_dump(exclude={"value"}),
        )
        self._records[record.id] = record
        self._sealed[record.id] = sealed
        logger.info("Created key %s (%s)", record.id, record.name)
        return record

    async def list_api_keys(self) -> list[VaultKeyRecord]:
        self._require_unlocked()
        return list(self._records.values())

    async def decrypt_api_key(self, key_id: str, master_password: str) -> str:
        sealed = self._sealed.get(key_id)
        if sealed is None:
            raise BackendError(f"API key not found: {key_id}")
        try:
            return await asyncio.to_thread(
                open_sealed, sealed, master_password, self._iterations
            )
        except SealError:
            logger.warning("Decrypt refused for key %s", key_id)
            raise AuthenticationError() from None
