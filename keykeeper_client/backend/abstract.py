"""Abstract vault backend: the command boundary the client talks through."""

from abc import ABC, abstractmethod
from typing import Any

from ..models import KeyRecordRequest, VaultKeyRecord


class AbstractBackend(ABC):
    """
    Commands every vault backend must implement.

    Implementations raise the :mod:`keykeeper_client.exceptions` backend
    errors, never transport-specific exceptions:
    - AuthenticationError for a wrong master password
    - RecordValidationError for refused creation requests
    - BackendUnavailableError when the vault cannot be reached
    """

    @abstractmethod
    async def parse_and_register_env_file(self, file_path: str) -> dict[str, Any]:
        """
        Parse an env file on the backend's side.

        Returns:
            ``{"path", "project_path", "file_name",
            "keys": [{"name", "value", "is_secret"}]}``
        """
        pass

    @abstractmethod
    async def associate_project_with_env(
        self, project_path: str, env_path: str, file_name: str
    ) -> None:
        """Record that ``env_path`` belongs to ``project_path``."""
        pass

    @abstractmethod
    async def decrypt_api_key(self, key_id: str, master_password: str) -> str:
        """Return the plaintext of an encrypted key."""
        pass

    @abstractmethod
    async def get_project_editor_status(self, project_path: str) -> str:
        """Return ``"open"``, ``"closed"`` or ``"unknown"``."""
        pass

    @abstractmethod
    async def create_api_key_record(self, request: KeyRecordRequest) -> VaultKeyRecord:
        """Store a new key and return the persisted record."""
        pass

    @abstractmethod
    async def list_api_keys(self) -> list[VaultKeyRecord]:
        """All records currently in the vault."""
        pass

    async def close(self) -> None:
        """Release resources held by the backend."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
