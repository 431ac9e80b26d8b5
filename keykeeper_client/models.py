"""
Data Models: records, import batches and their variables.

Secret-bearing fields are declared with ``repr=False`` so a model can be
logged or printed without exposing its value.
"""
import uuid
from enum import Enum
from typing import Optional
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .conf import ENCRYPTED_SENTINEL


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    MANUAL = "manual"
    ENV_FILE = "env_file"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EditorStatus(str, Enum):
    """Whether the external editor has a project open."""
    OPEN = "open"
    CLOSED = "closed"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "EditorStatus":
        """Map a backend answer onto a status; anything unexpected is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class SecretVariable(BaseModel):
    """One variable parsed from an environment file."""

    model_config = ConfigDict(frozen=True)

    name: str
    raw_value: str = Field(repr=False)
    is_secret: bool = False


class ImportBatch(BaseModel):
    """A parsed environment file waiting for the user to confirm the import."""

    source_path: str
    project_path: str
    file_name: str
    variables: list[SecretVariable] = Field(default_factory=list)
    editor_status: EditorStatus = EditorStatus.UNKNOWN

    @property
    def environment(self) -> Environment:
        return infer_environment(self.file_name)

    @property
    def secrets(self) -> list[SecretVariable]:
        """Variables offered for import."""
        return [var for var in self.variables if var.is_secret]

    @property
    def importable_count(self) -> int:
        return len(self.secrets)


def infer_environment(file_name: str) -> Environment:
    """Guess the deployment environment from an env file name.

    ``.production`` files map to production; everything else, including
    ``.staging``, falls back to development as the conservative choice.
    """
    if ".production" in file_name:
        return Environment.PRODUCTION
    return Environment.DEVELOPMENT


class _RecordFields(BaseModel):
    name: str = Field(min_length=1)
    service: str = ""
    environment: Environment = Environment.DEVELOPMENT
    description: str = ""
    source_type: SourceType = SourceType.MANUAL
    project_path: Optional[str] = None
    env_file_path: Optional[str] = None
    env_file_name: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @model_validator(mode="after")
    def validate_env_file_provenance(self):
        """Records imported from a file must know their project."""
        if self.source_type == SourceType.ENV_FILE and not self.project_path:
            raise ValueError("env_file records require a project_path")
        return self


class KeyRecordRequest(_RecordFields):
    """Creation request sent to the vault backend."""

    value: str = Field(repr=False)


class VaultKeyRecord(_RecordFields):
    """A key as stored by the vault backend.

    ``stored_value`` is either plaintext already held in memory (manual or
    legacy entries) or the ``[ENCRYPTED]`` sentinel.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    stored_value: str = Field(default=ENCRYPTED_SENTINEL, repr=False)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_encrypted(self) -> bool:
        return self.stored_value == ENCRYPTED_SENTINEL
