"""KeyKeeper Client: secret disclosure and env file ingestion.

Usage:
    from keykeeper_client import ClientContext, HttpBackend

    async with HttpBackend() as backend:
        context = ClientContext(backend)
        result = await context.pipeline.ingest_files(["/work/app/.env"])
        await context.pipeline.confirm_import(result.batch)

        machine = context.disclosure(record)
        await machine.request_decrypt(master_password)
"""
from .version import __version__
from .exceptions import (
    KeyKeeperError,
    IngestionError,
    NoFilePathsError,
    NoSupportedFilesError,
    EnvFileReadError,
    EnvFilePermissionError,
    ImportFailedError,
    DisclosureError,
    InvalidTransitionError,
    DisclosureUnavailableError,
    BackendError,
    AuthenticationError,
    BackendUnavailableError,
    RecordValidationError,
    VaultLockedError,
    OperationCancelledError,
    SettingsError,
    user_message,
)
from .models import (
    EditorStatus,
    Environment,
    ImportBatch,
    KeyRecordRequest,
    SecretVariable,
    SourceType,
    VaultKeyRecord,
)
from .settings import ClientSettings
from .cancel import CancelToken
from .disclosure import DisclosurePhase, DisclosureState, DisclosureStateMachine, mask_secret
from .ingest import IngestionPipeline, IngestionResult
from .liveness import EditorLivenessTracker
from .backend import AbstractBackend, HttpBackend, MemoryBackend
from .context import ClientContext

__all__ = [
    "__version__",
    "ClientContext",
    "ClientSettings",
    "CancelToken",
    "AbstractBackend",
    "HttpBackend",
    "MemoryBackend",
    "IngestionPipeline",
    "IngestionResult",
    "EditorLivenessTracker",
    "DisclosurePhase",
    "DisclosureState",
    "DisclosureStateMachine",
    "mask_secret",
    "EditorStatus",
    "Environment",
    "ImportBatch",
    "KeyRecordRequest",
    "SecretVariable",
    "SourceType",
    "VaultKeyRecord",
    "KeyKeeperError",
    "IngestionError",
    "NoFilePathsError",
    "NoSupportedFilesError",
    "EnvFileReadError",
    "EnvFilePermissionError",
    "ImportFailedError",
    "DisclosureError",
    "InvalidTransitionError",
    "DisclosureUnavailableError",
    "BackendError",
    "AuthenticationError",
    "BackendUnavailableError",
    "RecordValidationError",
    "VaultLockedError",
    "OperationCancelledError",
    "SettingsError",
    "user_message",
]
