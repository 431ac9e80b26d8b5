"""
Ingestion Pipeline: from dropped or selected files to vault records.

Flow for one call to :meth:`IngestionPipeline.ingest_files`:

1. keep only recognized ``.env`` file names;
2. try each file in order: read, resolve project root, parse, classify,
   ask the liveness tracker about the project;
3. the first file that succeeds becomes the active :class:`ImportBatch`,
   the remaining files are not processed;
4. :meth:`confirm_import` turns the batch's secrets into record creation
   requests and registers the project/env file association.

Security Note:
    Never log variable values. Only log file names, project paths and counts.
"""
import asyncio
import logging
from typing import Any, NamedTuple, Optional
from collections.abc import Iterable, Sequence

from .. import conf
from ..cancel import CancelToken, guarded
from ..exceptions import (
    BackendError,
    ImportFailedError,
    IngestionError,
    NoFilePathsError,
    NoSupportedFilesError,
)
from ..models import (
    EditorStatus,
    ImportBatch,
    KeyRecordRequest,
    SecretVariable,
    SourceType,
    VaultKeyRecord,
)
from .classifier import classify
from .sources import LocalEnvSource, file_name_of

logger = logging.getLogger("keykeeper.ingest")

IMPORT_SERVICE = "Environment Variable"
IMPORT_TAGS = ("imported", "env-file")
IMPORT_SCOPES = ("env",)


class IngestionResult(NamedTuple):
    """Outcome of one drop or selection.

    ``errors`` holds the per-file failures met before the winning file;
    ``skipped`` lists supported files that were never processed because an
    earlier file already produced the batch.
    """
    batch: ImportBatch
    errors: list[IngestionError]
    skipped: list[str]


def is_supported_file(path: str) -> bool:
    """Recognize env files by name.

    The file picker hands over names such as ``.env.local`` (prefix match);
    drag and drop also yields names such as ``config.env.production``
    (suffix match).
    """
    name = file_name_of(path)
    return any(
        name.startswith(supported) or name.endswith(supported)
        for supported in conf.SUPPORTED_ENV_FILES
    )


def filter_supported_files(paths: Iterable[Optional[str]]) -> list[str]:
    """Keep only recognized env files, preserving input order.

    Raises:
        NoFilePathsError: nothing resolvable was supplied.
        NoSupportedFilesError: no supplied file is an env file.
    """
    candidates = [path for path in paths if path]
    if not candidates:
        raise NoFilePathsError()
    supported = [path for path in candidates if is_supported_file(path)]
    if not supported:
        raise NoSupportedFilesError(file_name_of(path) for path in candidates)
    return supported


def classify_pairs(pairs: Iterable[tuple[str, str]]) -> list[SecretVariable]:
    return [
        SecretVariable(name=name, raw_value=value, is_secret=classify(name, value))
        for name, value in pairs
    ]


def build_requests(
    batch: ImportBatch,
    selection: Optional[Iterable[str]] = None,
    existing: Iterable[VaultKeyRecord] = (),
) -> list[KeyRecordRequest]:
    """Creation requests for the importable variables of ``batch``.

    Args:
        batch: the confirmed batch.
        selection: optional names to import; non-secret names are ignored.
        existing: records already in the vault; a variable already imported
            from the same file is not requested again.
    """
    wanted = set(selection) if selection is not None else None
    already = {
        record.name
        for record in existing
        if record.source_type == SourceType.ENV_FILE
        and record.env_file_path == batch.source_path
    }
    environment = batch.environment
    requests = []
    for var in batch.secrets:
        if wanted is not None and var.name not in wanted:
            continue
        if var.name in already:
            continue
        requests.append(
            KeyRecordRequest(
                name=var.name,
                value=var.raw_value,
                service=IMPORT_SERVICE,
                environment=environment,
                description=f"Imported from {batch.file_name}",
                source_type=SourceType.ENV_FILE,
                project_path=batch.project_path,
                env_file_path=batch.source_path,
                env_file_name=batch.file_name,
                tags=list(IMPORT_TAGS),
                scopes=list(IMPORT_SCOPES),
            )
        )
    return requests


class IngestionPipeline:
    """Stages at most one import batch at a time.

    Args:
        backend: vault backend used by :meth:`confirm_import`.
        tracker: optional :class:`EditorLivenessTracker` used to annotate
            batches with the editor status of their project.
        source: where file contents and project roots come from; defaults
            to the local filesystem.
    """

    def __init__(self, backend: Any, tracker: Any = None, source: Any = None):
        self._backend = backend
        self._tracker = tracker
        self._source = source or LocalEnvSource()
        self._lock = asyncio.Lock()
        self._active: Optional[ImportBatch] = None

    @property
    def active_batch(self) -> Optional[ImportBatch]:
        return self._active

    def cancel_import(self) -> None:
        if self._active is not None:
            logger.info("Import of %s discarded", self._active.file_name)
        self._active = None

    async def _editor_status(self, project_path: str) -> EditorStatus:
        if self._tracker is None:
            return EditorStatus.UNKNOWN
        try:
            return await self._tracker.get_status(project_path)
        except Exception as err:
            logger.debug("Editor status unavailable for %s: %s", project_path, err)
            return EditorStatus.UNKNOWN

    async def ingest(self, path: str, token: Optional[CancelToken] = None) -> ImportBatch:
        """Turn one env file into an import batch.

        Raises:
            IngestionError: the file cannot be read.
            OperationCancelledError: ``token`` fired.
        """
        snapshot = await guarded(self._source.load(path), token, "read env file")
        variables = classify_pairs(snapshot.pairs)
        editor_status = await guarded(
            self._editor_status(snapshot.project_path), token, "editor status"
        )
        batch = ImportBatch(
            source_path=snapshot.path,
            project_path=snapshot.project_path,
            file_name=snapshot.file_name,
            variables=variables,
            editor_status=editor_status,
        )
        logger.info(
            "Parsed %s: %d variable(s), %d secret(s), project=%s",
            batch.file_name, len(variables), batch.importable_count, batch.project_path,
        )
        return batch

    async def ingest_files(
        self,
        paths: Sequence[Optional[str]],
        token: Optional[CancelToken] = None,
    ) -> IngestionResult:
        """Ingest a drop or selection; the first file that succeeds wins.

        Files are processed strictly one after another. A file that fails
        to read is reported and the next one is tried.

        Raises:
            NoFilePathsError, NoSupportedFilesError: nothing to ingest.
            IngestionError: every supported file failed; the last error.
        """
        async with self._lock:
            supported = filter_supported_files(paths)
            errors: list[IngestionError] = []
            for index, path in enumerate(supported):
                try:
                    batch = await self.ingest(path, token)
                except IngestionError as err:
                    logger.warning("Error processing file %s: %s", file_name_of(path), err)
                    errors.append(err)
                    continue
                if self._active is not None:
                    logger.info(
                        "Pending import of %s replaced by %s",
                        self._active.file_name, batch.file_name,
                    )
                self._active = batch
                skipped = supported[index + 1:]
                if skipped:
                    logger.info("Skipped %d further file(s) in this drop", len(skipped))
                return IngestionResult(batch, errors, skipped)
            raise errors[-1]

    async def confirm_import(
        self,
        batch: Optional[ImportBatch] = None,
        selection: Optional[Iterable[str]] = None,
        token: Optional[CancelToken] = None,
    ) -> list[VaultKeyRecord]:
        """Create vault records for the batch's secrets and link the project.

        Raises:
            IngestionError: there is no batch to confirm.
            ImportFailedError: a record or the association was refused.
        """
        batch = batch or self._active
        if batch is None:
            raise IngestionError("No pending import to confirm.")
        try:
            existing = await guarded(self._backend.list_api_keys(), token, "list keys")
        except BackendError as err:
            raise ImportFailedError(
                batch.file_name, (), [var.name for var in batch.secrets], str(err)
            ) from err
        requests = build_requests(batch, selection, existing)
        created: list[VaultKeyRecord] = []
        for request in requests:
            try:
                record = await guarded(
                    self._backend.create_api_key_record(request), token, "create key"
                )
            except BackendError as err:
                failed = [req.name for req in requests[len(created):]]
                logger.error(
                    "Import from %s stopped at %s: %s", batch.file_name, request.name, err
                )
                raise ImportFailedError(
                    batch.file_name, (r.name for r in created), failed, str(err)
                ) from err
            created.append(record)
        try:
            await guarded(
                self._backend.associate_project_with_env(
                    batch.project_path, batch.source_path, batch.file_name
                ),
                token,
                "associate project",
            )
        except BackendError as err:
            raise ImportFailedError(
                batch.file_name, (r.name for r in created), ["project association"], str(err)
            ) from err
        if self._active is batch:
            self._active = None
        logger.info(
            "Imported %d key(s) from %s into project %s",
            len(created), batch.file_name, batch.project_path,
        )
        return created
