"""
Client Context: the session-scoped owner of transient client state.

One context exists per unlocked vault session. It owns the per-record
disclosure state machines, the editor liveness tracker and the ingestion
pipeline, and hands out cancel tokens to views. Nothing here is persisted:
locking the context (explicitly or after the idle timeout) drops every
decrypted value and pending import.
"""
import time
import uuid
import logging
from typing import Any, Optional
from collections.abc import Callable, Iterator, Mapping
from datetime import datetime, timezone

from .cancel import CancelToken
from .disclosure import DisclosureStateMachine
from .exceptions import VaultLockedError
from .ingest import IngestionPipeline
from .liveness import EditorLivenessTracker
from .models import VaultKeyRecord
from .settings import ClientSettings

logger = logging.getLogger("keykeeper.context")


class ClientContext(Mapping[str, DisclosureStateMachine]):
    """Session-scoped container for disclosure state and background helpers.

    Behaves as a read-only mapping of record id to the record's
    :class:`DisclosureStateMachine`.

    Args:
        backend: vault backend shared by every component.
        settings: validated client settings; defaults are used when omitted.
        source: optional env source for the ingestion pipeline.
        id: session identifier; generated when omitted.
        identity: who unlocked the vault, for logging only.
        clock: monotonic time source used for the idle timeout.
    """

    def __init__(
        self,
        backend: Any,
        settings: Optional[ClientSettings] = None,
        source: Any = None,
        id: Optional[str] = None,
        identity: Optional[Any] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._backend = backend
        self._settings = settings or ClientSettings()
        self._id_ = id or uuid.uuid4().hex
        self._identity = identity or self._id_
        self._clock = clock
        self.__created__ = datetime.now(timezone.utc)
        self._created = int(self.__created__.timestamp())
        self._last_activity = clock()
        self._locked = False
        self._root = CancelToken()
        self._disclosures: dict[str, DisclosureStateMachine] = {}
        self.tracker = EditorLivenessTracker.from_settings(
            backend.get_project_editor_status, self._settings
        )
        self.pipeline = IngestionPipeline(backend, tracker=self.tracker, source=source)

    def __repr__(self) -> str:
        return (
            f'<KeyKeeper-Context [locked:{self._locked}, created:{self._created}] '
            f'disclosures={list(self._disclosures.keys())}>'
        )

    # --- Properties ---

    @property
    def session_id(self) -> str:
        return self._id_

    @property
    def identity(self) -> Any:
        return self._identity

    @property
    def created(self) -> int:
        return self._created

    @property
    def logon_time(self) -> datetime:
        return self.__created__

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def backend(self) -> Any:
        return self._backend

    @property
    def is_locked(self) -> bool:
        return self._locked

    # --- Mapping ---

    def __getitem__(self, record_id: str) -> DisclosureStateMachine:
        return self._disclosures[record_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._disclosures)

    def __len__(self) -> int:
        return len(self._disclosures)

    # --- Views ---

    def _ensure_unlocked(self) -> None:
        if self._locked:
            raise VaultLockedError()

    def touch(self) -> None:
        """Record user activity, postponing the idle auto-lock."""
        self._last_activity = self._clock()

    def view_token(self) -> CancelToken:
        """Token for a view's async work; cancelled when the context locks."""
        self._ensure_unlocked()
        return self._root.child()

    def disclosure(self, record: VaultKeyRecord) -> DisclosureStateMachine:
        """State machine for ``record``, created on first use.

        A record whose stored value changed since the machine was created
        gets a fresh machine in the ``masked`` state.
        """
        self._ensure_unlocked()
        self.touch()
        machine = self._disclosures.get(record.id)
        if machine is not None and machine.record.stored_value != record.stored_value:
            machine.reset()
            machine = None
        if machine is None:
            machine = DisclosureStateMachine(
                record,
                self._backend.decrypt_api_key,
                mask_char=self._settings.ui.mask_char,
            )
            self._disclosures[record.id] = machine
        return machine

    def release(self, record_id: str) -> None:
        """Tear down a record's view: forget its state and any plaintext."""
        machine = self._disclosures.pop(record_id, None)
        if machine is not None:
            machine.reset()

    def project_paths(self) -> list[str]:
        """Project paths of the records currently on screen."""
        return [
            machine.record.project_path
            for machine in self._disclosures.values()
            if machine.record.project_path
        ]

    def start_liveness_polling(self) -> None:
        self._ensure_unlocked()
        self.tracker.start(self.project_paths)

    # --- Locking ---

    def check_auto_lock(self) -> bool:
        """Lock the context when idle longer than ``security.auto_lock_timeout``.

        Returns True when the context is locked after the check.
        """
        if self._locked:
            return True
        timeout = self._settings.security.auto_lock_timeout
        if timeout and self._clock() - self._last_activity >= timeout * 60:
            logger.info("Session %s idle for %d minute(s), locking", self._id_, timeout)
            self.lock()
        return self._locked

    def lock(self) -> None:
        """Drop all transient state: disclosures, pending import, cached statuses."""
        for machine in self._disclosures.values():
            machine.reset()
        self._disclosures.clear()
        self._root.cancel()
        self._root = CancelToken()
        self.pipeline.cancel_import()
        self.tracker.invalidate()
        self._locked = True
        logger.info("Session %s locked", self._id_)

    def unlock(self) -> None:
        self._locked = False
        self.touch()
        logger.info("Session %s unlocked", self._id_)

    async def close(self) -> None:
        """Lock and stop background polling."""
        self.lock()
        await self.tracker.stop()
