"""
Disclosure State Machine: when may a secret's plaintext be shown?

Transitions::

    masked         -> visible | decrypting
    visible        -> masked
    decrypting     -> decrypted | decrypt_failed | masked (cancelled)
    decrypted      -> masked
    decrypt_failed -> decrypting | masked

``visible`` only applies to records whose value is already in memory.
Records holding the ``[ENCRYPTED]`` sentinel can only reach plaintext
through ``decrypting -> decrypted`` with the right master password.

Security Note:
    Plaintext is kept as a ``SecretStr`` in the current state only. It is
    dropped on every transition away from ``decrypted`` and never logged.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Optional
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, SecretStr

from .. import conf
from ..cancel import CancelToken
from ..exceptions import (
    BackendError,
    DisclosureUnavailableError,
    InvalidTransitionError,
    OperationCancelledError,
    user_message,
)
from ..models import VaultKeyRecord
from .masking import fixed_mask, mask_secret

logger = logging.getLogger("keykeeper.disclosure")

Decrypt = Callable[[str, str], Awaitable[str]]
Listener = Callable[["DisclosureState"], None]


class DisclosurePhase(str, Enum):
    MASKED = "masked"
    VISIBLE = "visible"
    DECRYPTING = "decrypting"
    DECRYPTED = "decrypted"
    DECRYPT_FAILED = "decrypt_failed"


class DisclosureState(BaseModel):
    """Snapshot of one record's disclosure state."""

    model_config = ConfigDict(frozen=True)

    phase: DisclosurePhase = DisclosurePhase.MASKED
    plaintext: Optional[SecretStr] = None
    reason: Optional[str] = None


_MASKED = DisclosureState()


class DisclosureStateMachine:
    """Per-record disclosure state, gated by a decrypt capability.

    Args:
        record: the vault record being displayed.
        decrypt: coroutine function ``(record_id, master_password) -> str``,
            normally the backend's ``decrypt_api_key``.
        mask_char: character used when masking.
    """

    def __init__(
        self,
        record: VaultKeyRecord,
        decrypt: Decrypt,
        mask_char: str = conf.MASK_CHAR,
    ):
        self._record = record
        self._decrypt = decrypt
        self._mask_char = mask_char
        self._state = _MASKED
        self._generation = 0
        self._pending: Optional[CancelToken] = None
        self._listeners: list[Listener] = []

    def __repr__(self) -> str:
        return f"<DisclosureStateMachine record={self._record.id} phase={self.phase.value}>"

    @property
    def record(self) -> VaultKeyRecord:
        return self._record

    @property
    def state(self) -> DisclosureState:
        return self._state

    @property
    def phase(self) -> DisclosurePhase:
        return self._state.phase

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` on every transition; returns an unsubscribe function."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _set(self, state: DisclosureState) -> None:
        previous = self._state.phase
        self._state = state
        if previous != state.phase:
            logger.debug(
                "Key %s: %s -> %s", self._record.id, previous.value, state.phase.value
            )
        for listener in list(self._listeners):
            listener(state)

    def _abandon_pending(self) -> None:
        self._generation += 1
        pending, self._pending = self._pending, None
        if pending is not None:
            pending.cancel()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def toggle_visible(self) -> DisclosureState:
        """Flip masking of a value already held in memory.

        Raises:
            InvalidTransitionError: the record is encrypted or the machine
                is not masked/visible.
        """
        if self._record.is_encrypted:
            raise InvalidTransitionError("encrypted", "show")
        if self.phase == DisclosurePhase.MASKED:
            self._set(DisclosureState(phase=DisclosurePhase.VISIBLE))
        elif self.phase == DisclosurePhase.VISIBLE:
            self._set(_MASKED)
        else:
            raise InvalidTransitionError(self.phase.value, "toggle visibility")
        return self._state

    async def request_decrypt(
        self,
        master_password: str,
        token: Optional[CancelToken] = None,
    ) -> DisclosureState:
        """Decrypt an ``[ENCRYPTED]`` record with the master password.

        Returns the resulting state: ``decrypted`` on success,
        ``decrypt_failed`` when the backend refuses, or ``masked`` when the
        request was cancelled (a late answer is then discarded).

        Raises:
            InvalidTransitionError: the record is not encrypted, or a
                decrypt is already running or has already succeeded.
        """
        if not self._record.is_encrypted:
            raise InvalidTransitionError("not encrypted", "decrypt")
        if self.phase not in (DisclosurePhase.MASKED, DisclosurePhase.DECRYPT_FAILED):
            raise InvalidTransitionError(self.phase.value, "decrypt")

        request = token.child() if token is not None else CancelToken()
        self._abandon_pending()
        self._pending = request
        generation = self._generation
        self._set(DisclosureState(phase=DisclosurePhase.DECRYPTING))

        try:
            plaintext = await request.guard(
                self._decrypt(self._record.id, master_password), "decrypt"
            )
        except asyncio.CancelledError:
            # the awaiting task itself was cancelled; leave the machine retryable
            if generation == self._generation:
                self._abandon_pending()
                self._set(_MASKED)
            raise
        except OperationCancelledError:
            if generation == self._generation:
                self._pending = None
                self._set(_MASKED)
            logger.info("Decrypt of key %s cancelled", self._record.id)
            return self._state
        except Exception as err:
            if not isinstance(err, BackendError):
                logger.exception("Unexpected decrypt failure for key %s", self._record.id)
            if generation == self._generation:
                self._pending = None
                self._set(
                    DisclosureState(
                        phase=DisclosurePhase.DECRYPT_FAILED, reason=user_message(err)
                    )
                )
            logger.warning("Decrypt of key %s failed: %s", self._record.id, err.__class__.__name__)
            return self._state
        finally:
            request.release()

        if generation != self._generation or request.cancelled:
            # superseded while the answer was in flight
            return self._state
        self._pending = None
        self._set(
            DisclosureState(phase=DisclosurePhase.DECRYPTED, plaintext=SecretStr(plaintext))
        )
        logger.info("Key %s decrypted", self._record.id)
        return self._state

    def cancel(self) -> DisclosureState:
        """Abandon a pending decrypt (the password prompt was dismissed)."""
        if self.phase == DisclosurePhase.DECRYPTING:
            self._abandon_pending()
            self._set(_MASKED)
        return self._state

    def remask(self) -> DisclosureState:
        """Hide plaintext again, dropping any decrypted value."""
        if self.phase in (DisclosurePhase.DECRYPTED, DisclosurePhase.VISIBLE):
            self._set(_MASKED)
        elif self.phase != DisclosurePhase.MASKED:
            raise InvalidTransitionError(self.phase.value, "mask")
        return self._state

    def reset(self) -> None:
        """Return to ``masked`` from anywhere; used on view teardown and lock."""
        self._abandon_pending()
        if self._state is not _MASKED:
            self._set(_MASKED)

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def _available_plaintext(self) -> Optional[str]:
        if self.phase == DisclosurePhase.DECRYPTED and self._state.plaintext is not None:
            return self._state.plaintext.get_secret_value()
        if not self._record.is_encrypted:
            return self._record.stored_value
        return None

    def display_value(self) -> str:
        """Text to render for the record's value in the current phase."""
        plaintext = self._available_plaintext()
        if plaintext is None:
            return fixed_mask(self._mask_char)
        if self.phase in (DisclosurePhase.VISIBLE, DisclosurePhase.DECRYPTED):
            return plaintext
        return mask_secret(plaintext, self._mask_char)

    def copy_value(self) -> str:
        """Plaintext for the clipboard.

        Raises:
            DisclosureUnavailableError: the record is encrypted and not
                decrypted.
        """
        plaintext = self._available_plaintext()
        if plaintext is None:
            raise DisclosureUnavailableError(self._record.name)
        logger.info("Key %s copied", self._record.id)
        return plaintext


def machine_for(record: VaultKeyRecord, backend: Any, mask_char: str = conf.MASK_CHAR) -> DisclosureStateMachine:
    """Build a state machine wired to ``backend.decrypt_api_key``."""
    return DisclosureStateMachine(record, backend.decrypt_api_key, mask_char=mask_char)
