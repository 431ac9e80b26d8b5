"""Secret Disclosure: masking and the per-record decrypt/visibility state machine.

Security Note (Threat Model):
    Decrypted plaintext lives in process memory for as long as a record's
    state is ``decrypted``. It is discarded when the view is torn down or
    the vault locks, and is never written to storage or logs.
"""

from .masking import mask_secret, fixed_mask
from .machine import (
    DisclosurePhase,
    DisclosureState,
    DisclosureStateMachine,
    machine_for,
)

__all__ = [
    "mask_secret",
    "fixed_mask",
    "DisclosurePhase",
    "DisclosureState",
    "DisclosureStateMachine",
    "machine_for",
]
