"""
Memory Backend Crypto: password-derived sealing of stored key values.

Format: [salt 16B][nonce 12B][encrypted_payload + tag 16B]

The key is derived from the master password with PBKDF2-HMAC-SHA256
(100 000 iterations) and a per-value random salt.

Security Note:
    Never log plaintext, passwords or ciphertext values.
"""
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

SALT_SIZE = 16
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
ITERATIONS = 100_000


def _get_cipher_cls() -> type:
    """Return the AEAD cipher class based on KEYKEEPER_CIPHER_BACKEND env var."""
    backend = os.environ.get("KEYKEEPER_CIPHER_BACKEND", "aesgcm").lower()
    if backend == "chacha20":
        return ChaCha20Poly1305
    return AESGCM


# Resolved once so sealing and opening always agree within a process.
CIPHER_CLS = _get_cipher_cls()


class SealError(Exception):
    """Raised when a sealed value cannot be opened with the given password."""
    pass


def derive_key(password: str, salt: bytes, iterations: int = ITERATIONS) -> bytes:
    """Derive a 32-byte key from a master password."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def seal(plaintext: str, password: str, iterations: int = ITERATIONS) -> bytes:
    salt = os.urandom(SALT_SIZE)
    cipher = CIPHER_CLS(derive_key(password, salt, iterations))
    nonce = os.urandom(NONCE_SIZE)
    return salt + nonce + cipher.encrypt(nonce, plaintext.encode("utf-8"), None)


def open_sealed(sealed: bytes, password: str, iterations: int = ITERATIONS) -> str:
    """Decrypt a value produced by :func:`seal`.

    Raises:
        SealError: wrong password or tampered data.
    """
    _min = SALT_SIZE + NONCE_SIZE + TAG_SIZE
    if len(sealed) < _min:
        raise SealError(f"sealed value too short: {len(sealed)} bytes (minimum {_min})")
    salt = sealed[:SALT_SIZE]
    nonce = sealed[SALT_SIZE:SALT_SIZE + NONCE_SIZE]
    ct = sealed[SALT_SIZE + NONCE_SIZE:]
    cipher = CIPHER_CLS(derive_key(password, salt, iterations))
    try:
        return cipher.decrypt(nonce, ct, None).decode("utf-8")
    except InvalidTag:
        raise SealError("authentication tag mismatch") from None
