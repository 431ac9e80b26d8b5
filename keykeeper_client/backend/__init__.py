"""Vault backends behind the client's command boundary."""

from .abstract import AbstractBackend
from .http import HttpBackend
from .memory import MemoryBackend, ProjectEnvAssociation

__all__ = [
    "AbstractBackend",
    "HttpBackend",
    "MemoryBackend",
    "ProjectEnvAssociation",
]
