"""
Env Sources: where the pipeline gets file contents and project roots.

``LocalEnvSource`` reads from the local disk in a worker thread.
``BackendEnvSource`` asks the vault backend to parse and register the file,
for clients that do not share a filesystem with the files being imported.
"""
import os
import asyncio
import logging
from typing import Any, NamedTuple, Optional

from pydantic import BaseModel, Field, ValidationError

from .. import conf
from ..exceptions import EnvFileReadError, EnvFilePermissionError, BackendError
from . import parser

logger = logging.getLogger("keykeeper.ingest")


class EnvFileSnapshot(NamedTuple):
    """Raw material for an import batch, before classification."""
    path: str
    project_path: str
    file_name: str
    pairs: list[tuple[str, str]]


def file_name_of(path: str) -> str:
    return os.path.basename(path.rstrip("/\\")) or "unknown.env"


def find_project_root(env_file_path: str) -> str:
    """Return the nearest ancestor of ``env_file_path`` holding a project marker.

    Falls back to the file's own directory when no marker is found, so the
    same path always yields the same project.
    """
    start = os.path.dirname(os.path.abspath(env_file_path))
    current = start
    while True:
        for indicator in conf.PROJECT_INDICATORS:
            if os.path.exists(os.path.join(current, indicator)):
                return current
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return start


def read_env_file(path: str) -> str:
    """Read a file, translating OS errors into ingestion errors."""
    name = file_name_of(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except PermissionError:
        raise EnvFilePermissionError(name) from None
    except FileNotFoundError:
        raise EnvFileReadError(name, "file not found") from None
    except IsADirectoryError:
        raise EnvFileReadError(name, "is a directory") from None
    except UnicodeDecodeError:
        raise EnvFileReadError(name, "not a text file") from None
    except OSError as err:
        raise EnvFileReadError(name, err.strerror or str(err)) from None


class LocalEnvSource:
    """Reads env files from the local filesystem."""

    async def load(self, path: str) -> EnvFileSnapshot:
        contents = await asyncio.to_thread(read_env_file, path)
        project_path = await asyncio.to_thread(find_project_root, path)
        return EnvFileSnapshot(
            path=path,
            project_path=project_path,
            file_name=file_name_of(path),
            pairs=parser.parse(contents),
        )


class _ParsedKey(BaseModel):
    name: str = Field(min_length=1)
    value: Optional[str] = ""


class _ParsedEnvFile(BaseModel):
    """Shape of a backend ``parse_and_register_env_file`` answer."""
    path: Optional[str] = None
    project_path: Optional[str] = None
    file_name: Optional[str] = None
    keys: list[_ParsedKey] = Field(default_factory=list)


class BackendEnvSource:
    """Delegates reading and project detection to the vault backend.

    The backend's own secret flags are ignored; the pipeline classifies
    every variable locally so results do not depend on the backend version.
    """

    def __init__(self, backend: Any):
        self._backend = backend

    async def load(self, path: str) -> EnvFileSnapshot:
        name = file_name_of(path)
        try:
            payload = await self._backend.parse_and_register_env_file(path)
        except BackendError as err:
            logger.warning("Backend could not parse %s: %s", name, err)
            raise EnvFileReadError(name, str(err)) from err
        try:
            parsed = _ParsedEnvFile.model_validate(payload)
        except ValidationError as err:
            logger.warning("Malformed parse response for %s: %d error(s)", name, err.error_count())
            raise EnvFileReadError(name, "malformed response from vault") from None
        if not parsed.project_path:
            raise EnvFileReadError(name, "cannot determine project path")
        pairs: dict[str, str] = {}
        for item in parsed.keys:
            pairs[item.name] = item.value or ""
        return EnvFileSnapshot(
            path=parsed.path or path,
            project_path=parsed.project_path,
            file_name=parsed.file_name or name,
            pairs=list(pairs.items()),
        )
