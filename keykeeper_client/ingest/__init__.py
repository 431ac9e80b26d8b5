"""Env file ingestion: parse, classify, stage and import."""

from .parser import parse
from .classifier import classify
from .sources import LocalEnvSource, BackendEnvSource, EnvFileSnapshot, find_project_root
from .pipeline import (
    IngestionPipeline,
    IngestionResult,
    build_requests,
    filter_supported_files,
)

__all__ = [
    "parse",
    "classify",
    "LocalEnvSource",
    "BackendEnvSource",
    "EnvFileSnapshot",
    "find_project_root",
    "IngestionPipeline",
    "IngestionResult",
    "build_requests",
    "filter_supported_files",
]
