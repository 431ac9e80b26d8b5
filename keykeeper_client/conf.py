"""
Client Configuration Defaults: values read from the environment.

    KEYKEEPER_URL            base URL of the desktop app's local API
    KEYKEEPER_POLL_INTERVAL  editor liveness freshness window (seconds)
    KEYKEEPER_PROBE_TIMEOUT  upper bound for a single liveness probe (seconds)
    KEYKEEPER_HTTP_TIMEOUT   total timeout for backend HTTP calls (seconds)
"""
import os

ENCRYPTED_SENTINEL = "[ENCRYPTED]"

SUPPORTED_ENV_FILES = (
    ".env",
    ".env.local",
    ".env.development",
    ".env.production",
    ".env.staging",
    ".env.test",
)

# Markers of a project root, nearest ancestor wins.
PROJECT_INDICATORS = (
    "package.json",
    "Cargo.toml",
    ".git",
    "composer.json",
    "requirements.txt",
    "pyproject.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
)

MASK_CHAR = "•"
FIXED_MASK_WIDTH = 16


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(
            f"{name} must be a number of seconds, got {raw!r}"
        ) from None


KEYKEEPER_URL = os.environ.get("KEYKEEPER_URL", "http://localhost:27182").rstrip("/")
POLL_INTERVAL = _float_env("KEYKEEPER_POLL_INTERVAL", 5.0)
PROBE_TIMEOUT = _float_env("KEYKEEPER_PROBE_TIMEOUT", 2.0)
HTTP_TIMEOUT = _float_env("KEYKEEPER_HTTP_TIMEOUT", 30.0)
