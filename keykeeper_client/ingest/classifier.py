"""Secret classifier.

``classify`` looks at one variable at a time and nothing else, so the
verdict for a name/value pair never depends on the rest of the file.
"""

SECRET_NAME_PATTERNS = (
    "key",
    "secret",
    "token",
    "password",
    "pass",
    "pwd",
    "auth",
    "credential",
    "api",
    "private",
    "cert",
    "signature",
)

# Minimum length of a value that looks machine-generated.
GENERATED_MIN_LENGTH = 20


def name_looks_secret(name: str) -> bool:
    lowered = name.lower()
    return any(pattern in lowered for pattern in SECRET_NAME_PATTERNS)


def value_looks_generated(value: str) -> bool:
    """True for long opaque tokens such as ``sk_live_...`` or base64 blobs."""
    if len(value) < GENERATED_MIN_LENGTH:
        return False
    if value.isalpha():
        return False
    if any(ch.isspace() for ch in value):
        return False
    # URLs and paths are configuration, not credentials.
    if "://" in value or value.startswith(("/", "./", "~/")):
        return False
    return True


def classify(name: str, value: str) -> bool:
    """Decide whether an env variable holds a secret."""
    if not value:
        return False
    return name_looks_secret(name) or value_looks_generated(value)
