"""KeyKeeper client exceptions.

Every message is written for the person at the keyboard: it names the file
or record involved and never carries secret material.
"""
from collections.abc import Iterable


class KeyKeeperError(Exception):
    """Base exception for all KeyKeeper client errors."""
    pass


# -- Ingestion --

class IngestionError(KeyKeeperError):
    """Raised when an environment file cannot be turned into an import batch."""
    def __init__(self, message: str, file_name: str = ""):
        self.file_name = file_name
        super().__init__(message)


class NoFilePathsError(IngestionError):
    """Raised when a drop or selection resolved to no file paths at all."""
    def __init__(self):
        super().__init__(
            "Cannot determine file paths. Please drag files directly "
            "from your file system explorer."
        )


class NoSupportedFilesError(IngestionError):
    """Raised when none of the candidate files is a recognized .env file."""
    def __init__(self, rejected: Iterable[str]):
        self.rejected = list(rejected)
        names = ", ".join(self.rejected)
        super().__init__(
            f"No .env files found. Detected files: {names}. "
            "Please select supported .env files."
        )


class EnvFileReadError(IngestionError):
    """Raised when an environment file exists but cannot be read."""
    def __init__(self, file_name: str, detail: str = ""):
        self.detail = detail
        msg = f"Failed to read .env file: {file_name}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg, file_name=file_name)


class EnvFilePermissionError(EnvFileReadError):
    """Raised when the current user may not read an environment file."""
    def __init__(self, file_name: str):
        super().__init__(file_name, "permission denied")


class ImportFailedError(KeyKeeperError):
    """Raised when a confirmed import could not create every record."""
    def __init__(self, file_name: str, created: Iterable[str], failed: Iterable[str], detail: str = ""):
        self.file_name = file_name
        self.created = list(created)
        self.failed = list(failed)
        msg = (
            f"Import from {file_name} incomplete: "
            f"{len(self.created)} imported, failed: {', '.join(self.failed)}"
        )
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


# -- Disclosure --

class DisclosureError(KeyKeeperError):
    """Base class for disclosure state machine errors."""
    pass


class InvalidTransitionError(DisclosureError):
    """Raised when an action is not allowed from the current disclosure phase."""
    def __init__(self, phase: str, action: str):
        self.phase = phase
        self.action = action
        super().__init__(f"Cannot {action} while the key is {phase}")


class DisclosureUnavailableError(DisclosureError):
    """Raised when plaintext is requested for a key that is still encrypted."""
    def __init__(self, record_name: str):
        self.record_name = record_name
        super().__init__(
            f"Key {record_name} is encrypted. Decrypt it with your master password first."
        )


# -- Backend --

class BackendError(KeyKeeperError):
    """Raised when the vault backend rejects or fails a command."""
    pass


class AuthenticationError(BackendError):
    """Raised when the master password is wrong."""
    def __init__(self, message: str = ""):
        super().__init__(
            message or "Failed to decrypt API key. Please check your master password."
        )


class BackendUnavailableError(BackendError):
    """Raised when the vault backend cannot be reached."""
    def __init__(self, detail: str = ""):
        msg = "Cannot connect to the KeyKeeper vault"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class RecordValidationError(BackendError):
    """Raised when the backend refuses a record creation request."""
    pass


class VaultLockedError(BackendError):
    """Raised when a command needs an unlocked vault."""
    def __init__(self):
        super().__init__("Vault is locked")


# -- Misc --

class OperationCancelledError(KeyKeeperError):
    """Raised at a suspension point once its cancel token has fired."""
    def __init__(self, operation: str = ""):
        self.operation = operation
        msg = "Operation cancelled"
        if operation:
            msg += f": {operation}"
        super().__init__(msg)


class SettingsError(KeyKeeperError):
    """Raised when a settings payload does not validate."""
    pass


def user_message(err: BaseException) -> str:
    """Render any exception as a message fit for the UI.

    KeyKeeper errors already carry a user-facing message. Anything else is
    reduced to a generic sentence so raw backend objects never leak.
    """
    if isinstance(err, KeyKeeperError):
        return str(err)
    if isinstance(err, PermissionError):
        return "Permission denied"
    if isinstance(err, OSError):
        return f"File system error: {err.strerror or err.__class__.__name__}"
    return "Unknown error occurred"
