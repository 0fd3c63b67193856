"""Typed errors raised by services and rendered by the error handler."""


class StreamVaultError(Exception):
    """Base class. `code` and `status_code` drive the JSON error envelope."""

    code = "INTERNAL_ERROR"
    status_code = 500
    # Message sent to clients for 5xx errors; the real message is only logged
    public_message = "Internal server error"

    def __init__(self, message: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message or self.public_message
        self.details = details

    @property
    def client_message(self) -> str:
        if self.status_code >= 500:
            return self.public_message
        return self.message


class ConfigurationError(StreamVaultError):
    code = "CONFIGURATION_ERROR"


class VideoIOError(StreamVaultError):
    """Disk or network failure while moving video bytes."""

    code = "IO_ERROR"


class ClientDisconnectedError(VideoIOError):
    """The playback sink stopped accepting bytes. Treated as cancellation."""

    code = "CLIENT_DISCONNECTED"


class CorruptFileError(StreamVaultError):
    code = "CORRUPT_FILE"


class CorruptStateError(StreamVaultError):
    """Metadata exists but its backing file does not."""

    code = "CORRUPT_STATE"


class StorageError(StreamVaultError):
    code = "STORAGE_ERROR"


class TranscodeError(StreamVaultError):
    code = "TRANSCODE_ERROR"


class NotFoundError(StreamVaultError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(StreamVaultError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(StreamVaultError):
    code = "CONFLICT"
    status_code = 409


class AuthenticationError(StreamVaultError):
    code = "UNAUTHORIZED"
    status_code = 401


class PermissionDeniedError(StreamVaultError):
    code = "FORBIDDEN"
    status_code = 403


class RangeNotSatisfiableError(StreamVaultError):
    code = "RANGE_NOT_SATISFIABLE"
    status_code = 416
