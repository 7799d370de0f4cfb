"""
Exceptions for the drive-pool account manager.
"""


class DrivePoolError(Exception):
    """Base exception for drive-pool errors."""
    pass


class ConfigError(DrivePoolError):
    """Bad credential bundle or settings file."""
    pass


class AuthError(DrivePoolError):
    """Credentials could not be exchanged for an access token."""
    pass


class CapacityExhaustedError(DrivePoolError):
    """No storage account has enough free space for the write."""

    def __init__(self, size: int, best_free: int = 0):
        self.size = size
        self.best_free = best_free
        super().__init__(
            f"No storage account can satisfy a write of this size. "
            f"Need {size / (1024**3):.2f} GB, "
            f"best available: {best_free / (1024**3):.2f} GB"
        )


class UnknownAccountError(DrivePoolError):
    """Annotation names an account that is not in the pool."""

    def __init__(self, account_name: str):
        self.account_name = account_name
        super().__init__(f"Unknown storage account: {account_name}")


class DecodeError(DrivePoolError):
    """Annotation could not be decoded."""
    pass


class MalformedPlaceholderError(DecodeError):
    """Non-empty annotation that does not describe a real object."""

    def __init__(self, annotation: str, reason: str):
        self.annotation = annotation
        self.reason = reason
        super().__init__(f"Malformed placeholder annotation ({reason}): {annotation[:80]!r}")


class DriveAPIError(DrivePoolError):
    """Remote Drive API call failed."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(f"[{status_code}] {message}" if status_code else message)


class NotFoundError(DriveAPIError):
    """Entry vanished or never existed."""

    def __init__(self, file_id: str):
        self.file_id = file_id
        super().__init__(f"File not found: {file_id}", status_code=404)


class AccountConnectionError(DrivePoolError):
    """Failed to reach an account while scanning the pool."""

    def __init__(self, account_name: str, original_error: Exception):
        self.account_name = account_name
        self.original_error = original_error
        super().__init__(f"Failed to connect to {account_name}: {original_error}")


class DeleteCancelledError(DrivePoolError):
    """Delete was not attempted because the caller cancelled."""

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Delete cancelled before reaching {entry_id}")


class PartialFailureError(DrivePoolError):
    """Recursive delete finished with failures."""

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"Delete of {result.name or result.entry_id} finished with "
            f"{result.failed} failure(s), {result.deleted} deleted"
        )
