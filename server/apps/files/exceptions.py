"""Exceptions for files app.

Every error surfaced by the file lifecycle carries a stable ``kind``
for machines and a message for humans.
"""

import errno
import logging
from typing import Any, ClassVar

logger = logging.getLogger(__name__)


class FileLifecycleError(Exception):
    """Base class for errors surfaced by file lifecycle operations."""

    kind: ClassVar[str] = 'internal_error'
    default_message: ClassVar[str] = 'Internal error'

    def __init__(self, message: str | None = None) -> None:
        """Initialize FileLifecycleError.

        Args:
            message: Human-readable message, class default when omitted.
        """
        self.message = message or self.default_message
        super().__init__(self.message)

    def extra(self) -> dict[str, Any]:
        """Additional machine-readable fields for the error payload."""
        return {}

    def to_dict(self, *, debug: bool = False) -> dict[str, Any]:
        """Build the user-visible error payload.

        Args:
            debug: Include the chained cause (debug mode only).

        Returns:
            Dictionary with ``kind``, ``message`` and error-specific fields.
        """
        payload = {'kind': self.kind, 'message': self.message, **self.extra()}
        if debug and self.__cause__ is not None:
            payload['cause'] = repr(self.__cause__)
        return payload


class ValidationFailedError(FileLifecycleError):
    """Raised when an upload candidate fails validation."""

    kind = 'validation_failed'

    def __init__(self, violations: list[str]) -> None:
        """Initialize ValidationFailedError.

        Args:
            violations: Every violation found, in check order.
        """
        self.violations = list(violations)
        super().__init__('; '.join(self.violations))

    def extra(self) -> dict[str, Any]:
        return {'violations': self.violations}


class QuotaExceededError(FileLifecycleError):
    """Raised when upload would exceed user's storage quota."""

    kind = 'quota_exceeded'

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = max(0, quota_bytes - used_bytes)
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {quota_bytes}, used: {used_bytes})',
        )

    def extra(self) -> dict[str, Any]:
        return {
            'used': self.used_bytes,
            'limit': self.quota_bytes,
            'required': self.required_bytes,
        }


class NotFoundError(FileLifecycleError):
    """Raised when a file or account does not exist for the acting user."""

    kind = 'not_found'
    default_message = 'Not found'


class BlobNotFoundError(NotFoundError):
    """Raised by the blob store when a blob is already absent."""

    default_message = 'Blob not found in storage'


class ForbiddenError(FileLifecycleError):
    """Raised when the acting user may not perform the operation."""

    kind = 'forbidden'
    default_message = 'Forbidden'


class StorageIOError(FileLifecycleError):
    """Raised when the blob store cannot read, write or delete content."""

    kind = 'storage_io_error'
    default_message = 'Storage error'

    @classmethod
    def from_os_error(cls, error: OSError) -> 'StorageIOError':
        """Build a StorageIOError describing an ``OSError``.

        Args:
            error: Original filesystem error.

        Returns:
            StorageIOError with a message safe to show to users.
        """
        if error.errno == errno.ENOSPC:
            return cls('No space left on device')
        if error.errno in {errno.EACCES, errno.EPERM}:
            return cls('Permission denied by storage')
        return cls()


class ConflictError(FileLifecycleError):
    """Raised when a concurrent modification prevents the operation."""

    kind = 'conflict'
    default_message = 'Concurrent modification, try again'


class InternalError(FileLifecycleError):
    """Raised on unexpected or database-layer failures."""


class CorruptedFileError(InternalError):
    """Raised when a registered file has no content in storage."""

    default_message = 'File content is missing from storage'


def describe_error(error: Exception, *, debug: bool = False) -> dict[str, Any]:
    """Map any exception to a user-visible error payload.

    Unknown exceptions become ``internal_error`` and never expose
    their text unless ``debug`` is set.

    Args:
        error: Exception raised by a lifecycle operation.
        debug: Whether internal details may be shown.

    Returns:
        Error payload with at least ``kind`` and ``message``.
    """
    if isinstance(error, FileLifecycleError):
        return error.to_dict(debug=debug)

    logger.error('Unexpected error surfaced to caller: %r', error)
    payload = InternalError().to_dict()
    if debug:
        payload['cause'] = repr(error)
    return payload
