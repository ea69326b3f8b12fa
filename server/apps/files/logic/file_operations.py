"""Business logic for file operations.

Upload, list, download and delete of a user's own files. Each
operation keeps storage, the file registry and the quota ledger
consistent: on failure nothing it did stays visible.
"""

import enum
import logging
from typing import Any

from django.conf import settings
from django.core.files.base import File as DjangoFile
from django.db.models import QuerySet

from server.apps.files.exceptions import (
    BlobNotFoundError,
    CorruptedFileError,
    ValidationFailedError,
)
from server.apps.files.infrastructure.storage import (
    BlobStorage,
    UploadContent,
    as_django_file,
    get_blob_storage,
)
from server.apps.files.infrastructure.validation import (
    sanitize_filename,
    validate_upload,
)
from server.apps.files.logic.quota_operations import (
    check_quota,
    lock_quota,
    release_space,
    reserve_space,
)
from server.apps.files.logic.registry_operations import (
    get_owned_file,
    list_owned_files,
    register_file,
    unregister_file,
)
from server.apps.files.logic.transactions import (
    lifecycle_transaction,
    translate_database_errors,
)
from server.apps.files.models import File

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


class UploadStage(enum.StrEnum):
    """Progress of an upload, for failure reporting."""

    STAGED = 'staged'
    VALIDATED = 'validated'
    QUOTA_CHECKED = 'quota_checked'
    REGISTERED = 'registered'
    COMMITTED = 'committed'


def upload_file(
    user: _User,
    filename: str,
    mime_type: str,
    content: UploadContent,
    *,
    storage: BlobStorage | None = None,
) -> File:
    """Store a new file for the user.

    Transaction safety: content is staged on disk first, outside any
    lock. Quota admission, the registry insert and the commit (rename)
    of the staged blob then run in one transaction that holds the
    user's ledger row. If anything fails, the staged or committed blob
    is discarded and the transaction rolls back.

    Args:
        user: Owner of the file.
        filename: Filename as supplied by the client.
        mime_type: Declared content type.
        content: File content.
        storage: Blob store, the configured default when omitted.

    Returns:
        Created File instance.

    Raises:
        ValidationFailedError: If the candidate fails validation.
        QuotaExceededError: If the file does not fit the user's quota.
        StorageIOError: If content cannot be written.
        ConflictError: If a concurrent operation blocked this one.
    """
    storage = storage or get_blob_storage()
    original_name = sanitize_filename(filename)
    upload = as_django_file(content)

    declared_size = _declared_size(upload)
    violations = validate_upload(original_name, mime_type, declared_size or 0)
    if violations:
        logger.warning(
            'Upload rejected for user %s: %s',
            user.username,
            violations,
        )
        raise ValidationFailedError(violations)

    if declared_size is not None:
        # Advisory, avoids writing content that cannot be admitted anyway
        with lifecycle_transaction():
            check_quota(user, declared_size)

    blob_ref = storage.stage(user.id, upload)
    stage = UploadStage.STAGED

    try:
        size_bytes = storage.staged_size(user.id, blob_ref)
        _validate_staged_size(size_bytes)
        stage = UploadStage.VALIDATED

        with lifecycle_transaction():
            reserve_space(user, size_bytes)
            stage = UploadStage.QUOTA_CHECKED
            file_instance = register_file(
                user,
                blob_ref=blob_ref,
                original_name=original_name,
                size_bytes=size_bytes,
                mime_type=mime_type,
            )
            stage = UploadStage.REGISTERED
            storage.commit(user.id, blob_ref)
    except BaseException:
        logger.warning(
            'Upload failed after stage %s for user %s, rolling back',
            stage,
            user.username,
        )
        storage.discard(user.id, blob_ref)
        raise

    logger.info(
        'Upload %s: %s (ID: %d, %d bytes, user: %s)',
        UploadStage.COMMITTED,
        original_name,
        file_instance.id,
        size_bytes,
        user.username,
    )
    return file_instance


def _declared_size(upload: DjangoFile) -> int | None:
    """Size announced by the content, None for unsized streams."""
    try:
        return upload.size
    except (AttributeError, OSError):
        # Non-seekable stream, the staged size decides
        return None


def _validate_staged_size(size_bytes: int) -> None:
    """Re-check the on-disk size, which may differ from the declared one."""
    max_size_bytes = settings.FILES_MAX_UPLOAD_BYTES
    if size_bytes > max_size_bytes:
        raise ValidationFailedError([
            f'File size exceeds {max_size_bytes} bytes limit',
        ])


def list_files(user: _User) -> QuerySet[File]:
    """List the user's own files, most recent upload first.

    Args:
        user: Acting user.

    Returns:
        QuerySet of File objects.
    """
    return list_owned_files(user)


def open_file(
    user: _User,
    file_id: int,
    *,
    storage: BlobStorage | None = None,
) -> tuple[File, DjangoFile]:
    """Open one of the user's files for download.

    Args:
        user: Acting user.
        file_id: ID of the file.
        storage: Blob store, the configured default when omitted.

    Returns:
        The File record and its content, opened for binary reading.
        The caller closes the content.

    Raises:
        NotFoundError: If the user owns no file with this ID.
        CorruptedFileError: If the file is registered but its content
            is missing from storage.
        StorageIOError: If content cannot be read.
    """
    storage = storage or get_blob_storage()

    with translate_database_errors():
        file_instance = get_owned_file(user, file_id)

    try:
        content = storage.open_blob(user.id, file_instance.blob_ref)
    except BlobNotFoundError as error:
        logger.error(
            'File record without content (corrupted): ID=%d, blob=%s',
            file_instance.id,
            file_instance.blob_ref,
        )
        raise CorruptedFileError() from error

    logger.debug('Opened file for download: ID=%d', file_instance.id)
    return file_instance, content


def delete_file(
    user: _User,
    file_id: int,
    *,
    storage: BlobStorage | None = None,
) -> None:
    """Delete one of the user's files.

    The blob is removed first. If that fails for any reason other than
    the blob being already gone, nothing else changes: the ledger must
    never count less than what is on disk. Registry removal and quota
    release then commit together.

    Args:
        user: Acting user.
        file_id: ID of file to delete.
        storage: Blob store, the configured default when omitted.

    Raises:
        NotFoundError: If the user owns no file with this ID.
        StorageIOError: If the blob exists but cannot be deleted.
        ConflictError: If a concurrent operation blocked this one.
    """
    storage = storage or get_blob_storage()

    with lifecycle_transaction():
        # Serializes with uploads and deletes of the same user
        lock_quota(user)
        file_instance = get_owned_file(user, file_id)

        logger.info(
            'Deleting file: ID=%d, blob=%s',
            file_instance.id,
            file_instance.blob_ref,
        )

        try:
            storage.remove(user.id, file_instance.blob_ref)
        except BlobNotFoundError:
            logger.warning(
                'File content not found in storage (already deleted?): %s',
                file_instance.get_storage_name(),
            )

        size_bytes = file_instance.size_bytes
        unregister_file(file_instance)
        release_space(user, size_bytes)
