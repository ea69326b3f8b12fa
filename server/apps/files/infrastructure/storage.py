"""Custom storage backend for the local blob store."""

import logging
import os
import re
import secrets
import time
from collections.abc import Iterator
from typing import Any, BinaryIO, Final, final, override

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.base import File as DjangoFile
from django.core.files.storage import FileSystemStorage, storages

from server.apps.files.exceptions import (
    BlobNotFoundError,
    ConflictError,
    StorageIOError,
)
from server.apps.files.models import BLOB_REF_LENGTH

_STAGING_DIR: Final = '.staging'
_BLOB_REF_RE: Final = re.compile(
    r'^[0-9a-f]{{{length}}}$'.format(length=BLOB_REF_LENGTH),
)

logger = logging.getLogger(__name__)

UploadContent = bytes | BinaryIO | DjangoFile


def generate_blob_ref() -> str:
    """Generate a random, fixed-length hex blob name.

    Returns:
        Hex string of ``BLOB_REF_LENGTH`` characters.
    """
    return secrets.token_hex(BLOB_REF_LENGTH // 2)


def as_django_file(content: UploadContent) -> DjangoFile:
    """Wrap raw upload content in a Django ``File``.

    Args:
        content: Bytes, a binary file-like object or a Django File.

    Returns:
        Django File exposing ``size`` and ``chunks()``.
    """
    if isinstance(content, DjangoFile):
        return content
    if isinstance(content, bytes):
        return ContentFile(content)
    return DjangoFile(content)


class _DeadlineFile(DjangoFile):
    """File wrapper that aborts chunked reads after a deadline."""

    def __init__(self, content: DjangoFile, deadline: float) -> None:
        super().__init__(content.file, content.name)
        self._deadline = deadline

    @override
    def chunks(self, chunk_size: int | None = None) -> Iterator[bytes]:
        for chunk in super().chunks(chunk_size):
            if time.monotonic() > self._deadline:
                raise StorageIOError('Storage write timed out')
            yield chunk


@final
class BlobStorage(FileSystemStorage):
    """Local filesystem storage for user blobs.

    Layout under the storage root::

        {owner_id}/{blob_ref}            committed content
        {owner_id}/.staging/{blob_ref}   content not yet visible

    Extends Django's FileSystemStorage with:
    - Staging and atomic commit (rename) of uploads
    - Rollback support for failed DB operations
    - Enhanced error logging
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to disk with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If the write fails.
        """
        try:
            logger.debug('Writing file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.debug('Successfully wrote file: %s', saved_name)
        except Exception:
            logger.exception('Failed to write file to storage: %s', name)
            raise
        else:
            return saved_name

    def blob_name(self, owner_id: int, blob_ref: str) -> str:
        """Storage name of a committed blob.

        Args:
            owner_id: Owning user ID.
            blob_ref: Server-generated blob reference.

        Returns:
            Name relative to the storage root.

        Raises:
            ValueError: If blob_ref is not a generated reference.
        """
        return f'{int(owner_id)}/{_checked_blob_ref(blob_ref)}'

    def staged_name(self, owner_id: int, blob_ref: str) -> str:
        """Storage name of a staged blob."""
        return '{owner}/{staging}/{blob}'.format(
            owner=int(owner_id),
            staging=_STAGING_DIR,
            blob=_checked_blob_ref(blob_ref),
        )

    def stage(
        self,
        owner_id: int,
        content: UploadContent,
        *,
        timeout: float | None = None,
    ) -> str:
        """Write content to a staged location not visible to readers.

        Bytes are fully written before this returns. A failed or timed
        out write leaves nothing behind.

        Args:
            owner_id: Owning user ID.
            content: Content to write.
            timeout: Seconds the write may take, settings default if None.

        Returns:
            The generated blob reference.

        Raises:
            StorageIOError: If the write fails or times out.
            ConflictError: If the generated name is already taken.
        """
        if timeout is None:
            timeout = settings.FILES_BLOB_WRITE_TIMEOUT

        blob_ref = generate_blob_ref()
        staged_name = self.staged_name(owner_id, blob_ref)
        deadline = time.monotonic() + timeout

        try:
            saved_name = self.save(
                staged_name,
                _DeadlineFile(as_django_file(content), deadline),
            )
        except OSError as error:
            self._remove_quietly(staged_name)
            raise StorageIOError.from_os_error(error) from error
        except BaseException:
            # Timeouts and cancellations leave nothing behind either
            self._remove_quietly(staged_name)
            raise

        if saved_name != staged_name:
            # Storage picked another name, the blob ref is not unique
            self._remove_quietly(saved_name)
            raise ConflictError('Blob reference collision')

        logger.info('Staged blob %s for user %s', blob_ref, owner_id)
        return blob_ref

    def staged_size(self, owner_id: int, blob_ref: str) -> int:
        """Exact on-disk size of a staged blob.

        Raises:
            StorageIOError: If the staged blob cannot be inspected.
        """
        try:
            return self.size(self.staged_name(owner_id, blob_ref))
        except OSError as error:
            raise StorageIOError.from_os_error(error) from error

    def commit(self, owner_id: int, blob_ref: str) -> None:
        """Make a staged blob visible under its committed name.

        The rename is atomic on a single filesystem.

        Raises:
            StorageIOError: If the rename fails.
        """
        source = self.path(self.staged_name(owner_id, blob_ref))
        destination = self.path(self.blob_name(owner_id, blob_ref))
        try:
            os.replace(source, destination)
        except OSError as error:
            logger.exception('Failed to commit blob %s', blob_ref)
            raise StorageIOError.from_os_error(error) from error
        logger.info('Committed blob %s for user %s', blob_ref, owner_id)

    def discard(self, owner_id: int, blob_ref: str) -> None:
        """Delete a staged or committed blob for transaction rollback.

        This is a best-effort operation - if deletion fails, the error
        is logged but not raised. Leftovers are orphans and get reaped
        by the ``reap_orphan_blobs`` command.

        Args:
            owner_id: Owning user ID.
            blob_ref: Blob reference to roll back.
        """
        logger.warning('Rolling back upload, discarding blob: %s', blob_ref)
        self._remove_quietly(self.staged_name(owner_id, blob_ref))
        self._remove_quietly(self.blob_name(owner_id, blob_ref))

    def remove(self, owner_id: int, blob_ref: str) -> None:
        """Delete a committed blob.

        Args:
            owner_id: Owning user ID.
            blob_ref: Blob reference to delete.

        Raises:
            BlobNotFoundError: If the blob is already absent.
            StorageIOError: If the blob exists but cannot be deleted.
        """
        name = self.blob_name(owner_id, blob_ref)
        try:
            os.remove(self.path(name))
        except FileNotFoundError as error:
            raise BlobNotFoundError() from error
        except OSError as error:
            logger.exception('Failed to delete blob from storage: %s', name)
            raise StorageIOError.from_os_error(error) from error
        logger.info('Deleted blob from storage: %s', name)

    def open_blob(self, owner_id: int, blob_ref: str) -> DjangoFile:
        """Open a committed blob for reading.

        Raises:
            BlobNotFoundError: If the blob is absent.
            StorageIOError: If the blob cannot be opened.
        """
        try:
            return self.open(self.blob_name(owner_id, blob_ref), 'rb')
        except FileNotFoundError as error:
            raise BlobNotFoundError() from error
        except OSError as error:
            raise StorageIOError.from_os_error(error) from error

    def remove_owner_directory(self, owner_id: int) -> None:
        """Remove a user's (empty) blob directory, best-effort.

        Directories still holding blobs are left in place.
        """
        owner_dir = self.path(str(int(owner_id)))
        for directory in (os.path.join(owner_dir, _STAGING_DIR), owner_dir):
            try:
                os.rmdir(directory)
            except FileNotFoundError:
                continue
            except OSError:
                logger.warning(
                    'Blob directory not removed (not empty?): %s',
                    directory,
                )
                return
        logger.info('Removed blob directory for user %s', owner_id)

    def list_owner_ids(self) -> list[int]:
        """IDs of every user with a blob directory."""
        try:
            directories, _ = self.listdir('')
        except FileNotFoundError:
            return []
        return sorted(int(name) for name in directories if name.isdigit())

    def list_blob_refs(self, owner_id: int) -> list[str]:
        """Committed blob references in a user's directory."""
        return self._list_refs(str(int(owner_id)))

    def list_staged_refs(self, owner_id: int) -> list[str]:
        """Staged blob references in a user's directory."""
        return self._list_refs(f'{int(owner_id)}/{_STAGING_DIR}')

    def _list_refs(self, directory: str) -> list[str]:
        try:
            _, filenames = self.listdir(directory)
        except FileNotFoundError:
            return []
        return sorted(name for name in filenames if _BLOB_REF_RE.match(name))

    def _remove_quietly(self, name: str) -> None:
        try:
            os.remove(self.path(name))
        except FileNotFoundError:
            return
        except OSError:
            # Log but don't raise - the file is an orphan now
            logger.exception('Failed to remove blob, orphaned: %s', name)


def _checked_blob_ref(blob_ref: str) -> str:
    if not _BLOB_REF_RE.match(blob_ref):
        raise ValueError(f'Invalid blob reference: {blob_ref!r}')
    return blob_ref


def get_blob_storage() -> BlobStorage:
    """Get the configured default storage backend.

    Returns:
        BlobStorage instance rooted at ``BLOB_STORAGE_ROOT``.
    """
    return storages['default']  # type: ignore[return-value]
