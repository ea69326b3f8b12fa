"""Business logic for the file registry (database records of files).

Every read and delete takes the acting owner: a file id alone never
locates a file.
"""

import logging
from typing import Any

from django.db.models import QuerySet

from server.apps.files.exceptions import NotFoundError
from server.apps.files.models import File

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


def register_file(  # noqa: WPS211
    user: _User,
    blob_ref: str,
    original_name: str,
    size_bytes: int,
    mime_type: str,
) -> File:
    """Insert the record of a committed upload.

    Args:
        user: Owner of the file.
        blob_ref: Blob reference in storage.
        original_name: Sanitized user-supplied filename.
        size_bytes: Exact on-disk size.
        mime_type: Declared content type.

    Returns:
        Created File instance.
    """
    file_instance = File.objects.create(
        user=user,
        blob_ref=blob_ref,
        original_name=original_name,
        size_bytes=size_bytes,
        mime_type=mime_type,
    )
    logger.info(
        'File record created in database: %s (ID: %d, user: %s)',
        original_name,
        file_instance.id,
        user.username,
    )
    return file_instance


def get_owned_file(user: _User, file_id: int) -> File:
    """Get a file owned by the user.

    Files of other users are reported exactly like missing ones.

    Args:
        user: Acting user.
        file_id: ID of the file.

    Returns:
        File instance.

    Raises:
        NotFoundError: If no file with this ID belongs to the user.
    """
    try:
        return File.objects.select_related('user').get(id=file_id, user=user)
    except File.DoesNotExist as error:
        logger.info('File not found: ID=%s, user=%s', file_id, user.username)
        raise NotFoundError('File not found') from error


def list_owned_files(user: _User) -> QuerySet[File]:
    """List the user's files, most recent upload first.

    Args:
        user: Owner of files.

    Returns:
        QuerySet of File objects.
    """
    return File.objects.filter(user=user).order_by('-uploaded_at', '-id')


def unregister_file(file_instance: File) -> None:
    """Delete a file record.

    Args:
        file_instance: File to delete.
    """
    file_id = file_instance.id
    file_instance.delete()
    logger.info('File record deleted from database: ID=%d', file_id)


def unregister_owned_files(user: _User) -> list[File]:
    """Delete every file record of a user.

    Args:
        user: Owner of files.

    Returns:
        The removed File instances, for blob cleanup or reporting.
    """
    removed = list(list_owned_files(user))
    File.objects.filter(id__in=[file.id for file in removed]).delete()
    logger.info(
        'Deleted %d file records of user %s',
        len(removed),
        user.username,
    )
    return removed
