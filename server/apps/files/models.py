"""Database models for files app."""

from typing import Final, final, override

from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()

# Constants for field max lengths
_MIME_TYPE_MAX_LENGTH: Final = 255
_ORIGINAL_NAME_MAX_LENGTH: Final = 255
BLOB_REF_LENGTH: Final = 32  # 16 random bytes, hex encoded


@final
class File(models.Model):
    """File stored in the local blob store.

    Each file belongs to a user. Content lives at
    ``{user_id}/{blob_ref}`` in storage; ``blob_ref`` is random and never
    derived from the user-supplied name, which is kept as metadata only.

    Rows are created only by a committed upload and removed only by a
    committed delete. They are never edited in place.
    """

    # Owner relationship
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    blob_ref = models.CharField(
        max_length=BLOB_REF_LENGTH,
        unique=True,
        help_text='Opaque blob name inside the owner directory',
    )

    original_name = models.CharField(
        max_length=_ORIGINAL_NAME_MAX_LENGTH,
        help_text='Sanitized user-supplied filename',
    )

    size_bytes = models.BigIntegerField(
        help_text='Exact on-disk size in bytes',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        help_text='Declared content type, checked against the allow-list',
    )

    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'File'  # type: ignore[mutable-override]
        verbose_name_plural = 'Files'  # type: ignore[mutable-override]
        ordering = ['-uploaded_at', '-id']

        indexes = [
            # Optimize recent files queries
            models.Index(
                fields=['user', '-uploaded_at'],
                name='files_user_recent_idx',
            ),
        ]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='files_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}:{self.original_name}'

    def get_storage_name(self) -> str:
        """Storage name of the content, relative to the blob root.

        Example: user 123, blob 'ab12...' -> '123/ab12...'

        Returns:
            Path of the committed blob inside storage.
        """
        return f'{self.user_id}/{self.blob_ref}'

    def to_summary(self) -> dict[str, object]:
        """Public description of the file, as returned to its owner."""
        return {
            'id': self.id,
            'name': self.original_name,
            'size': self.size_bytes,
            'mimetype': self.mime_type,
            'uploaded_at': self.uploaded_at,
        }


# Default quota: 5 GB in bytes (free tier)
_DEFAULT_QUOTA_BYTES: Final = 5 * 1024 * 1024 * 1024


@final
class UserQuota(models.Model):
    """Storage ledger for a user.

    Tracks the user's storage limit and current usage. ``used_bytes``
    always equals the sum of ``size_bytes`` over the user's files once
    a transaction commits.

    When over quota (after a Pro downgrade), users can still read and
    delete files, but uploads are blocked until usage falls below the
    limit.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=_DEFAULT_QUOTA_BYTES,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    is_pro = models.BooleanField(
        default=False,
        help_text='Pro subscription (larger quota tier)',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gt=0),
                name='quota_bytes_positive',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.quota_bytes - self.used_bytes
        return max(0, available)
