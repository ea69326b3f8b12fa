"""Business logic for storage quota operations."""

import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import Sum  # noqa: WPS347

from server.apps.files.exceptions import QuotaExceededError
from server.apps.files.models import File, UserQuota

# User type for Django's dynamic user model
_User = Any

# Field name constant to avoid string literal over-use
_USED_BYTES_FIELD = 'used_bytes'  # noqa: WPS226

logger = logging.getLogger(__name__)


def default_quota_bytes(user: _User) -> int:
    """Initial storage limit for a user's ledger row.

    Args:
        user: Account owning the ledger.

    Returns:
        Admin tier for staff, free tier otherwise.
    """
    if user.is_staff:
        return settings.FILES_ADMIN_QUOTA_BYTES
    return settings.FILES_FREE_QUOTA_BYTES


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(
        user=user,
        defaults={'quota_bytes': default_quota_bytes(user)},
    )
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.username,
            quota.quota_bytes,
        )
    return quota


def lock_quota(user: _User) -> UserQuota:
    """Fetch the user's ledger row, locked until the transaction ends.

    Must be called inside ``transaction.atomic()``. Every quota mutation
    for the same user waits here, which serializes admission per user.

    Args:
        user: User whose ledger to lock.

    Returns:
        Locked UserQuota instance.
    """
    get_or_create_quota(user)
    return UserQuota.objects.select_for_update().get(user=user)


def check_quota(user: _User, size_bytes: int) -> None:
    """Check if user has enough quota for an upload.

    Creates quota on-demand if it doesn't exist. This check is advisory:
    it reads without a lock, so only ``reserve_space`` admits an upload.

    Args:
        user: User to check quota for.
        size_bytes: Size of the upload in bytes.

    Raises:
        QuotaExceededError: If upload would exceed quota.
    """
    _ensure_space(get_or_create_quota(user), size_bytes)


def reserve_space(user: _User, size_bytes: int) -> UserQuota:
    """Admit an upload and charge it to the user's ledger.

    Check and increment happen on the locked row, inside the caller's
    transaction: a rollback there undoes the reservation too.

    Args:
        user: User to charge.
        size_bytes: Bytes to reserve.

    Returns:
        Updated UserQuota instance.

    Raises:
        QuotaExceededError: If the upload does not fit. Nothing changes.
    """
    with transaction.atomic():
        quota = lock_quota(user)
        _ensure_space(quota, size_bytes)
        quota.used_bytes += size_bytes
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Reserved %d bytes for user %s (used: %d/%d)',
        size_bytes,
        user.username,
        quota.used_bytes,
        quota.quota_bytes,
    )
    return quota


def release_space(user: _User, size_bytes: int) -> None:
    """Atomically decrement user's storage usage.

    Prevents negative values by clamping to 0.

    Args:
        user: User to decrement usage for.
        size_bytes: Bytes to subtract from usage.
    """
    with transaction.atomic():
        # Get current quota to check if decrement would go negative
        try:
            quota = UserQuota.objects.select_for_update().get(user=user)
        except UserQuota.DoesNotExist:
            # No quota exists, nothing to decrement
            logger.debug(
                'No quota exists for user %s, skipping decrement',
                user.username,
            )
            return

        # Calculate new usage, clamping to 0
        new_usage = max(0, quota.used_bytes - size_bytes)
        if new_usage != quota.used_bytes - size_bytes:
            logger.warning(
                'Usage drift for user %s: releasing %d of %d bytes used',
                user.username,
                size_bytes,
                quota.used_bytes,
            )
        quota.used_bytes = new_usage
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Released %d bytes for user %s (new: %d)',
        size_bytes,
        user.username,
        new_usage,
    )


def set_pro_tier(user: _User, is_pro: bool) -> UserQuota:
    """Switch the user between the free and Pro storage tiers.

    Usage is left untouched, even if it now exceeds the new limit.

    Args:
        user: User to update.
        is_pro: Whether the Pro tier applies.

    Returns:
        Updated UserQuota instance.
    """
    if is_pro:
        new_limit = settings.FILES_PRO_QUOTA_BYTES
    else:
        new_limit = settings.FILES_FREE_QUOTA_BYTES

    with transaction.atomic():
        quota = lock_quota(user)
        quota.is_pro = is_pro
        quota.quota_bytes = new_limit
        quota.save(update_fields=['is_pro', 'quota_bytes'])

    logger.info(
        'Set Pro tier for user %s to %s (limit: %d bytes)',
        user.username,
        is_pro,
        new_limit,
    )
    return quota


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from actual files.

    This is useful for fixing inconsistencies after a crash.

    Args:
        user: User to recalculate usage for.

    Returns:
        New calculated usage in bytes.
    """
    with transaction.atomic():
        quota = lock_quota(user)
        total = File.objects.filter(user=user).aggregate(
            total=Sum('size_bytes'),
        )['total'] or 0
        old_usage = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        old_usage,
        total,
    )

    return total


def _ensure_space(quota: UserQuota, size_bytes: int) -> None:
    if not quota.has_space_for(size_bytes):
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            quota.user.username,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=quota.used_bytes,
            required_bytes=size_bytes,
        )
