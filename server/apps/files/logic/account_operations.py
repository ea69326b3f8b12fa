"""Business logic for account-level operations.

Storage overview for users, and administrator actions: cascade
deletion of an account with its files, administrator creation, Pro
tier toggle, and platform-wide views.
"""

import logging
from dataclasses import dataclass
from typing import Any, final

from django.contrib.auth import get_user_model
from django.db.models import QuerySet

from server.apps.files.exceptions import (
    BlobNotFoundError,
    ForbiddenError,
    NotFoundError,
    StorageIOError,
    ValidationFailedError,
)
from server.apps.files.infrastructure.storage import (
    BlobStorage,
    get_blob_storage,
)
from server.apps.files.logic.quota_operations import (
    default_quota_bytes,
    get_or_create_quota,
    lock_quota,
    set_pro_tier,
)
from server.apps.files.logic.registry_operations import (
    list_owned_files,
    unregister_owned_files,
)
from server.apps.files.logic.transactions import (
    lifecycle_transaction,
    translate_database_errors,
)
from server.apps.files.models import File, UserQuota

User = get_user_model()

# User type for Django's dynamic user model
_User = Any

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class StorageStats:
    """Storage overview of one account."""

    used_bytes: int
    quota_bytes: int
    available_bytes: int
    percentage: float
    is_pro: bool


@final
@dataclass(frozen=True)
class AccountSummary:
    """One row of the administrator account listing."""

    user_id: int
    username: str
    email: str
    is_admin: bool
    is_pro: bool
    used_bytes: int
    quota_bytes: int


@final
@dataclass(frozen=True)
class PlatformStats:
    """Platform-wide totals for administrators."""

    total_users: int
    free_users: int
    pro_users: int
    total_files: int
    total_used_bytes: int
    total_quota_bytes: int


@final
@dataclass(frozen=True)
class AccountDeletion:
    """Outcome of a cascade account deletion."""

    user_id: int
    files_deleted: int
    orphaned_blobs: int


def require_admin(user: _User) -> None:
    """Reject non-administrators.

    Raises:
        ForbiddenError: If the user is not an administrator.
    """
    if not user.is_staff:
        logger.warning('Admin action denied for user %s', user.username)
        raise ForbiddenError('Administrator access required')


def get_storage_stats(user: _User) -> StorageStats:
    """Describe the user's own storage usage.

    Args:
        user: Acting user.

    Returns:
        StorageStats with usage as a percentage of the limit.
    """
    with translate_database_errors():
        quota = get_or_create_quota(user)
    return StorageStats(
        used_bytes=quota.used_bytes,
        quota_bytes=quota.quota_bytes,
        available_bytes=quota.available_bytes(),
        percentage=round(quota.used_bytes / quota.quota_bytes * 100, 2),
        is_pro=quota.is_pro,
    )


def delete_user(
    admin: _User,
    target_user_id: int,
    *,
    storage: BlobStorage | None = None,
) -> AccountDeletion:
    """Delete an account together with all its files.

    Blobs are removed best-effort: a blob that cannot be removed is
    logged and left as an orphan, and the deletion goes on. Then file
    records, the ledger and the user row are deleted in one
    transaction.

    Args:
        admin: Acting administrator.
        target_user_id: ID of the account to delete.
        storage: Blob store, the configured default when omitted.

    Returns:
        AccountDeletion describing what was removed.

    Raises:
        ForbiddenError: If the actor is not an admin, or the target is
            the actor or another administrator.
        NotFoundError: If the target account does not exist.
    """
    storage = storage or get_blob_storage()
    require_admin(admin)
    if target_user_id == admin.id:
        raise ForbiddenError('Cannot delete your own account')

    target = _get_account(target_user_id)
    if target.is_staff:
        raise ForbiddenError('Cannot delete an administrator account')

    logger.info(
        'Deleting user %s (ID: %d) on behalf of %s',
        target.username,
        target.id,
        admin.username,
    )

    with translate_database_errors():
        owned_files = list(list_owned_files(target))
    orphaned = _remove_blobs(storage, target.id, owned_files)

    with lifecycle_transaction():
        removed = unregister_owned_files(target)
        target.delete()

    storage.remove_owner_directory(target_user_id)

    logger.info(
        'User %d deleted: %d files, %d orphaned blobs',
        target_user_id,
        len(removed),
        orphaned,
    )
    return AccountDeletion(
        user_id=target_user_id,
        files_deleted=len(removed),
        orphaned_blobs=orphaned,
    )


def _remove_blobs(
    storage: BlobStorage,
    owner_id: int,
    owned_files: list[File],
) -> int:
    """Remove the blobs of the given files, best-effort.

    Returns:
        Number of blobs that could not be removed.
    """
    orphaned = 0
    for file_instance in owned_files:
        try:
            storage.remove(owner_id, file_instance.blob_ref)
        except BlobNotFoundError:
            logger.warning(
                'File content not found in storage (already deleted?): %s',
                file_instance.get_storage_name(),
            )
        except StorageIOError:
            # Log but don't abort - account removal wins, reaper cleans up
            logger.exception(
                'Failed to delete blob during account deletion (orphaned): %s',
                file_instance.get_storage_name(),
            )
            orphaned += 1
    return orphaned


def create_admin(
    admin: _User,
    username: str,
    email: str,
    password: str,
) -> _User:
    """Create another administrator account.

    The new account gets the administrator storage tier right away.

    Args:
        admin: Acting administrator.
        username: Login of the new account.
        email: Email of the new account.
        password: Initial password, stored hashed.

    Returns:
        Created user.

    Raises:
        ForbiddenError: If the actor is not an admin.
        ValidationFailedError: If a field is missing or already taken.
        ConflictError: If a concurrent request took the username.
    """
    require_admin(admin)
    if not (username and email and password):
        raise ValidationFailedError(['All fields are required'])

    with lifecycle_transaction():
        violations = []
        if User.objects.filter(email__iexact=email).exists():
            violations.append('Email already exists')
        if User.objects.filter(username=username).exists():
            violations.append('Username already exists')
        if violations:
            raise ValidationFailedError(violations)

        new_admin = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=True,
        )
        quota = get_or_create_quota(new_admin)

    logger.info(
        'Administrator %s created by %s (limit: %d bytes)',
        new_admin.username,
        admin.username,
        quota.quota_bytes,
    )
    return new_admin


def toggle_pro(admin: _User, target_user_id: int) -> UserQuota:
    """Switch an account between the free and Pro tiers.

    Args:
        admin: Acting administrator.
        target_user_id: ID of the account to update.

    Returns:
        Updated UserQuota (``is_pro`` and new ``quota_bytes``).

    Raises:
        ForbiddenError: If the actor is not an admin or the target is
            an administrator.
        NotFoundError: If the target account does not exist.
    """
    require_admin(admin)
    target = _get_account(target_user_id)
    if target.is_staff:
        raise ForbiddenError('Cannot change the tier of an administrator')

    with lifecycle_transaction():
        quota = lock_quota(target)
        return set_pro_tier(target, not quota.is_pro)


def list_accounts(admin: _User) -> list[AccountSummary]:
    """List every account with its storage ledger, newest first.

    Args:
        admin: Acting administrator.

    Returns:
        List of AccountSummary.

    Raises:
        ForbiddenError: If the actor is not an admin.
    """
    require_admin(admin)

    with translate_database_errors():
        users = list(User.objects.order_by('-date_joined', '-id'))
        quotas = UserQuota.objects.in_bulk([user.id for user in users])

    summaries = []
    for user in users:
        quota = quotas.get(user.id)
        limit = quota.quota_bytes if quota else default_quota_bytes(user)
        summaries.append(AccountSummary(
            user_id=user.id,
            username=user.username,
            email=user.email,
            is_admin=user.is_staff,
            is_pro=quota.is_pro if quota else False,
            used_bytes=quota.used_bytes if quota else 0,
            quota_bytes=limit,
        ))
    return summaries


def get_platform_stats(admin: _User) -> PlatformStats:
    """Compute platform-wide totals.

    Args:
        admin: Acting administrator.

    Returns:
        PlatformStats.

    Raises:
        ForbiddenError: If the actor is not an admin.
    """
    accounts = list_accounts(admin)
    with translate_database_errors():
        total_files = File.objects.count()

    pro_users = sum(1 for account in accounts if account.is_pro)
    return PlatformStats(
        total_users=len(accounts),
        free_users=len(accounts) - pro_users,
        pro_users=pro_users,
        total_files=total_files,
        total_used_bytes=sum(account.used_bytes for account in accounts),
        total_quota_bytes=sum(account.quota_bytes for account in accounts),
    )


def list_user_files(admin: _User, target_user_id: int) -> QuerySet[File]:
    """List another account's files, most recent first.

    Args:
        admin: Acting administrator.
        target_user_id: ID of the account.

    Returns:
        QuerySet of File objects.

    Raises:
        ForbiddenError: If the actor is not an admin.
        NotFoundError: If the target account does not exist.
    """
    require_admin(admin)
    return list_owned_files(_get_account(target_user_id))


def _get_account(user_id: int) -> _User:
    with translate_database_errors():
        try:
            return User.objects.get(id=user_id)
        except User.DoesNotExist as error:
            raise NotFoundError('User not found') from error
