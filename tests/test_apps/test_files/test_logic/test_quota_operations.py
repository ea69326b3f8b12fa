"""Tests for quota operations business logic."""

import pytest
from django.db import transaction

from server.apps.files.exceptions import QuotaExceededError
from server.apps.files.logic.quota_operations import (
    check_quota,
    default_quota_bytes,
    get_or_create_quota,
    lock_quota,
    recalculate_usage,
    release_space,
    reserve_space,
    set_pro_tier,
)
from server.apps.files.models import File, UserQuota

_GIB = 1024 * 1024 * 1024


@pytest.mark.django_db
def test_get_or_create_quota_creates_new(user):
    """Test get_or_create_quota creates quota when none exists."""
    assert not UserQuota.objects.filter(user=user).exists()

    quota = get_or_create_quota(user)

    assert quota.user == user
    assert quota.quota_bytes == 5 * _GIB  # Free tier default
    assert quota.used_bytes == 0
    assert not quota.is_pro


@pytest.mark.django_db
def test_get_or_create_quota_admin_tier(admin_user):
    """Test administrators get the admin tier on creation."""
    quota = get_or_create_quota(admin_user)

    assert quota.quota_bytes == 100 * _GIB
    assert default_quota_bytes(admin_user) == 100 * _GIB


@pytest.mark.django_db
def test_get_or_create_quota_returns_existing(user):
    """Test get_or_create_quota returns existing quota."""
    existing_quota = UserQuota.objects.create(
        user=user,
        quota_bytes=5000,
        used_bytes=1000,
    )

    quota = get_or_create_quota(user)

    assert quota.pk == existing_quota.pk
    assert quota.quota_bytes == 5000
    assert quota.used_bytes == 1000


@pytest.mark.django_db
def test_lock_quota_creates_missing_row(user):
    """Test lock_quota works for users without a ledger yet."""
    with transaction.atomic():
        quota = lock_quota(user)

    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_check_quota_passes_when_space_available(user):
    """Test check_quota doesn't raise when space is available."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=400,
    )

    # Should not raise
    check_quota(user, 500)


@pytest.mark.django_db
def test_check_quota_raises_when_exceeded(user):
    """Test check_quota raises QuotaExceededError when exceeded."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=400,
    )

    with pytest.raises(QuotaExceededError) as exc_info:
        check_quota(user, 700)

    assert exc_info.value.quota_bytes == 1000
    assert exc_info.value.used_bytes == 400
    assert exc_info.value.required_bytes == 700


@pytest.mark.django_db
def test_reserve_space(user):
    """Test reserve_space admits and charges the upload."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=100,
    )

    quota = reserve_space(user, 50)

    assert quota.used_bytes == 150
    assert UserQuota.objects.get(user=user).used_bytes == 150


@pytest.mark.django_db
def test_reserve_space_at_exact_limit(user):
    """Test reserve_space admits an upload filling the quota exactly."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=400,
    )

    reserve_space(user, 600)

    assert UserQuota.objects.get(user=user).used_bytes == 1000


@pytest.mark.django_db
def test_reserve_space_rejected_leaves_usage(user):
    """Test a rejected reservation does not change usage."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=400,
    )

    with pytest.raises(QuotaExceededError):
        reserve_space(user, 601)

    assert UserQuota.objects.get(user=user).used_bytes == 400


@pytest.mark.django_db
def test_reserve_space_rolls_back_with_caller(user):
    """Test the reservation is undone when the caller's transaction fails."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=0,
    )

    with pytest.raises(RuntimeError):
        with transaction.atomic():
            reserve_space(user, 500)
            raise RuntimeError('registry insert failed')

    assert UserQuota.objects.get(user=user).used_bytes == 0


@pytest.mark.django_db
def test_release_space(user):
    """Test release_space decreases used_bytes."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=100,
    )

    release_space(user, 50)

    quota = UserQuota.objects.get(user=user)
    assert quota.used_bytes == 50


@pytest.mark.django_db
def test_release_space_prevents_negative(user):
    """Test release_space clamps to 0."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=100,
    )

    release_space(user, 200)  # More than current usage

    quota = UserQuota.objects.get(user=user)
    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_release_space_no_quota(user):
    """Test release_space does nothing if no quota exists."""
    assert not UserQuota.objects.filter(user=user).exists()

    # Should not raise
    release_space(user, 100)

    # Quota should not be created
    assert not UserQuota.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_set_pro_tier_upgrade_and_downgrade(user):
    """Test the limit follows the tier and usage is untouched."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=5 * _GIB,
        used_bytes=6 * _GIB,
    )

    quota = set_pro_tier(user, is_pro=True)

    assert quota.is_pro
    assert quota.quota_bytes == 35 * _GIB
    assert quota.used_bytes == 6 * _GIB

    quota = set_pro_tier(user, is_pro=False)

    assert not quota.is_pro
    assert quota.quota_bytes == 5 * _GIB
    assert quota.used_bytes == 6 * _GIB  # Over quota, uploads blocked


@pytest.mark.django_db
def test_recalculate_usage_no_files(user):
    """Test recalculate_usage with no files."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=500,  # Incorrect value
    )

    result = recalculate_usage(user)

    assert result == 0
    quota = UserQuota.objects.get(user=user)
    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_recalculate_usage_with_files(user):
    """Test recalculate_usage with existing files."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=10000,
        used_bytes=0,  # Incorrect value
    )

    # Create some files
    File.objects.create(
        user=user,
        blob_ref='a' * 32,
        original_name='file1.txt',
        size_bytes=100,
        mime_type='text/plain',
    )
    File.objects.create(
        user=user,
        blob_ref='b' * 32,
        original_name='file2.txt',
        size_bytes=200,
        mime_type='text/plain',
    )

    result = recalculate_usage(user)

    assert result == 300
    quota = UserQuota.objects.get(user=user)
    assert quota.used_bytes == 300


@pytest.mark.django_db
def test_quota_exceeded_error_message(user):
    """Test QuotaExceededError message format."""
    UserQuota.objects.create(
        user=user,
        quota_bytes=1000,
        used_bytes=900,
    )

    with pytest.raises(QuotaExceededError) as exc_info:
        check_quota(user, 200)

    error = exc_info.value
    assert 'need 200 bytes' in str(error)
    assert 'only 100 bytes available' in str(error)
    assert 'quota: 1000' in str(error)
    assert 'used: 900' in str(error)
