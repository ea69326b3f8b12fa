"""Shared fixtures for files app tests."""

from pathlib import Path

import pytest
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile

from server.apps.files.infrastructure.storage import BlobStorage
from server.apps.files.models import UserQuota

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def admin_user(db):
    """Create administrator account.

    Returns:
        Staff user instance.
    """
    return User.objects.create_user(
        username='admin',
        password='testpass123',
        email='admin@example.com',
        is_staff=True,
    )


@pytest.fixture
def blob_storage(tmp_path):
    """Blob storage rooted in a temporary directory.

    Returns:
        BlobStorage instance.
    """
    return BlobStorage(
        location=tmp_path / 'blobs',
        directory_permissions_mode=0o700,
        file_permissions_mode=0o600,
    )


@pytest.fixture
def default_blob_storage(settings, tmp_path):
    """Point the configured default storage to a temporary directory.

    Returns:
        Root directory of the default storage.
    """
    root = tmp_path / 'default-blobs'
    settings.STORAGES = {
        **settings.STORAGES,
        'default': {
            'BACKEND': 'server.apps.files.infrastructure.storage.BlobStorage',
            'OPTIONS': {'location': str(root)},
        },
    }
    return root


@pytest.fixture
def user_quota(user):
    """Ledger row for the test user with a small limit.

    Returns:
        UserQuota with 10 000 bytes limit and nothing used.
    """
    return UserQuota.objects.create(
        user=user,
        quota_bytes=10_000,
        used_bytes=0,
    )


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def stored_files():
    """List every file under a blob storage root.

    Returns:
        Function mapping a storage to sorted relative paths.
    """
    def factory(storage):
        root = Path(storage.path(''))
        if not root.exists():
            return []
        return sorted(
            str(path.relative_to(root))
            for path in root.rglob('*')
            if path.is_file()
        )
    return factory
