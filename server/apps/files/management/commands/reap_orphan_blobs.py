"""Management command to reap blobs no file record points to."""

import logging
from datetime import datetime, timedelta
from typing import Any

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from server.apps.files.exceptions import BlobNotFoundError, StorageIOError
from server.apps.files.infrastructure.storage import (
    BlobStorage,
    get_blob_storage,
)
from server.apps.files.models import File

User = get_user_model()

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete orphaned and abandoned blobs from the blob store.

    Orphans are committed blobs without a File record, left behind by a
    best-effort account deletion or a failed rollback. Abandoned blobs
    are staged uploads that never committed. Only blobs older than
    ``FILES_STAGING_GRACE_SECONDS`` are touched: younger ones may belong
    to an upload still in flight.
    """

    help = 'Delete blobs that no file record references'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reaping command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        storage = get_blob_storage()
        cutoff = timezone.now() - timedelta(
            seconds=settings.FILES_STAGING_GRACE_SECONDS,
        )

        count = 0
        failed = 0

        for owner_id in storage.list_owner_ids():
            known = set(
                File.objects.filter(user_id=owner_id).values_list(
                    'blob_ref',
                    flat=True,
                ),
            )

            for blob_ref in storage.list_blob_refs(owner_id):
                name = storage.blob_name(owner_id, blob_ref)
                if blob_ref in known or not _is_stale(storage, name, cutoff):
                    continue
                if dry_run:
                    self.stdout.write(f'Would delete orphan: {name}')
                    count += 1
                    continue
                try:
                    storage.remove(owner_id, blob_ref)
                except BlobNotFoundError:
                    continue
                except StorageIOError as exc:
                    self.stderr.write(f'Failed to delete {name}: {exc}')
                    failed += 1
                    continue
                logger.info('Reaped orphan blob: %s', name)
                count += 1

            for blob_ref in storage.list_staged_refs(owner_id):
                name = storage.staged_name(owner_id, blob_ref)
                if not _is_stale(storage, name, cutoff):
                    continue
                if dry_run:
                    self.stdout.write(f'Would delete staged: {name}')
                else:
                    storage.discard(owner_id, blob_ref)
                count += 1

            account_gone = not User.objects.filter(id=owner_id).exists()
            if not dry_run and account_gone:
                # Dropped only once emptied
                storage.remove_owner_directory(owner_id)

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would reap {count} blobs'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Reaped {count} blobs, {failed} failed',
                ),
            )


def _is_stale(storage: BlobStorage, name: str, cutoff: datetime) -> bool:
    try:
        return storage.get_modified_time(name) <= cutoff
    except FileNotFoundError:
        return False
