"""Management command to rebuild storage usage from file records."""

from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.db.models import Sum

from server.apps.files.logic.quota_operations import (
    get_or_create_quota,
    recalculate_usage,
)

User = get_user_model()


class Command(BaseCommand):
    """Recompute every user's used storage from their files."""

    help = 'Recalculate storage usage of every user from file records'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report drifted ledgers without fixing them',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the recalculation command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        drifted = 0

        users = User.objects.annotate(
            files_total=Sum('files__size_bytes'),
        ).order_by('id')

        for user in users:
            actual = user.files_total or 0
            recorded = get_or_create_quota(user).used_bytes
            if actual == recorded:
                continue

            drifted += 1
            self.stdout.write(
                f'{user.username}: recorded {recorded}, actual {actual}',
            )
            if not dry_run:
                recalculate_usage(user)

        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Found {drifted} drifted quotas'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(f'Fixed {drifted} drifted quotas'),
            )
