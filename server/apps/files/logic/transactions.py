"""Transactional scope shared by file lifecycle operations."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Final

from django.db import (
    DatabaseError,
    IntegrityError,
    OperationalError,
    transaction,
)

from server.apps.files.exceptions import ConflictError, InternalError

# Lock contention messages: SQLite busy/locked, row-lock backends
_LOCK_CONTENTION_MARKERS: Final = (
    'locked',
    'lock timeout',
    'could not obtain lock',
    'deadlock',
)

logger = logging.getLogger(__name__)


def is_lock_contention(error: OperationalError) -> bool:
    """Tell whether an ``OperationalError`` means another request holds a lock.

    Args:
        error: Error raised by the database backend.

    Returns:
        True for lock waits that ran out and deadlocks.
    """
    message = str(error).lower()
    return any(marker in message for marker in _LOCK_CONTENTION_MARKERS)


@contextmanager
def translate_database_errors() -> Iterator[None]:
    """Surface database failures as lifecycle errors.

    Lock waits that run out and integrity violations mean another
    request won the race: ``ConflictError``. Anything else from the
    database layer (full disk, I/O errors, missing tables) is an
    ``InternalError``.

    Raises:
        ConflictError: On lock contention or ``IntegrityError``.
        InternalError: On any other ``DatabaseError``.
    """
    try:
        yield
    except OperationalError as error:
        if not is_lock_contention(error):
            logger.exception('Database failure')
            raise InternalError() from error
        logger.warning('Database lock contention: %s', error)
        raise ConflictError() from error
    except IntegrityError as error:
        logger.warning('Database conflict: %s', error)
        raise ConflictError() from error
    except DatabaseError as error:
        logger.exception('Database failure')
        raise InternalError() from error


@contextmanager
def lifecycle_transaction() -> Iterator[None]:
    """Run the block in one database transaction.

    The transaction commits when the block exits normally and rolls
    back on any exception, which is then re-raised (database errors
    translated by ``translate_database_errors``).
    """
    with translate_database_errors():
        with transaction.atomic():
            yield
