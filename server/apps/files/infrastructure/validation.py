"""Upload validation utilities for files.

Pure functions: no storage, no database, no side effects.
"""

import re
from collections.abc import Collection
from typing import Final

from django.conf import settings

_FILENAME_MAX_LENGTH: Final = 255
_MAX_NAME_PARTS: Final = 3  # Stem plus at most two extensions

_PATH_PREFIX_RE: Final = re.compile(r'^.*[\\/]')
_UNSAFE_CHARS_RE: Final = re.compile(r'[^A-Za-z0-9._-]')


def sanitize_filename(filename: str) -> str:
    """Make a user-supplied filename safe to keep as metadata.

    Strips any path component, replaces every character outside
    ``[A-Za-z0-9._-]`` with ``_`` and truncates to 255 bytes.

    Args:
        filename: Raw filename from the client (e.g., '../a/b c.pdf').

    Returns:
        Sanitized filename (e.g., 'b_c.pdf'). May be empty.
    """
    basename = _PATH_PREFIX_RE.sub('', filename)
    safe = _UNSAFE_CHARS_RE.sub('_', basename)
    # Only ASCII survives, so characters and bytes coincide
    return safe[:_FILENAME_MAX_LENGTH]


def count_name_parts(filename: str) -> int:
    """Count dot-separated parts of a filename.

    Example: 'photo.jpg.exe' -> 3

    Args:
        filename: Sanitized filename.

    Returns:
        Number of parts, stem included.
    """
    return len(filename.split('.'))


def validate_upload(
    filename: str,
    mime_type: str,
    size_bytes: int,
    *,
    max_size_bytes: int | None = None,
    allowed_mime_types: Collection[str] | None = None,
) -> list[str]:
    """Validate an upload candidate.

    All checks run; every violation is reported, in this order: size,
    content type, filename shape, extension count.

    Args:
        filename: Sanitized filename.
        mime_type: Declared content type.
        size_bytes: Content size in bytes.
        max_size_bytes: Size limit, ``FILES_MAX_UPLOAD_BYTES`` by default.
        allowed_mime_types: Allow-list, ``FILES_ALLOWED_MIME_TYPES`` by default.

    Returns:
        List of violation messages, empty if the candidate is valid.
    """
    if max_size_bytes is None:
        max_size_bytes = settings.FILES_MAX_UPLOAD_BYTES
    if allowed_mime_types is None:
        allowed_mime_types = settings.FILES_ALLOWED_MIME_TYPES

    violations = []

    if size_bytes > max_size_bytes:
        violations.append(
            f'File size exceeds {max_size_bytes} bytes limit',
        )

    if mime_type not in allowed_mime_types:
        violations.append('File type not allowed')

    if not filename or len(filename) > _FILENAME_MAX_LENGTH:
        violations.append('Invalid filename')

    if count_name_parts(filename) > _MAX_NAME_PARTS:
        violations.append('Too many file extensions')

    return violations
