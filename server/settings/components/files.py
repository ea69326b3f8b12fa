"""File lifecycle settings: upload limits, allow-list and quota tiers."""

from decouple import Csv

from server.settings.components import config

_MIB = 1024 * 1024
_GIB = 1024 * _MIB

FILES_MAX_UPLOAD_BYTES = config(
    'FILES_MAX_UPLOAD_BYTES',
    cast=int,
    default=100 * _MIB,
)

FILES_ALLOWED_MIME_TYPES = config(
    'FILES_ALLOWED_MIME_TYPES',
    cast=Csv(post_process=tuple),
    default=','.join((
        # Images
        'image/jpeg',
        'image/jpg',
        'image/png',
        'image/gif',
        'image/webp',
        'image/svg+xml',
        # Documents
        'application/pdf',
        'application/msword',
        'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        'application/vnd.ms-excel',
        'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        'application/vnd.ms-powerpoint',
        'application/vnd.openxmlformats-officedocument.presentationml.presentation',
        'text/plain',
        'text/csv',
        # Archives
        'application/zip',
        'application/x-rar-compressed',
        'application/x-7z-compressed',
        # Audio
        'audio/mpeg',
        'audio/wav',
        'audio/ogg',
        'audio/mp4',
        # Video
        'video/mp4',
        'video/mpeg',
        'video/quicktime',
        'video/x-msvideo',
        'video/webm',
    )),
)

# Quota tiers
FILES_FREE_QUOTA_BYTES = config(
    'FILES_FREE_QUOTA_BYTES',
    cast=int,
    default=5 * _GIB,
)
FILES_PRO_QUOTA_BYTES = config(
    'FILES_PRO_QUOTA_BYTES',
    cast=int,
    default=35 * _GIB,
)
FILES_ADMIN_QUOTA_BYTES = config(
    'FILES_ADMIN_QUOTA_BYTES',
    cast=int,
    default=100 * _GIB,
)

# Seconds a single staged write may take before it is abandoned
FILES_BLOB_WRITE_TIMEOUT = config(
    'FILES_BLOB_WRITE_TIMEOUT',
    cast=float,
    default=300,
)

# Staged blobs older than this are treated as abandoned uploads
FILES_STAGING_GRACE_SECONDS = config(
    'FILES_STAGING_GRACE_SECONDS',
    cast=int,
    default=24 * 60 * 60,
)
