"""Django storage configuration for the local blob store.

User content lives on local disk under ``BLOB_STORAGE_ROOT``, one
directory per user, readable by the service account only.
"""

from typing import Any, Final

from server.settings.components import BASE_DIR, config

BLOB_STORAGE_ROOT = config(
    'BLOB_STORAGE_ROOT',
    default=str(BASE_DIR.joinpath('uploads')),
)

STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.files.infrastructure.storage.BlobStorage',
        'OPTIONS': {
            'location': BLOB_STORAGE_ROOT,
            'directory_permissions_mode': 0o700,  # Owner-only user dirs
            'file_permissions_mode': 0o600,
        },
    },
}
