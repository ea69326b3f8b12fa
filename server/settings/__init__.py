"""
Main settings file for the project.

Settings are split into components with ``django-split-settings``.
Components are included in order, so later ones can rely on names
defined by the earlier ones.
"""

from split_settings.tools import include

include(
    'components/common.py',
    'components/logging.py',
    'components/storages.py',
    'components/files.py',
)
