"""Django settings shared by every environment."""

from server.settings.components import BASE_DIR, config

SECRET_KEY = config('DJANGO_SECRET_KEY', default='django-insecure-dev-only')

DEBUG = config('DJANGO_DEBUG', cast=bool, default=False)

ALLOWED_HOSTS = config('DJANGO_ALLOWED_HOSTS', default='localhost').split(',')

INSTALLED_APPS: tuple[str, ...] = (
    # Default django apps:
    'django.contrib.auth',
    'django.contrib.contenttypes',

    # Your apps go here:
    'server.apps.files',
)

# Database
# SQLite is used in IMMEDIATE mode: every atomic block takes the write
# lock up front, which serializes quota admission per database.

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': config(
            'DJANGO_DATABASE_NAME',
            default=str(BASE_DIR.joinpath('servepics.sqlite3')),
        ),
        'OPTIONS': {
            'transaction_mode': 'IMMEDIATE',
            'timeout': config('DJANGO_DATABASE_TIMEOUT', cast=int, default=20),
        },
        'TEST': {
            # File-backed test database so threads get real connections
            'NAME': str(BASE_DIR.joinpath('test_servepics.sqlite3')),
        },
    },
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Internationalization

LANGUAGE_CODE = 'en-us'

USE_I18N = False

TIME_ZONE = 'UTC'

USE_TZ = True
