"""
Development settings for PMMIS project.

Runs without Redis or SMTP: locmem cache, console e-mail and a filesystem
Celery broker under backend/broker/.
"""

import os

from .base import *

DEBUG = True
ALLOWED_HOSTS = ['*']

INSTALLED_APPS = INSTALLED_APPS + [
    'debug_toolbar',
    'django_extensions',
]
MIDDLEWARE = ['debug_toolbar.middleware.DebugToolbarMiddleware'] + MIDDLEWARE
INTERNAL_IPS = ['127.0.0.1', 'localhost']

# The toolbar breaks JSON responses of the API.
DEBUG_TOOLBAR_CONFIG = {
    'SHOW_TOOLBAR_CALLBACK': lambda request: DEBUG and not request.path.startswith('/api/'),
}

CORS_ALLOW_ALL_ORIGINS = True

# Longer tokens so the SPA does not log out during a debugging session.
SIMPLE_JWT['ACCESS_TOKEN_LIFETIME'] = timedelta(hours=8)

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'pmmis-dev-cache',
    }
}

REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = []
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {}

# Local NBT/Telegram calls: short timeout, Telegram only with an explicit token.
PMMIS['NBT_TIMEOUT'] = 5
PMMIS['TELEGRAM_BOT_TOKEN'] = config('TELEGRAM_BOT_TOKEN', default='')

LOGGING['root']['level'] = 'DEBUG'
for _name in ('pmmis', 'application', 'infrastructure', 'presentation'):
    LOGGING['loggers'][_name]['level'] = 'DEBUG'

# =============================================================================
# CELERY - filesystem broker
# =============================================================================
CELERY_BROKER_URL = 'filesystem://'
CELERY_RESULT_BACKEND = None
CELERY_BROKER_TRANSPORT_OPTIONS = {
    'data_folder_in': os.path.join(BASE_DIR, 'broker', 'out'),
    'data_folder_out': os.path.join(BASE_DIR, 'broker', 'out'),
    'data_folder_processed': os.path.join(BASE_DIR, 'broker', 'processed'),
}
for folder in CELERY_BROKER_TRANSPORT_OPTIONS.values():
    os.makedirs(folder, exist_ok=True)
