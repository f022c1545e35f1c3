"""
Settings module initialization.
Automatically selects settings based on DJANGO_ENV environment variable.

When DJANGO_SETTINGS_MODULE points at a concrete module
(e.g. config.settings.test) nothing is imported here.
"""

import os

if os.environ.get('DJANGO_SETTINGS_MODULE', 'config.settings') == 'config.settings':
    env = os.environ.get('DJANGO_ENV', 'dev')

    if env == 'prod':
        from .prod import *
    elif env == 'test':
        from .test import *
    else:
        from .dev import *
