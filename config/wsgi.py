"""WSGI config for the castle hire admin backend.

Exposes the WSGI callable used by gunicorn in production and by
``runserver`` locally (which overrides the settings module via manage.py).
"""

import os
from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.prod')

application = get_wsgi_application()
