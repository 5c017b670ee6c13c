"""ASGI config for the castle hire admin backend.

Exposes the ASGI callable for async-capable servers (uvicorn, daphne).
The booking API itself is synchronous; Django runs it in a thread pool.
"""

import os
from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.prod')

application = get_asgi_application()
