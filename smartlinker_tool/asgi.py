"""ASGI config for smartlinker_tool.

The smart-link views are async, so serving them from an ASGI server keeps
the external service calls on one event loop.
"""

import os

from django.core.asgi import get_asgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'smartlinker_tool.settings')

application = get_asgi_application()
