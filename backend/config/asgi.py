"""
ASGI config for the backend project.

Serving through ASGI keeps long-lived notification streams from pinning a
worker thread each.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'backend.config.settings')

application = get_asgi_application()
