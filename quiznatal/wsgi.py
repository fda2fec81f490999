"""
WSGI config for the quiznatal project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'quiznatal.settings')

application = get_wsgi_application()
