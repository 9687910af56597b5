"""
WSGI config for the FreshCheck project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "freshcheck.settings")

application = get_wsgi_application()
