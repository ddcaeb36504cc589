"""
WSGI config for the devtoolhub project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'devtoolhub.settings')

application = get_wsgi_application()
