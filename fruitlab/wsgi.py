"""
WSGI entry point for the FruitLab project.

Serving processes (``runserver`` and production WSGI servers alike) load
this module, so this is where the model is brought up: the persisted model
is loaded, or trained from the dataset folder, on a background thread while
the server starts accepting requests.
"""

import os

from django.apps import apps
from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "fruitlab.settings")

application = get_wsgi_application()

apps.get_app_config("classifier").start_background_initialize()
