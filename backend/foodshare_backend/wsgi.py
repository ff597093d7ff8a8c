import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "foodshare_backend.settings.settings")

application = get_wsgi_application()
