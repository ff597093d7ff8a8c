import os

from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "foodshare_backend.settings.settings")

# Push notifications go out through the channel layer; HTTP is the only inbound protocol
application = ProtocolTypeRouter({
    "http": get_asgi_application(),
})
