import logging
from authlib.integrations.starlette_client import OAuth

from config import settings

logger = logging.getLogger(__name__)

oauth = OAuth()

if settings.OAUTH_CLIENT_ID and settings.OAUTH_CLIENT_SECRET:
    oauth.register(
        "provider",
        client_id=settings.OAUTH_CLIENT_ID,
        client_secret=settings.OAUTH_CLIENT_SECRET,
        client_kwargs={
            "scope": "openid profile email",
        },
        server_metadata_url=settings.OAUTH_SERVER_METADATA_URL,
    )
else:
    logger.warning("OAUTH_CLIENT_ID / OAUTH_CLIENT_SECRET missing. Login will not work.")
