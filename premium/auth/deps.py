import logging
import time
from fastapi import Depends, Request
from pydantic import ValidationError
from sqlmodel import Session

from database import get_session
from premium.auth.models import AuthenticatedUser
from premium.auth.services import UserStore
from premium.core.errors import AuthenticationRequired

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "user"


def require_user(request: Request) -> AuthenticatedUser:
    """Validate the session identity and attach it to ``request.state.user``.

    Rejects missing, malformed and expired sessions. The session itself is
    never modified here.
    """
    data = request.session.get(SESSION_USER_KEY)
    if not data:
        logger.info("Auth check failed: no session for %s", request.url.path)
        raise AuthenticationRequired()

    try:
        user = AuthenticatedUser.model_validate(data)
    except ValidationError:
        logger.warning("Auth check failed: malformed session for %s", request.url.path)
        raise AuthenticationRequired()

    if user.expires_at <= int(time.time()):
        logger.info("Auth check failed: session expired for %s", user.subject)
        raise AuthenticationRequired()

    request.state.user = user
    return user


def current_user(request: Request) -> AuthenticatedUser:
    """Typed accessor for the identity attached by ``require_user``."""
    user = getattr(request.state, "user", None)
    if not isinstance(user, AuthenticatedUser):
        raise AuthenticationRequired()
    return user


def get_user_store(session: Session = Depends(get_session)) -> UserStore:
    return UserStore(session)
