import logging
import time
from authlib.integrations.base_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from config import settings
from premium.auth.deps import SESSION_USER_KEY, current_user, get_user_store, require_user
from premium.auth.models import AuthenticatedUser, UserProfile, UserRead
from premium.auth.services import UserStore
from premium.auth.utils import oauth
from premium.core.errors import AppError, NotFound, UpstreamUnavailable

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])

# --- OAUTH ROUTES ---

@router.get("/login")
async def login(request: Request):
    client = oauth.create_client("provider")
    if not client:
        raise UpstreamUnavailable("Authentication service not configured", status_code=503)

    redirect_uri = request.url_for("auth_callback")
    return await client.authorize_redirect(request, redirect_uri)

@router.get("/callback", name="auth_callback")
async def auth_callback(request: Request, store: UserStore = Depends(get_user_store)):
    client = oauth.create_client("provider")
    if not client:
        raise UpstreamUnavailable("Authentication service not configured", status_code=503)

    try:
        token = await client.authorize_access_token(request)
    except OAuthError as e:
        logger.warning("OAuth callback failed: %s", e)
        return RedirectResponse(url="/")

    user_info = token.get("userinfo")
    if not user_info or not user_info.get("sub"):
        logger.warning("OAuth callback returned no user info")
        return RedirectResponse(url="/")

    # Claims: sub, email, given_name, family_name, picture
    profile = UserProfile(
        id=user_info["sub"],
        email=user_info.get("email") or "",
        first_name=user_info.get("given_name") or "",
        last_name=user_info.get("family_name") or "",
        profile_image_url=user_info.get("picture") or "",
    )
    store.upsert_user(profile)

    identity = AuthenticatedUser(
        subject=profile.id,
        email=profile.email,
        given_name=profile.first_name,
        family_name=profile.last_name,
        picture_url=profile.profile_image_url,
        expires_at=int(time.time()) + settings.SESSION_TTL_SECONDS,
    )
    request.session[SESSION_USER_KEY] = identity.model_dump()
    logger.info("User authenticated: %s", profile.email)

    return RedirectResponse(url="/")

@router.get("/logout")
def logout(request: Request):
    request.session.clear()
    return RedirectResponse(url="/")

# --- PROFILE ---

@router.get("/auth/user", response_model=UserRead, dependencies=[Depends(require_user)])
def get_auth_user(
    identity: AuthenticatedUser = Depends(current_user),
    store: UserStore = Depends(get_user_store),
):
    try:
        user = store.get_user(identity.subject)
    except SQLAlchemyError as e:
        logger.error("Error fetching user %s: %s", identity.subject, e)
        raise AppError("Failed to fetch user")

    if not user:
        raise NotFound("User not found")
    return UserRead.model_validate(user)
