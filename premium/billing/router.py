from fastapi import APIRouter, Depends, Request
from sqlmodel import Session

from config import settings
from database import get_session
from premium.auth.deps import current_user, require_user
from premium.auth.models import AuthenticatedUser
from premium.billing.gateway import StripeGateway, get_billing_gateway
from premium.billing.models import CreatedSubscription, PortalSession, SubscriptionStatus
from premium.billing.subscription_service import SubscriptionService

router = APIRouter(prefix="/api", tags=["billing"], dependencies=[Depends(require_user)])

def get_service(
    session: Session = Depends(get_session),
    gateway: StripeGateway = Depends(get_billing_gateway),
) -> SubscriptionService:
    return SubscriptionService(session, gateway)

@router.post("/create-subscription", response_model=CreatedSubscription)
def create_subscription(
    user: AuthenticatedUser = Depends(current_user),
    service: SubscriptionService = Depends(get_service),
):
    return service.create_subscription(user.subject)

@router.get("/subscription-status", response_model=SubscriptionStatus, response_model_exclude_none=True)
def subscription_status(
    user: AuthenticatedUser = Depends(current_user),
    service: SubscriptionService = Depends(get_service),
):
    return service.get_subscription_status(user.subject)

@router.post("/create-portal-session", response_model=PortalSession)
def create_portal_session(
    request: Request,
    user: AuthenticatedUser = Depends(current_user),
    service: SubscriptionService = Depends(get_service),
):
    return_url = settings.PORTAL_RETURN_URL or str(request.base_url)
    return service.create_portal_session(user.subject, return_url)
