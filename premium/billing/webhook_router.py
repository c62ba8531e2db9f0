from fastapi import APIRouter, Request, Header, Depends

from config import settings
from premium.billing.router import get_service
from premium.billing.subscription_service import SubscriptionService

router = APIRouter(prefix="/webhook", tags=["webhook"])

@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    service: SubscriptionService = Depends(get_service),
):
    if not settings.STRIPE_WEBHOOK_SECRET:
        return {"status": "ignored"}

    payload = await request.body()
    service.handle_webhook(payload, stripe_signature)

    return {"status": "success"}
