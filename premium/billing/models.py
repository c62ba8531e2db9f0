from typing import Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubscriptionStatus(CamelModel):
    status: str
    current_period_end: Optional[int] = None # Epoch seconds
    next_billing_date: Optional[str] = None # e.g. "January 1, 2025"


class CreatedSubscription(CamelModel):
    subscription_id: str
    client_secret: Optional[str] = None


class PortalSession(CamelModel):
    url: str
