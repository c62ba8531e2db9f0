from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field

class User(SQLModel, table=True):
    id: str = Field(primary_key=True) # Identity provider subject
    email: Optional[str] = Field(default=None, index=True)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None

    # Billing linkage (cache of Stripe state, display only)
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = Field(default=None, index=True)
    subscription_status: str = Field(default="inactive") # inactive, incomplete, active, past_due, canceled, ...
    current_period_end: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class UserProfile(BaseModel):
    """Profile claims delivered by the identity provider on login."""

    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    profile_image_url: str = ""


class UserRead(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    subscription_status: str
    current_period_end: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class AuthenticatedUser(BaseModel):
    """Identity stored in the session cookie and attached to request.state."""

    model_config = ConfigDict(frozen=True)

    subject: str
    email: str = ""
    given_name: str = ""
    family_name: str = ""
    picture_url: str = ""
    expires_at: int # Epoch seconds
