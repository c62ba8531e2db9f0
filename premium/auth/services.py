from typing import Optional
from datetime import datetime
from sqlmodel import select

from premium.auth.models import User, UserProfile
from premium.core.base_service import BaseService


class UserStore(BaseService):
    """Persistent user records keyed by identity provider subject."""

    def get_user(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def get_user_by_subscription_id(self, subscription_id: str) -> Optional[User]:
        return self.session.exec(
            select(User).where(User.stripe_subscription_id == subscription_id)
        ).first()

    def upsert_user(self, profile: UserProfile) -> User:
        # Profile fields are overwritten on every login, billing fields are left alone
        user = self.get_user(profile.id)
        if not user:
            user = User(id=profile.id)
        user.email = profile.email
        user.first_name = profile.first_name
        user.last_name = profile.last_name
        user.profile_image_url = profile.profile_image_url
        return self._save(user)

    def update_user_stripe_info(
        self,
        user_id: str,
        customer_id: Optional[str],
        subscription_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> User:
        user = self.get_user(user_id)
        if not user:
            raise LookupError(f"User {user_id} not found")

        # Customer id is append-only
        if customer_id and not user.stripe_customer_id:
            user.stripe_customer_id = customer_id
        if subscription_id:
            user.stripe_subscription_id = subscription_id
        if status:
            user.subscription_status = status
        return self._save(user)

    def update_subscription_status(
        self, user_id: str, status: str, period_end: Optional[datetime] = None
    ) -> User:
        user = self.get_user(user_id)
        if not user:
            raise LookupError(f"User {user_id} not found")

        user.subscription_status = status
        if period_end:
            user.current_period_end = period_end
        return self._save(user)

    def _save(self, user: User) -> User:
        user.updated_at = datetime.utcnow()
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user
