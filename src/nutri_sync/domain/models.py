"""Domain models for users and subscriptions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID

DEFAULT_ROLE = "Clinical User"


class SubscriptionTier(StrEnum):
    """Subscription tiers a user can hold."""

    FREE = "FREE"
    PRO = "PRO"


@dataclass(frozen=True)
class UserProfile:
    """Represents a signed-in user and their analysis entitlement."""

    id: UUID
    display_name: str
    email: str
    tier: SubscriptionTier
    credits: int
    last_synced_at: datetime | None = None
    role: str = DEFAULT_ROLE

    @property
    def is_pro(self) -> bool:
        """Return True for subscribed users."""
        return self.tier is SubscriptionTier.PRO
