"""Subscription tier and credit checks."""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from nutri_sync.domain.models import SubscriptionTier, UserProfile

logger = logging.getLogger(__name__)


class ProfileRepository(Protocol):
    """Persistence interface for user profiles."""

    def get(self, user_id: UUID) -> UserProfile | None:
        """Return a profile by id, if present."""

    def get_by_email(self, email: str) -> UserProfile | None:
        """Return a profile by email, if present."""

    def save_profile(self, profile: UserProfile) -> None:
        """Insert or update a profile."""


@dataclass
class EntitlementGate:
    """Decides whether a user may run another analysis."""

    repository: ProfileRepository
    pro_credits: int = 999999

    def can_analyze(self, profile: UserProfile) -> bool:
        """Return True for PRO users or FREE users with credits left."""
        return profile.tier is SubscriptionTier.PRO or profile.credits > 0

    def current(self, profile: UserProfile) -> UserProfile:
        """Return the stored profile; other sessions may have changed it."""
        try:
            stored = self.repository.get(profile.id)
        except Exception:
            logger.exception("Failed to load profile", extra={"user_id": profile.id})
            return profile
        return stored or profile

    def consume(self, profile: UserProfile) -> UserProfile:
        """Spend one credit for FREE users; PRO users are unaffected."""
        profile = self.current(profile)
        if profile.tier is SubscriptionTier.PRO:
            return profile
        updated = replace(profile, credits=max(0, profile.credits - 1))
        self._persist(updated)
        return updated

    def upgrade(self, profile: UserProfile) -> UserProfile:
        """Move the user to PRO with an effectively unlimited credit balance."""
        profile = self.current(profile)
        updated = replace(profile, tier=SubscriptionTier.PRO, credits=self.pro_credits)
        self._persist(updated)
        return updated

    def mark_synced(self, profile: UserProfile, synced_at: datetime) -> UserProfile:
        """Record when the user's history was last mirrored."""
        updated = replace(self.current(profile), last_synced_at=synced_at)
        self._persist(updated)
        return updated

    def _persist(self, profile: UserProfile) -> None:
        try:
            self.repository.save_profile(profile)
        except Exception:
            logger.exception("Failed to save profile", extra={"user_id": profile.id})
