"""User sign-in and onboarding."""

from dataclasses import dataclass, replace
from uuid import uuid4

from nutri_sync.domain.models import DEFAULT_ROLE, SubscriptionTier, UserProfile
from nutri_sync.errors import InputError
from nutri_sync.services.entitlements import ProfileRepository


@dataclass
class UserService:
    """Application service for user lifecycle actions."""

    repository: ProfileRepository
    free_credits: int = 3

    def sign_in(
        self,
        email: str,
        display_name: str | None = None,
        role: str | None = None,
    ) -> UserProfile:
        """Return the profile for an email, creating a FREE one if needed.

        A non-empty role replaces the stored one, so onboarding can set the
        patient condition on an existing account.
        """
        normalized = email.strip().lower()
        if "@" not in normalized:
            raise InputError("A valid email address is required")
        role = (role or "").strip()
        existing = self.repository.get_by_email(normalized)
        if existing:
            if role and role != existing.role:
                existing = replace(existing, role=role)
                self.repository.save_profile(existing)
            return existing

        name = (display_name or "").strip() or normalized.split("@")[0].upper()
        created = UserProfile(
            id=uuid4(),
            display_name=name,
            email=normalized,
            tier=SubscriptionTier.FREE,
            credits=self.free_credits,
            role=role or DEFAULT_ROLE,
        )
        self.repository.save_profile(created)
        return created
