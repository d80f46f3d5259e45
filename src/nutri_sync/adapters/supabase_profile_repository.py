"""Supabase-backed profile repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from nutri_sync.domain.models import DEFAULT_ROLE, SubscriptionTier, UserProfile
from nutri_sync.services.entitlements import ProfileRepository

_COLUMNS = "id, display_name, email, tier, credits, last_synced_at, role"


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for user profiles."""

    client: Client

    def get(self, user_id: UUID) -> UserProfile | None:
        """Return a profile by id, if present."""
        response = (
            self.client.table("profiles")
            .select(_COLUMNS)
            .eq("id", str(user_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_profile(response.data[0])

    def get_by_email(self, email: str) -> UserProfile | None:
        """Return a profile by email, if present."""
        response = (
            self.client.table("profiles")
            .select(_COLUMNS)
            .eq("email", email)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_profile(response.data[0])

    def save_profile(self, profile: UserProfile) -> None:
        """Insert or update a profile row."""
        self.client.table("profiles").upsert(
            {
                "id": str(profile.id),
                "display_name": profile.display_name,
                "email": profile.email,
                "tier": profile.tier.value,
                "credits": profile.credits,
                "last_synced_at": (
                    profile.last_synced_at.isoformat()
                    if profile.last_synced_at
                    else None
                ),
                "role": profile.role,
            }
        ).execute()


def _to_profile(row: dict[str, object]) -> UserProfile:
    last_synced = row.get("last_synced_at")
    return UserProfile(
        id=UUID(str(row["id"])),
        display_name=str(row["display_name"]),
        email=str(row["email"]),
        tier=SubscriptionTier(str(row["tier"])),
        credits=int(row["credits"]),
        last_synced_at=(
            datetime.fromisoformat(str(last_synced)) if last_synced else None
        ),
        role=str(row.get("role") or DEFAULT_ROLE),
    )
