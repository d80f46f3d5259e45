"""In-memory repositories used when no remote store is configured."""

from dataclasses import dataclass, field
from uuid import UUID

from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.domain.models import UserProfile
from nutri_sync.services.entitlements import ProfileRepository
from nutri_sync.services.history import HistoryRepository


@dataclass
class InMemoryHistoryRepository(HistoryRepository):
    """Process-local history storage."""

    histories: dict[str, list[AnalysisResult]] = field(default_factory=dict)

    def save(self, owner_key: str, history: list[AnalysisResult]) -> None:
        self.histories[owner_key] = list(history)

    def load(self, owner_key: str) -> list[AnalysisResult]:
        return list(self.histories.get(owner_key, []))

    def delete(self, owner_key: str) -> None:
        self.histories.pop(owner_key, None)


@dataclass
class InMemoryProfileRepository(ProfileRepository):
    """Process-local profile storage."""

    profiles: dict[UUID, UserProfile] = field(default_factory=dict)

    def get(self, user_id: UUID) -> UserProfile | None:
        return self.profiles.get(user_id)

    def get_by_email(self, email: str) -> UserProfile | None:
        for profile in self.profiles.values():
            if profile.email == email:
                return profile
        return None

    def save_profile(self, profile: UserProfile) -> None:
        self.profiles[profile.id] = profile
