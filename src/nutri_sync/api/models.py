"""Pydantic models for the HTTP API."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.domain.attachments import FileAttachment
from nutri_sync.domain.models import SubscriptionTier, UserProfile
from nutri_sync.services.attachments import RejectedFile
from nutri_sync.services.sessions import AnalysisSession, SessionState


class SignInRequest(BaseModel):
    """Sign-in payload."""

    email: str
    display_name: str | None = None
    role: str | None = None


class CheckoutRequest(BaseModel):
    """Checkout initiation payload."""

    channel: str
    amount_usd: float | None = Field(default=None, gt=0)


class VerifyRequest(BaseModel):
    """Transaction verification payload."""

    transaction_id: str


class ProfileView(BaseModel):
    """Public view of a user profile."""

    id: UUID
    display_name: str
    email: str
    tier: SubscriptionTier
    credits: int
    last_synced_at: datetime | None = None
    role: str

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileView":
        return cls(
            id=profile.id,
            display_name=profile.display_name,
            email=profile.email,
            tier=profile.tier,
            credits=profile.credits,
            last_synced_at=profile.last_synced_at,
            role=profile.role,
        )


class SignInResponse(BaseModel):
    """Session token and profile returned on sign-in."""

    session_token: str
    profile: ProfileView


class AttachmentView(BaseModel):
    """Summary of one uploaded attachment."""

    index: int
    filename: str
    media_type: str
    size: int


class RejectedFileView(BaseModel):
    """A file that was not accepted."""

    filename: str
    reason: str


class AttachmentsResponse(BaseModel):
    """Current attachments of one slot plus the rejected uploads."""

    attachments: list[AttachmentView]
    rejected: list[RejectedFileView] = Field(default_factory=list)


class SessionView(BaseModel):
    """Snapshot of the analysis session."""

    state: SessionState
    result: AnalysisResult | None
    error_message: str | None
    reports: list[AttachmentView]
    foods: list[AttachmentView]
    profile: ProfileView

    @classmethod
    def from_session(cls, session: AnalysisSession) -> "SessionView":
        return cls(
            state=session.state,
            result=session.result,
            error_message=session.error_message,
            reports=attachment_views(session.reports.items),
            foods=attachment_views(session.foods.items),
            profile=ProfileView.from_profile(session.profile),
        )


class HistoryResponse(BaseModel):
    """History log of the signed-in user, newest first."""

    results: list[AnalysisResult]
    pending: int


class SyncResponse(BaseModel):
    """Outcome of a history sync."""

    synced: int
    pending: int


class CheckoutResponse(BaseModel):
    """Checkout reference for the chosen channel."""

    channel: str
    amount_usd: float
    reference: str


def attachment_views(items: tuple[FileAttachment, ...]) -> list[AttachmentView]:
    """Render attachments with their positions."""
    return [
        AttachmentView(
            index=index,
            filename=item.display_handle,
            media_type=item.media_type,
            size=item.size,
        )
        for index, item in enumerate(items)
    ]


def rejected_views(rejected: list[RejectedFile]) -> list[RejectedFileView]:
    return [RejectedFileView(filename=r.filename, reason=r.reason) for r in rejected]
