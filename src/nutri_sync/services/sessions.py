"""Analysis session context and the pipeline that drives it."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from secrets import token_urlsafe
from uuid import UUID

from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.domain.models import UserProfile
from nutri_sync.errors import (
    EntitlementError,
    InputError,
    MalformedResponse,
    PaymentError,
    PersistenceError,
    ServiceError,
    SessionBusyError,
    SessionNotFoundError,
    SessionStateError,
)
from nutri_sync.services.analysis import AnalysisService, build_analysis_request
from nutri_sync.services.attachments import AttachmentList
from nutri_sync.services.entitlements import EntitlementGate
from nutri_sync.services.history import HistoryStore
from nutri_sync.services.payments import PaymentService

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Analysis timed out. Please make sure the images are clear."


class SessionState(StrEnum):
    """States of a single analysis flow."""

    IDLE = "IDLE"
    REQUESTING = "REQUESTING"
    DISPLAYING_RESULT = "DISPLAYING_RESULT"
    ERROR = "ERROR"


class AttachmentKind(StrEnum):
    """Upload slots of a session."""

    REPORT = "report"
    FOOD = "food"


@dataclass
class AnalysisSession:
    """Per-user session context, alive between sign-in and sign-out."""

    token: str
    profile: UserProfile
    reports: AttachmentList
    foods: AttachmentList
    state: SessionState = SessionState.IDLE
    result: AnalysisResult | None = None
    error_message: str | None = None
    generation: int = 0

    @property
    def owner_id(self) -> UUID:
        return self.profile.id

    def attachments(self, kind: AttachmentKind) -> AttachmentList:
        """Return the upload slot for the given kind."""
        if kind is AttachmentKind.REPORT:
            return self.reports
        return self.foods

    def clear_attachments(self) -> None:
        self.reports.clear()
        self.foods.clear()


@dataclass
class SessionRegistry:
    """In-memory registry of open sessions keyed by token."""

    report_media_types: Iterable[str]
    food_media_types: Iterable[str]
    _sessions: dict[str, AnalysisSession] = field(default_factory=dict)

    def open(self, profile: UserProfile) -> AnalysisSession:
        """Create a session for a freshly signed-in user."""
        session = AnalysisSession(
            token=token_urlsafe(24),
            profile=profile,
            reports=AttachmentList(self.report_media_types),
            foods=AttachmentList(self.food_media_types),
        )
        self._sessions[session.token] = session
        return session

    def get(self, token: str | None) -> AnalysisSession:
        """Return the session for a token or raise."""
        session = self._sessions.get(token or "")
        if session is None:
            raise SessionNotFoundError("Unknown or expired session")
        return session

    def close(self, token: str) -> AnalysisSession | None:
        """Destroy a session; later responses for it are discarded."""
        session = self._sessions.pop(token, None)
        if session is not None:
            session.generation += 1
            session.state = SessionState.IDLE
        return session


@dataclass
class AnalysisPipeline:
    """Coordinates gating, analysis, history and credits for a session."""

    analysis_service: AnalysisService
    history_store: HistoryStore
    entitlement_gate: EntitlementGate
    payment_service: PaymentService

    async def analyze(self, session: AnalysisSession) -> AnalysisResult | None:
        """Run one analysis; returns None when the result arrived stale."""
        if session.state is SessionState.REQUESTING:
            raise SessionBusyError("An analysis is already running")
        if session.state is SessionState.DISPLAYING_RESULT:
            raise SessionStateError("Reset the session before a new analysis")

        request = build_analysis_request(session.reports.items, session.foods.items)
        if not self.entitlement_gate.can_analyze(self.refresh_profile(session)):
            raise EntitlementError("No analyses left. Upgrade to continue.")

        session.generation += 1
        generation = session.generation
        session.state = SessionState.REQUESTING
        session.error_message = None

        try:
            analysis = await self.analysis_service.analyze(request)
        except MalformedResponse:
            if not _is_current(session, generation):
                return None
            logger.warning(
                "Reasoning service reply violated the output contract",
                exc_info=True,
                extra={"user_id": session.owner_id},
            )
            _fail(session)
            raise
        except ServiceError:
            if not _is_current(session, generation):
                return None
            logger.exception(
                "Reasoning service call failed", extra={"user_id": session.owner_id}
            )
            _fail(session)
            raise

        if not _is_current(session, generation):
            logger.info(
                "Discarding stale analysis result",
                extra={"user_id": session.owner_id, "generation": generation},
            )
            return None

        result = analysis.model_copy(update={"owner_id": session.owner_id})
        self.history_store.append(result, session.owner_id)
        session.profile = self.entitlement_gate.consume(session.profile)
        self.sync_history(session)
        session.result = result
        session.clear_attachments()
        session.state = SessionState.DISPLAYING_RESULT
        return result

    def refresh_profile(self, session: AnalysisSession) -> UserProfile:
        """Replace the session copy of the profile with the stored one."""
        session.profile = self.entitlement_gate.current(session.profile)
        return session.profile

    def reset(self, session: AnalysisSession) -> None:
        """Return the session to IDLE and orphan any in-flight request."""
        session.generation += 1
        session.clear_attachments()
        session.result = None
        session.error_message = None
        session.state = SessionState.IDLE

    def select(self, session: AnalysisSession, result_id: UUID) -> AnalysisResult:
        """Show a history entry as the current result."""
        if session.state is SessionState.REQUESTING:
            raise SessionBusyError("An analysis is already running")
        entry = self.history_store.get(session.owner_id, result_id)
        if entry is None:
            raise InputError("No such history entry")
        session.result = entry
        session.error_message = None
        session.state = SessionState.DISPLAYING_RESULT
        return entry

    def history(self, session: AnalysisSession) -> list[AnalysisResult]:
        return self.history_store.list_results(session.owner_id)

    def sync_history(self, session: AnalysisSession) -> int:
        """Mirror pending history entries; failures are logged only."""
        try:
            synced = self.history_store.sync_pending(session.owner_id)
        except PersistenceError:
            logger.warning(
                "History sync failed",
                exc_info=True,
                extra={"user_id": session.owner_id},
            )
            return 0
        if synced:
            session.profile = self.entitlement_gate.mark_synced(
                session.profile, datetime.now(tz=UTC)
            )
        return synced

    def clear_history(self, session: AnalysisSession) -> None:
        """Empty the user's history; remote failures are logged only."""
        try:
            self.history_store.clear(session.owner_id)
        except PersistenceError:
            logger.warning(
                "History delete failed",
                exc_info=True,
                extra={"user_id": session.owner_id},
            )

    async def verify_upgrade(
        self, session: AnalysisSession, transaction_id: str
    ) -> UserProfile:
        """Upgrade the session user to PRO once the payment is verified."""
        if not await self.payment_service.verify(transaction_id):
            raise PaymentError("Verification failed. Please check your transaction ID.")
        session.profile = self.entitlement_gate.upgrade(session.profile)
        return session.profile


def _is_current(session: AnalysisSession, generation: int) -> bool:
    return session.generation == generation


def _fail(session: AnalysisSession) -> None:
    session.state = SessionState.ERROR
    session.error_message = GENERIC_FAILURE_MESSAGE
