"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import Depends, FastAPI, File, Header, Request, UploadFile, status
from fastapi.responses import JSONResponse

from nutri_sync.api.models import (
    AttachmentsResponse,
    CheckoutRequest,
    CheckoutResponse,
    HistoryResponse,
    ProfileView,
    SessionView,
    SignInRequest,
    SignInResponse,
    SyncResponse,
    VerifyRequest,
    attachment_views,
    rejected_views,
)
from nutri_sync.app_logging import configure_logging
from nutri_sync.containers import AppContainer
from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.domain.attachments import RawFile
from nutri_sync.errors import (
    EntitlementError,
    InputError,
    NutriSyncError,
    PaymentError,
    ServiceError,
    SessionNotFoundError,
    SessionStateError,
)
from nutri_sync.services.sessions import (
    GENERIC_FAILURE_MESSAGE,
    AnalysisSession,
    AttachmentKind,
)

_ERROR_STATUS: tuple[tuple[type[NutriSyncError], int], ...] = (
    (InputError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (EntitlementError, status.HTTP_402_PAYMENT_REQUIRED),
    (PaymentError, status.HTTP_400_BAD_REQUEST),
    (SessionStateError, status.HTTP_409_CONFLICT),
    (SessionNotFoundError, status.HTTP_401_UNAUTHORIZED),
    (ServiceError, status.HTTP_502_BAD_GATEWAY),
)


def _get_container(request: Request) -> AppContainer:
    return request.app.state.container


def current_session(
    x_session_token: str | None = Header(default=None),
    container: AppContainer = Depends(_get_container),
) -> AnalysisSession:
    """Resolve the session for the request token."""
    return container.session_registry.get(x_session_token)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(NutriSyncError)
    async def handle_app_error(request: Request, exc: NutriSyncError) -> JSONResponse:
        status_code = _status_for(exc)
        if isinstance(exc, ServiceError):
            detail = GENERIC_FAILURE_MESSAGE
        else:
            detail = str(exc)
        return JSONResponse(status_code=status_code, content={"detail": detail})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/auth/sign-in")
    async def sign_in(payload: SignInRequest) -> SignInResponse:
        """Sign in (or sign up) and open an analysis session."""
        profile = container.user_service.sign_in(
            payload.email, payload.display_name, payload.role
        )
        session = container.session_registry.open(profile)
        logger.info("Session opened", extra={"user_id": profile.id})
        return SignInResponse(
            session_token=session.token,
            profile=ProfileView.from_profile(profile),
        )

    @app.post("/auth/sign-out")
    async def sign_out(
        session: AnalysisSession = Depends(current_session),
    ) -> dict[str, str]:
        """Close the session; in-flight results for it are discarded."""
        container.session_registry.close(session.token)
        return {"status": "ok"}

    @app.get("/profile")
    async def profile(
        session: AnalysisSession = Depends(current_session),
    ) -> ProfileView:
        """Return the signed-in user's profile."""
        return ProfileView.from_profile(container.pipeline.refresh_profile(session))

    @app.post("/attachments/{kind}")
    async def upload_attachments(
        kind: AttachmentKind,
        files: list[UploadFile] = File(...),
        session: AnalysisSession = Depends(current_session),
    ) -> AttachmentsResponse:
        """Append uploaded files to the report or food slot."""
        raw_files = [
            RawFile(
                filename=upload.filename or f"{kind.value}-{index}",
                content=await upload.read(),
                media_type=upload.content_type,
            )
            for index, upload in enumerate(files)
        ]
        slot = session.attachments(kind)
        rejected = slot.add(raw_files)
        return AttachmentsResponse(
            attachments=attachment_views(slot.items),
            rejected=rejected_views(rejected),
        )

    @app.delete("/attachments/{kind}/{index}")
    async def remove_attachment(
        kind: AttachmentKind,
        index: int,
        session: AnalysisSession = Depends(current_session),
    ) -> AttachmentsResponse:
        """Remove one attachment, keeping the others in order."""
        slot = session.attachments(kind)
        slot.remove(index)
        return AttachmentsResponse(attachments=attachment_views(slot.items))

    @app.delete("/attachments")
    async def clear_attachments(
        session: AnalysisSession = Depends(current_session),
    ) -> SessionView:
        """Drop every attachment of the session."""
        session.clear_attachments()
        return SessionView.from_session(session)

    @app.post("/analysis")
    async def analyze(
        session: AnalysisSession = Depends(current_session),
    ) -> AnalysisResult:
        """Run a compatibility analysis for the current attachments."""
        result = await container.pipeline.analyze(session)
        if result is None:
            raise SessionStateError("The session was reset while analyzing")
        return result

    @app.get("/analysis")
    async def analysis_state(
        session: AnalysisSession = Depends(current_session),
    ) -> SessionView:
        """Return the current session state."""
        return SessionView.from_session(session)

    @app.post("/analysis/reset")
    async def reset(
        session: AnalysisSession = Depends(current_session),
    ) -> SessionView:
        """Reset the session to IDLE."""
        container.pipeline.reset(session)
        return SessionView.from_session(session)

    @app.get("/history")
    async def history(
        session: AnalysisSession = Depends(current_session),
    ) -> HistoryResponse:
        """Return the user's analysis history, newest first."""
        return HistoryResponse(
            results=container.pipeline.history(session),
            pending=container.history_store.pending_count(session.owner_id),
        )

    @app.get("/history/{result_id}")
    async def history_entry(
        result_id: UUID,
        session: AnalysisSession = Depends(current_session),
    ) -> AnalysisResult:
        """Show one history entry as the current result."""
        return container.pipeline.select(session, result_id)

    @app.delete("/history")
    async def clear_history(
        session: AnalysisSession = Depends(current_session),
    ) -> HistoryResponse:
        """Clear the user's history."""
        container.pipeline.clear_history(session)
        return HistoryResponse(results=[], pending=0)

    @app.post("/history/sync")
    async def sync_history(
        session: AnalysisSession = Depends(current_session),
    ) -> SyncResponse:
        """Mirror pending history entries to the remote store."""
        synced = container.pipeline.sync_history(session)
        return SyncResponse(
            synced=synced,
            pending=container.history_store.pending_count(session.owner_id),
        )

    @app.post("/billing/checkout")
    async def checkout(
        payload: CheckoutRequest,
        session: AnalysisSession = Depends(current_session),
    ) -> CheckoutResponse:
        """Return a checkout reference for the PRO plan."""
        amount = payload.amount_usd or container.settings.pro_price_usd
        reference = container.payment_service.initiate(payload.channel, amount)
        return CheckoutResponse(
            channel=payload.channel.upper(), amount_usd=amount, reference=reference
        )

    @app.post("/billing/verify")
    async def verify(
        payload: VerifyRequest,
        session: AnalysisSession = Depends(current_session),
    ) -> ProfileView:
        """Verify a transaction and upgrade the user to PRO."""
        upgraded = await container.pipeline.verify_upgrade(
            session, payload.transaction_id
        )
        logger.info("User upgraded", extra={"user_id": upgraded.id})
        return ProfileView.from_profile(upgraded)

    return app


def _status_for(exc: NutriSyncError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR
