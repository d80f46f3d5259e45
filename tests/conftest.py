"""Shared test fixtures."""

import asyncio
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from uuid import uuid4

import pytest

from nutri_sync.adapters.in_memory_repositories import (
    InMemoryHistoryRepository,
    InMemoryProfileRepository,
)
from nutri_sync.config import Settings, parse_media_patterns
from nutri_sync.containers import AppContainer
from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.domain.attachments import FileAttachment, RawFile
from nutri_sync.domain.models import SubscriptionTier, UserProfile
from nutri_sync.services.analysis import (
    AnalysisService,
    ReasoningClient,
    parse_analysis_response,
)
from nutri_sync.services.entitlements import EntitlementGate
from nutri_sync.services.history import HistoryStore
from nutri_sync.services.payments import PaymentService
from nutri_sync.services.sessions import (
    AnalysisPipeline,
    AnalysisSession,
    SessionRegistry,
)
from nutri_sync.services.users import UserService

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"png-body"
JPEG_BYTES = b"\xff\xd8\xff" + b"jpeg-body"
PDF_BYTES = b"%PDF-1.7\n" + b"report-body"


def analysis_payload(**overrides: object) -> dict[str, object]:
    """Return a valid reasoning service payload."""
    payload: dict[str, object] = {
        "compatibility_score": 42,
        "biomarkers": [
            {
                "name": "HbA1c",
                "value": "8.5%",
                "status": "High",
                "reference_range": "4.0-5.6%",
            },
            {
                "name": "LDL",
                "value": "95 mg/dL",
                "status": "Normal",
                "reference_range": None,
            },
        ],
        "food_items": [
            {
                "name": "Mango",
                "status": "AVOID",
                "reason": "High glycemic load risks your HbA1c of 8.5%.",
                "suggested_swap": "Berries",
            },
            {
                "name": "Grilled chicken",
                "status": "SAFE",
                "reason": "Lean protein is fine with your LDL of 95 mg/dL.",
                "suggested_swap": None,
            },
        ],
        "summary": "The mango is risky. The chicken is fine.",
    }
    payload.update(overrides)
    return payload


def make_attachment(
    name: str = "report.pdf", content: bytes = PDF_BYTES
) -> FileAttachment:
    media_type = "application/pdf" if content.startswith(b"%PDF") else "image/png"
    return FileAttachment.from_bytes(content, media_type, name)


def make_result(**overrides: object) -> AnalysisResult:
    """Build a stamped analysis result."""
    return parse_analysis_response(json.dumps(analysis_payload(**overrides)))


@dataclass
class FakeReasoningClient(ReasoningClient):
    """Fake reasoning client returning a fixed reply and recording calls."""

    reply: str | None = field(default_factory=lambda: json.dumps(analysis_payload()))
    error: Exception | None = None
    calls: list[dict[str, object]] = field(default_factory=list)

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instruction: str,
        attachments: Sequence[FileAttachment],
        schema: dict[str, object],
    ) -> str:
        self.calls.append(
            {
                "model": model,
                "instruction": instruction,
                "attachments": list(attachments),
                "schema": schema,
            }
        )
        if self.error is not None:
            raise self.error
        return self.reply or ""


@dataclass
class GatedReasoningClient(ReasoningClient):
    """Reasoning client that waits until released, to simulate latency."""

    reply: str = field(default_factory=lambda: json.dumps(analysis_payload()))
    error: Exception | None = None
    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)

    async def generate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        instruction: str,
        attachments: Sequence[FileAttachment],
        schema: dict[str, object],
    ) -> str:
        self.started.set()
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.reply


@dataclass
class FailingHistoryRepository(InMemoryHistoryRepository):
    """History repository whose writes and deletes always fail."""

    fail_load: bool = False

    def save(self, owner_key: str, history: list[AnalysisResult]) -> None:
        raise RuntimeError("remote store unavailable")

    def load(self, owner_key: str) -> list[AnalysisResult]:
        if self.fail_load:
            raise RuntimeError("remote store unavailable")
        return super().load(owner_key)

    def delete(self, owner_key: str) -> None:
        raise RuntimeError("remote store unavailable")


@dataclass
class FlakyLoadHistoryRepository(InMemoryHistoryRepository):
    """History repository whose first loads fail."""

    load_failures: int = 1

    def load(self, owner_key: str) -> list[AnalysisResult]:
        if self.load_failures > 0:
            self.load_failures -= 1
            raise RuntimeError("remote store unavailable")
        return super().load(owner_key)


@dataclass
class FailingProfileRepository(InMemoryProfileRepository):
    """Profile repository whose writes always fail."""

    def save_profile(self, profile: UserProfile) -> None:
        raise RuntimeError("remote store unavailable")


def make_profile(
    tier: SubscriptionTier = SubscriptionTier.FREE, credits: int = 3
) -> UserProfile:
    return UserProfile(
        id=uuid4(),
        display_name="DR. TEST",
        email=f"{uuid4().hex}@example.com",
        tier=tier,
        credits=credits,
    )


def make_pipeline(
    client: ReasoningClient | None = None,
    history_repository: InMemoryHistoryRepository | None = None,
    profile_repository: InMemoryProfileRepository | None = None,
    limit: int = 50,
) -> AnalysisPipeline:
    profiles = profile_repository or InMemoryProfileRepository()
    return AnalysisPipeline(
        analysis_service=AnalysisService(
            client=client or FakeReasoningClient(),
            model="gpt-5.2",
            reasoning_effort="medium",
            store=False,
        ),
        history_store=HistoryStore(
            repository=history_repository or InMemoryHistoryRepository(),
            limit=limit,
        ),
        entitlement_gate=EntitlementGate(repository=profiles, pro_credits=999999),
        payment_service=PaymentService(
            paypal_link="https://paypal.me/example", upi_id="clinic@upi"
        ),
    )


def make_session(
    profile: UserProfile | None = None, ready: bool = True
) -> AnalysisSession:
    """Open a session, optionally with one report and one food photo attached."""
    registry = SessionRegistry(
        report_media_types=("image/*", "application/pdf"),
        food_media_types=("image/*",),
    )
    session = registry.open(profile or make_profile())
    if ready:
        session.reports.add([RawFile("labs.pdf", PDF_BYTES, "application/pdf")])
        session.foods.add([RawFile("plate.png", PNG_BYTES, "image/png")])
    return session


@pytest.fixture
def settings() -> Settings:
    return Settings(openai_api_key="openai-key")


@pytest.fixture
def reasoning_client() -> FakeReasoningClient:
    return FakeReasoningClient()


@pytest.fixture
def history_repository() -> InMemoryHistoryRepository:
    return InMemoryHistoryRepository()


@pytest.fixture
def container(
    settings: Settings,
    reasoning_client: FakeReasoningClient,
    history_repository: InMemoryHistoryRepository,
) -> AppContainer:
    profile_repository = InMemoryProfileRepository()
    analysis_service = AnalysisService(
        client=reasoning_client,
        model=settings.openai_model,
        reasoning_effort=settings.openai_reasoning_effort,
        store=settings.openai_store,
    )
    history_store = HistoryStore(
        repository=history_repository, limit=settings.history_limit
    )
    entitlement_gate = EntitlementGate(
        repository=profile_repository, pro_credits=settings.pro_tier_credits
    )
    payment_service = PaymentService(
        paypal_link=settings.paypal_link,
        upi_id=settings.upi_id,
        usd_to_inr_rate=settings.usd_to_inr_rate,
    )
    pipeline = AnalysisPipeline(
        analysis_service=analysis_service,
        history_store=history_store,
        entitlement_gate=entitlement_gate,
        payment_service=payment_service,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        user_service=UserService(
            repository=profile_repository, free_credits=settings.free_tier_credits
        ),
        session_registry=SessionRegistry(
            report_media_types=parse_media_patterns(settings.report_media_types),
            food_media_types=parse_media_patterns(settings.food_media_types),
        ),
        history_store=history_store,
        entitlement_gate=entitlement_gate,
        payment_service=payment_service,
        analysis_service=analysis_service,
        pipeline=pipeline,
        close_resources=close_resources,
    )
