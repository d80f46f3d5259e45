"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from nutri_sync.adapters.in_memory_repositories import (
    InMemoryHistoryRepository,
    InMemoryProfileRepository,
)
from nutri_sync.adapters.openai_reasoning_client import OpenAIReasoningClient
from nutri_sync.adapters.supabase_history_repository import SupabaseHistoryRepository
from nutri_sync.adapters.supabase_profile_repository import SupabaseProfileRepository
from nutri_sync.config import Settings, parse_media_patterns
from nutri_sync.services.analysis import AnalysisService
from nutri_sync.services.entitlements import EntitlementGate, ProfileRepository
from nutri_sync.services.history import HistoryRepository, HistoryStore
from nutri_sync.services.payments import PaymentService
from nutri_sync.services.sessions import AnalysisPipeline, SessionRegistry
from nutri_sync.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    user_service: UserService
    session_registry: SessionRegistry
    history_store: HistoryStore
    entitlement_gate: EntitlementGate
    payment_service: PaymentService
    analysis_service: AnalysisService
    pipeline: AnalysisPipeline
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    history_repository: HistoryRepository
    profile_repository: ProfileRepository
    if resolved_settings.uses_supabase:
        supabase_client = create_client(
            resolved_settings.supabase_url, resolved_settings.supabase_service_key
        )
        history_repository = SupabaseHistoryRepository(supabase_client)
        profile_repository = SupabaseProfileRepository(supabase_client)
    else:
        history_repository = InMemoryHistoryRepository()
        profile_repository = InMemoryProfileRepository()

    reasoning_client = OpenAIReasoningClient.create(resolved_settings.openai_api_key)
    analysis_service = AnalysisService(
        client=reasoning_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
    )
    history_store = HistoryStore(
        repository=history_repository, limit=resolved_settings.history_limit
    )
    entitlement_gate = EntitlementGate(
        repository=profile_repository,
        pro_credits=resolved_settings.pro_tier_credits,
    )
    payment_service = PaymentService(
        paypal_link=resolved_settings.paypal_link,
        upi_id=resolved_settings.upi_id,
        usd_to_inr_rate=resolved_settings.usd_to_inr_rate,
    )
    pipeline = AnalysisPipeline(
        analysis_service=analysis_service,
        history_store=history_store,
        entitlement_gate=entitlement_gate,
        payment_service=payment_service,
    )
    session_registry = SessionRegistry(
        report_media_types=parse_media_patterns(resolved_settings.report_media_types),
        food_media_types=parse_media_patterns(resolved_settings.food_media_types),
    )
    user_service = UserService(
        repository=profile_repository,
        free_credits=resolved_settings.free_tier_credits,
    )

    async def close_resources() -> None:
        await reasoning_client.client.close()

    return AppContainer(
        settings=resolved_settings,
        user_service=user_service,
        session_registry=session_registry,
        history_store=history_store,
        entitlement_gate=entitlement_gate,
        payment_service=payment_service,
        analysis_service=analysis_service,
        pipeline=pipeline,
        close_resources=close_resources,
    )
