"""Supabase-backed analysis history repository."""

from dataclasses import dataclass

from supabase import Client

from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.services.history import HistoryRepository


@dataclass
class SupabaseHistoryRepository(HistoryRepository):
    """Supabase implementation for analysis history."""

    client: Client

    def save(self, owner_key: str, history: list[AnalysisResult]) -> None:
        """Replace the owner's rows with the given history."""
        self.client.table("analysis_history").delete().eq(
            "owner_key", owner_key
        ).execute()
        if not history:
            return
        rows = [
            {
                "owner_key": owner_key,
                "result_id": str(entry.id),
                "position": position,
                "created_at": entry.created_at.isoformat(),
                "result_json": entry.model_dump(mode="json"),
            }
            for position, entry in enumerate(history)
        ]
        response = self.client.table("analysis_history").insert(rows).execute()
        if not response.data:
            raise RuntimeError("Failed to save analysis history")

    def load(self, owner_key: str) -> list[AnalysisResult]:
        """Return the owner's history, newest first."""
        response = (
            self.client.table("analysis_history")
            .select("result_json, position")
            .eq("owner_key", owner_key)
            .order("position")
            .execute()
        )
        rows = response.data or []
        return [AnalysisResult.model_validate(row["result_json"]) for row in rows]

    def delete(self, owner_key: str) -> None:
        """Delete every stored row for the owner."""
        self.client.table("analysis_history").delete().eq(
            "owner_key", owner_key
        ).execute()
