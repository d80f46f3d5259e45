"""Bounded, per-owner history of analysis results."""

import logging
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from nutri_sync.domain.analysis import AnalysisResult
from nutri_sync.errors import PersistenceError

logger = logging.getLogger(__name__)

GUEST_OWNER = "guest"


class HistoryRepository(Protocol):
    """Persistence interface for analysis history."""

    def save(self, owner_key: str, history: list[AnalysisResult]) -> None:
        """Replace the stored history for an owner."""

    def load(self, owner_key: str) -> list[AnalysisResult]:
        """Return the stored history for an owner, newest first."""

    def delete(self, owner_key: str) -> None:
        """Remove the stored history for an owner."""


def owner_key(owner_id: UUID | None) -> str:
    """Return the storage key for an owner; guests share one key."""
    return str(owner_id) if owner_id is not None else GUEST_OWNER


@dataclass
class HistoryStore:
    """In-memory history log mirrored to a remote repository."""

    repository: HistoryRepository
    limit: int = 50
    _logs: dict[str, list[AnalysisResult]] = field(default_factory=dict)
    _unloaded: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("History limit must be positive")

    def append(
        self, result: AnalysisResult, owner_id: UUID | None
    ) -> list[AnalysisResult]:
        """Prepend a result to the owner's log and truncate it."""
        key = owner_key(owner_id)
        entry = result.model_copy(update={"owner_id": owner_id, "is_synced": False})
        updated = [entry, *self._log(key)][: self.limit]
        self._logs[key] = updated
        return list(updated)

    def list_results(self, owner_id: UUID | None) -> list[AnalysisResult]:
        """Return the owner's log, newest first."""
        return list(self._log(owner_key(owner_id)))

    def get(self, owner_id: UUID | None, result_id: UUID) -> AnalysisResult | None:
        """Return one entry of the owner's log, if present."""
        for entry in self._log(owner_key(owner_id)):
            if entry.id == result_id:
                return entry
        return None

    def pending_count(self, owner_id: UUID | None) -> int:
        log = self._log(owner_key(owner_id))
        return sum(1 for entry in log if not entry.is_synced)

    def clear(self, owner_id: UUID | None) -> None:
        """Empty the owner's log and remove the stored copy."""
        key = owner_key(owner_id)
        self._logs[key] = []
        self._unloaded.discard(key)
        try:
            self.repository.delete(key)
        except Exception as exc:
            raise PersistenceError(f"Failed to delete history for {key}") from exc

    def sync_pending(self, owner_id: UUID | None) -> int:
        """Mirror the owner's log and mark pending entries as synced."""
        key = owner_key(owner_id)
        current = self._log(key)
        pending_ids = {entry.id for entry in current if not entry.is_synced}
        if not pending_ids:
            return 0
        current = self._merge_remote(key)
        snapshot = [_as_synced(entry) for entry in current]
        try:
            self.repository.save(key, snapshot)
        except Exception as exc:
            raise PersistenceError(f"Failed to sync history for {key}") from exc
        # The log may have been replaced while saving; only flip what was sent.
        self._logs[key] = [
            _as_synced(entry) if entry.id in pending_ids else entry
            for entry in self._log(key)
        ]
        return len(pending_ids)

    def _log(self, key: str) -> list[AnalysisResult]:
        if key not in self._logs:
            self._logs[key] = self._load(key)
        return self._logs[key]

    def _load(self, key: str) -> list[AnalysisResult]:
        try:
            loaded = self.repository.load(key)
        except Exception:
            logger.exception("Failed to load history", extra={"owner": key})
            self._unloaded.add(key)
            return []
        return list(loaded)[: self.limit]

    def _merge_remote(self, key: str) -> list[AnalysisResult]:
        # Saving replaces the stored copy, so it must include what is stored.
        if key not in self._unloaded:
            return self._logs[key]
        try:
            remote = self.repository.load(key)
        except Exception as exc:
            raise PersistenceError(f"History for {key} could not be loaded") from exc
        self._unloaded.discard(key)
        local = self._logs[key]
        local_ids = {entry.id for entry in local}
        merged = [
            *local,
            *(_as_synced(entry) for entry in remote if entry.id not in local_ids),
        ]
        self._logs[key] = merged[: self.limit]
        return self._logs[key]


def _as_synced(entry: AnalysisResult) -> AnalysisResult:
    if entry.is_synced:
        return entry
    return entry.model_copy(update={"is_synced": True})
