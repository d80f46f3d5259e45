"""Models for analysis results returned by the reasoning service."""

import re
from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field


class FoodStatus(StrEnum):
    """Closed set of food compatibility verdicts."""

    SAFE = "SAFE"
    MODERATE = "MODERATE"
    AVOID = "AVOID"


class BiomarkerLevel(StrEnum):
    """Clinical categories used to classify free-form biomarker statuses."""

    NORMAL = "normal"
    HIGH = "high"
    LOW = "low"
    CRITICAL = "critical"


_LEVEL_MATCH_ORDER = (
    BiomarkerLevel.CRITICAL,
    BiomarkerLevel.HIGH,
    BiomarkerLevel.LOW,
    BiomarkerLevel.NORMAL,
)


class Biomarker(BaseModel):
    """Single biomarker extracted from a lab report."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    status: str
    reference_range: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def level(self) -> BiomarkerLevel | None:
        """Classify the free-form status into a known clinical category."""
        words = set(re.findall(r"[a-z]+", self.status.lower()))
        for level in _LEVEL_MATCH_ORDER:
            if level.value in words:
                return level
        return None

    @property
    def is_flagged(self) -> bool:
        return self.level in {
            BiomarkerLevel.HIGH,
            BiomarkerLevel.LOW,
            BiomarkerLevel.CRITICAL,
        }


class FoodItem(BaseModel):
    """Single food item with its compatibility verdict."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: FoodStatus
    reason: str
    suggested_swap: str | None = None


class AnalysisPayload(BaseModel):
    """Structured output contract of the reasoning service."""

    compatibility_score: int = Field(ge=0, le=100, strict=True)
    biomarkers: list[Biomarker]
    food_items: list[FoodItem]
    summary: str


class AnalysisResult(AnalysisPayload):
    """Validated analysis stamped with identity and time."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    created_at: datetime
    owner_id: UUID | None = None
    is_synced: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def score_band(self) -> str:
        """Return the display band for the compatibility score."""
        return score_band(self.compatibility_score)

    def avoided_items(self) -> list[FoodItem]:
        """Return the food items marked AVOID, in result order."""
        return [item for item in self.food_items if item.status is FoodStatus.AVOID]

    def share_text(self) -> str:
        """Render a plain-text summary suitable for sharing."""
        lines = [
            "Nutri-Sync Analysis",
            "",
            f"Score: {self.compatibility_score}/100",
            "",
            self.summary,
            "",
            "Key Issues:",
        ]
        lines.extend(f"- {item.name}: {item.reason}" for item in self.avoided_items())
        return "\n".join(lines)


def score_band(score: int) -> str:
    """Map a compatibility score to its display band."""
    if score >= 90:
        return "excellent"
    if score >= 70:
        return "good"
    if score >= 50:
        return "caution"
    return "danger"
