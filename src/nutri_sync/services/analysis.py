"""Analysis request building and response validation."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID, uuid4

from pydantic import ValidationError

from nutri_sync.domain.analysis import AnalysisPayload, AnalysisResult
from nutri_sync.domain.attachments import FileAttachment
from nutri_sync.errors import EmptyResponse, InputError, MalformedResponse, ServiceError

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """\
You are Nutri-Sync, an expert clinical nutritionist and medical analyst.

GOAL: Cross-reference medical lab report(s) with food photo(s) to identify \
personalized dietary risks and generate a compatibility score.

INPUT DATA:
- The first set of attachments are the MEDICAL LAB REPORTS.
- The second set of attachments are the FOOD PHOTOS.

STEP 1: ANALYZE REPORTS
- Extract the key biomarkers from ALL reports: HbA1c, glucose, cholesterol \
(LDL, HDL, triglycerides), blood pressure, iron and similar.
- Mark each value as Normal, High, Low or Critical.
- If several pages are provided, consolidate the findings.

STEP 2: ANALYZE FOOD
- Identify every distinct food item across ALL food photos.
- Be skeptical of healthy-looking food that contradicts the patient's \
pathology. A fruit salad with mango and grapes is risky for a patient with \
a high HbA1c.

STEP 3: COMPATIBILITY CHECK AND SCORING
- Classify every food item as SAFE, MODERATE or AVOID.
- STRICT RULE: every reason MUST quote the patient's specific biomarker \
value, e.g. "High saturated fat is dangerous for your LDL of 160 mg/dL."
- Compute compatibility_score as an integer from 0 to 100:
  90-100 everything is safe; 70-89 minor issues or moderation needed; \
50-69 some items should be avoided; below 50 dangerous combination.

STEP 4: SUGGEST SWAPS
- For every AVOID or MODERATE item provide a realistic, healthier \
alternative in suggested_swap. Use null for SAFE items.

Finish with a two-sentence summary of the overall meal compatibility.
"""

ANALYSIS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "compatibility_score": {"type": "integer", "minimum": 0, "maximum": 100},
        "biomarkers": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "value": {"type": "string"},
                    "status": {"type": "string"},
                    "reference_range": {
                        "anyOf": [{"type": "string"}, {"type": "null"}]
                    },
                },
                "required": ["name", "value", "status", "reference_range"],
                "additionalProperties": False,
            },
        },
        "food_items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "status": {
                        "type": "string",
                        "enum": ["SAFE", "MODERATE", "AVOID"],
                    },
                    "reason": {"type": "string"},
                    "suggested_swap": {
                        "anyOf": [{"type": "string"}, {"type": "null"}]
                    },
                },
                "required": ["name", "status", "reason", "suggested_swap"],
                "additionalProperties": False,
            },
        },
        "summary": {"type": "string"},
    },
    "required": ["compatibility_score", "biomarkers", "food_items", "summary"],
    "additionalProperties": False,
}


@dataclass(frozen=True)
class AnalysisRequest:
    """A single request to the reasoning service."""

    instruction: str
    reports: tuple[FileAttachment, ...]
    foods: tuple[FileAttachment, ...]

    @property
    def attachments(self) -> tuple[FileAttachment, ...]:
        """Return reports first, then food, each in input order."""
        return self.reports + self.foods


def build_analysis_request(
    reports: Sequence[FileAttachment], foods: Sequence[FileAttachment]
) -> AnalysisRequest:
    """Assemble the request or fail before any network call."""
    if not reports:
        raise InputError("Upload at least one medical report")
    if not foods:
        raise InputError("Upload at least one food photo")
    return AnalysisRequest(
        instruction=ANALYSIS_PROMPT,
        reports=tuple(reports),
        foods=tuple(foods),
    )


@dataclass
class MonotonicClock:
    """UTC clock whose readings never repeat or go backwards."""

    _last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now(tz=UTC)
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current


_CLOCK = MonotonicClock()


def parse_analysis_response(
    text: str | None,
    *,
    owner_id: UUID | None = None,
    expect_food_items: bool = True,
    clock: MonotonicClock = _CLOCK,
) -> AnalysisResult:
    """Validate the raw service reply and stamp it with an id and timestamp."""
    if text is None or not text.strip():
        raise EmptyResponse("Reasoning service returned an empty response")
    try:
        payload = AnalysisPayload.model_validate_json(text)
    except ValidationError as exc:
        raise MalformedResponse(
            f"Reasoning service response failed validation: {exc.error_count()} "
            "error(s)"
        ) from exc
    if expect_food_items and not payload.food_items:
        raise MalformedResponse("Reasoning service returned no food items")
    return AnalysisResult(
        compatibility_score=payload.compatibility_score,
        biomarkers=payload.biomarkers,
        food_items=payload.food_items,
        summary=payload.summary,
        id=uuid4(),
        created_at=clock.now(),
        owner_id=owner_id,
        is_synced=False,
    )


class ReasoningClient(Protocol):
    """Interface for the multimodal reasoning provider."""

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
        """Return the raw structured text produced by the model."""


@dataclass
class AnalysisService:
    """Service that sends analysis requests and validates the replies."""

    client: ReasoningClient
    model: str
    reasoning_effort: str | None
    store: bool
    clock: MonotonicClock = field(default_factory=MonotonicClock)

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Run one analysis; no retries are attempted."""
        try:
            text = await self.client.generate(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                instruction=request.instruction,
                attachments=request.attachments,
                schema=ANALYSIS_SCHEMA,
            )
        except ServiceError:
            raise
        except Exception as exc:
            raise ServiceError("Reasoning service call failed") from exc
        return parse_analysis_response(
            text,
            expect_food_items=bool(request.foods),
            clock=self.clock,
        )
