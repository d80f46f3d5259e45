"""Tests for request building and response validation."""

import asyncio
import json
from datetime import UTC, datetime

import pytest

from nutri_sync.domain.analysis import BiomarkerLevel, FoodStatus
from nutri_sync.errors import EmptyResponse, InputError, MalformedResponse, ServiceError
from nutri_sync.services.analysis import (
    ANALYSIS_PROMPT,
    ANALYSIS_SCHEMA,
    AnalysisService,
    MonotonicClock,
    build_analysis_request,
    parse_analysis_response,
)
from tests.conftest import (
    JPEG_BYTES,
    PNG_BYTES,
    FakeReasoningClient,
    analysis_payload,
    make_attachment,
)


def test_request_orders_reports_before_food() -> None:
    reports = [make_attachment("r1.pdf"), make_attachment("r2.pdf")]
    foods = [
        make_attachment("f1.png", PNG_BYTES),
        make_attachment("f2.png", PNG_BYTES),
        make_attachment("f3.png", PNG_BYTES),
    ]

    request = build_analysis_request(reports, foods)

    assert request.instruction == ANALYSIS_PROMPT
    assert [a.display_handle for a in request.attachments] == [
        "r1.pdf",
        "r2.pdf",
        "f1.png",
        "f2.png",
        "f3.png",
    ]


@pytest.mark.parametrize(
    ("reports", "foods"),
    [
        ([], [make_attachment("f.png", PNG_BYTES)]),
        ([make_attachment("r.pdf")], []),
        ([], []),
    ],
)
def test_request_requires_both_lists(reports, foods) -> None:
    with pytest.raises(InputError):
        build_analysis_request(reports, foods)


def test_prompt_describes_attachment_order() -> None:
    assert "first set of attachments are the MEDICAL LAB REPORTS" in ANALYSIS_PROMPT
    assert "second set of attachments are the FOOD PHOTOS" in ANALYSIS_PROMPT


def test_parse_stamps_identity_and_time() -> None:
    before = datetime.now(tz=UTC)

    result = parse_analysis_response(json.dumps(analysis_payload()))

    assert result.compatibility_score == 42
    assert result.owner_id is None
    assert result.is_synced is False
    assert result.created_at >= before
    assert result.food_items[0].status is FoodStatus.AVOID
    assert result.biomarkers[0].level is BiomarkerLevel.HIGH


def test_parse_generates_unique_ids() -> None:
    text = json.dumps(analysis_payload())

    first = parse_analysis_response(text)
    second = parse_analysis_response(text)

    assert first.id != second.id
    assert second.created_at > first.created_at


@pytest.mark.parametrize("text", [None, "", "   \n"])
def test_parse_empty_response(text) -> None:
    with pytest.raises(EmptyResponse):
        parse_analysis_response(text)


def test_parse_missing_score_is_malformed() -> None:
    payload = analysis_payload()
    del payload["compatibility_score"]

    with pytest.raises(MalformedResponse):
        parse_analysis_response(json.dumps(payload))


@pytest.mark.parametrize("score", [-1, 101, 55.5, "80", True])
def test_parse_rejects_invalid_scores(score) -> None:
    with pytest.raises(MalformedResponse):
        parse_analysis_response(json.dumps(analysis_payload(compatibility_score=score)))


@pytest.mark.parametrize("score", [0, 100])
def test_parse_accepts_score_bounds(score) -> None:
    result = parse_analysis_response(
        json.dumps(analysis_payload(compatibility_score=score))
    )

    assert result.compatibility_score == score


def test_parse_rejects_unknown_food_status() -> None:
    payload = analysis_payload(
        food_items=[{"name": "Cake", "status": "RISKY", "reason": "Sugar 200 mg/dL"}]
    )

    with pytest.raises(MalformedResponse):
        parse_analysis_response(json.dumps(payload))


def test_parse_rejects_empty_food_items() -> None:
    with pytest.raises(MalformedResponse):
        parse_analysis_response(json.dumps(analysis_payload(food_items=[])))


def test_parse_rejects_invalid_json() -> None:
    with pytest.raises(MalformedResponse):
        parse_analysis_response("{not json")


def test_monotonic_clock_never_repeats() -> None:
    clock = MonotonicClock()

    readings = [clock.now() for _ in range(50)]

    assert readings == sorted(readings)
    assert len(set(readings)) == len(readings)


def test_schema_food_status_is_closed() -> None:
    properties = ANALYSIS_SCHEMA["properties"]
    food_schema = properties["food_items"]["items"]  # type: ignore[index]
    status_schema = food_schema["properties"]["status"]

    assert status_schema["enum"] == ["SAFE", "MODERATE", "AVOID"]


def test_service_sends_request_and_validates_reply() -> None:
    client = FakeReasoningClient()
    service = AnalysisService(
        client=client, model="gpt-5.2", reasoning_effort="medium", store=False
    )
    request = build_analysis_request(
        [make_attachment("r.pdf")], [make_attachment("f.jpg", JPEG_BYTES)]
    )

    result = asyncio.run(service.analyze(request))

    assert result.summary
    call = client.calls[0]
    assert call["model"] == "gpt-5.2"
    assert call["schema"] is ANALYSIS_SCHEMA
    assert [a.display_handle for a in call["attachments"]] == ["r.pdf", "f.jpg"]


def test_service_wraps_client_failures() -> None:
    client = FakeReasoningClient(error=TimeoutError("timed out"))
    service = AnalysisService(
        client=client, model="gpt-5.2", reasoning_effort=None, store=False
    )
    request = build_analysis_request(
        [make_attachment("r.pdf")], [make_attachment("f.png", PNG_BYTES)]
    )

    with pytest.raises(ServiceError) as excinfo:
        asyncio.run(service.analyze(request))

    assert not isinstance(excinfo.value, MalformedResponse)
    assert isinstance(excinfo.value.__cause__, TimeoutError)
