"""OpenAI Responses API client for report and food analysis."""

from collections.abc import Sequence
from dataclasses import dataclass

from openai import AsyncOpenAI

from nutri_sync.domain.attachments import FileAttachment
from nutri_sync.services.analysis import ReasoningClient


@dataclass
class OpenAIReasoningClient(ReasoningClient):
    """Reasoning client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIReasoningClient":
        """Create an OpenAI reasoning client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

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
        """Call OpenAI Responses API with structured outputs."""
        content: list[dict[str, object]] = [{"type": "input_text", "text": instruction}]
        content.extend(_attachment_part(attachment) for attachment in attachments)
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "compatibility_analysis",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        return response.output_text or ""


def _attachment_part(attachment: FileAttachment) -> dict[str, object]:
    """Build an input part; images inline, documents as files."""
    if attachment.is_image:
        return {"type": "input_image", "image_url": attachment.data_url()}
    return {
        "type": "input_file",
        "filename": attachment.display_handle,
        "file_data": attachment.data_url(),
    }
