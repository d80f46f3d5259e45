"""Domain models for uploaded files."""

import base64
from dataclasses import dataclass


@dataclass(frozen=True)
class RawFile:
    """A file as selected by the user, before encoding."""

    filename: str
    content: bytes
    media_type: str | None = None


@dataclass(frozen=True)
class FileAttachment:
    """An encoded file ready to be sent to the reasoning service."""

    raw_bytes: bytes
    encoded_payload: str
    media_type: str
    display_handle: str

    @classmethod
    def from_bytes(
        cls, raw_bytes: bytes, media_type: str, display_handle: str
    ) -> "FileAttachment":
        """Encode raw bytes into a new attachment."""
        encoded = base64.b64encode(raw_bytes).decode("ascii")
        return cls(
            raw_bytes=raw_bytes,
            encoded_payload=encoded,
            media_type=media_type,
            display_handle=display_handle,
        )

    @property
    def is_image(self) -> bool:
        """Return True when the attachment is an image."""
        return self.media_type.startswith("image/")

    @property
    def size(self) -> int:
        return len(self.raw_bytes)

    def data_url(self) -> str:
        """Render the attachment as a base64 data URL."""
        return f"data:{self.media_type};base64,{self.encoded_payload}"
