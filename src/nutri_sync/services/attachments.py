"""File ingestion for report and food uploads."""

import binascii
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from fnmatch import fnmatchcase

from nutri_sync.domain.attachments import FileAttachment, RawFile
from nutri_sync.errors import InputError

logger = logging.getLogger(__name__)

_FALLBACK_MEDIA_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class RejectedFile:
    """A file that could not be turned into an attachment."""

    filename: str
    reason: str


class AttachmentList:
    """Ordered, append-only list of attachments for one upload slot."""

    def __init__(self, allowed_media_types: Iterable[str]) -> None:
        self.allowed_media_types = tuple(allowed_media_types)
        self._items: list[FileAttachment] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> tuple[FileAttachment, ...]:
        """Return a snapshot of the current attachments."""
        return tuple(self._items)

    def add(self, files: Iterable[RawFile]) -> list[RejectedFile]:
        """Append accepted files and report the ones that were rejected."""
        accepted: list[FileAttachment] = []
        rejected: list[RejectedFile] = []
        for raw in files:
            media_type = resolve_media_type(raw)
            if not self.accepts(media_type):
                rejected.append(
                    RejectedFile(raw.filename, f"Unsupported file type {media_type}")
                )
                continue
            if not raw.content:
                rejected.append(RejectedFile(raw.filename, "File is empty"))
                continue
            try:
                attachment = FileAttachment.from_bytes(
                    raw.content, media_type, raw.filename
                )
            except (TypeError, ValueError, binascii.Error) as exc:
                logger.warning(
                    "Failed to encode attachment",
                    extra={"filename": raw.filename, "error": str(exc)},
                )
                rejected.append(RejectedFile(raw.filename, "File could not be read"))
                continue
            accepted.append(attachment)
        self._items.extend(accepted)
        return rejected

    def remove(self, index: int) -> FileAttachment:
        """Remove the attachment at index, keeping the others in order."""
        if not 0 <= index < len(self._items):
            raise InputError(f"No attachment at position {index}")
        return self._items.pop(index)

    def clear(self) -> None:
        self._items.clear()

    def accepts(self, media_type: str) -> bool:
        """Return True when the media type matches a permitted pattern."""
        if not self.allowed_media_types:
            return True
        return any(
            fnmatchcase(media_type, pattern) for pattern in self.allowed_media_types
        )


def resolve_media_type(raw: RawFile) -> str:
    """Return the declared media type, or sniff it from the file signature."""
    declared = (raw.media_type or "").split(";")[0].strip().lower()
    if declared and declared != _FALLBACK_MEDIA_TYPE:
        return declared
    return detect_media_type(raw.content)


def detect_media_type(content: bytes) -> str:
    """Infer a basic media type from file signatures."""
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if content[:6] in {b"GIF87a", b"GIF89a"}:
        return "image/gif"
    if content.startswith(b"%PDF-"):
        return "application/pdf"
    return _FALLBACK_MEDIA_TYPE
