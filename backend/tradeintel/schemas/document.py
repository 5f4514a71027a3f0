import base64
from dataclasses import dataclass, field

SUPPORTED_MEDIA_TYPES = frozenset({
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/tiff",
})


@dataclass(frozen=True)
class DocumentPayload:
    """A validated document ready to be sent to an OCR-capable provider."""

    data: bytes
    media_type: str
    filename: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def is_pdf(self) -> bool:
        return self.media_type == "application/pdf"

    def to_base64(self) -> str:
        return base64.standard_b64encode(self.data).decode("utf-8")

    def to_data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.to_base64()}"
