"""
Document loader that validates caller input before any provider is involved.

Supports:
- PDF: passed through unchanged (providers read PDFs natively)
- Images (PNG/JPEG/WEBP): downscaled when larger than MAX_IMAGE_DIMENSION
- TIFF: converted to PNG, since not every provider accepts TIFF
"""

import io
import logging
from pathlib import Path

import aiofiles
from PIL import Image, UnidentifiedImageError

from tradeintel.errors import ValidationError
from tradeintel.schemas.document import SUPPORTED_MEDIA_TYPES, DocumentPayload
from tradeintel.schemas.pipeline import DocumentType

logger = logging.getLogger("tradeintel.loader")

# Max image dimension before resizing (vision endpoints have limits)
MAX_IMAGE_DIMENSION = 2048

MEDIA_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/tif": "image/tiff",
}

EXTENSION_MEDIA_TYPES = {
    "pdf": "application/pdf",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "tif": "image/tiff",
    "tiff": "image/tiff",
}

PIL_FORMATS = {
    "image/png": "PNG",
    "image/jpeg": "JPEG",
    "image/webp": "WEBP",
}


def coerce_document_type(value: DocumentType | str | None) -> DocumentType:
    """Accept enum members, canonical values and common aliases ("boe", "bill_of_entry")."""
    if value is None or value == "":
        return DocumentType.GENERAL
    try:
        return DocumentType(value)
    except ValueError:
        raise ValidationError(f"Unsupported document type: {value!r}") from None


def guess_media_type(filename: str | None) -> str | None:
    if not filename or "." not in filename:
        return None
    return EXTENSION_MEDIA_TYPES.get(filename.rsplit(".", 1)[-1].lower())


class DocumentLoader:
    """Validates and normalises documents into ``DocumentPayload`` values."""

    def __init__(self, max_size_mb: float = 20):
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    async def load(
        self, file_path: str | Path, media_type: str | None = None, filename: str | None = None
    ) -> DocumentPayload:
        """Read a document from disk.

        Args:
            file_path: Path to the document file.
            media_type: MIME type; guessed from the extension when omitted.
            filename: Name to report; defaults to the file's basename.

        Raises:
            ValidationError: missing, empty, oversize or unsupported document.
        """
        path = Path(file_path)
        if not path.is_file():
            raise ValidationError(f"Document not found: {file_path}")

        size = path.stat().st_size
        self._check_size(size, path.name)

        async with aiofiles.open(path, mode="rb") as f:
            data = await f.read()

        return self.from_bytes(data, media_type or guess_media_type(path.name), filename or path.name)

    def from_bytes(self, data: bytes, media_type: str | None, filename: str | None = None) -> DocumentPayload:
        """Validate in-memory bytes (e.g. an HTTP upload)."""
        if media_type is None:
            media_type = guess_media_type(filename)
        normalized = self._normalize_media_type(media_type)
        self._check_size(len(data), filename)

        if normalized == "application/pdf":
            if not data.startswith(b"%PDF"):
                raise ValidationError(f"{filename or 'Document'} is not a valid PDF")
            return DocumentPayload(
                data=data,
                media_type=normalized,
                filename=filename,
                metadata={"original_media_type": media_type, "original_size_bytes": len(data)},
            )

        return self._prepare_image(data, normalized, filename)

    def _normalize_media_type(self, media_type: str | None) -> str:
        if not media_type:
            raise ValidationError("Media type is required")
        normalized = media_type.split(";", 1)[0].strip().lower()
        normalized = MEDIA_TYPE_ALIASES.get(normalized, normalized)
        if normalized not in SUPPORTED_MEDIA_TYPES:
            raise ValidationError(
                f"Unsupported media type: {media_type}. "
                f"Supported: {', '.join(sorted(SUPPORTED_MEDIA_TYPES))}"
            )
        return normalized

    def _check_size(self, size: int, name: str | None) -> None:
        if size == 0:
            raise ValidationError(f"{name or 'Document'} is empty")
        if size > self.max_size_bytes:
            raise ValidationError(
                f"{name or 'Document'} is {size / (1024 * 1024):.1f} MB; "
                f"limit is {self.max_size_bytes / (1024 * 1024):.0f} MB"
            )

    def _prepare_image(self, data: bytes, media_type: str, filename: str | None) -> DocumentPayload:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise ValidationError(f"{filename or 'Document'} is not a readable image: {e}") from e

        with img:
            original_size = img.size
            resized = max(img.size) > MAX_IMAGE_DIMENSION
            converted = media_type == "image/tiff"

            if not resized and not converted:
                return DocumentPayload(
                    data=data,
                    media_type=media_type,
                    filename=filename,
                    metadata={"width": original_size[0], "height": original_size[1]},
                )

            if resized:
                ratio = MAX_IMAGE_DIMENSION / max(img.size)
                new_size = (int(img.size[0] * ratio), int(img.size[1] * ratio))
                img = img.resize(new_size, Image.Resampling.LANCZOS)

            out_media_type = "image/png" if converted else media_type
            out_format = PIL_FORMATS[out_media_type]
            if out_format == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")

            img_bytes = io.BytesIO()
            img.save(img_bytes, format=out_format)
            final_size = img.size

        logger.info(
            "Normalised image %s: %s %dx%d -> %s %dx%d",
            filename or "<upload>",
            media_type, *original_size,
            out_media_type, *final_size,
        )
        return DocumentPayload(
            data=img_bytes.getvalue(),
            media_type=out_media_type,
            filename=filename,
            metadata={
                "original_media_type": media_type,
                "original_width": original_size[0],
                "original_height": original_size[1],
                "width": final_size[0],
                "height": final_size[1],
                "resized": resized,
            },
        )
