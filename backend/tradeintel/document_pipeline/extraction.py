"""
ExtractionAdapter: OCR stage.

Flow:
  1. Registry selects the best available document-capable OCR provider
     ("fallback" if none). A provider that turns unavailable while the call
     waits in its throttle queue is skipped without a failure report
  2. Document-type prompt + document payload sent to that provider
  3. Response parsed into structured data; on ParseError the regex entity
     pass is used instead, with a fixed lower confidence
  4. Any provider error is reported to the registry and answered by the
     synthesizer, so ``extract`` never raises
"""

import logging

from tradeintel.availability.registry import ProviderAvailabilityRegistry
from tradeintel.document_pipeline.fallback import FallbackSynthesizer
from tradeintel.document_pipeline.prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_prompt
from tradeintel.document_pipeline.response_parser import ResponseParser
from tradeintel.errors import ParseError, ProviderError, ProviderFailure, ProviderUnavailable
from tradeintel.providers.base import ProviderClient
from tradeintel.schemas.document import DocumentPayload
from tradeintel.schemas.pipeline import (
    FALLBACK_PROVIDER,
    DocumentType,
    Entity,
    ExtractionResult,
    FallbackReason,
    TaskKind,
)

logger = logging.getLogger("tradeintel.extraction")

# Confidence reported when the provider answered but no JSON could be parsed
UNPARSED_CONFIDENCE = 60
DEFAULT_CONFIDENCE = 85

EXPECTED_KEYS = (
    "documentType", "invoiceNumber", "boeNumber", "items", "totals",
    "extractedText", "entities", "confidence",
)


def _clamp_confidence(value, default: float = DEFAULT_CONFIDENCE) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(100.0, confidence))


def _entities_from(parsed: dict) -> list[Entity] | None:
    raw = parsed.get("entities")
    if not isinstance(raw, list):
        return None
    entities = []
    for item in raw:
        if not isinstance(item, dict) or not item.get("type") or item.get("value") in (None, ""):
            continue
        entities.append(Entity(
            type=str(item["type"]),
            value=str(item["value"]),
            confidence=_clamp_confidence(item.get("confidence"), UNPARSED_CONFIDENCE),
        ))
    return entities


class ExtractionAdapter:
    """Runs the OCR stage against the best available provider."""

    def __init__(
        self,
        providers: dict[str, ProviderClient],
        registry: ProviderAvailabilityRegistry,
        synthesizer: FallbackSynthesizer,
        parser: ResponseParser | None = None,
        call_timeout_seconds: float = 30.0,
        preference: list[str] | None = None,
    ):
        self.providers = providers
        self.registry = registry
        self.synthesizer = synthesizer
        self.parser = parser or ResponseParser()
        self.call_timeout_seconds = call_timeout_seconds
        self.preference = preference

    async def extract(self, document: DocumentPayload, document_type: DocumentType) -> ExtractionResult:
        """Extract structured data from one document.

        Args:
            document: Validated document payload.
            document_type: Caller's type hint; selects the extraction schema.

        Returns:
            ExtractionResult from a real provider or, failing that, the synthesizer.
        """
        order = self._ocr_order()
        remaining = list(order)
        while True:
            provider_id = self.registry.select_best_provider(TaskKind.OCR, remaining)
            if provider_id == FALLBACK_PROVIDER:
                reason = self.registry.fallback_reason(TaskKind.OCR, order)
                logger.info("No OCR provider available (%s); using fallback", reason.value)
                return self.synthesizer.synthesize_extraction(document_type, reason, document.filename)
            remaining.remove(provider_id)

            client = self.providers[provider_id]
            try:
                raw_text = await self._call(client, document, document_type)
            except ProviderUnavailable as e:
                # Call not sent; try the next provider
                logger.info("OCR via %s skipped: %s", provider_id, e)
                continue
            except ProviderError as e:
                logger.warning("OCR via %s failed (%s): %s", provider_id, e.kind.value, e)
                self.registry.report_failure(provider_id, e)
                return self.synthesizer.synthesize_extraction(
                    document_type, FallbackReason.PROVIDER_ERROR, document.filename
                )
            except Exception as e:
                logger.exception("Unexpected error during OCR via %s", provider_id)
                self.registry.report_failure(provider_id, ProviderFailure(provider_id, str(e)))
                return self.synthesizer.synthesize_extraction(
                    document_type, FallbackReason.PROVIDER_ERROR, document.filename
                )

            self.registry.report_success(provider_id)
            return self._build_result(raw_text, provider_id, document, document_type)

    def _ocr_order(self) -> list[str]:
        """OCR preference order, limited to providers that accept document payloads."""
        order = self.preference if self.preference is not None else self.registry.preferences.get(TaskKind.OCR, [])
        return [
            pid for pid in order
            if pid in self.providers and self.providers[pid].supports_documents
        ]

    async def _call(self, client: ProviderClient, document: DocumentPayload, document_type: DocumentType) -> str:
        return await client.generate(
            build_extraction_prompt(document_type),
            system=EXTRACTION_SYSTEM_PROMPT,
            document=document,
            timeout=self.call_timeout_seconds,
            queue_timeout=self.call_timeout_seconds,
            admit=lambda: self.registry.is_available(client.provider_id),
        )

    def _build_result(
        self,
        raw_text: str,
        provider_id: str,
        document: DocumentPayload,
        document_type: DocumentType,
    ) -> ExtractionResult:
        metadata = {
            "filename": document.filename,
            "media_type": document.media_type,
            "size_bytes": document.size_bytes,
        }
        try:
            parsed = self.parser.parse_structured(raw_text, EXPECTED_KEYS)
        except ParseError:
            logger.warning("OCR response from %s had no parseable JSON; using entity pass", provider_id)
            return ExtractionResult(
                success=True,
                document_type=document_type,
                raw_text=raw_text,
                structured_data={},
                entities=self.parser.extract_entities(raw_text),
                confidence=UNPARSED_CONFIDENCE,
                provider_id=provider_id,
                metadata={**metadata, "parse_fallback": True},
            )

        entities = _entities_from(parsed)
        if not entities:
            entities = self.parser.extract_entities(raw_text)
        confidence = _clamp_confidence(parsed.pop("confidence", None))
        parsed.pop("entities", None)

        logger.info(
            "OCR via %s: %d fields, %d entities, confidence %.0f",
            provider_id, len(parsed), len(entities), confidence,
        )
        return ExtractionResult(
            success=True,
            document_type=document_type,
            raw_text=raw_text,
            structured_data=parsed,
            entities=entities,
            confidence=confidence,
            provider_id=provider_id,
            metadata=metadata,
        )
