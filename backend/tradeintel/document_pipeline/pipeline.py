"""
Document intelligence pipeline.

Flow:
  1. Validate the document (DocumentLoader)
  2. OCR stage: extract structured data (ExtractionAdapter)
  3. Compliance stage: rule checklist over the extracted data (ReasoningAdapter)
  4. Optional classification of extracted line items
  5. Return an immutable PipelineRun with per-stage provider and timing

Only ValidationError escapes ``run``; every provider problem has already been
resolved into an alternate provider or a synthesized result by the adapters.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from tradeintel.availability.registry import ProviderAvailabilityRegistry
from tradeintel.config import Settings
from tradeintel.document_pipeline.extraction import ExtractionAdapter
from tradeintel.document_pipeline.fallback import FallbackSynthesizer
from tradeintel.document_pipeline.loader import DocumentLoader, coerce_document_type
from tradeintel.document_pipeline.reasoning import ReasoningAdapter
from tradeintel.document_pipeline.response_parser import ResponseParser
from tradeintel.errors import ValidationError
from tradeintel.providers.base import ProviderClient
from tradeintel.schemas.document import DocumentPayload
from tradeintel.schemas.pipeline import (
    FALLBACK_PROVIDER,
    BatchRunError,
    BatchRunResult,
    CodeSuggestion,
    CodeSuggestionResponse,
    DocumentType,
    PipelineRun,
    StageSummary,
    TaskKind,
)

logger = logging.getLogger("tradeintel.pipeline")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _item_descriptions(structured_data: dict[str, Any], limit: int) -> list[str]:
    items = structured_data.get("items")
    if not isinstance(items, list):
        return []
    descriptions: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        description = str(item.get("description") or "").strip()
        if description and description not in descriptions:
            descriptions.append(description)
        if len(descriptions) >= limit:
            break
    return descriptions


class PipelineOrchestrator:
    """Runs documents through extraction, compliance and optional classification."""

    def __init__(
        self,
        extraction: ExtractionAdapter,
        reasoning: ReasoningAdapter,
        loader: DocumentLoader | None = None,
        max_classified_items: int = 3,
    ):
        self.extraction = extraction
        self.reasoning = reasoning
        self.loader = loader or DocumentLoader()
        self.max_classified_items = max_classified_items

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: ProviderAvailabilityRegistry,
        providers: dict[str, ProviderClient],
        synthesizer: FallbackSynthesizer | None = None,
    ) -> "PipelineOrchestrator":
        synthesizer = synthesizer or FallbackSynthesizer(seed=settings.fallback_seed)
        parser = ResponseParser()
        extraction = ExtractionAdapter(
            providers,
            registry,
            synthesizer,
            parser,
            call_timeout_seconds=settings.provider_call_timeout_seconds,
        )
        reasoning = ReasoningAdapter(
            providers,
            registry,
            synthesizer,
            parser,
            call_timeout_seconds=settings.provider_call_timeout_seconds,
        )
        return cls(
            extraction,
            reasoning,
            loader=DocumentLoader(settings.max_document_size_mb),
            max_classified_items=settings.max_classified_items,
        )

    async def run(
        self,
        document: DocumentPayload,
        document_type: DocumentType | str = DocumentType.GENERAL,
        include_classification: bool = False,
        custom_rules: list[str] | None = None,
    ) -> PipelineRun:
        """Run one document through every stage.

        Args:
            document: Validated document payload.
            document_type: Type hint (enum value or alias such as "boe").
            include_classification: Also suggest HS codes for extracted line items.
            custom_rules: Extra compliance rules appended to the checklist.

        Raises:
            ValidationError: invalid document type or empty document.
        """
        doc_type = coerce_document_type(document_type)
        if document.size_bytes == 0:
            raise ValidationError(f"{document.filename or 'Document'} is empty")

        start = time.monotonic()
        stages: list[StageSummary] = []
        logger.info("Pipeline run: %s (%s)", document.filename or "<upload>", doc_type.value)

        # Step 1: OCR
        stage_start = time.monotonic()
        extraction = await self.extraction.extract(document, doc_type)
        stages.append(StageSummary(
            stage=TaskKind.OCR,
            success=extraction.success,
            provider_id=extraction.provider_id,
            is_synthesized=extraction.is_synthesized,
            confidence_or_score=extraction.confidence,
            elapsed_ms=_elapsed_ms(stage_start),
        ))

        # Step 2: Compliance
        stage_start = time.monotonic()
        compliance_input = extraction.structured_data or {"extractedText": extraction.raw_text}
        compliance = await self.reasoning.analyze_compliance(compliance_input, doc_type, custom_rules)
        stages.append(StageSummary(
            stage=TaskKind.COMPLIANCE,
            success=compliance.success,
            provider_id=compliance.provider_id,
            is_synthesized=compliance.is_synthesized,
            confidence_or_score=compliance.score,
            elapsed_ms=_elapsed_ms(stage_start),
        ))

        # Step 3: Classification (optional)
        classifications: dict[str, list[CodeSuggestion]] = {}
        if include_classification:
            stage_start = time.monotonic()
            descriptions = _item_descriptions(extraction.structured_data, self.max_classified_items)
            results = await asyncio.gather(*(self.reasoning.classify(d) for d in descriptions))
            classifications = dict(zip(descriptions, results))
            suggestions = [s for result in results for s in result]
            stages.append(self._classification_stage(suggestions, _elapsed_ms(stage_start)))

        total_ms = _elapsed_ms(start)
        run = PipelineRun(
            document_type=doc_type,
            filename=document.filename,
            success=True,
            extraction=extraction,
            compliance=compliance,
            classifications=classifications,
            stages=stages,
            total_elapsed_ms=total_ms,
        )
        logger.info(
            "Pipeline run %s complete in %dms (synthesized stages: %s)",
            run.run_id, total_ms, ", ".join(s.value for s in run.synthesized_stages) or "none",
        )
        return run

    @staticmethod
    def _classification_stage(suggestions: list[CodeSuggestion], elapsed_ms: int) -> StageSummary:
        real = [s for s in suggestions if not s.is_synthesized]
        providers = {s.provider_id for s in real}
        if not suggestions:
            provider_id = FALLBACK_PROVIDER
        elif len(providers) == 1:
            provider_id = providers.pop()
        elif providers:
            provider_id = ",".join(sorted(providers))
        else:
            provider_id = FALLBACK_PROVIDER
        return StageSummary(
            stage=TaskKind.CLASSIFICATION,
            success=True,
            provider_id=provider_id,
            is_synthesized=not real,
            confidence_or_score=max((s.confidence for s in suggestions), default=None),
            elapsed_ms=elapsed_ms,
        )

    async def run_file(
        self,
        file_path: str | Path,
        media_type: str | None = None,
        document_type: DocumentType | str = DocumentType.GENERAL,
        include_classification: bool = False,
        custom_rules: list[str] | None = None,
    ) -> PipelineRun:
        document = await self.loader.load(file_path, media_type)
        return await self.run(document, document_type, include_classification, custom_rules)

    async def run_batch(
        self,
        documents: list[DocumentPayload],
        document_type: DocumentType | str = DocumentType.GENERAL,
        include_classification: bool = False,
    ) -> BatchRunResult:
        """Run several documents concurrently. Per-document ValidationErrors are collected."""
        start = time.monotonic()
        outcomes = await asyncio.gather(
            *(self.run(doc, document_type, include_classification) for doc in documents),
            return_exceptions=True,
        )

        runs: list[PipelineRun] = []
        errors: list[BatchRunError] = []
        for index, (doc, outcome) in enumerate(zip(documents, outcomes)):
            if isinstance(outcome, ValidationError):
                errors.append(BatchRunError(index=index, filename=doc.filename, message=str(outcome)))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                runs.append(outcome)

        logger.info("Batch of %d documents: %d succeeded, %d failed", len(documents), len(runs), len(errors))
        return BatchRunResult(
            total=len(documents),
            succeeded=len(runs),
            failed=len(errors),
            runs=runs,
            errors=errors,
            total_elapsed_ms=_elapsed_ms(start),
        )

    async def reprocess(
        self,
        previous: PipelineRun,
        document: DocumentPayload,
        include_classification: bool | None = None,
    ) -> PipelineRun:
        """Run the document again with the same type; the result is a new run with a new id."""
        if include_classification is None:
            include_classification = bool(previous.classifications)
        logger.info("Reprocessing run %s", previous.run_id)
        return await self.run(document, previous.document_type, include_classification)

    async def suggest_codes(self, product_description: str, additional_info: str = "") -> CodeSuggestionResponse:
        suggestions = await self.reasoning.classify(product_description, additional_info)
        real = [s for s in suggestions if not s.is_synthesized]
        return CodeSuggestionResponse(
            product_description=product_description.strip(),
            suggestions=suggestions,
            provider_id=real[0].provider_id if real else FALLBACK_PROVIDER,
            is_synthesized=not real,
            fallback_reason=None if real else suggestions[0].fallback_reason,
        )
