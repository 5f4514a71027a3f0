from tradeintel.document_pipeline.extraction import ExtractionAdapter
from tradeintel.document_pipeline.fallback import FallbackSynthesizer
from tradeintel.document_pipeline.loader import DocumentLoader, coerce_document_type
from tradeintel.document_pipeline.pipeline import PipelineOrchestrator
from tradeintel.document_pipeline.reasoning import ReasoningAdapter
from tradeintel.document_pipeline.response_parser import ResponseParser

__all__ = [
    "DocumentLoader",
    "ExtractionAdapter",
    "FallbackSynthesizer",
    "PipelineOrchestrator",
    "ReasoningAdapter",
    "ResponseParser",
    "coerce_document_type",
]
