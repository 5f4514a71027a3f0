from tradeintel.schemas.health import HealthResponse, ProvidersResponse
from tradeintel.schemas.pipeline import (
    FALLBACK_PROVIDER,
    CodeSuggestion,
    ComplianceResult,
    DocumentType,
    ExtractionResult,
    PipelineRun,
    TaskKind,
)

__all__ = [
    "FALLBACK_PROVIDER",
    "CodeSuggestion",
    "ComplianceResult",
    "DocumentType",
    "ExtractionResult",
    "HealthResponse",
    "PipelineRun",
    "ProvidersResponse",
    "TaskKind",
]
