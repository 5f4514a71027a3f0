import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from tradeintel.schemas.base import CamelModel

# Provider id reported for every synthesized (locally generated) result.
FALLBACK_PROVIDER = "fallback"


class DocumentType(str, enum.Enum):
    """Trade document type hint supplied by the caller."""

    INVOICE = "invoice"
    BILL_OF_ENTRY = "billOfEntry"
    GENERAL = "general"

    @classmethod
    def _missing_(cls, value: object) -> "DocumentType | None":
        if not isinstance(value, str):
            return None
        aliases = {
            "invoice": cls.INVOICE,
            "commercial_invoice": cls.INVOICE,
            "billofentry": cls.BILL_OF_ENTRY,
            "bill_of_entry": cls.BILL_OF_ENTRY,
            "boe": cls.BILL_OF_ENTRY,
            "general": cls.GENERAL,
            "default": cls.GENERAL,
        }
        return aliases.get(value.strip().lower())


class TaskKind(str, enum.Enum):
    OCR = "ocr"
    COMPLIANCE = "compliance"
    CLASSIFICATION = "classification"


class FallbackReason(str, enum.Enum):
    """Why a stage was answered by the synthesizer instead of a provider."""

    UNCONFIGURED = "unconfigured"  # no provider in the preference list has credentials
    EXHAUSTED = "exhausted"  # providers configured but currently unavailable
    PROVIDER_ERROR = "provider_error"  # the selected provider failed during this call
    UNPARSEABLE = "unparseable"  # provider answered but nothing usable could be parsed


class Severity(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


# --- Extraction (OCR stage) ---


class Entity(CamelModel):
    type: str = Field(..., description="Entity type (email, phone, amount, date, ...)")
    value: str
    confidence: float = Field(..., ge=0, le=100)


class ExtractionResult(CamelModel):
    """Structured data extracted from one document by one provider (or the synthesizer)."""

    success: bool = True
    document_type: DocumentType
    raw_text: str = ""
    structured_data: dict[str, Any] = Field(default_factory=dict)
    entities: list[Entity] = Field(default_factory=list)
    confidence: float = Field(0.0, ge=0, le=100)
    provider_id: str
    is_synthesized: bool = False
    fallback_reason: FallbackReason | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Compliance stage ---


class ComplianceCheck(CamelModel):
    name: str
    passed: bool
    severity: Severity = Severity.INFO
    message: str = ""
    field: str | None = None
    requirement: str | None = None


class ComplianceSummary(CamelModel):
    total_checks: int = 0
    passed_checks: int = 0
    failed_checks: int = 0
    warnings_count: int = 0
    critical_issues: int = 0

    @classmethod
    def from_checks(cls, checks: list[ComplianceCheck]) -> "ComplianceSummary":
        failed = [c for c in checks if not c.passed]
        return cls(
            total_checks=len(checks),
            passed_checks=len(checks) - len(failed),
            failed_checks=len(failed),
            warnings_count=sum(1 for c in failed if c.severity == Severity.WARNING),
            critical_issues=sum(1 for c in failed if c.severity == Severity.ERROR),
        )


class ComplianceResult(CamelModel):
    """Rule-checklist evaluation of extracted document data."""

    success: bool = True
    document_type: DocumentType
    is_valid: bool
    score: float = Field(..., ge=0, le=100)
    checks: list[ComplianceCheck] = Field(default_factory=list)
    errors: list[dict[str, Any]] = Field(default_factory=list)
    corrections: list[dict[str, Any]] = Field(default_factory=list)
    summary: ComplianceSummary = Field(default_factory=ComplianceSummary)
    recommendations: list[dict[str, Any]] = Field(default_factory=list)
    provider_id: str
    is_synthesized: bool = False
    fallback_reason: FallbackReason | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


# --- Classification ---


class CodeSuggestion(CamelModel):
    """Candidate HS code for a product description."""

    code: str
    description: str = ""
    confidence: float = Field(..., ge=0, le=100)
    category: str = ""
    duty_rate: str | None = None
    restrictions: list[str] = Field(default_factory=list)
    similar_products: list[str] = Field(default_factory=list)
    provider_id: str
    is_synthesized: bool = False
    fallback_reason: FallbackReason | None = None


# --- Pipeline run ---


class StageSummary(CamelModel):
    stage: TaskKind
    success: bool
    provider_id: str
    is_synthesized: bool
    confidence_or_score: float | None = None
    elapsed_ms: int = 0


class PipelineRun(CamelModel):
    """One pass of a document through the pipeline. Never mutated; reprocessing creates a new run."""

    run_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    document_type: DocumentType
    filename: str | None = None
    success: bool = True
    extraction: ExtractionResult
    compliance: ComplianceResult
    classifications: dict[str, list[CodeSuggestion]] = Field(default_factory=dict)
    stages: list[StageSummary] = Field(default_factory=list)
    total_elapsed_ms: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def synthesized_stages(self) -> list[TaskKind]:
        return [s.stage for s in self.stages if s.is_synthesized]


class BatchRunError(CamelModel):
    index: int
    filename: str | None = None
    message: str


class BatchRunResult(CamelModel):
    total: int
    succeeded: int
    failed: int
    runs: list[PipelineRun] = Field(default_factory=list)
    errors: list[BatchRunError] = Field(default_factory=list)
    total_elapsed_ms: int = 0


# --- API payloads ---


class CodeSuggestionRequest(CamelModel):
    product_description: str
    additional_info: str = ""


class CodeSuggestionResponse(CamelModel):
    product_description: str
    suggestions: list[CodeSuggestion]
    provider_id: str
    is_synthesized: bool
    fallback_reason: FallbackReason | None = None
