"""
ReasoningAdapter: compliance and classification stages.

Unlike OCR, reasoning calls fail over: when the selected provider fails, the
failure is reported to the registry and the next available provider in the
task kind's preference list is tried. Only when the list is exhausted does
the synthesizer answer.
"""

import logging
from typing import Any

from tradeintel.availability.registry import ProviderAvailabilityRegistry
from tradeintel.document_pipeline.fallback import FallbackSynthesizer
from tradeintel.document_pipeline.prompts import (
    CLASSIFICATION_SYSTEM_PROMPT,
    COMPLIANCE_SYSTEM_PROMPT,
    build_classification_prompt,
    build_compliance_prompt,
)
from tradeintel.document_pipeline.response_parser import ResponseParser
from tradeintel.errors import (
    ParseError,
    ProviderError,
    ProviderFailure,
    ProviderUnavailable,
    ValidationError,
)
from tradeintel.providers.base import ProviderClient
from tradeintel.schemas.pipeline import (
    FALLBACK_PROVIDER,
    CodeSuggestion,
    ComplianceCheck,
    ComplianceResult,
    ComplianceSummary,
    DocumentType,
    FallbackReason,
    Severity,
    TaskKind,
)

logger = logging.getLogger("tradeintel.reasoning")

REASONING_TEMPERATURE = 0.1
COMPLIANCE_KEYS = ("isValid", "score", "checks", "compliance")
CLASSIFICATION_KEYS = ("suggestions", "code")
MAX_SUGGESTIONS = 5

# Keyword heuristic for compliance responses without parseable JSON
NEGATIVE_MARKERS = ("error", "missing", "invalid")
HEURISTIC_VALID_SCORE = 75
HEURISTIC_INVALID_SCORE = 45


def _as_float(value: Any, default: float) -> float:
    try:
        return max(0.0, min(100.0, float(value)))
    except (TypeError, ValueError):
        return default


def _as_str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, list):
        return [str(v) for v in value if v not in (None, "")]
    return []


def _dict_list(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _severity(value: Any, passed: bool) -> Severity:
    try:
        return Severity(str(value).lower())
    except ValueError:
        return Severity.INFO if passed else Severity.WARNING


class ReasoningAdapter:
    """Compliance analysis and HS-code classification with provider failover."""

    def __init__(
        self,
        providers: dict[str, ProviderClient],
        registry: ProviderAvailabilityRegistry,
        synthesizer: FallbackSynthesizer,
        parser: ResponseParser | None = None,
        call_timeout_seconds: float = 30.0,
        preferences: dict[TaskKind, list[str]] | None = None,
    ):
        self.providers = providers
        self.registry = registry
        self.synthesizer = synthesizer
        self.parser = parser or ResponseParser()
        self.call_timeout_seconds = call_timeout_seconds
        self.preferences = preferences or {}

    # --- Compliance ---

    async def analyze_compliance(
        self,
        data: dict[str, Any] | str,
        document_type: DocumentType,
        custom_rules: list[str] | None = None,
    ) -> ComplianceResult:
        """Evaluate extracted data against the rule checklist of its document type."""
        prompt = build_compliance_prompt(data, document_type, custom_rules)
        provider_id, raw_text, reason = await self._generate_with_failover(
            TaskKind.COMPLIANCE, prompt, COMPLIANCE_SYSTEM_PROMPT
        )
        if provider_id == FALLBACK_PROVIDER:
            return self.synthesizer.synthesize_compliance(document_type, reason)

        try:
            parsed = self.parser.parse_structured(raw_text, COMPLIANCE_KEYS)
        except ParseError:
            logger.warning("Compliance response from %s had no parseable JSON; using text heuristic", provider_id)
            return self._heuristic_compliance(raw_text, provider_id, document_type)

        return self._build_compliance(parsed, provider_id, document_type, custom_rules)

    def _build_compliance(
        self,
        parsed: dict[str, Any],
        provider_id: str,
        document_type: DocumentType,
        custom_rules: list[str] | None,
    ) -> ComplianceResult:
        # Older prompt shape nests the result under "compliance"
        nested = parsed.get("compliance")
        if isinstance(nested, dict):
            parsed = {**nested, **{k: v for k, v in parsed.items() if k != "compliance"}}

        checks = []
        for item in _dict_list(parsed.get("checks")):
            passed = bool(item.get("passed", False))
            checks.append(ComplianceCheck(
                name=str(item.get("name") or "Unnamed Check"),
                passed=passed,
                severity=_severity(item.get("severity"), passed),
                message=str(item.get("message") or ""),
                field=item.get("field"),
                requirement=item.get("requirement"),
            ))

        failed_critical = any(not c.passed and c.severity == Severity.ERROR for c in checks)
        is_valid = bool(parsed["isValid"]) if "isValid" in parsed else not failed_critical
        score = _as_float(parsed.get("score"), 100.0 if is_valid else 50.0)

        if not checks:
            checks.append(ComplianceCheck(
                name="Overall Compliance",
                passed=is_valid,
                severity=Severity.INFO if is_valid else Severity.ERROR,
                message=str(parsed.get("message") or ("Document is compliant" if is_valid else "Document has compliance issues")),
            ))

        logger.info(
            "Compliance via %s: valid=%s score=%.0f checks=%d",
            provider_id, is_valid, score, len(checks),
        )
        return ComplianceResult(
            success=True,
            document_type=document_type,
            is_valid=is_valid,
            score=score,
            checks=checks,
            errors=_dict_list(parsed.get("errors")),
            corrections=_dict_list(parsed.get("corrections")),
            summary=ComplianceSummary.from_checks(checks),
            recommendations=_dict_list(parsed.get("recommendations")),
            provider_id=provider_id,
            metadata={"custom_rules": len(custom_rules or [])},
        )

    def _heuristic_compliance(self, raw_text: str, provider_id: str, document_type: DocumentType) -> ComplianceResult:
        lowered = raw_text.lower()
        is_valid = not any(marker in lowered for marker in NEGATIVE_MARKERS)
        checks = [ComplianceCheck(
            name="AI Analysis",
            passed=is_valid,
            severity=Severity.INFO if is_valid else Severity.WARNING,
            message=raw_text[:500],
        )]
        return ComplianceResult(
            success=True,
            document_type=document_type,
            is_valid=is_valid,
            score=HEURISTIC_VALID_SCORE if is_valid else HEURISTIC_INVALID_SCORE,
            checks=checks,
            summary=ComplianceSummary.from_checks(checks),
            recommendations=[{
                "category": "ai_processing",
                "message": "Provider response was unstructured; review manually",
                "priority": "medium",
            }],
            provider_id=provider_id,
            metadata={"parseFallback": True},
        )

    # --- Classification ---

    async def classify(self, product_description: str, additional_info: str = "") -> list[CodeSuggestion]:
        """Suggest HS codes for a product description, best first.

        Raises:
            ValidationError: the description is empty.
        """
        if not product_description or not product_description.strip():
            raise ValidationError("Product description is required")

        prompt = build_classification_prompt(product_description.strip(), additional_info)
        provider_id, raw_text, reason = await self._generate_with_failover(
            TaskKind.CLASSIFICATION, prompt, CLASSIFICATION_SYSTEM_PROMPT
        )
        if provider_id == FALLBACK_PROVIDER:
            return self.synthesizer.synthesize_classification(product_description, reason)

        try:
            parsed = self.parser.parse_structured(raw_text, CLASSIFICATION_KEYS)
        except ParseError:
            logger.warning("Classification response from %s had no parseable JSON; using fallback", provider_id)
            return self.synthesizer.synthesize_classification(product_description, FallbackReason.UNPARSEABLE)

        items = _dict_list(parsed.get("suggestions")) if "suggestions" in parsed else [parsed]
        suggestions = [
            CodeSuggestion(
                code=str(item["code"]),
                description=str(item.get("description") or ""),
                confidence=_as_float(item.get("confidence"), 50.0),
                category=str(item.get("category") or ""),
                duty_rate=str(item["dutyRate"]) if item.get("dutyRate") is not None else None,
                restrictions=_as_str_list(item.get("restrictions")),
                similar_products=_as_str_list(item.get("similarProducts")),
                provider_id=provider_id,
            )
            for item in items
            if item.get("code")
        ]
        if not suggestions:
            logger.warning("Classification response from %s had no suggestions; using fallback", provider_id)
            return self.synthesizer.synthesize_classification(product_description, FallbackReason.UNPARSEABLE)

        suggestions.sort(key=lambda s: s.confidence, reverse=True)
        return suggestions[:MAX_SUGGESTIONS]

    # --- Provider failover ---

    def _preference_for(self, task_kind: TaskKind) -> list[str]:
        if task_kind in self.preferences:
            return list(self.preferences[task_kind])
        return list(self.registry.preferences.get(task_kind, []))

    async def _generate_with_failover(
        self, task_kind: TaskKind, prompt: str, system: str
    ) -> tuple[str, str, FallbackReason | None]:
        """Return (provider_id, response text, fallback reason).

        provider_id is ``FALLBACK_PROVIDER`` (with empty text) when no provider answered.
        """
        order = self._preference_for(task_kind)
        remaining = list(order)
        attempted: list[str] = []

        while True:
            provider_id = self.registry.select_best_provider(task_kind, remaining)
            if provider_id == FALLBACK_PROVIDER:
                break
            remaining.remove(provider_id)

            try:
                raw_text = await self._call(self.providers[provider_id], prompt, system)
            except ProviderUnavailable as e:
                logger.info("%s via %s skipped: %s", task_kind.value, provider_id, e)
                continue
            except ProviderError as e:
                attempted.append(provider_id)
                logger.warning("%s via %s failed (%s): %s", task_kind.value, provider_id, e.kind.value, e)
                self.registry.report_failure(provider_id, e)
                continue
            except Exception as e:
                attempted.append(provider_id)
                logger.exception("Unexpected error during %s via %s", task_kind.value, provider_id)
                self.registry.report_failure(provider_id, ProviderFailure(provider_id, str(e)))
                continue

            self.registry.report_success(provider_id)
            return provider_id, raw_text, None

        if attempted:
            reason = FallbackReason.PROVIDER_ERROR
        else:
            reason = self.registry.fallback_reason(task_kind, order)
        logger.info("No %s provider answered (%s); using fallback", task_kind.value, reason.value)
        return FALLBACK_PROVIDER, "", reason

    async def _call(self, client: ProviderClient, prompt: str, system: str) -> str:
        return await client.generate(
            prompt,
            system=system,
            temperature=REASONING_TEMPERATURE,
            timeout=self.call_timeout_seconds,
            queue_timeout=self.call_timeout_seconds,
            admit=lambda: self.registry.is_available(client.provider_id),
        )
