"""Tests for the compliance and classification stages (ReasoningAdapter)."""

import asyncio
import json
from datetime import timedelta

import pytest

from tradeintel.document_pipeline.reasoning import ReasoningAdapter
from tradeintel.errors import ProviderErrorKind, ProviderFailure, ProviderTimeout, QuotaExceeded, ValidationError
from tradeintel.schemas.pipeline import FALLBACK_PROVIDER, DocumentType, FallbackReason, Severity, TaskKind

INVOICE_DATA = {
    "invoiceNumber": "INV-2026-001",
    "supplier": {"name": "ABC Exports Ltd"},
    "totals": {"total": 250.0, "currency": "USD"},
}

COMPLIANCE_RESPONSE = {
    "isValid": False,
    "score": 72,
    "checks": [
        {"name": "Invoice Number Check", "passed": True, "message": "Present", "severity": "info"},
        {"name": "Buyer Details Check", "passed": False, "message": "Buyer missing", "severity": "error", "field": "buyer"},
        {"name": "HS Code Check", "passed": False, "message": "No HS codes", "severity": "warning"},
    ],
    "errors": [{"type": "missing_field", "field": "buyer", "message": "Buyer missing", "severity": "error"}],
    "corrections": [{"type": "add_field", "field": "buyer", "message": "Add buyer", "suggestion": "Add buyer name", "priority": "high"}],
    "summary": {"totalChecks": 99},
    "recommendations": [{"category": "compliance", "message": "Fix buyer", "priority": "high"}],
}

CLASSIFICATION_RESPONSE = {
    "suggestions": [
        {"code": "0401.20.00", "description": "Milk", "confidence": 70, "category": "Dairy", "dutyRate": "30%"},
        {"code": "0401.10.00", "description": "Milk, low fat", "confidence": 90, "category": "Dairy",
         "restrictions": ["FSSAI"], "similarProducts": ["Cream"]},
    ],
    "reasoning": "Dairy product",
}


class TestCompliance:
    async def test_structured_response(self, reasoning_adapter, providers):
        providers["openai"].responses = [f"Here you go:\n{json.dumps(COMPLIANCE_RESPONSE)}"]

        result = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert result.success
        assert result.provider_id == "openai"
        assert not result.is_synthesized
        assert not result.is_valid
        assert result.score == 72
        assert len(result.checks) == 3
        assert result.checks[1].severity == Severity.ERROR
        assert result.checks[1].field == "buyer"
        # Summary is recomputed from the checks, not trusted from the response
        assert result.summary.total_checks == 3
        assert result.summary.critical_issues == 1
        assert result.summary.warnings_count == 1
        assert result.corrections[0]["suggestion"] == "Add buyer name"

    async def test_prompt_contains_rules_and_custom_rules(self, reasoning_adapter, providers):
        providers["openai"].responses = [json.dumps(COMPLIANCE_RESPONSE)]
        await reasoning_adapter.analyze_compliance(
            INVOICE_DATA, DocumentType.INVOICE, custom_rules=["Supplier must be registered"]
        )
        call = providers["openai"].calls[0]
        assert "INV-2026-001" in call["prompt"]
        assert "Currency must be specified" in call["prompt"]
        assert "Supplier must be registered" in call["prompt"]
        assert call["temperature"] == 0.1

    async def test_nested_compliance_shape(self, reasoning_adapter, providers):
        providers["openai"].responses = [json.dumps({"compliance": {"isValid": True, "score": 91, "checks": []}})]

        result = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert result.is_valid
        assert result.score == 91
        assert len(result.checks) == 1
        assert result.checks[0].passed

    async def test_unparseable_response_uses_text_heuristic(self, reasoning_adapter, providers):
        providers["openai"].responses = ["The buyer address is missing from this invoice."]

        result = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert result.provider_id == "openai"
        assert not result.is_synthesized
        assert not result.is_valid
        assert result.score == 45
        assert len(result.checks) == 1
        assert result.metadata["parseFallback"] is True

    async def test_unparseable_positive_response(self, reasoning_adapter, providers):
        providers["openai"].responses = ["Everything looks compliant."]
        result = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)
        assert result.is_valid
        assert result.score == 75

    async def test_all_providers_unavailable(self, reasoning_adapter, registry, scheduler, providers):
        later = scheduler.now() + timedelta(hours=1)
        for pid in ("openai", "anthropic"):
            registry.mark_unavailable(pid, later, ProviderErrorKind.QUOTA_EXCEEDED)

        result = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert result.success
        assert result.is_synthesized
        assert result.provider_id == FALLBACK_PROVIDER
        assert result.fallback_reason == FallbackReason.EXHAUSTED
        assert len(result.checks) >= 1
        assert providers["openai"].calls == []

    async def test_rate_limit_fails_over_and_sticks(self, reasoning_adapter, providers, registry):
        providers["openai"].responses = [QuotaExceeded("openai")]
        providers["anthropic"].responses = [
            json.dumps(COMPLIANCE_RESPONSE),
            json.dumps(COMPLIANCE_RESPONSE),
        ]

        first = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert first.provider_id == "anthropic"
        assert not registry.status("openai").available

        second = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert second.provider_id == "anthropic"
        assert len(providers["openai"].calls) == 1
        assert len(providers["anthropic"].calls) == 2

    async def test_concurrent_call_does_not_reopen_quota_window(self, reasoning_adapter, providers, registry, scheduler):
        providers["openai"].delay = 0.05
        providers["openai"].responses = [QuotaExceeded("openai"), json.dumps(COMPLIANCE_RESPONSE)]
        providers["anthropic"].responses = [json.dumps(COMPLIANCE_RESPONSE), json.dumps(COMPLIANCE_RESPONSE)]

        results = await asyncio.gather(
            reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE),
            reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE),
        )

        assert [r.provider_id for r in results] == ["anthropic", "anthropic"]
        assert len(providers["openai"].calls) == 1
        status = registry.status("openai")
        assert not status.available
        assert status.retry_after > scheduler.now()
        assert registry.select_best_provider(TaskKind.COMPLIANCE) == "anthropic"

    async def test_every_provider_fails(self, reasoning_adapter, providers):
        providers["openai"].responses = [ProviderTimeout("openai")]
        providers["anthropic"].responses = [ProviderFailure("anthropic")]

        result = await reasoning_adapter.analyze_compliance(INVOICE_DATA, DocumentType.BILL_OF_ENTRY)

        assert result.is_synthesized
        assert result.fallback_reason == FallbackReason.PROVIDER_ERROR
        assert result.document_type == DocumentType.BILL_OF_ENTRY

    async def test_unconfigured_reason(self, fake_provider, make_registry, synthesizer):
        providers = {pid: fake_provider(pid, api_key="") for pid in ("openai", "anthropic")}
        adapter = ReasoningAdapter(providers, make_registry(providers), synthesizer)

        result = await adapter.analyze_compliance("raw text only", DocumentType.GENERAL)

        assert result.fallback_reason == FallbackReason.UNCONFIGURED

    async def test_adapter_preferences_override_registry(self, providers, registry, synthesizer):
        adapter = ReasoningAdapter(
            providers, registry, synthesizer, preferences={TaskKind.COMPLIANCE: ["gemini"]}
        )
        providers["gemini"].responses = [json.dumps(COMPLIANCE_RESPONSE)]

        result = await adapter.analyze_compliance(INVOICE_DATA, DocumentType.INVOICE)

        assert result.provider_id == "gemini"


class TestClassification:
    async def test_suggestions_sorted_by_confidence(self, reasoning_adapter, providers):
        providers["anthropic"].responses = [json.dumps(CLASSIFICATION_RESPONSE)]

        suggestions = await reasoning_adapter.classify("Fresh milk, 3% fat", "1L cartons")

        assert [s.code for s in suggestions] == ["0401.10.00", "0401.20.00"]
        assert suggestions[0].restrictions == ["FSSAI"]
        assert suggestions[0].similar_products == ["Cream"]
        assert suggestions[1].duty_rate == "30%"
        assert all(s.provider_id == "anthropic" and not s.is_synthesized for s in suggestions)
        assert "1L cartons" in providers["anthropic"].calls[0]["prompt"]

    async def test_single_object_response(self, reasoning_adapter, providers):
        providers["anthropic"].responses = ['Here is the result: {"code":"0401","confidence":90}']
        suggestions = await reasoning_adapter.classify("milk")
        assert len(suggestions) == 1
        assert suggestions[0].code == "0401"
        assert suggestions[0].confidence == 90

    async def test_empty_suggestions_fall_back(self, reasoning_adapter, providers):
        providers["anthropic"].responses = ['{"suggestions": []}']
        suggestions = await reasoning_adapter.classify("laptop computer")
        assert suggestions
        assert all(s.is_synthesized for s in suggestions)
        assert all(s.fallback_reason == FallbackReason.UNPARSEABLE for s in suggestions)

    async def test_unparseable_falls_back(self, reasoning_adapter, providers):
        providers["anthropic"].responses = ["I think it is probably a textile."]
        suggestions = await reasoning_adapter.classify("cotton trousers")
        assert suggestions[0].code == "6204.62.10"
        assert suggestions[0].is_synthesized
        assert suggestions[0].fallback_reason == FallbackReason.UNPARSEABLE

    async def test_empty_description_rejected(self, reasoning_adapter, providers):
        with pytest.raises(ValidationError):
            await reasoning_adapter.classify("   ")
        assert providers["anthropic"].calls == []

    async def test_caps_suggestion_count(self, reasoning_adapter, providers):
        many = {"suggestions": [{"code": f"84{i:02d}", "confidence": 50 + i} for i in range(8)]}
        providers["anthropic"].responses = [json.dumps(many)]
        suggestions = await reasoning_adapter.classify("machine parts")
        assert len(suggestions) == 5
        assert suggestions[0].code == "8407"
