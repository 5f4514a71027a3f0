import asyncio

import pytest
from httpx import ASGITransport, AsyncClient

from tradeintel.availability.registry import ProviderAvailabilityRegistry
from tradeintel.availability.scheduler import ManualScheduler
from tradeintel.document_pipeline.extraction import ExtractionAdapter
from tradeintel.document_pipeline.fallback import FallbackSynthesizer
from tradeintel.document_pipeline.pipeline import PipelineOrchestrator
from tradeintel.document_pipeline.reasoning import ReasoningAdapter
from tradeintel.errors import ProviderFailure
from tradeintel.providers.base import ProviderClient
from tradeintel.schemas.document import DocumentPayload
from tradeintel.schemas.pipeline import TaskKind

PREFERENCES = {
    TaskKind.OCR: ["gemini", "anthropic"],
    TaskKind.COMPLIANCE: ["openai", "anthropic"],
    TaskKind.CLASSIFICATION: ["anthropic", "openai"],
}


class FakeProvider(ProviderClient):
    """Provider client with scripted answers. Exceptions in the script are raised."""

    supports_documents = True

    def __init__(self, provider_id: str, responses=None, api_key: str = "test-key", probe_error=None, delay: float = 0.0):
        self.provider_id = provider_id
        self.responses = list(responses or [])
        self.probe_error = probe_error
        self.delay = delay
        self.calls: list[dict] = []
        self.probe_calls = 0
        super().__init__(api_key=api_key, model=f"{provider_id}-model", probe_model=f"{provider_id}-mini")

    def _create_client(self):
        return object()

    async def _generate(self, prompt, *, system, document, max_tokens, temperature, model):
        self.calls.append({
            "prompt": prompt,
            "system": system,
            "document": document,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "model": model,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.responses:
            return "{}"
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def probe(self) -> None:
        self.probe_calls += 1
        if self.probe_error is not None:
            raise self.probe_error

    def classify_error(self, exc: Exception):
        return ProviderFailure(self.provider_id, str(exc))


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def providers() -> dict[str, FakeProvider]:
    return {
        "gemini": FakeProvider("gemini"),
        "openai": FakeProvider("openai"),
        "anthropic": FakeProvider("anthropic"),
    }


@pytest.fixture
def registry(providers, scheduler) -> ProviderAvailabilityRegistry:
    return ProviderAvailabilityRegistry(providers, scheduler, preferences=PREFERENCES)


@pytest.fixture
def synthesizer() -> FallbackSynthesizer:
    return FallbackSynthesizer(seed=42)


@pytest.fixture
def extraction_adapter(providers, registry, synthesizer) -> ExtractionAdapter:
    return ExtractionAdapter(providers, registry, synthesizer)


@pytest.fixture
def reasoning_adapter(providers, registry, synthesizer) -> ReasoningAdapter:
    return ReasoningAdapter(providers, registry, synthesizer)


@pytest.fixture
def orchestrator(extraction_adapter, reasoning_adapter) -> PipelineOrchestrator:
    return PipelineOrchestrator(extraction_adapter, reasoning_adapter)


@pytest.fixture
def pdf_document() -> DocumentPayload:
    return DocumentPayload(
        data=b"%PDF-1.4 fake test content\nInvoice #12345\nTotal: $1,500.00",
        media_type="application/pdf",
        filename="test_invoice.pdf",
    )


@pytest.fixture
async def client(registry, orchestrator):
    from tradeintel.main import app

    app.state.registry = registry
    app.state.orchestrator = orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fake_provider():
    """The FakeProvider class, for tests that build their own provider sets."""
    return FakeProvider


@pytest.fixture
def make_registry(scheduler):
    def _make(providers, **kwargs) -> ProviderAvailabilityRegistry:
        return ProviderAvailabilityRegistry(providers, scheduler, preferences=PREFERENCES, **kwargs)
    return _make
