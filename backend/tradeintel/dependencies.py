from fastapi import Request

from tradeintel.availability.registry import ProviderAvailabilityRegistry
from tradeintel.document_pipeline.pipeline import PipelineOrchestrator


def get_registry(request: Request) -> ProviderAvailabilityRegistry:
    return request.app.state.registry


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator
