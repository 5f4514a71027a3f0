from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from tradeintel.availability.registry import ProviderAvailabilityRegistry, ProviderStatus
from tradeintel.config import APP_VERSION, settings
from tradeintel.dependencies import get_registry
from tradeintel.schemas.health import HealthResponse, ProviderStatusResponse, ProvidersResponse

router = APIRouter()


def _to_response(status: ProviderStatus) -> ProviderStatusResponse:
    return ProviderStatusResponse(
        provider_id=status.provider_id,
        configured=status.configured,
        available=status.available,
        last_checked_at=status.last_checked_at,
        retry_after=status.retry_after,
        last_error_kind=status.last_error_kind.value if status.last_error_kind else None,
        consecutive_failures=status.consecutive_failures,
    )


def _statuses(registry: ProviderAvailabilityRegistry) -> list[ProviderStatusResponse]:
    # is_available re-qualifies providers whose retry window has elapsed
    for status in registry.snapshot():
        registry.is_available(status.provider_id)
    return [_to_response(s) for s in registry.snapshot()]


@router.get("/health", response_model=HealthResponse)
async def health_check(registry: ProviderAvailabilityRegistry = Depends(get_registry)) -> HealthResponse:
    providers = _statuses(registry)

    # The pipeline always answers; without providers it answers from fallback
    overall = "healthy" if any(p.available for p in providers) else "degraded"

    return HealthResponse(
        status=overall,
        providers=providers,
        timestamp=datetime.now(timezone.utc),
        environment=settings.environment,
        version=APP_VERSION,
    )


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(registry: ProviderAvailabilityRegistry = Depends(get_registry)) -> ProvidersResponse:
    return ProvidersResponse(
        providers=_statuses(registry),
        recommendations=registry.retry_recommendations(),
    )


@router.post("/providers/probe", response_model=ProvidersResponse)
async def probe_providers(registry: ProviderAvailabilityRegistry = Depends(get_registry)) -> ProvidersResponse:
    """Force an immediate availability check of every configured provider."""
    await registry.probe_all()
    return ProvidersResponse(
        providers=_statuses(registry),
        recommendations=registry.retry_recommendations(),
    )
