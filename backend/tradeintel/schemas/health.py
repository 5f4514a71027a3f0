from datetime import datetime

from tradeintel.schemas.base import CamelModel


class ProviderStatusResponse(CamelModel):
    provider_id: str
    configured: bool
    available: bool
    last_checked_at: datetime | None = None
    retry_after: datetime | None = None
    last_error_kind: str | None = None
    consecutive_failures: int = 0


class RetryRecommendation(CamelModel):
    provider_id: str
    action: str
    estimated_wait_seconds: float | None = None
    alternative: str


class HealthResponse(CamelModel):
    status: str
    providers: list[ProviderStatusResponse]
    timestamp: datetime
    environment: str
    version: str


class ProvidersResponse(CamelModel):
    providers: list[ProviderStatusResponse]
    recommendations: list[RetryRecommendation]
