import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradeintel.api.router import api_router
from tradeintel.availability.registry import ProviderAvailabilityRegistry
from tradeintel.availability.scheduler import AsyncioScheduler
from tradeintel.config import APP_VERSION, settings
from tradeintel.document_pipeline.pipeline import PipelineOrchestrator
from tradeintel.middleware.logging import RequestIdLogFilter, RequestLoggingMiddleware
from tradeintel.providers import build_providers

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s %(name)s [%(request_id)s] - %(message)s",
)
for handler in logging.getLogger().handlers:
    handler.addFilter(RequestIdLogFilter())

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialize Sentry if DSN is configured
    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.environment,
            )
            logger.info("Sentry initialized (env=%s)", settings.environment)
        except Exception as e:
            logger.warning("Failed to initialize Sentry: %s", e)

    logger.info("Starting trade document intelligence backend (env=%s)", settings.environment)

    providers = build_providers(settings)
    registry = ProviderAvailabilityRegistry.from_settings(settings, providers, AsyncioScheduler())
    app.state.registry = registry
    app.state.orchestrator = PipelineOrchestrator.from_settings(settings, registry, providers)

    configured = [pid for pid, client in providers.items() if client.initialized]
    logger.info("Configured providers: %s", ", ".join(configured) or "none (fallback only)")

    if settings.provider_probe_enabled:
        registry.start()

    yield

    registry.stop()
    logger.info("Shutting down trade document intelligence backend")


app = FastAPI(
    title="Trade Document Intelligence",
    description="Quota-aware multi-provider extraction, compliance analysis and HS-code classification",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix="/api")
