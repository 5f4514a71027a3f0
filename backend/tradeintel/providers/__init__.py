from tradeintel.config import Settings
from tradeintel.providers.anthropic_provider import AnthropicProvider
from tradeintel.providers.base import ProviderClient
from tradeintel.providers.gemini_provider import GeminiProvider
from tradeintel.providers.openai_provider import OpenAIProvider
from tradeintel.providers.throttle import CallThrottle


def build_providers(settings: Settings) -> dict[str, ProviderClient]:
    """Instantiate every known provider client, keyed by provider id."""
    providers: list[ProviderClient] = [
        GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            probe_model=settings.gemini_probe_model,
            max_tokens=settings.provider_max_tokens,
            min_interval_seconds=settings.min_interval_for("gemini"),
        ),
        OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            probe_model=settings.openai_probe_model,
            max_tokens=settings.provider_max_tokens,
            min_interval_seconds=settings.min_interval_for("openai"),
        ),
        AnthropicProvider(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_model,
            probe_model=settings.anthropic_probe_model,
            max_tokens=settings.provider_max_tokens,
            min_interval_seconds=settings.min_interval_for("anthropic"),
        ),
    ]
    return {p.provider_id: p for p in providers}


__all__ = [
    "AnthropicProvider",
    "CallThrottle",
    "GeminiProvider",
    "OpenAIProvider",
    "ProviderClient",
    "build_providers",
]
