from pydantic_settings import BaseSettings, SettingsConfigDict

APP_VERSION = "0.1.0"

PLACEHOLDER_KEY_PREFIX = "your_"


def is_configured_key(api_key: str | None) -> bool:
    """True if an API key is present and not a template placeholder."""
    if not api_key or not api_key.strip():
        return False
    return not api_key.strip().lower().startswith(PLACEHOLDER_KEY_PREFIX)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # App
    environment: str = "development"
    log_level: str = "INFO"

    # Anthropic
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_probe_model: str = "claude-haiku-4-5-20251001"

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o"
    openai_probe_model: str = "gpt-4o-mini"

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-pro"
    gemini_probe_model: str = "gemini-2.5-flash"

    provider_max_tokens: int = 4096

    # Provider preference per task kind (first available wins)
    ocr_providers: list[str] = ["gemini", "anthropic"]
    compliance_providers: list[str] = ["openai", "anthropic"]
    classification_providers: list[str] = ["anthropic", "openai"]

    # Availability tracking
    provider_probe_enabled: bool = True
    provider_probe_interval_seconds: float = 30.0
    quota_backoff_seconds: float = 3600.0
    provider_call_timeout_seconds: float = 30.0
    provider_failure_strikes: int = 2
    provider_failure_cooldown_seconds: float = 300.0

    # Minimum spacing between calls to the same provider
    provider_min_interval_seconds: dict[str, float] = {
        "gemini": 1.0,
        "openai": 0.5,
        "anthropic": 0.5,
    }

    # Fallback synthesis (None = nondeterministic)
    fallback_seed: int | None = None

    # Documents
    max_document_size_mb: int = 20
    max_classified_items: int = 3

    # Sentry (optional)
    sentry_dsn: str = ""

    def preference_for(self, task_kind: str) -> list[str]:
        """Ordered provider ids for a task kind ("ocr", "compliance", "classification")."""
        preferences = {
            "ocr": self.ocr_providers,
            "compliance": self.compliance_providers,
            "classification": self.classification_providers,
        }
        key = getattr(task_kind, "value", task_kind)
        return list(preferences.get(key, []))

    def min_interval_for(self, provider_id: str) -> float:
        return self.provider_min_interval_seconds.get(provider_id, 0.0)


settings = Settings()
