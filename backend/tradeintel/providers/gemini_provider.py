"""Google Gemini provider (primary OCR provider; accepts inline PDF and image bytes)."""

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from tradeintel.errors import (
    CredentialInvalid,
    ProviderError,
    ProviderFailure,
    ProviderTimeout,
    QuotaExceeded,
)
from tradeintel.providers.base import ProviderClient
from tradeintel.schemas.document import DocumentPayload

INVALID_KEY_REASONS = {"API_KEY_INVALID", "API_KEY_EXPIRED"}


def _error_details(exc: genai_errors.APIError) -> list[dict]:
    """Structured ``error.details`` entries of a Google API error body."""
    body = getattr(exc, "details", None)
    if not isinstance(body, dict):
        return []
    error = body.get("error", body)
    details = error.get("details", []) if isinstance(error, dict) else []
    return [d for d in details if isinstance(d, dict)]


def _retry_delay_seconds(details: list[dict]) -> float | None:
    """Parse ``RetryInfo.retryDelay`` (e.g. "37s")."""
    for detail in details:
        delay = detail.get("retryDelay")
        if isinstance(delay, str) and delay.endswith("s"):
            try:
                return float(delay[:-1])
            except ValueError:
                return None
    return None


class GeminiProvider(ProviderClient):
    provider_id = "gemini"
    supports_documents = True

    def _create_client(self) -> genai.Client:
        return genai.Client(api_key=self.api_key)

    async def _generate(
        self,
        prompt: str,
        *,
        system: str | None,
        document: DocumentPayload | None,
        max_tokens: int,
        temperature: float | None,
        model: str,
    ) -> str:
        contents: list = []
        if document is not None:
            contents.append(
                genai_types.Part.from_bytes(data=document.data, mime_type=document.media_type)
            )
        contents.append(prompt)

        config = genai_types.GenerateContentConfig(
            system_instruction=system,
            max_output_tokens=max_tokens,
            temperature=temperature,
        )
        response = await self.client.aio.models.generate_content(
            model=model, contents=contents, config=config
        )
        return response.text or ""

    def classify_error(self, exc: Exception) -> ProviderError:
        if isinstance(exc, genai_errors.APIError):
            details = _error_details(exc)
            if exc.code == 429:
                return QuotaExceeded(
                    self.provider_id,
                    str(exc),
                    retry_after_seconds=_retry_delay_seconds(details),
                    status_code=429,
                )
            reasons = {d.get("reason") for d in details}
            if exc.code in (401, 403) or reasons & INVALID_KEY_REASONS:
                return CredentialInvalid(self.provider_id, str(exc), status_code=exc.code)
            return ProviderFailure(self.provider_id, str(exc), status_code=exc.code)
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeout(self.provider_id, str(exc))
        return ProviderFailure(self.provider_id, str(exc))
