"""OpenAI chat-completions provider."""

import openai

from tradeintel.errors import (
    CredentialInvalid,
    ProviderError,
    ProviderFailure,
    ProviderTimeout,
    QuotaExceeded,
)
from tradeintel.providers.base import ProviderClient, retry_after_from_headers
from tradeintel.schemas.document import DocumentPayload


def _build_messages(
    prompt: str, system: str | None = None, document: DocumentPayload | None = None
) -> list[dict]:
    messages: list[dict] = []
    if system:
        messages.append({"role": "system", "content": system})

    if document is None:
        messages.append({"role": "user", "content": prompt})
        return messages

    if document.is_pdf:
        document_part = {
            "type": "file",
            "file": {
                "filename": document.filename or "document.pdf",
                "file_data": document.to_data_url(),
            },
        }
    else:
        document_part = {
            "type": "image_url",
            "image_url": {"url": document.to_data_url(), "detail": "high"},
        }

    messages.append({
        "role": "user",
        "content": [document_part, {"type": "text", "text": prompt}],
    })
    return messages


class OpenAIProvider(ProviderClient):
    provider_id = "openai"
    supports_documents = True

    def _create_client(self) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(api_key=self.api_key, max_retries=0)

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
        params: dict = {
            "model": model,
            "messages": _build_messages(prompt, system, document),
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            params["temperature"] = temperature

        completion = await self.client.chat.completions.create(**params)
        return completion.choices[0].message.content or ""

    def classify_error(self, exc: Exception) -> ProviderError:
        if isinstance(exc, openai.RateLimitError):
            return QuotaExceeded(
                self.provider_id,
                str(exc),
                retry_after_seconds=retry_after_from_headers(exc),
                status_code=exc.status_code,
            )
        if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return CredentialInvalid(self.provider_id, str(exc), status_code=exc.status_code)
        if isinstance(exc, openai.APITimeoutError):
            return ProviderTimeout(self.provider_id, str(exc))
        if isinstance(exc, openai.APIStatusError):
            return ProviderFailure(self.provider_id, str(exc), status_code=exc.status_code)
        return ProviderFailure(self.provider_id, str(exc))
