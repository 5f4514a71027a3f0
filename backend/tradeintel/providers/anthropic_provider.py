"""Anthropic Messages API provider (text, vision and PDF documents)."""

import anthropic

from tradeintel.errors import (
    CredentialInvalid,
    ProviderError,
    ProviderFailure,
    ProviderTimeout,
    QuotaExceeded,
)
from tradeintel.providers.base import ProviderClient, retry_after_from_headers
from tradeintel.schemas.document import DocumentPayload


def _build_content(prompt: str, document: DocumentPayload | None = None) -> list[dict]:
    """Build Claude message content array supporting documents and vision."""
    content: list[dict] = []

    if document is not None:
        block_type = "document" if document.is_pdf else "image"
        content.append({
            "type": block_type,
            "source": {
                "type": "base64",
                "media_type": document.media_type,
                "data": document.to_base64(),
            },
        })

    content.append({"type": "text", "text": prompt})
    return content


class AnthropicProvider(ProviderClient):
    provider_id = "anthropic"
    supports_documents = True

    def _create_client(self) -> anthropic.AsyncAnthropic:
        # Failover is handled by the registry, not by SDK-level retries
        return anthropic.AsyncAnthropic(api_key=self.api_key, max_retries=0)

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
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": _build_content(prompt, document)}],
        }
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature

        message = await self.client.messages.create(**kwargs)
        return "".join(
            block.text for block in message.content if isinstance(getattr(block, "text", None), str)
        )

    def classify_error(self, exc: Exception) -> ProviderError:
        if isinstance(exc, anthropic.RateLimitError):
            return QuotaExceeded(
                self.provider_id,
                str(exc),
                retry_after_seconds=retry_after_from_headers(exc),
                status_code=exc.status_code,
            )
        if isinstance(exc, (anthropic.AuthenticationError, anthropic.PermissionDeniedError)):
            return CredentialInvalid(self.provider_id, str(exc), status_code=exc.status_code)
        if isinstance(exc, anthropic.APITimeoutError):
            return ProviderTimeout(self.provider_id, str(exc))
        if isinstance(exc, anthropic.APIStatusError):
            return ProviderFailure(self.provider_id, str(exc), status_code=exc.status_code)
        return ProviderFailure(self.provider_id, str(exc))
