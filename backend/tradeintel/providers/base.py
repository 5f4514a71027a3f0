"""
Provider client contract.

Every external reasoning/extraction service is reached through a
``ProviderClient``. The client owns:

- the SDK client (created only when credentials are configured)
- a per-provider ``CallThrottle`` (minimum spacing between calls)
- ``classify_error``, which maps SDK exception types and HTTP status codes into
  the ``ProviderError`` taxonomy so nothing downstream inspects message text
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from tradeintel.config import is_configured_key
from tradeintel.errors import CredentialMissing, ProviderError, ProviderTimeout, ProviderUnavailable
from tradeintel.providers.throttle import CallThrottle
from tradeintel.schemas.document import DocumentPayload

logger = logging.getLogger("tradeintel.providers")

PROBE_PROMPT = "ping"


def retry_after_from_headers(exc: Exception) -> float | None:
    """Read a ``retry-after`` header (seconds) from an SDK status error, if any."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


class ProviderClient(ABC):
    """Async text-generation client for one named provider."""

    provider_id: str = ""
    supports_documents: bool = False

    def __init__(
        self,
        api_key: str,
        model: str,
        probe_model: str | None = None,
        max_tokens: int = 4096,
        min_interval_seconds: float = 0.0,
    ):
        self.api_key = api_key
        self.model = model
        self.probe_model = probe_model or model
        self.max_tokens = max_tokens
        self.throttle = CallThrottle(min_interval_seconds)
        self.client = None

        if self.configured:
            try:
                self.client = self._create_client()
            except Exception as e:
                logger.error("Failed to initialize %s client: %s", self.provider_id, e)
                self.client = None

    @property
    def configured(self) -> bool:
        return is_configured_key(self.api_key)

    @property
    def initialized(self) -> bool:
        return self.client is not None

    async def generate(
        self,
        prompt: str,
        *,
        system: str | None = None,
        document: DocumentPayload | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        model: str | None = None,
        timeout: float | None = None,
        queue_timeout: float | None = None,
        admit: Callable[[], bool] | None = None,
    ) -> str:
        """Send one prompt (optionally with a document) and return the response text.

        ``timeout`` bounds the provider request only, not the wait for this
        client's throttle. ``queue_timeout`` bounds that wait. ``admit`` is
        checked once the throttle is held; a false answer cancels the call.

        Raises:
            ProviderError: a classified failure (never a raw SDK exception).
            ProviderUnavailable: the call was not sent.
        """
        if self.client is None:
            raise CredentialMissing(self.provider_id, f"{self.provider_id} API key not configured")

        try:
            await asyncio.wait_for(self.throttle.acquire(), timeout=queue_timeout)
        except asyncio.TimeoutError:
            raise ProviderUnavailable(
                self.provider_id, f"{self.provider_id} call queue still busy after {queue_timeout}s"
            ) from None

        try:
            if admit is not None and not admit():
                raise ProviderUnavailable(self.provider_id, f"{self.provider_id} became unavailable while queued")
            try:
                return await asyncio.wait_for(
                    self._generate(
                        prompt,
                        system=system,
                        document=document,
                        max_tokens=max_tokens or self.max_tokens,
                        temperature=temperature,
                        model=model or self.model,
                    ),
                    timeout=timeout,
                )
            except ProviderError:
                raise
            except asyncio.TimeoutError:
                raise ProviderTimeout(
                    self.provider_id, f"{self.provider_id} did not answer within {timeout}s"
                ) from None
            except Exception as exc:
                raise self.classify_error(exc) from exc
        finally:
            self.throttle.release()

    async def probe(self) -> None:
        """Minimal-cost call used by the availability registry."""
        await self.generate(PROBE_PROMPT, max_tokens=1, model=self.probe_model)

    @abstractmethod
    def _create_client(self):
        """Build the SDK client. Only called when an API key is configured."""

    @abstractmethod
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
        """Provider-specific request. SDK exceptions propagate to ``classify_error``."""

    @abstractmethod
    def classify_error(self, exc: Exception) -> ProviderError:
        """Map a provider SDK exception into the ``ProviderError`` taxonomy."""
