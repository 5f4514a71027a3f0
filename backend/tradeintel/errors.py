"""
Error taxonomy for the document pipeline.

Provider SDK exceptions are converted into ``ProviderError`` subclasses at the
client boundary (see ``tradeintel.providers``), so adapters and the
availability registry only ever branch on ``ProviderErrorKind``.

Only ``ValidationError`` is meant to reach callers of the pipeline; every
other error is absorbed and resolved into an alternate provider or a
synthesized result.
"""

import enum


class ProviderErrorKind(str, enum.Enum):
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_INVALID = "credential_invalid"
    QUOTA_EXCEEDED = "quota_exceeded"
    PROVIDER_TIMEOUT = "provider_timeout"
    PROVIDER_FAILURE = "provider_failure"


class TradeIntelError(Exception):
    """Base class for all domain errors."""


class ValidationError(TradeIntelError):
    """Caller-supplied input is malformed. Surfaced immediately, no fallback."""


class ParseError(TradeIntelError):
    """A provider response contained no usable JSON object. Recoverable."""


class ProviderError(TradeIntelError):
    """A provider call failed. ``kind`` drives registry and fallback handling."""

    kind: ProviderErrorKind = ProviderErrorKind.PROVIDER_FAILURE

    def __init__(
        self,
        provider_id: str,
        message: str = "",
        *,
        retry_after_seconds: float | None = None,
        status_code: int | None = None,
    ):
        self.provider_id = provider_id
        self.retry_after_seconds = retry_after_seconds
        self.status_code = status_code
        super().__init__(message or f"{provider_id}: {self.kind.value}")


class CredentialMissing(ProviderError):
    kind = ProviderErrorKind.CREDENTIAL_MISSING


class CredentialInvalid(ProviderError):
    kind = ProviderErrorKind.CREDENTIAL_INVALID


class QuotaExceeded(ProviderError):
    kind = ProviderErrorKind.QUOTA_EXCEEDED


class ProviderTimeout(ProviderError):
    kind = ProviderErrorKind.PROVIDER_TIMEOUT


class ProviderFailure(ProviderError):
    kind = ProviderErrorKind.PROVIDER_FAILURE


class ProviderUnavailable(TradeIntelError):
    """The call was never sent: the provider went unavailable or its queue stayed busy.

    Not a ``ProviderError``; adapters move on without reporting a failure.
    """

    def __init__(self, provider_id: str, message: str = ""):
        self.provider_id = provider_id
        super().__init__(message or f"{provider_id}: call not sent")
