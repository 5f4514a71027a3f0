"""
ProviderAvailabilityRegistry: live availability of every named provider.

Status changes come from two directions:
1. The periodic probe job (scheduled on an injected ``Scheduler``) issues a
   minimal call to every configured provider.
2. Adapters report the outcome of real calls (``report_success`` /
   ``report_failure``) so availability degrades on the first real failure,
   without waiting for the next probe.

Each status is an immutable ``ProviderStatus`` replaced per key, so concurrent
writers on different providers never interfere and the last writer wins on
the same provider.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from tradeintel.availability.scheduler import ScheduledJob, Scheduler
from tradeintel.config import Settings
from tradeintel.errors import ProviderError, ProviderErrorKind
from tradeintel.providers.base import ProviderClient
from tradeintel.schemas.health import RetryRecommendation
from tradeintel.schemas.pipeline import FALLBACK_PROVIDER, FallbackReason, TaskKind

logger = logging.getLogger("tradeintel.availability")


@dataclass(frozen=True)
class ProviderStatus:
    provider_id: str
    configured: bool
    available: bool
    last_checked_at: datetime | None = None
    retry_after: datetime | None = None
    last_error_kind: ProviderErrorKind | None = None
    consecutive_failures: int = 0


class ProviderAvailabilityRegistry:
    """Tracks provider availability and picks the best provider per task kind."""

    def __init__(
        self,
        providers: dict[str, ProviderClient],
        scheduler: Scheduler,
        *,
        preferences: dict[TaskKind, list[str]] | None = None,
        probe_interval_seconds: float = 30.0,
        probe_timeout_seconds: float = 30.0,
        quota_backoff_seconds: float = 3600.0,
        failure_strikes: int = 2,
        failure_cooldown_seconds: float = 300.0,
    ):
        self.providers = providers
        self.scheduler = scheduler
        self.preferences = {TaskKind(k): list(v) for k, v in (preferences or {}).items()}
        self.probe_interval_seconds = probe_interval_seconds
        self.probe_timeout_seconds = probe_timeout_seconds
        self.quota_backoff = timedelta(seconds=quota_backoff_seconds)
        self.failure_strikes = max(1, failure_strikes)
        self.failure_cooldown = timedelta(seconds=failure_cooldown_seconds)
        self._statuses: dict[str, ProviderStatus] = {}
        self._probe_job: ScheduledJob | None = None

        for provider_id, client in providers.items():
            self.register(provider_id, initialized=client.initialized)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        providers: dict[str, ProviderClient],
        scheduler: Scheduler,
    ) -> "ProviderAvailabilityRegistry":
        return cls(
            providers,
            scheduler,
            preferences={kind: settings.preference_for(kind) for kind in TaskKind},
            probe_interval_seconds=settings.provider_probe_interval_seconds,
            probe_timeout_seconds=settings.provider_call_timeout_seconds,
            quota_backoff_seconds=settings.quota_backoff_seconds,
            failure_strikes=settings.provider_failure_strikes,
            failure_cooldown_seconds=settings.provider_failure_cooldown_seconds,
        )

    # --- Status access ---

    def register(self, provider_id: str, initialized: bool) -> ProviderStatus:
        """Add a provider. Uninitialized providers are excluded until configuration changes."""
        if initialized:
            status = ProviderStatus(provider_id=provider_id, configured=True, available=True)
        else:
            logger.warning(
                "Provider %s has no usable credentials; excluded until configuration changes",
                provider_id,
            )
            status = ProviderStatus(
                provider_id=provider_id,
                configured=False,
                available=False,
                last_error_kind=ProviderErrorKind.CREDENTIAL_MISSING,
            )
        self._statuses[provider_id] = status
        return status

    def status(self, provider_id: str) -> ProviderStatus | None:
        return self._statuses.get(provider_id)

    def snapshot(self) -> list[ProviderStatus]:
        return [self._statuses[pid] for pid in sorted(self._statuses)]

    def is_available(self, provider_id: str) -> bool:
        status = self._statuses.get(provider_id)
        if status is None or not status.configured:
            return False
        if status.available:
            return True
        if status.retry_after is not None and self.scheduler.now() >= status.retry_after:
            logger.info("Retry window for %s elapsed; provider eligible again", provider_id)
            self._statuses[provider_id] = replace(
                status, available=True, retry_after=None, consecutive_failures=0
            )
            return True
        return False

    def mark_unavailable(
        self,
        provider_id: str,
        retry_after: datetime | None = None,
        kind: ProviderErrorKind = ProviderErrorKind.PROVIDER_FAILURE,
    ) -> None:
        status = self._statuses.get(provider_id)
        if status is None or not status.configured:
            return
        self._statuses[provider_id] = replace(
            status,
            available=False,
            retry_after=retry_after,
            last_error_kind=kind,
            last_checked_at=self.scheduler.now(),
        )
        logger.warning(
            "Provider %s marked unavailable (%s), retry after %s",
            provider_id,
            kind.value,
            retry_after.isoformat() if retry_after else "next successful probe",
        )

    def mark_available(self, provider_id: str) -> None:
        status = self._statuses.get(provider_id)
        if status is None or not status.configured:
            return
        if not status.available:
            logger.info("Provider %s available again", provider_id)
        self._statuses[provider_id] = replace(
            status,
            available=True,
            retry_after=None,
            last_error_kind=None,
            consecutive_failures=0,
            last_checked_at=self.scheduler.now(),
        )

    # --- Selection ---

    def select_best_provider(
        self, task_kind: TaskKind | str, preference_order: list[str] | None = None
    ) -> str:
        """First available provider in the preference order, or ``FALLBACK_PROVIDER``."""
        order = self._order_for(task_kind, preference_order)
        for provider_id in order:
            if self.is_available(provider_id):
                return provider_id
        return FALLBACK_PROVIDER

    def fallback_reason(
        self, task_kind: TaskKind | str, preference_order: list[str] | None = None
    ) -> FallbackReason:
        """Distinguish "nothing configured" from "configured but temporarily exhausted"."""
        order = self._order_for(task_kind, preference_order)
        if any(self._statuses.get(pid) and self._statuses[pid].configured for pid in order):
            return FallbackReason.EXHAUSTED
        return FallbackReason.UNCONFIGURED

    def _order_for(self, task_kind: TaskKind | str, preference_order: list[str] | None) -> list[str]:
        if preference_order is not None:
            return list(preference_order)
        return self.preferences.get(TaskKind(task_kind), [])

    # --- Outcomes reported by adapters ---

    def report_success(self, provider_id: str) -> None:
        """Clear failures after a real call succeeded.

        A call that was already in flight when the provider hit its quota
        does not end the quota window early.
        """
        status = self._statuses.get(provider_id)
        if (
            status is not None
            and status.last_error_kind == ProviderErrorKind.QUOTA_EXCEEDED
            and status.retry_after is not None
            and self.scheduler.now() < status.retry_after
        ):
            logger.info(
                "Late success from %s ignored; quota window open until %s",
                provider_id, status.retry_after.isoformat(),
            )
            return
        self.mark_available(provider_id)

    def report_failure(self, provider_id: str, error: ProviderError) -> None:
        """Update availability immediately after a failed real call."""
        status = self._statuses.get(provider_id)
        if status is None or not status.configured:
            return

        now = self.scheduler.now()
        if error.kind == ProviderErrorKind.QUOTA_EXCEEDED:
            wait = (
                timedelta(seconds=error.retry_after_seconds)
                if error.retry_after_seconds
                else self.quota_backoff
            )
            self.mark_unavailable(provider_id, now + wait, error.kind)
        elif error.kind in (ProviderErrorKind.CREDENTIAL_INVALID, ProviderErrorKind.CREDENTIAL_MISSING):
            self.mark_unavailable(provider_id, None, error.kind)
        else:
            # Timeouts and other transient failures only count once they recur
            strikes = status.consecutive_failures + 1
            if strikes >= self.failure_strikes:
                self.mark_unavailable(provider_id, now + self.failure_cooldown, error.kind)
            else:
                logger.info(
                    "Provider %s transient failure %d/%d (%s)",
                    provider_id, strikes, self.failure_strikes, error.kind.value,
                )
            self._statuses[provider_id] = replace(
                self._statuses[provider_id],
                consecutive_failures=strikes,
                last_error_kind=error.kind,
                last_checked_at=now,
            )

    # --- Background probing ---

    def start(self) -> None:
        """Schedule the periodic probe job."""
        if self._probe_job is not None and not self._probe_job.cancelled:
            return
        self._probe_job = self.scheduler.schedule_every(self.probe_interval_seconds, self.probe_all)
        logger.info("Provider probing started (every %.0fs)", self.probe_interval_seconds)

    def stop(self) -> None:
        if self._probe_job is not None:
            self._probe_job.cancel()
            self._probe_job = None
            logger.info("Provider probing stopped")

    @property
    def running(self) -> bool:
        return self._probe_job is not None and not self._probe_job.cancelled

    async def probe_all(self) -> list[ProviderStatus]:
        """Probe every configured provider that is not inside a retry window."""
        now = self.scheduler.now()
        targets = [
            pid for pid, status in self._statuses.items()
            if status.configured and not (status.retry_after and now < status.retry_after)
        ]
        await asyncio.gather(*(self.probe_provider(pid) for pid in targets))
        for status in self.snapshot():
            logger.debug(
                "%s: %s (last check %s)",
                status.provider_id,
                "available" if status.available else "unavailable",
                status.last_checked_at.isoformat() if status.last_checked_at else "never",
            )
        return self.snapshot()

    async def probe_provider(self, provider_id: str) -> ProviderStatus | None:
        """Probe one provider. Failures are recorded, never raised."""
        client = self.providers.get(provider_id)
        status = self._statuses.get(provider_id)
        if client is None or status is None or not status.configured:
            return status

        try:
            await asyncio.wait_for(client.probe(), timeout=self.probe_timeout_seconds)
        except asyncio.TimeoutError:
            self.mark_unavailable(provider_id, None, ProviderErrorKind.PROVIDER_TIMEOUT)
        except ProviderError as e:
            if e.kind == ProviderErrorKind.QUOTA_EXCEEDED:
                self.mark_unavailable(provider_id, self.scheduler.now() + self.quota_backoff, e.kind)
            else:
                self.mark_unavailable(provider_id, None, e.kind)
        except Exception as e:
            logger.error("Unexpected error probing %s: %s", provider_id, e)
            self.mark_unavailable(provider_id, None, ProviderErrorKind.PROVIDER_FAILURE)
        else:
            self.mark_available(provider_id)

        return self._statuses.get(provider_id)

    def retry_recommendations(self) -> list[RetryRecommendation]:
        """Advice for every provider that is currently not usable."""
        now = self.scheduler.now()
        recommendations: list[RetryRecommendation] = []
        for status in self.snapshot():
            if self.is_available(status.provider_id):
                continue
            if not status.configured:
                action = "Configure an API key for this provider"
                wait = None
            elif status.retry_after is not None:
                action = "Wait for quota reset"
                wait = max(0.0, (status.retry_after - now).total_seconds())
            else:
                action = "Verify credentials; provider is re-checked on the next probe"
                wait = self.probe_interval_seconds
            recommendations.append(RetryRecommendation(
                provider_id=status.provider_id,
                action=action,
                estimated_wait_seconds=wait,
                alternative="Fallback processing is used until the provider recovers",
            ))
        return recommendations
