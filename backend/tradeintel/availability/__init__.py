from tradeintel.availability.registry import ProviderAvailabilityRegistry, ProviderStatus
from tradeintel.availability.scheduler import (
    AsyncioScheduler,
    ManualScheduler,
    ScheduledJob,
    Scheduler,
)

__all__ = [
    "AsyncioScheduler",
    "ManualScheduler",
    "ProviderAvailabilityRegistry",
    "ProviderStatus",
    "ScheduledJob",
    "Scheduler",
]
