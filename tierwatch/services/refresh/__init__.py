from .scheduler import (
    NO_DATA_MESSAGE,
    PUSH_SOURCE,
    CycleResult,
    DataStatus,
    RefreshScheduler,
    SchedulerState,
)

__all__ = [
    "NO_DATA_MESSAGE",
    "PUSH_SOURCE",
    "CycleResult",
    "DataStatus",
    "RefreshScheduler",
    "SchedulerState",
]
