from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from ...cache import TTLCache
from ...config import settings
from ...core.progression import CycleReport, ProgressionTracker
from ...core.recovery import NoDataAvailableError
from ...logging_config import get_cycle_logger
from ..token_feed.aggregator import SourceOutcome, TokenAggregator, merge_records
from ..token_feed.models import RawSourcePayload, TokenRecord
from ..token_feed.normalizer import SourceNormalizer

PUSH_SOURCE = "push"
NO_DATA_MESSAGE = "no data currently available"

CycleHook = Callable[[List[str]], Awaitable[Any]]


class DataStatus:
    WARMING_UP = "warming_up"
    LIVE = "live"
    STALE = "stale"


@dataclass(slots=True)
class SchedulerState:
    status: str = "idle"
    run_count: int = 0
    consecutive_errors: int = 0
    last_started: Optional[datetime] = None
    last_completed: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None
    next_run: Optional[datetime] = None
    data_status: str = DataStatus.WARMING_UP
    message: Optional[str] = None
    push_triggers: int = 0


@dataclass
class CycleResult:
    """Outcome of one refresh cycle."""
    cycle_id: int
    trigger: str
    started_at: datetime
    finished_at: datetime
    ok: bool
    token_count: int = 0
    outcomes: Dict[str, SourceOutcome] = field(default_factory=dict)
    report: Optional[CycleReport] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "trigger": self.trigger,
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
            "ok": self.ok,
            "token_count": self.token_count,
            "sources": {name: outcome.to_dict() for name, outcome in self.outcomes.items()},
            "report": self.report.to_dict() if self.report else None,
            "error": self.error,
        }


class RefreshScheduler:
    """Runs aggregator -> tracker on an interval and when push feeds deliver something new."""

    def __init__(
        self,
        aggregator: TokenAggregator,
        tracker: ProgressionTracker,
        *,
        interval_seconds: Optional[float] = None,
        max_backoff_multiplier: Optional[int] = None,
        normalizer: Optional[SourceNormalizer] = None,
        seen_cache: Optional[TTLCache] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.logger = logger or logging.getLogger("refresh_scheduler")
        self._aggregator = aggregator
        self._tracker = tracker
        if interval_seconds is None:
            interval_seconds = settings.refresh_interval_seconds
        if max_backoff_multiplier is None:
            max_backoff_multiplier = settings.max_backoff_multiplier
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        if max_backoff_multiplier < 1:
            raise ValueError(f"max_backoff_multiplier must be at least 1, got {max_backoff_multiplier}")
        self._interval = interval_seconds
        self._max_backoff = max_backoff_multiplier
        self._normalizer = normalizer or SourceNormalizer(sol_price_usd=settings.sol_price_usd)
        self._seen = seen_cache or TTLCache(default_ttl=settings.seen_token_ttl_seconds, max_size=10_000)
        self._state = SchedulerState()
        self._push_buffer: Dict[str, TokenRecord] = {}
        self._cycle_lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._loop_task: asyncio.Task | None = None
        self._running = False
        self._started_at: Optional[datetime] = None
        self._cycle_ids = itertools.count(1)
        self._last_result: Optional[CycleResult] = None
        self._hooks: List[CycleHook] = []

    # ---------------------------
    # Lifecycle
    # ---------------------------
    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._state.next_run = self._started_at
        self.logger.info("Refresh scheduler starting, interval %.0fs", self._interval)
        self._loop_task = asyncio.create_task(self._run_loop(), name="refresh-scheduler-loop")

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self.logger.info("Refresh scheduler stopping")
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None

    @property
    def is_running(self) -> bool:
        return self._running

    def add_cycle_hook(self, hook: CycleHook) -> None:
        """Called with the tracked identities after every successful cycle."""
        self._hooks.append(hook)

    # ---------------------------
    # Scheduling and execution
    # ---------------------------
    async def _run_loop(self) -> None:
        trigger = "startup"
        try:
            while self._running:
                await self.run_cycle(trigger=trigger)
                trigger = await self._wait_for_next()
        except asyncio.CancelledError:
            return
        except Exception as exc:  # noqa: BLE001
            self.logger.error("Refresh loop crashed: %s", exc, exc_info=True)
            self._running = False

    async def _wait_for_next(self) -> str:
        delay = self.current_delay()
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return "interval"
        finally:
            self._wake.clear()
        return PUSH_SOURCE

    def current_delay(self) -> float:
        """Interval stretched by consecutive failures, capped."""
        multiplier = min(max(1, self._state.consecutive_errors), self._max_backoff)
        return self._interval * multiplier

    async def run_cycle(self, trigger: str = "manual") -> CycleResult:
        """Fetch, merge and advance the rosters once. Cycles never overlap."""
        async with self._cycle_lock:
            return await self._run_cycle_locked(trigger)

    async def _run_cycle_locked(self, trigger: str) -> CycleResult:
        state = self._state
        cycle_id = next(self._cycle_ids)
        log = get_cycle_logger("tierwatch.refresh", cycle=cycle_id, trigger=trigger)
        state.status = "running"
        started = datetime.now(timezone.utc)
        state.last_started = started

        push_records = self._drain_push_buffer()
        result = CycleResult(cycle_id=cycle_id, trigger=trigger, started_at=started, finished_at=started, ok=False)
        try:
            aggregation = await self._aggregator.collect(
                watch=self._tracker.watch_list(),
                extra={PUSH_SOURCE: push_records} if push_records else None,
            )
            result.outcomes = aggregation.outcomes
            result.token_count = len(aggregation.records)
            result.report = await self._tracker.run_cycle(aggregation.records)
            result.ok = True

            state.consecutive_errors = 0
            state.last_error = None
            state.last_success = datetime.now(timezone.utc)
            state.data_status = DataStatus.LIVE
            state.message = None
            log.info(
                "cycle_completed",
                tokens=result.token_count,
                failed_sources=aggregation.failed_sources,
                admitted=sum(len(ids) for ids in result.report.admitted.values()),
                promoted=len(result.report.promoted),
                removed=len(result.report.removed),
            )
        except NoDataAvailableError as exc:
            # Keep the previous rosters untouched
            result.outcomes = dict(exc.outcomes)
            result.error = exc.message
            self._mark_failed(exc.message)
            state.message = NO_DATA_MESSAGE
            log.warning("cycle_no_data", error=exc.message)
        except Exception as exc:  # noqa: BLE001
            result.error = str(exc) or exc.__class__.__name__
            self._mark_failed(result.error)
            log.error("cycle_failed", error=result.error, exc_info=True)
        finally:
            state.run_count += 1
            state.last_completed = datetime.now(timezone.utc)
            state.next_run = state.last_completed + timedelta(seconds=self.current_delay())
            state.status = "idle"
            result.finished_at = state.last_completed
            self._last_result = result

        if result.ok:
            await self._run_hooks()
        return result

    def _mark_failed(self, error: str) -> None:
        state = self._state
        state.consecutive_errors += 1
        state.last_error = error
        state.data_status = DataStatus.STALE
        state.message = error

    async def _run_hooks(self) -> None:
        watch = self._tracker.watch_list()
        for hook in self._hooks:
            try:
                await hook(watch)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("Cycle hook failed: %s", exc, exc_info=True)

    async def refetch(self) -> CycleResult:
        """Run a cycle now regardless of the schedule."""
        return await self.run_cycle(trigger="manual")

    # ---------------------------
    # Push updates
    # ---------------------------
    async def notify_push(self, feed_name: str, payloads: List[RawSourcePayload]) -> bool:
        """
        Buffer pushed payloads for the next cycle.

        Returns True (and wakes the loop) when a payload is materially new: an
        identity not seen recently, or a lifecycle flag change such as migration.
        """
        records = self._normalizer.normalize_batch(payloads)
        material = False
        for record in records:
            buffered = self._push_buffer.get(record.identity)
            self._push_buffer[record.identity] = record if buffered is None else merge_records(buffered, record)

            previous: Optional[Tuple[Optional[bool], Optional[bool]]] = await self._seen.get(record.identity)
            flags = (record.is_complete, record.is_live)
            if previous is None:
                material = True
            else:
                if any(new is not None and new != old for new, old in zip(flags, previous)):
                    material = True
                flags = tuple(new if new is not None else old for new, old in zip(flags, previous))
            await self._seen.set(record.identity, flags)

        if material:
            self._state.push_triggers += 1
            self.logger.debug("Push from %s carries new tokens; waking scheduler", feed_name)
            self._wake.set()
        return material

    def _drain_push_buffer(self) -> List[TokenRecord]:
        records = list(self._push_buffer.values())
        self._push_buffer.clear()
        return records

    @property
    def pending_push(self) -> int:
        return len(self._push_buffer)

    # ---------------------------
    # Introspection
    # ---------------------------
    @property
    def last_result(self) -> Optional[CycleResult]:
        return self._last_result

    @property
    def data_status(self) -> str:
        return self._state.data_status

    @property
    def message(self) -> Optional[str]:
        return self._state.message

    def status(self) -> dict[str, Any]:
        state = self._state
        return {
            "running": self._running,
            "started_at": _iso(self._started_at),
            "status": state.status,
            "data_status": state.data_status,
            "message": state.message,
            "interval_seconds": self._interval,
            "current_delay_seconds": self.current_delay(),
            "run_count": state.run_count,
            "consecutive_errors": state.consecutive_errors,
            "last_started": _iso(state.last_started),
            "last_completed": _iso(state.last_completed),
            "last_success": _iso(state.last_success),
            "last_error": state.last_error,
            "next_run": _iso(state.next_run),
            "pending_push": len(self._push_buffer),
            "push_triggers": state.push_triggers,
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.astimezone(timezone.utc).isoformat() if value else None
