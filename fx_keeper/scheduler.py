"""Self-rescheduling background refresh of the rate table.

The scheduler moves between three phases::

    DISABLED --enable--> RUNNING --cycle done--> ARMED --timer--> RUNNING ...
                                  \\--disabled--> DISABLED

Every mutation of the enabled flag and of the timer handle happens under one
lock, and the decision to arm the next timer is taken inside the same critical
section that records a cycle's completion. That is what keeps at most one
timer armed. The refresh body itself runs on a small worker pool and never
holds the lock while talking to the network.
"""

from __future__ import annotations

import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable

from fx_keeper.exceptions import InvalidRate, InvalidSchedule
from fx_keeper.feed.strategy import RateFeed
from fx_keeper.models import CurrencyCode, RateRecord, RefreshResult, normalise_code, utcnow
from fx_keeper.repository import RateRepository
from fx_keeper.utils.logger import get_logger

LOGGER = get_logger(__name__)

MAX_WORKERS = 5

_PERIOD_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}
_ALIASES = {"@hourly": "hour", "@daily": "day"}


class RefreshPhase(str, Enum):
    """Lifecycle phase of the periodic refresh job."""

    DISABLED = "disabled"
    ARMED = "armed"
    RUNNING = "running"


@dataclass(frozen=True, slots=True)
class RefreshPeriod:
    """How far in the future the next automatic refresh fires.

    Either a fixed ``interval`` or an ``align`` boundary (``"hour"``/``"day"``)
    matching cron-style "top of the hour" schedules. The delay is always
    measured from the moment the previous cycle finished.
    """

    label: str
    interval: timedelta | None = None
    align: str | None = None

    @classmethod
    def parse(cls, label: "str | int | float | timedelta | RefreshPeriod") -> "RefreshPeriod":
        if isinstance(label, RefreshPeriod):
            return label
        if isinstance(label, timedelta):
            if label.total_seconds() <= 0:
                raise InvalidSchedule(f"Refresh period must be positive, got {label}")
            return cls(label=str(label), interval=label)
        if isinstance(label, bool):
            raise InvalidSchedule(f"Unsupported refresh period: {label!r}")
        if isinstance(label, (int, float)):
            if label <= 0:
                raise InvalidSchedule(f"Refresh period must be positive, got {label}")
            return cls(label=f"{label}s", interval=timedelta(seconds=label))
        if not isinstance(label, str):
            raise InvalidSchedule(f"Unsupported refresh period: {label!r}")
        alias = _ALIASES.get(label.strip().lower())
        if alias is not None:
            return cls(label=label.strip().lower(), align=alias)
        match = _PERIOD_PATTERN.match(label)
        if match is None:
            raise InvalidSchedule(
                f"Malformed refresh period {label!r}; use e.g. '30m', '1h', '900' or '@hourly'"
            )
        amount, unit = match.groups()
        seconds = float(amount) * _UNIT_SECONDS[unit.lower()]
        if seconds <= 0:
            raise InvalidSchedule(f"Refresh period must be positive, got {label!r}")
        return cls(label=label.strip(), interval=timedelta(seconds=seconds))

    def next_run_at(self, now: datetime) -> datetime:
        if self.interval is not None:
            return now + self.interval
        top_of_hour = now.replace(minute=0, second=0, microsecond=0)
        if self.align == "hour":
            return top_of_hour + timedelta(hours=1)
        return top_of_hour.replace(hour=0) + timedelta(days=1)

    def next_delay(self, now: datetime) -> float:
        return max((self.next_run_at(now) - now).total_seconds(), 0.0)


@dataclass(slots=True)
class RefreshJobState:
    """Process-wide job state; only touched while holding the scheduler lock."""

    enabled: bool
    handle: Any = None
    generation: int = 0
    running: int = 0
    next_run_at: datetime | None = None
    last_result: RefreshResult | None = None

    @property
    def phase(self) -> RefreshPhase:
        if self.running:
            return RefreshPhase.RUNNING
        if self.handle is not None:
            return RefreshPhase.ARMED
        return RefreshPhase.DISABLED


class RateRefreshScheduler:
    """Periodically pull quotes from a feed and reconcile them into the repository."""

    def __init__(
        self,
        feed: RateFeed,
        repository: RateRepository,
        *,
        period: "str | int | float | timedelta | RefreshPeriod" = "@hourly",
        currencies: Iterable[str | CurrencyCode] | None = None,
        enabled: bool = True,
        max_workers: int = 3,
        max_pending_manual: int = 2,
        clock: Callable[[], datetime] = utcnow,
        timer_factory: Callable[..., Any] = threading.Timer,
    ) -> None:
        self.period = RefreshPeriod.parse(period)
        if not 1 <= max_workers <= MAX_WORKERS:
            raise ValueError(f"max_workers must be between 1 and {MAX_WORKERS}")
        if max_pending_manual < 1:
            raise ValueError("max_pending_manual must be at least 1")
        self.feed = feed
        self.repository = repository
        self.currencies: tuple[str, ...] = tuple(
            normalise_code(code) for code in (currencies if currencies is not None else CurrencyCode)
        )
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._state = RefreshJobState(enabled=enabled)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="rate-refresh")
        self._manual_slots = threading.BoundedSemaphore(max_pending_manual)
        self._max_pending_manual = max_pending_manual
        self._pending_manual = 0
        self._started = False
        self._closed = False

    # Control surface --------------------------------------------------
    def start(self, *, wait: bool = False) -> "Future[RefreshResult]":
        """Run the startup refresh, then arm the periodic timer if enabled."""

        with self._lock:
            if self._closed:
                raise RuntimeError("Scheduler has been shut down")
            if self._started:
                raise RuntimeError("Scheduler already started")
            self._started = True
            LOGGER.info(
                "Starting rate refresh (period %s, auto update %s)",
                self.period.label,
                "enabled" if self._state.enabled else "disabled",
            )
            future = self._submit_driver_locked("startup")
        if wait:
            future.result()
        return future

    def enable_auto_update(self) -> bool:
        """Turn periodic refresh on; refreshes once right away without blocking."""

        with self._lock:
            if self._closed:
                raise RuntimeError("Scheduler has been shut down")
            if self._state.enabled:
                LOGGER.info("Auto update already enabled")
                return False
            self._state.enabled = True
            self._state.generation += 1
            LOGGER.info("Auto update enabled; refreshing now")
            self._submit_driver_locked("enable")
        return True

    def disable_auto_update(self) -> bool:
        """Turn periodic refresh off and cancel the pending timer."""

        with self._lock:
            if not self._state.enabled:
                LOGGER.info("Auto update already disabled")
                return False
            self._state.enabled = False
            self._state.generation += 1
            self._cancel_timer_locked()
            LOGGER.info("Auto update disabled")
        return True

    def is_enabled(self) -> bool:
        with self._lock:
            return self._state.enabled

    def trigger_refresh_now(self) -> "Future[RefreshResult] | None":
        """Queue a one-off refresh; returns ``None`` when too many are already pending."""

        if not self._manual_slots.acquire(blocking=False):
            LOGGER.warning(
                "Manual refresh rejected: %s runs already pending", self._max_pending_manual
            )
            return None
        with self._lock:
            if self._closed:
                self._manual_slots.release()
                LOGGER.warning("Manual refresh rejected: scheduler has been shut down")
                return None
            self._pending_manual += 1
            future = self._executor.submit(self._run_manual_cycle)
            future.add_done_callback(self._on_manual_cancelled)
        LOGGER.info("Manual refresh queued")
        return future

    @property
    def phase(self) -> RefreshPhase:
        with self._lock:
            return self._state.phase

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._state.handle is not None

    @property
    def last_result(self) -> RefreshResult | None:
        with self._lock:
            return self._state.last_result

    def status(self) -> dict[str, Any]:
        with self._lock:
            state = self._state
            return {
                "enabled": state.enabled,
                "phase": state.phase.value,
                "period": self.period.label,
                "next_run_at": state.next_run_at.isoformat() if state.next_run_at else None,
                "pending_manual": self._pending_manual,
                "last_result": state.last_result.as_dict() if state.last_result else None,
            }

    def join(self, timeout: float | None = None) -> bool:
        """Block until no refresh is running or queued; ``False`` on timeout."""

        with self._idle:
            return self._idle.wait_for(
                lambda: self._state.running == 0 and self._pending_manual == 0, timeout
            )

    def shutdown(self, *, wait: bool = True) -> None:
        """Cancel the timer and stop the worker pool. Running cycles finish."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._state.generation += 1
            self._cancel_timer_locked()
        LOGGER.info("Shutting down rate refresh workers")
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "RateRefreshScheduler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # Refresh body -----------------------------------------------------
    def run_cycle(self) -> RefreshResult:
        """Fetch one snapshot and reconcile it, isolating failures per currency."""

        result = RefreshResult()
        LOGGER.info("Rate refresh cycle started")
        rates = self.feed.fetch_latest_rates()
        result.fetched = len(rates)
        if not rates:
            LOGGER.warning("No quotes received; skipping reconciliation this cycle")
            result.finished_at = utcnow()
            return result
        quotes = {str(code).upper(): value for code, value in rates.items()}
        for code in self.currencies:
            quote = quotes.get(code)
            if quote is None:
                LOGGER.warning("No quote for %s in feed response", code)
                result.skipped += 1
                continue
            try:
                record = RateRecord(currency_code=code, rate_to_base=quote)
                if not record.is_valid:
                    raise InvalidRate(code, quote)
            except InvalidRate:
                LOGGER.warning("Ignoring invalid quote for %s: %r", code, quote)
                result.skipped += 1
                continue
            try:
                existing = self.repository.get(code)
                self.repository.put(record)
            except Exception:
                LOGGER.exception("Failed to store refreshed rate for %s", code)
                result.failed += 1
                continue
            if existing is None:
                LOGGER.info("Created %s at %s", code, record.rate_to_base)
                result.created += 1
            else:
                LOGGER.info("Updated %s: %s -> %s", code, existing.rate_to_base, record.rate_to_base)
                result.updated += 1
        result.finished_at = utcnow()
        LOGGER.info(
            "Rate refresh cycle finished in %s ms: created %s, updated %s, skipped %s, failed %s",
            result.duration_ms,
            result.created,
            result.updated,
            result.skipped,
            result.failed,
        )
        return result

    # Internals --------------------------------------------------------
    def _execute_cycle(self, reason: str) -> RefreshResult:
        started_at = utcnow()
        started = time.perf_counter()
        try:
            result = self.run_cycle()
        except Exception:
            LOGGER.exception(
                "Rate refresh (%s) failed after %.0f ms",
                reason,
                (time.perf_counter() - started) * 1000.0,
            )
            result = RefreshResult(failed=1, started_at=started_at, finished_at=utcnow())
        with self._lock:
            self._state.last_result = result
        return result

    def _submit_driver_locked(self, reason: str) -> "Future[RefreshResult]":
        self._state.running += 1
        try:
            future = self._executor.submit(self._run_driver_cycle, reason)
        except RuntimeError:
            self._state.running -= 1
            self._idle.notify_all()
            raise
        future.add_done_callback(self._on_driver_cancelled)
        return future

    def _run_driver_cycle(self, reason: str) -> RefreshResult:
        try:
            return self._execute_cycle(reason)
        finally:
            with self._lock:
                self._state.running -= 1
                self._rearm_locked()
                self._idle.notify_all()

    def _run_manual_cycle(self) -> RefreshResult:
        try:
            return self._execute_cycle("manual")
        finally:
            with self._lock:
                self._pending_manual -= 1
                self._idle.notify_all()
            self._manual_slots.release()

    # Work cancelled by shutdown never enters its finally block.
    def _on_driver_cancelled(self, future: "Future[RefreshResult]") -> None:
        if not future.cancelled():
            return
        with self._lock:
            self._state.running -= 1
            self._idle.notify_all()

    def _on_manual_cancelled(self, future: "Future[RefreshResult]") -> None:
        if not future.cancelled():
            return
        with self._lock:
            self._pending_manual -= 1
            self._idle.notify_all()
        self._manual_slots.release()

    def _rearm_locked(self) -> None:
        if self._closed or not self._state.enabled:
            return
        if self._state.handle is not None:
            LOGGER.debug("Timer already armed; not arming another")
            return
        now = self._clock()
        delay = self.period.next_delay(now)
        self._state.generation += 1
        timer = self._timer_factory(delay, self._on_timer, args=(self._state.generation,))
        timer.daemon = True
        self._state.handle = timer
        self._state.next_run_at = now + timedelta(seconds=delay)
        timer.start()
        LOGGER.info("Next rate refresh at %s", self._state.next_run_at.isoformat())

    def _cancel_timer_locked(self) -> None:
        if self._state.handle is not None:
            self._state.handle.cancel()
            LOGGER.info("Cancelled pending rate refresh timer")
        self._state.handle = None
        self._state.next_run_at = None

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if self._closed or not self._state.enabled or generation != self._state.generation:
                LOGGER.debug("Ignoring stale refresh timer (generation %s)", generation)
                return
            self._state.handle = None
            self._state.next_run_at = None
            try:
                self._submit_driver_locked("scheduled")
            except RuntimeError:
                LOGGER.warning("Worker pool closed; scheduled refresh dropped")


__all__ = [
    "MAX_WORKERS",
    "RateRefreshScheduler",
    "RefreshJobState",
    "RefreshPeriod",
    "RefreshPhase",
]
