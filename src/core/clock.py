import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Final, Optional
import requests
from .errors import SyncError, ValidationError
from .logger import get_logger
from .types import SimTimeResponse, SyncStatus

logger = get_logger("SimClock")

MS_PER_SIM_DAY: Final[int] = 24 * 60 * 60 * 1000
SYNC_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_SYNC_INTERVAL_MS: Final[int] = 30_000
DEFAULT_TICK_MS: Final[int] = 1_000

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(t: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)

class SimClock:
    """
    Virtualized simulation clock.

    Maps wall-clock time onto an accelerated simulated timeline:
        now = current_anchor + (wall_clock - real_anchor) * speed
    Simulated time advances in whole ticks of real time (tick_ms); tick_ms=0
    makes it continuous. While stopped, now() is frozen at the last anchor.
    Before the first start() and after reset() the clock is idle and follows
    the wall clock.

    Can be reconciled against an external time authority, once via sync() or
    periodically by a background task started with start(sync_endpoint=...).
    After max_failures consecutive failed auto-syncs the task gives up
    (sync disabled) while the clock keeps running.
    """

    def __init__(
        self,
        real_minutes_per_sim_day: float = 2.0,
        max_failures: int = 3,
        tick_ms: int = DEFAULT_TICK_MS,
        wall_clock: Callable[[], datetime] = utc_now,
        join_timeout_s: float = 1.0,
    ):
        if real_minutes_per_sim_day <= 0:
            raise ValueError("real_minutes_per_sim_day must be positive")
        self.real_minutes_per_sim_day = real_minutes_per_sim_day
        self.max_failures = max_failures
        self.tick_ms = tick_ms
        self._speed = MS_PER_SIM_DAY / (real_minutes_per_sim_day * 60_000)
        self._wall_clock = wall_clock
        self._join_timeout_s = join_timeout_s

        # Guards anchors, flags and counters. Never held across network calls.
        self._lock = threading.RLock()
        # Held for the duration of one sync request; auto-sync ticks skip if busy.
        self._sync_busy = threading.Lock()
        self._sync_thread: Optional[threading.Thread] = None
        self._sync_cancel: Optional[threading.Event] = None
        # Bumped on every cancellation so in-flight results can be recognised as stale.
        self._generation = 0

        now = self._wall()
        self._current_anchor = now
        self._real_anchor = now
        self._simulation_start = now
        self._anchored = False
        self._running = False
        self._sync_endpoint: Optional[str] = None
        self._sync_enabled = False
        self._failed_sync_attempts = 0

    # --- Time ---

    def now(self) -> datetime:
        """
        Current simulated time. Pure function of the wall clock and anchors.
        """
        with self._lock:
            if not self._anchored:
                return self._wall()
            if not self._running:
                return self._current_anchor
            return self._compute_now()

    def speed(self) -> float:
        """
        Simulated milliseconds per real millisecond (720 for 2 real minutes per sim day).
        """
        return self._speed

    def set_time(self, t: datetime):
        """
        Manual override. Re-anchors at t without touching the running flag.
        """
        sim_time = as_utc(t)
        with self._lock:
            self._set_anchor(sim_time)
        logger.info("sim_time_set", sim_time=sim_time.isoformat())

    def get_simulation_start_time(self) -> datetime:
        with self._lock:
            return self._simulation_start

    def get_real_start_time(self) -> datetime:
        with self._lock:
            return self._real_anchor

    def is_running(self) -> bool:
        return self._running

    # --- Lifecycle ---

    def start(
        self,
        start_time: Optional[datetime] = None,
        sync_endpoint: Optional[str] = None,
        sync_interval_ms: int = DEFAULT_SYNC_INTERVAL_MS,
    ):
        """
        Starts (or restarts) the clock. Replaces any previous configuration,
        including a previous sync endpoint when none is given.
        """
        if sync_endpoint is not None and sync_interval_ms <= 0:
            raise ValueError("sync_interval_ms must be positive")
        self._cancel_sync_task()
        with self._lock:
            real_now = self._wall()
            self._current_anchor = as_utc(start_time) if start_time is not None else real_now
            self._real_anchor = real_now
            self._simulation_start = self._current_anchor
            self._anchored = True
            self._running = True
            self._sync_endpoint = sync_endpoint
            self._failed_sync_attempts = 0
            if sync_endpoint is not None:
                self._start_sync_task(sync_endpoint, sync_interval_ms)
        logger.info("clock_started",
                    sim_time=self._current_anchor.isoformat(),
                    speed=self._speed,
                    sync_endpoint=sync_endpoint,
                    sync_interval_ms=sync_interval_ms if sync_endpoint else None)

    def stop(self):
        """
        Freezes simulated time at its current value and cancels auto-sync.
        """
        self._cancel_sync_task()
        with self._lock:
            if self._running:
                self._current_anchor = self._compute_now()
                self._real_anchor = self._wall()
            self._running = False
        logger.info("clock_stopped", sim_time=self.now().isoformat())

    def reset(self):
        """
        Back to the idle state: no timers, no endpoint, counters cleared,
        simulated time following the wall clock.
        """
        self._cancel_sync_task()
        with self._lock:
            now = self._wall()
            self._current_anchor = now
            self._real_anchor = now
            self._simulation_start = now
            self._anchored = False
            self._running = False
            self._sync_endpoint = None
            self._failed_sync_attempts = 0
        logger.info("clock_reset")

    # --- Sync ---

    def sync(self, endpoint: str):
        """
        Reconciles once against the time authority at `endpoint`.
        Raises SyncError (or ValidationError for a malformed payload) and
        leaves clock state untouched on failure.
        """
        with self._sync_busy:
            self._sync(endpoint)

    def sync_status(self) -> SyncStatus:
        with self._lock:
            return SyncStatus(
                enabled=self._sync_enabled,
                endpoint=self._sync_endpoint,
                failed_attempts=self._failed_sync_attempts,
                max_failures=self.max_failures,
            )

    def get_sync_endpoint(self) -> Optional[str]:
        return self._sync_endpoint

    def is_sync_enabled(self) -> bool:
        return self._sync_enabled

    def has_sync_task(self) -> bool:
        thread = self._sync_thread
        return thread is not None and thread.is_alive()

    def reset_sync_failure_count(self):
        with self._lock:
            previous = self._failed_sync_attempts
            self._failed_sync_attempts = 0
        if previous > 0:
            logger.info("sync_failure_count_reset", previous=previous)

    # --- Internals ---

    def _wall(self) -> datetime:
        return as_utc(self._wall_clock())

    def _compute_now(self) -> datetime:
        elapsed_ms = (self._wall() - self._real_anchor) / timedelta(milliseconds=1)
        if elapsed_ms < 0:
            elapsed_ms = 0.0
        if self.tick_ms > 0:
            elapsed_ms = (elapsed_ms // self.tick_ms) * self.tick_ms
        return self._current_anchor + timedelta(milliseconds=elapsed_ms * self._speed)

    def _set_anchor(self, sim_time: datetime):
        self._current_anchor = sim_time
        self._simulation_start = sim_time
        self._real_anchor = self._wall()
        self._anchored = True

    def _sync(self, endpoint: str, generation: Optional[int] = None) -> bool:
        """
        One request to the time authority. Returns False if the result was
        discarded because the sync task it belonged to has been cancelled.
        """
        try:
            response = requests.get(
                endpoint,
                timeout=SYNC_TIMEOUT_MS / 1000,
                headers={"Content-Type": "application/json"},
            )
        except requests.Timeout as e:
            raise SyncError(f"Request timeout after {SYNC_TIMEOUT_MS}ms") from e
        except requests.ConnectionError as e:
            raise SyncError("No response from server (network error)") from e
        except requests.RequestException as e:
            raise SyncError(str(e)) from e

        # Unfollowed redirects and 304s count as failures too
        if not (200 <= response.status_code < 300):
            raise SyncError(f"HTTP {response.status_code}: {response.reason}")

        new_time = self._parse_sim_time(response)

        with self._lock:
            if generation is not None and generation != self._generation:
                logger.info("stale_sync_discarded", endpoint=endpoint)
                return False
            self._set_anchor(new_time)
            self._failed_sync_attempts = 0
        logger.info("sync_succeeded", endpoint=endpoint, sim_time=new_time.isoformat())
        return True

    @staticmethod
    def _parse_sim_time(response) -> datetime:
        try:
            data = response.json()
        except ValueError as e:
            raise ValidationError("Invalid response data from simulation time endpoint") from e
        if not isinstance(data, dict) or not data.get("currentSimTime"):
            raise ValidationError("Invalid response data from simulation time endpoint")
        try:
            payload = SimTimeResponse.model_validate(data)
        except ValueError as e:
            logger.error("invalid_sim_time_received", value=str(data.get("currentSimTime")))
            raise ValidationError(f"Invalid date received from endpoint: {data.get('currentSimTime')}") from e
        return as_utc(payload.currentSimTime)

    def _start_sync_task(self, endpoint: str, interval_ms: int):
        # Caller holds self._lock
        cancel = threading.Event()
        self._sync_cancel = cancel
        self._sync_enabled = True
        self._sync_thread = threading.Thread(
            target=self._auto_sync_loop,
            args=(endpoint, interval_ms / 1000, cancel, self._generation),
            name="sim-clock-sync",
            daemon=True,
        )
        self._sync_thread.start()

    def _cancel_sync_task(self):
        """
        Synchronous and idempotent. Safe to call from the sync thread itself.
        """
        with self._lock:
            thread, cancel = self._sync_thread, self._sync_cancel
            self._sync_thread = None
            self._sync_cancel = None
            self._sync_enabled = False
            self._generation += 1
        if cancel is not None:
            cancel.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self._join_timeout_s)

    def _auto_sync_loop(self, endpoint: str, interval_s: float, cancel: threading.Event, generation: int):
        while not cancel.wait(interval_s):
            if not self._sync_busy.acquire(blocking=False):
                logger.debug("auto_sync_skipped_busy", endpoint=endpoint)
                continue
            circuit_open = False
            try:
                self._sync(endpoint, generation)
            except SyncError as e:
                circuit_open = self._record_sync_failure(generation, e)
            finally:
                self._sync_busy.release()
            if circuit_open:
                return

    def _record_sync_failure(self, generation: int, error: SyncError) -> bool:
        """
        Counts a failed auto-sync. Returns True when the loop must exit.
        """
        with self._lock:
            if generation != self._generation:
                return True
            self._failed_sync_attempts += 1
            failures = self._failed_sync_attempts
            logger.warning("auto_sync_failed",
                           endpoint=self._sync_endpoint,
                           failed_attempts=failures,
                           max_failures=self.max_failures,
                           error=str(error))
            if failures < self.max_failures:
                return False
            # Circuit opens: sync off, clock keeps running
            self._sync_enabled = False
            self._sync_thread = None
            self._sync_cancel = None
        logger.error("auto_sync_disabled", failed_attempts=failures, max_failures=self.max_failures)
        return True
