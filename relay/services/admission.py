"""
Admission Controller

Token bucket gating how many requests may start per unit of time. Tokens are
taken without waiting; an empty bucket is a rejection. A background
APScheduler job adds one token every 1/rate seconds up to the burst size.
"""

import threading
from typing import Optional

import structlog
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = structlog.get_logger(__name__)

REFILL_JOB_ID = "admission_refill"


class AdmissionController:
    """
    Thread-safe token bucket.

    capacity = burst (falls back to rate when burst <= 0), bucket starts full.
    A rate <= 0 disables admission control entirely: try_admit() always
    returns True and no refill job is registered.

    Usage:
        controller = AdmissionController(rate=50, burst=100)
        controller.schedule_refill(scheduler)
        if not controller.try_admit():
            return Response(status_code=429)
    """

    def __init__(self, rate: int = 0, burst: int = 0):
        self.rate = max(rate, 0)
        self.capacity = burst if burst > 0 else self.rate
        self._tokens = self.capacity
        self._lock = threading.Lock()

        logger.debug(
            "admission_controller_initialized",
            enabled=self.enabled,
            rate=self.rate,
            capacity=self.capacity
        )

    @property
    def enabled(self) -> bool:
        return self.rate > 0

    @property
    def refill_interval(self) -> Optional[float]:
        """Seconds between refill ticks, None when disabled."""
        if not self.enabled:
            return None
        return 1.0 / self.rate

    @property
    def available(self) -> int:
        with self._lock:
            return self._tokens

    def try_admit(self) -> bool:
        """Take one token if available. Never blocks."""
        if not self.enabled:
            return True
        with self._lock:
            if self._tokens <= 0:
                return False
            self._tokens -= 1
            return True

    def refill(self) -> None:
        """One refill tick: add a token unless the bucket is full."""
        if not self.enabled:
            return
        with self._lock:
            if self._tokens < self.capacity:
                self._tokens += 1

    def schedule_refill(self, scheduler: BaseScheduler) -> bool:
        """
        Register the refill tick on a scheduler.

        Args:
            scheduler: APScheduler instance owned by the application lifecycle

        Returns:
            True if a job was registered, False when admission is disabled
        """
        if not self.enabled:
            logger.info("admission_disabled")
            return False

        scheduler.add_job(
            self.refill,
            trigger=IntervalTrigger(seconds=self.refill_interval),
            id=REFILL_JOB_ID,
            name="Admission Token Refill",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        logger.info(
            "job_registered",
            job=REFILL_JOB_ID,
            interval_seconds=self.refill_interval,
            capacity=self.capacity
        )
        return True

    def __repr__(self) -> str:
        return (
            f"AdmissionController(rate={self.rate}, capacity={self.capacity}, "
            f"available={self.available})"
        )
