"""
APScheduler Background Jobs

Background jobs run via BackgroundScheduler in the FastAPI process.
Currently: the admission controller's token refill tick.
"""

from typing import Optional

import structlog
from apscheduler.schedulers.background import BackgroundScheduler

from relay.services.admission import AdmissionController

logger = structlog.get_logger(__name__)


def start_scheduler(
    admission: AdmissionController,
    environment: str = "production"
) -> BackgroundScheduler:
    """
    Start background scheduler with all jobs.

    Args:
        admission: Admission controller whose bucket needs refilling
        environment: Current environment (skip scheduler in testing)

    Returns:
        BackgroundScheduler instance (not running when skipped)
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    if environment == "testing":
        logger.info("scheduler_skipped", reason="testing_environment")
        return scheduler

    jobs = []
    if admission.schedule_refill(scheduler):
        jobs.append("admission_refill")

    if not jobs:
        logger.info("scheduler_skipped", reason="no_jobs")
        return scheduler

    scheduler.start()
    logger.info("scheduler_started", jobs=jobs)

    return scheduler


def stop_scheduler(scheduler: Optional[BackgroundScheduler]):
    """
    Stop background scheduler gracefully.

    Args:
        scheduler: BackgroundScheduler instance to stop
    """
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")


__all__ = [
    "start_scheduler",
    "stop_scheduler",
]
