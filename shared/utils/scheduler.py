from apscheduler.schedulers.asyncio import AsyncIOScheduler
import structlog

logger = structlog.get_logger()

JOB_DEFAULTS = {
    "coalesce": True,  # collapse a backlog of missed firings into one run
    "max_instances": 1,
    "misfire_grace_time": 300,
}

scheduler = AsyncIOScheduler(job_defaults=JOB_DEFAULTS)


def start_scheduler(timezone: str | None = None):
    if not scheduler.running:
        if timezone:
            # configure() replaces the whole config, job defaults included
            scheduler.configure(timezone=timezone, job_defaults=JOB_DEFAULTS)
        scheduler.start()
        logger.info("scheduler_started", timezone=str(scheduler.timezone))


def stop_scheduler():
    if scheduler.running:
        # In-flight jobs are left to finish on their own
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
