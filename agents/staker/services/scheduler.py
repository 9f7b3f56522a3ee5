"""
Staking Scheduler — N equally spaced sessions per day.

Slots are anchored to the hour/minute the process started:
  frequency=4, started 09:17 → 09:17, 15:17, 21:17, 03:17
A restart re-anchors to the new start time. When 24 is not divisible by
the frequency the spacing is truncated to whole hours, so the last slot
of the day is followed by a longer gap.
"""
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from shared.utils.scheduler import scheduler as shared_scheduler
from agents.staker.config import COUNTDOWN_INTERVAL_MINUTES, MAX_DAILY_FREQUENCY
from agents.staker.errors import ConfigurationError
from agents.staker.models.schemas import ScheduleEntry
from agents.staker.services.orchestrator import SessionOrchestrator
import structlog

logger = structlog.get_logger()

IMMEDIATE_JOB_ID = "stake_immediate"
COUNTDOWN_JOB_ID = "stake_countdown"


def compute_schedule(frequency: int, start: datetime) -> list[ScheduleEntry]:
    if not 1 <= frequency <= MAX_DAILY_FREQUENCY:
        raise ConfigurationError(
            f"Staking frequency must be between 1 and {MAX_DAILY_FREQUENCY}, got {frequency}"
        )
    if 24 % frequency:
        logger.warning(
            "schedule_misaligned",
            frequency=frequency,
            detail="frequency does not divide 24; slots will not align with day boundaries",
        )
    interval = 24 // frequency
    return [
        ScheduleEntry(hour=(start.hour + i * interval) % 24, minute=start.minute)
        for i in range(frequency)
    ]


def next_trigger(entries: list[ScheduleEntry], now: datetime) -> Optional[datetime]:
    if not entries:
        return None
    return min(entry.next_after(now) for entry in entries)


class StakingScheduler:
    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        frequency: int,
        timezone: str = "UTC",
        scheduler: Optional[BaseScheduler] = None,
    ):
        self.orchestrator = orchestrator
        self.frequency = frequency
        self.timezone = timezone
        self.scheduler = scheduler or shared_scheduler
        self.entries: list[ScheduleEntry] = []
        self._job_ids: list[str] = []

    def now(self) -> datetime:
        return datetime.now(ZoneInfo(self.timezone))

    def start(self, run_immediately: bool = True) -> list[ScheduleEntry]:
        """Register one cron job per slot, plus the immediate run and the countdown."""
        started_at = self.now()
        self.entries = compute_schedule(self.frequency, started_at)

        for index, entry in enumerate(self.entries, start=1):
            job_id = f"stake_slot_{index}"
            self.scheduler.add_job(
                self.run_scheduled_session,
                "cron",
                hour=entry.hour,
                minute=entry.minute,
                timezone=self.timezone,
                id=job_id,
                kwargs={"label": f"{index}/{self.frequency}"},
                replace_existing=True,
            )
            self._job_ids.append(job_id)
            logger.info("stake_slot_scheduled", slot=index, cron=entry.cron, timezone=self.timezone)

        if run_immediately:
            self.scheduler.add_job(
                self.run_scheduled_session,
                "date",
                run_date=started_at,
                id=IMMEDIATE_JOB_ID,
                kwargs={"label": "immediate"},
                replace_existing=True,
            )
            self._job_ids.append(IMMEDIATE_JOB_ID)

        self.scheduler.add_job(
            self.log_countdown,
            "interval",
            minutes=COUNTDOWN_INTERVAL_MINUTES,
            id=COUNTDOWN_JOB_ID,
            replace_existing=True,
        )
        self._job_ids.append(COUNTDOWN_JOB_ID)
        return self.entries

    def stop(self) -> None:
        for job_id in self._job_ids:
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass  # one-shot jobs remove themselves after running
        self._job_ids = []

    async def run_scheduled_session(self, label: str) -> None:
        logger.info("scheduled_session_firing", slot=label)
        try:
            result = await self.orchestrator.run_session()
        except Exception as e:
            logger.error("scheduled_session_crashed", slot=label, error=str(e))
            return
        if result.success_count > 0:
            logger.info(
                "scheduled_session_done",
                slot=label,
                successful=f"{result.success_count}/{len(result.protocols)}",
            )
        else:
            logger.warning(
                "scheduled_session_no_success",
                slot=label,
                reason=result.error or "all protocols failed",
            )

    def next_run(self, now: Optional[datetime] = None) -> Optional[datetime]:
        return next_trigger(self.entries, now or self.now())

    def countdown(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        now = now or self.now()
        upcoming = next_trigger(self.entries, now)
        return upcoming - now if upcoming else None

    async def log_countdown(self) -> None:
        remaining = self.countdown()
        if remaining is None:
            logger.info("next_stake_unknown")
            return
        total = int(remaining.total_seconds())
        hours, rest = divmod(total, 3600)
        logger.info("next_stake_in", countdown=f"{hours}h {rest // 60}m {rest % 60}s")
