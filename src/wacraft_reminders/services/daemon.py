"""APScheduler-driven polling daemon that sweeps all conversations for reminders."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wacraft_reminders.config import DaemonConfig
from wacraft_reminders.core.types import DaemonState
from wacraft_reminders.log import get_logger

if TYPE_CHECKING:
    from wacraft_reminders.reminders.dispatcher import ReminderDispatcher
    from wacraft_reminders.reminders.models import InactivityRule
    from wacraft_reminders.wacraft.client import WacraftClient

logger = get_logger(__name__)

CYCLE_JOB_ID = "reminder_cycle"


@dataclass
class CycleStats:
    pages: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0


class ReminderDaemon:
    """Runs a reminder cycle every ``interval`` seconds.

    The job is registered with ``max_instances=1`` and ``coalesce=True`` so a
    cycle that overruns its interval is never overlapped by the next one.
    Usable as an async context manager that starts and stops the schedule.
    """

    def __init__(
        self,
        config: DaemonConfig,
        client: WacraftClient,
        dispatcher: ReminderDispatcher,
        rules_loader: Callable[[], Sequence[InactivityRule]],
        mock: bool = False,
    ):
        self._config = config
        self._client = client
        self._dispatcher = dispatcher
        self._rules_loader = rules_loader
        self._mock = mock
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._state = DaemonState.IDLE
        self._current_tick: Optional[asyncio.Task] = None

    @property
    def state(self) -> DaemonState:
        return self._state

    async def __aenter__(self) -> ReminderDaemon:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self._config.interval),
            id=CYCLE_JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        self._scheduler.start()
        logger.info(
            "daemon_started",
            interval=self._config.interval,
            batch_size=self._config.batch_size,
            mock=self._mock,
        )

    async def stop(self) -> None:
        """Stop scheduling and cancel a cycle that is still running."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            # AsyncIOScheduler defers the shutdown to the next loop iteration.
            await asyncio.sleep(0)
        tick = self._current_tick
        if tick is not None and not tick.done():
            logger.info("cancelling_running_cycle")
            tick.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await tick
        logger.info("daemon_stopped")

    async def health_check(self) -> bool:
        return self._scheduler.running

    async def tick(self) -> None:
        """One scheduled cycle. Failures abort this cycle only."""
        logger.info("daemon_tick")
        self._current_tick = asyncio.current_task()
        try:
            stats = await self.run_cycle()
        except Exception as e:
            logger.error("reminder_cycle_failed", error=str(e))
        else:
            logger.info(
                "reminder_cycle_finished",
                pages=stats.pages,
                processed=stats.processed,
                failed=stats.failed,
                skipped=stats.skipped,
            )
        finally:
            self._current_tick = None

    async def run_cycle(self) -> CycleStats:
        """Page through every conversation and dispatch reminders.

        A failed page fetch propagates and ends the cycle; a failure for a
        single contact is logged and the sweep continues.
        """
        stats = CycleStats()
        try:
            rules = list(self._rules_loader())
            if not rules:
                logger.info("no_reminder_rules")
                return stats

            batch_size = self._config.batch_size
            offset = 0
            while True:
                self._state = DaemonState.FETCHING
                logger.info("fetching_conversations", limit=batch_size, offset=offset)
                conversations = await self._client.get_conversations(batch_size, offset)
                if not conversations:
                    logger.info("no_more_conversations", offset=offset)
                    break
                stats.pages += 1

                self._state = DaemonState.DISPATCHING
                for conversation in conversations:
                    if conversation.to_contact is None:
                        stats.skipped += 1
                        continue
                    contact_id = conversation.to_contact.id
                    try:
                        result = await self._dispatcher.process_contact(
                            contact_id, rules, conversation, mock=self._mock
                        )
                    except Exception as e:
                        stats.failed += 1
                        logger.warning(
                            "contact_processing_failed",
                            contact_id=contact_id,
                            error_type=type(e).__name__,
                            error=str(e),
                        )
                    else:
                        stats.processed += 1
                        logger.info(
                            "contact_processed",
                            contact_id=contact_id,
                            status=str(result.status),
                            rule=result.rule_name,
                        )
                offset += batch_size
        finally:
            self._state = DaemonState.IDLE
        return stats
