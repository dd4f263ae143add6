"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from wacraft_reminders.config import AppConfig, load_reminders
from wacraft_reminders.log import get_logger
from wacraft_reminders.reminders.dispatcher import ReminderDispatcher
from wacraft_reminders.reminders.models import DispatchResult, InactivityRule
from wacraft_reminders.services.daemon import ReminderDaemon
from wacraft_reminders.wacraft.client import WacraftClient
from wacraft_reminders.wacraft.credentials import Credentials

logger = get_logger(__name__)


class ReminderApp:
    """Top-level application orchestrator.

    The manual trigger and the daemon share one client (and so one
    credential store) and one dispatcher.
    """

    def __init__(self, config: AppConfig, mock: bool = False):
        self.config = config
        self.mock = mock
        self.client = WacraftClient(
            Credentials.from_config(config.wacraft), timeout=config.wacraft.timeout
        )
        self.dispatcher = ReminderDispatcher(self.client, config.email)
        self.daemon = ReminderDaemon(
            config.daemon,
            self.client,
            self.dispatcher,
            rules_loader=self.load_rules,
            mock=mock,
        )

    def load_rules(self) -> list[InactivityRule]:
        rules = load_reminders(self.config.reminders_file)
        logger.debug("reminder_rules_loaded", count=len(rules), path=self.config.reminders_file)
        return rules

    async def send_reminder(self, contact_id: str) -> DispatchResult:
        """Evaluate and dispatch for a single contact right now. Errors propagate."""
        logger.info("manual_reminder", contact_id=contact_id, mock=self.mock)
        return await self.dispatcher.process_contact(contact_id, self.load_rules(), mock=self.mock)

    async def start(self) -> None:
        await self.daemon.start()
        logger.info("wacraft_reminders_started")

    async def stop(self) -> None:
        await self.daemon.stop()
        await self.client.close()
        logger.info("wacraft_reminders_stopped")
